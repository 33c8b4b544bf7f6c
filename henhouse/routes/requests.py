from flask import Blueprint, request, jsonify
from ..models import EmployeeRequest
from ..auth import current_employee
from ..inbox import create_request, review_request
from ..notifications import notify_employee_request
from ..permissions import requires
from .utils import get_payload, parse_str, parse_float, parse_date

requests_blueprint = Blueprint('requests', __name__)


@requests_blueprint.route('/requests')
@requires('requests')
def my_requests():
    rows = (EmployeeRequest.query
            .filter_by(employee_id=current_employee().id)
            .order_by(EmployeeRequest.created_at.desc(), EmployeeRequest.id.desc())
            .all())
    return jsonify([r.to_dict() for r in rows])


@requests_blueprint.route('/requests', methods=['POST'])
@requires('requests', edit=True)
def add_request():
    data = get_payload()
    request_type = parse_str(data.get('request_type'), 'request_type')
    amount = None
    if request_type == 'advance' and data.get('amount') not in (None, ''):
        amount = parse_float(data.get('amount'), 'amount')

    employee = current_employee()
    employee_request = create_request(
        employee,
        request_type,
        parse_str(data.get('title'), 'title'),
        parse_str(data.get('description'), 'description'),
        start_date=parse_date(data.get('start_date'), 'start_date', required=False),
        end_date=parse_date(data.get('end_date'), 'end_date', required=False),
        amount=amount
    )

    notify_employee_request(employee.full_name, request_type, employee_request.title, 'pending')
    return jsonify({'success': True, 'request': employee_request.to_dict()}), 201


# ----------------------------
# HR review
# ----------------------------
@requests_blueprint.route('/hr/requests')
@requires('hr')
def pending_requests():
    query = EmployeeRequest.query
    status = request.args.get('status', 'pending')
    if status != 'all':
        query = query.filter_by(status=status)
    rows = query.order_by(EmployeeRequest.created_at.desc(), EmployeeRequest.id.desc()).all()
    return jsonify([r.to_dict() for r in rows])


@requests_blueprint.route('/hr/requests/<int:request_id>/review', methods=['POST'])
@requires('hr', edit=True)
def review(request_id):
    data = get_payload()
    reviewer = current_employee()
    employee_request = review_request(
        request_id,
        reviewer,
        parse_str(data.get('status'), 'status'),
        message=parse_str(data.get('message'), 'message', required=False)
    )

    notify_employee_request(employee_request.employee.full_name, employee_request.request_type,
                            employee_request.title, employee_request.status, reviewer.full_name)
    return jsonify({'success': True, 'request': employee_request.to_dict()})
