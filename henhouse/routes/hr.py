from datetime import datetime
from flask import Blueprint, request, jsonify
from flask_babel import gettext as _
from ..models import db, Employee, WorkSession, PayrollRecord, GradeSalaryConfig, GRADES, SALARY_TYPES
from ..auth import current_employee
from ..costing import derive_commission_rate
from ..errors import ValidationError
from ..notifications import notify_employee_change, notify_payroll
from ..payroll import hourly_rate_for_grade, clock_in, clock_out, open_session, generate_payroll
from ..permissions import requires
from .utils import (
    get_payload, require_fields, parse_str, parse_float, parse_int, parse_date, get_or_404,
    log_admin_action, commit_admin_actions
)

hr_blueprint = Blueprint('hr', __name__)


def _parse_grade(value):
    grade = value or 'Employé Polyvalent'
    if grade not in GRADES:
        raise ValidationError(_('Unknown grade'))
    return grade


# ----------------------------
# Employees
# ----------------------------
@hr_blueprint.route('/hr/employees')
@requires('hr')
def employees():
    rows = Employee.query.order_by(Employee.first_name).all()
    return jsonify([e.to_dict() for e in rows])


@hr_blueprint.route('/hr/employees', methods=['POST'])
@requires('hr', edit=True)
def add_employee():
    data = get_payload()
    username = parse_str(data.get('username'), 'username')
    password = parse_str(data.get('password'), 'password', strip=False)
    if Employee.query.filter_by(username=username).first():
        raise ValidationError(_('This username is already taken'))

    grade = _parse_grade(data.get('grade'))
    employee = Employee(
        username=username,
        first_name=parse_str(data.get('first_name'), 'first_name'),
        last_name=parse_str(data.get('last_name'), 'last_name'),
        personal_id=parse_str(data.get('personal_id'), 'personal_id'),
        phone=parse_str(data.get('phone'), 'phone', required=False, default=''),
        rib=parse_str(data.get('rib'), 'rib', required=False, default=''),
        grade=grade,
        hourly_rate=parse_float(data.get('hourly_rate'), 'hourly_rate', minimum=0,
                                default=hourly_rate_for_grade(grade)),
        commission_rate=derive_commission_rate(grade).rate,
        is_active=True
    )
    employee.set_password(password)
    db.session.add(employee)
    db.session.commit()

    notify_employee_change(current_employee().full_name, 'Nouvel employé', employee.full_name, grade)
    return jsonify({'success': True, 'employee': employee.to_dict()}), 201


@hr_blueprint.route('/hr/employees/<int:employee_id>', methods=['PUT', 'POST'])
@requires('hr', edit=True)
def edit_employee(employee_id):
    employee = get_or_404(Employee, employee_id, 'Employee')
    data = get_payload()

    for field in ('first_name', 'last_name', 'personal_id'):
        if field in data:
            setattr(employee, field, parse_str(data[field], field))
    for field in ('phone', 'rib'):
        if field in data:
            setattr(employee, field, parse_str(data[field], field, required=False, default=''))

    if 'grade' in data:
        employee.grade = _parse_grade(data['grade'])
        employee.commission_rate = derive_commission_rate(employee.grade).rate
    if 'hourly_rate' in data:
        employee.hourly_rate = parse_float(data['hourly_rate'], 'hourly_rate', minimum=0)
    if data.get('password'):
        employee.set_password(parse_str(data['password'], 'password', strip=False))

    db.session.commit()
    notify_employee_change(current_employee().full_name, 'Employé modifié', employee.full_name, employee.grade)
    return jsonify({'success': True, 'employee': employee.to_dict()})


@hr_blueprint.route('/hr/employees/<int:employee_id>/toggle', methods=['POST'])
@requires('hr', edit=True)
def toggle_employee(employee_id):
    employee = get_or_404(Employee, employee_id, 'Employee')
    if employee.id == current_employee().id:
        raise ValidationError(_('You cannot deactivate your own account'))
    employee.is_active = not employee.is_active
    db.session.commit()

    notify_employee_change(current_employee().full_name,
                           'Employé réactivé' if employee.is_active else 'Employé désactivé',
                           employee.full_name, employee.grade)
    return jsonify({'success': True, 'employee': employee.to_dict()})


# ----------------------------
# Work sessions
# ----------------------------
@hr_blueprint.route('/timesheet')
@requires('timesheet')
def timesheet():
    employee = current_employee()
    rows = WorkSession.query.filter_by(employee_id=employee.id).order_by(WorkSession.clock_in.desc()).limit(50).all()
    current = open_session(employee.id)
    return jsonify({
        'open_session': current.to_dict() if current else None,
        'sessions': [s.to_dict() for s in rows]
    })


@hr_blueprint.route('/timesheet/clock-in', methods=['POST'])
@requires('timesheet', edit=True)
def clock_in_view():
    work_session = clock_in(current_employee())
    return jsonify({'success': True, 'session': work_session.to_dict()}), 201


@hr_blueprint.route('/timesheet/clock-out', methods=['POST'])
@requires('timesheet', edit=True)
def clock_out_view():
    work_session = clock_out(current_employee())
    return jsonify({'success': True, 'session': work_session.to_dict()})


@hr_blueprint.route('/hr/work-sessions')
@requires('hr')
def work_sessions():
    query = WorkSession.query.order_by(WorkSession.clock_in.desc())
    if request.args.get('employee_id'):
        query = query.filter_by(employee_id=request.args.get('employee_id', type=int))
    return jsonify([s.to_dict() for s in query.limit(200).all()])


# ----------------------------
# Payroll
# ----------------------------
@hr_blueprint.route('/hr/payroll')
@requires('hr')
def payroll():
    query = PayrollRecord.query.order_by(PayrollRecord.period_end.desc())
    if request.args.get('employee_id'):
        query = query.filter_by(employee_id=request.args.get('employee_id', type=int))
    return jsonify([p.to_dict() for p in query.all()])


@hr_blueprint.route('/hr/payroll', methods=['POST'])
@requires('hr', edit=True)
def create_payroll():
    data = get_payload()
    require_fields(data, 'employee_id')

    employee = get_or_404(Employee, parse_int(data['employee_id'], 'employee_id'), 'Employee')
    period_start = parse_date(data.get('period_start'), 'period_start')
    period_end = parse_date(data.get('period_end'), 'period_end')

    admin = current_employee()
    record = generate_payroll(
        employee, period_start, period_end,
        created_by=admin.id,
        bonuses=parse_float(data.get('bonuses'), 'bonuses', minimum=0, default=0.0),
        deductions=parse_float(data.get('deductions'), 'deductions', minimum=0, default=0.0),
        notes=parse_str(data.get('notes'), 'notes', required=False)
    )

    notify_payroll(admin.full_name, employee.full_name,
                   f"{period_start.isoformat()} - {period_end.isoformat()}", record.total_amount)
    return jsonify({'success': True, 'payroll': record.to_dict()}), 201


@hr_blueprint.route('/hr/payroll/<int:record_id>/paid', methods=['POST'])
@requires('hr', edit=True)
def mark_payroll_paid(record_id):
    record = get_or_404(PayrollRecord, record_id, 'Payroll record')
    if record.paid:
        raise ValidationError(_('Already paid'))
    record.paid = True
    record.paid_at = datetime.utcnow()
    db.session.commit()

    notify_payroll(current_employee().full_name, record.employee.full_name,
                   f"{record.period_start.isoformat()} - {record.period_end.isoformat()}",
                   record.total_amount, paid=True)
    return jsonify({'success': True, 'payroll': record.to_dict()})


# ----------------------------
# Salary configuration per grade
# ----------------------------
@hr_blueprint.route('/hr/salary-configs')
@requires('hr')
def salary_configs():
    return jsonify([c.to_dict() for c in GradeSalaryConfig.query.order_by(GradeSalaryConfig.grade).all()])


@hr_blueprint.route('/hr/salary-configs/<int:config_id>', methods=['PUT', 'POST'])
@requires('settings', edit=True)
def update_salary_config(config_id):
    config = get_or_404(GradeSalaryConfig, config_id, 'Salary config')
    data = get_payload()

    if 'salary_type' in data:
        if data['salary_type'] not in SALARY_TYPES:
            raise ValidationError(_('Unknown salary type'))
        config.salary_type = data['salary_type']
    if 'hourly_rate' in data:
        config.hourly_rate = parse_float(data['hourly_rate'], 'hourly_rate', minimum=0)
    if 'percentage' in data:
        config.percentage = parse_float(data['percentage'], 'percentage', minimum=0)
        if config.percentage > 100:
            raise ValidationError(_('percentage must be at most 100'))
    if 'calculation_basis' in data:
        if data['calculation_basis'] not in ('revenue', 'margin'):
            raise ValidationError(_('Unknown calculation basis'))
        config.calculation_basis = data['calculation_basis']

    log_admin_action('settings_change', 'salary', f"Salaire {config.grade}: {config.salary_type}")
    commit_admin_actions()
    return jsonify({'success': True, 'config': config.to_dict()})
