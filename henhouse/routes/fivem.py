"""
Inbound calls from the FiveM game server.

Authenticated by the shared secret in the X-HenHouse-Token header, not by
the employee session.
"""
import hmac
from flask import Blueprint, request, jsonify, current_app
from flask_babel import gettext as _
from ..models import db, Employee, Sale
from ..errors import AuthenticationError, ValidationError, NotFoundError
from ..notifications import notify_security_alert
from .utils import parse_float

fivem_blueprint = Blueprint('fivem', __name__)

TOKEN_HEADER = 'X-HenHouse-Token'

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET, POST, PUT, DELETE, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type, Authorization, X-Client-Info, Apikey, X-HenHouse-Token',
}

ADMIN_JOB = 'henhouse'
ADMIN_JOB_GRADE = 2


@fivem_blueprint.after_request
def add_cors_headers(response):
    response.headers.update(CORS_HEADERS)
    return response


def check_token():
    expected = current_app.config.get('FIVEM_TOKEN') or ''
    token = request.headers.get(TOKEN_HEADER) or ''
    if not expected or not hmac.compare_digest(token.encode('utf-8'), expected.encode('utf-8')):
        current_app.logger.warning("Rejected FiveM call from %s", request.remote_addr)
        notify_security_alert('Jeton FiveM invalide', 'FiveM', f"Appel refusé depuis {request.remote_addr}")
        raise AuthenticationError(_('Unauthorized - Invalid token'))


def _employee_by_identifier(user_id):
    if not user_id:
        raise ValidationError(_('user_id is required'))
    employee = Employee.query.filter_by(fivem_identifier=str(user_id)).first()
    if employee is None:
        raise NotFoundError(_('User not found'))
    return employee


def banking_transfer(data):
    """In-game bank payment: recorded as a pending banking sale"""
    employee = _employee_by_identifier(data.get('user_id'))
    amount = parse_float(data.get('amount'), 'amount')
    if amount <= 0:
        raise ValidationError(_('Amount must be positive'))

    sale = Sale(
        employee_id=employee.id,
        total=round(amount, 2),
        status='pending',
        payment_method='banking'
    )
    db.session.add(sale)
    db.session.commit()
    return {'success': True, 'sale_id': sale.id}


def setjob(data):
    employee = _employee_by_identifier(data.get('user_id'))
    try:
        grade = int(data.get('grade') or 0)
    except (TypeError, ValueError):
        raise ValidationError(_('grade must be a number'))

    employee.role = 'admin' if data.get('job') == ADMIN_JOB and grade >= ADMIN_JOB_GRADE else 'employee'
    db.session.commit()
    return {'success': True}


ACTIONS = {
    'banking_transfer': banking_transfer,
    'setjob': setjob,
}


@fivem_blueprint.route('/fivem/webhook', methods=['POST', 'OPTIONS'])
def webhook():
    if request.method == 'OPTIONS':
        return '', 200

    check_token()

    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        raise ValidationError(_('Invalid request body'))
    action = body.get('action')
    handler = ACTIONS.get(action) if isinstance(action, str) else None
    if handler is None:
        raise ValidationError(_('Unknown action'))
    data = body.get('data') or {}
    if not isinstance(data, dict):
        raise ValidationError(_('data must be an object'))
    return jsonify(handler(data))
