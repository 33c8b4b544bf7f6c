from flask import Blueprint, jsonify, current_app
from flask_babel import gettext as _
from ..models import db
from ..auth import login, current_session
from ..errors import AuthenticationError, ValidationError
from ..notifications import notify_security_alert
from .utils import get_payload, parse_str

auth_blueprint = Blueprint('auth', __name__)

# ----------------------------
# Login / Session
# ----------------------------
@auth_blueprint.route('/auth/login', methods=['POST'])
def login_view():
    data = get_payload()
    employee = login(data.get('username'), data.get('password'))
    if employee is None:
        current_app.logger.warning("Failed login for %s", data.get('username'))
        raise AuthenticationError(_('Invalid username or password'))

    current_session().start(employee)
    return jsonify({'success': True, 'employee': employee.to_dict()})


@auth_blueprint.route('/auth/logout', methods=['POST'])
def logout_view():
    current_session().clear()
    return jsonify({'success': True})


@auth_blueprint.route('/auth/me')
def me():
    session = current_session()
    if not session.is_authenticated:
        raise AuthenticationError(_('Authentication required'))
    return jsonify({'employee': session.employee.to_dict()})


@auth_blueprint.route('/auth/password', methods=['POST'])
def change_password():
    session = current_session()
    if not session.is_authenticated:
        raise AuthenticationError(_('Authentication required'))

    data = get_payload()
    current_password = parse_str(data.get('current_password'), 'current_password', strip=False)
    new_password = parse_str(data.get('new_password'), 'new_password', strip=False)
    confirm_password = parse_str(data.get('confirm_password'), 'confirm_password', strip=False)

    if new_password != confirm_password:
        raise ValidationError(_('Passwords do not match'))
    if len(new_password) < 4:
        raise ValidationError(_('Password must be at least 4 characters long'))

    employee = session.employee
    if not employee.check_password(current_password):
        notify_security_alert('Changement de mot de passe refusé', employee.full_name,
                              'Mot de passe actuel incorrect')
        raise ValidationError(_('Current password is incorrect'))

    employee.set_password(new_password)
    db.session.commit()
    return jsonify({'success': True})
