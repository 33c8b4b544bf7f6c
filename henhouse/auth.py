"""
Employee authentication and the per-request session object.

The signed Flask session cookie only carries the employee id. Each request
loads it once into an EmployeeSession on flask.g; login and logout are the
only places that change it.
"""
from flask import g, session
from .models import db, Employee

SESSION_KEY = 'henhouse_employee_id'


def login(username, password):
    """Returns the active employee matching the credentials, or None."""
    if not isinstance(username, str) or not isinstance(password, str):
        return None
    if not username or not password:
        return None
    employee = Employee.query.filter_by(username=username).first()
    if employee is None or not employee.is_active:
        return None
    if not employee.check_password(password):
        return None
    return employee


def get_employee_by_id(employee_id):
    try:
        employee_id = int(employee_id)
    except (TypeError, ValueError):
        return None
    return db.session.get(Employee, employee_id)


class EmployeeSession:
    def __init__(self, employee=None):
        self.employee = employee

    @property
    def is_authenticated(self):
        return self.employee is not None

    @property
    def employee_id(self):
        return self.employee.id if self.employee else None

    @classmethod
    def load(cls):
        """Builds the session from the cookie; stale or inactive ids are dropped."""
        employee = get_employee_by_id(session.get(SESSION_KEY))
        if employee is not None and not employee.is_active:
            employee = None
        if employee is None:
            session.pop(SESSION_KEY, None)
        return cls(employee)

    def start(self, employee):
        self.employee = employee
        session[SESSION_KEY] = employee.id

    def clear(self):
        self.employee = None
        session.pop(SESSION_KEY, None)


def current_session():
    if 'employee_session' not in g:
        g.employee_session = EmployeeSession.load()
    return g.employee_session


def current_employee():
    return current_session().employee


def create_bootstrap_admin(username, password):
    """First PDG account of an empty database. Does nothing once employees exist."""
    if not username or not password or Employee.query.first() is not None:
        return None
    employee = Employee(
        username=username,
        first_name='Admin',
        last_name='Hen House',
        personal_id='0',
        grade='PDG',
        role='admin',
        commission_rate=50.0,
        is_active=True
    )
    employee.set_password(password)
    db.session.add(employee)
    db.session.commit()
    return employee
