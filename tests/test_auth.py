from henhouse.auth import login as authenticate, get_employee_by_id
from henhouse.models import db as _db, Employee, ModulePermission
from henhouse.permissions import has_capability

from conftest import create_employee, login


def test_login_contract(app, db):
    employee_id = create_employee(app, 'alice')
    create_employee(app, 'gone', is_active=False)

    assert authenticate('alice', 'secret').id == employee_id
    assert authenticate('alice', 'wrong') is None
    assert authenticate('gone', 'secret') is None
    assert authenticate('nobody', 'secret') is None
    assert authenticate(['alice'], 'secret') is None
    assert authenticate('alice', 1234) is None
    assert get_employee_by_id(employee_id).username == 'alice'
    assert get_employee_by_id(999) is None
    assert get_employee_by_id('abc') is None


def test_session_lifecycle(app, client):
    create_employee(app, 'alice')

    assert client.get('/auth/me').status_code == 401

    response = login(client, 'alice', 'wrong')
    assert response.status_code == 401
    assert response.get_json() == {'success': False, 'error': 'Invalid username or password'}

    assert login(client, 'alice').status_code == 200
    assert client.get('/auth/me').get_json()['employee']['username'] == 'alice'

    assert client.post('/auth/logout').status_code == 200
    assert client.get('/auth/me').status_code == 401


def test_deactivated_employee_loses_session(app, client):
    employee_id = create_employee(app, 'alice')
    login(client, 'alice')

    with app.app_context():
        _db.session.get(Employee, employee_id).is_active = False
        _db.session.commit()

    assert client.get('/auth/me').status_code == 401


def test_change_password(app, client, webhooks):
    create_employee(app, 'alice')
    login(client, 'alice')

    response = client.post('/auth/password', json={
        'current_password': 'wrong', 'new_password': 'newpass', 'confirm_password': 'newpass'
    })
    assert response.status_code == 400
    assert webhooks[-1][0] == 'security'

    response = client.post('/auth/password', json={
        'current_password': 'secret', 'new_password': 'abc', 'confirm_password': 'abc'
    })
    assert response.status_code == 400

    response = client.post('/auth/password', json={
        'current_password': 'secret', 'new_password': 'newpass', 'confirm_password': 'newpass'
    })
    assert response.status_code == 200

    client.post('/auth/logout')
    assert login(client, 'alice', 'newpass').status_code == 200


def test_default_capabilities(app, db):
    assert has_capability('PDG', 'settings', edit=True)
    assert has_capability('CoPDG', 'menus')
    assert not has_capability('Manager', 'settings')
    assert has_capability('Manager', 'hr', edit=True)
    assert not has_capability('Employé Polyvalent', 'hr')
    assert has_capability('Employé Polyvalent', 'expenses')
    assert not has_capability('Employé Polyvalent', 'expenses', edit=True)
    assert has_capability('Employé Polyvalent', 'pos', edit=True)
    assert not has_capability('Stagiaire', 'pos')


def test_permissions_are_seeded_per_grade(app, db):
    assert ModulePermission.query.filter_by(module_name='settings').count() == 5


def test_routes_check_capabilities(app, client):
    create_employee(app, 'cook')

    assert client.get('/settings/ingredients').status_code == 401

    login(client, 'cook')
    assert client.get('/stock').status_code == 200
    response = client.get('/settings/ingredients')
    assert response.status_code == 403
    assert response.get_json()['success'] is False


def test_permission_edit_takes_effect(app, client, admin, webhooks):
    with app.app_context():
        row = ModulePermission.query.filter_by(module_name='settings', grade='Manager').first()
        permission_id = row.id

    response = client.post(f'/settings/permissions/{permission_id}', json={'can_view': True})
    assert response.status_code == 200
    assert any(category == 'admin_actions' for category, _embeds in webhooks)

    create_employee(app, 'manager', grade='Manager')
    client.post('/auth/logout')
    login(client, 'manager')
    assert client.get('/settings/ingredients').status_code == 200
    assert client.post('/settings/ingredients', json={'name': 'Salt'}).status_code == 403
