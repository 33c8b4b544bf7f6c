import pytest

from henhouse.models import EmployeeRequest, Notification

from conftest import create_employee, login


def leave(client, **overrides):
    payload = {
        'request_type': 'leave', 'title': 'Vacances', 'description': 'Une semaine',
        'start_date': '2026-07-01', 'end_date': '2026-07-07'
    }
    payload.update(overrides)
    return client.post('/requests', json=payload)


def test_create_request_notifies_employee(app, client, cook, webhooks):
    response = leave(client)
    assert response.status_code == 201
    created = response.get_json()['request']
    assert created['status'] == 'pending'
    assert created['start_date'] == '2026-07-01'
    assert created['amount'] is None
    assert webhooks[-1][0] == 'requests'

    notifications = client.get('/notifications').get_json()['notifications']
    assert [n['title'] for n in notifications] == ['Demande créée']
    assert notifications[0]['type'] == 'info'
    assert '"Vacances"' in notifications[0]['message']

    mine = client.get('/requests').get_json()
    assert [r['id'] for r in mine] == [created['id']]


def test_advance_keeps_amount(app, client, cook):
    response = client.post('/requests', json={
        'request_type': 'advance', 'title': 'Avance', 'description': 'Loyer', 'amount': 250
    })
    assert response.status_code == 201
    assert response.get_json()['request']['amount'] == 250


@pytest.mark.parametrize('overrides', [
    {'request_type': 'holiday'},
    {'end_date': None},
    {'end_date': '2026-06-30'},
    {'start_date': 'tomorrow'},
    {'title': ''},
    {'description': 42},
    {'request_type': 'advance', 'amount': 0},
    {'request_type': 'advance', 'amount': 'lots'},
])
def test_invalid_requests(app, client, cook, overrides):
    assert leave(client, **overrides).status_code == 400
    with app.app_context():
        assert EmployeeRequest.query.count() == 0
        assert Notification.query.count() == 0


def test_employees_only_see_their_requests(app, client, cook):
    leave(client, title='Mine')
    create_employee(app, 'other')
    login(client, 'other')
    leave(client, title='Theirs')

    assert [r['title'] for r in client.get('/requests').get_json()] == ['Theirs']


def test_manager_approves_request(app, client, cook, webhooks):
    request_id = leave(client).get_json()['request']['id']
    create_employee(app, 'chief', grade='Manager')
    login(client, 'chief')

    pending = client.get('/hr/requests').get_json()
    assert [r['id'] for r in pending] == [request_id]

    response = client.post(f'/hr/requests/{request_id}/review', json={'status': 'approved', 'message': 'Bonnes vacances'})
    assert response.status_code == 200
    reviewed = response.get_json()['request']
    assert reviewed['status'] == 'approved'
    assert reviewed['reviewer_name'] == 'Chief Test'
    assert reviewed['review_message'] == 'Bonnes vacances'
    assert reviewed['reviewed_at'] is not None
    assert webhooks[-1][0] == 'requests'

    assert client.get('/hr/requests').get_json() == []
    # Already reviewed
    assert client.post(f'/hr/requests/{request_id}/review', json={'status': 'rejected'}).status_code == 400

    with app.app_context():
        latest = Notification.query.filter_by(employee_id=cook).order_by(Notification.id.desc()).first()
        assert latest.title == 'Demande approuvée'
        assert latest.type == 'success'


def test_rejection_notifies_with_error_type(app, client, cook):
    request_id = leave(client).get_json()['request']['id']
    create_employee(app, 'chief', grade='Manager')
    login(client, 'chief')

    assert client.post(f'/hr/requests/{request_id}/review', json={'status': 'maybe'}).status_code == 400
    response = client.post(f'/hr/requests/{request_id}/review', json={'status': 'rejected'})
    assert response.get_json()['request']['status'] == 'rejected'

    with app.app_context():
        latest = Notification.query.filter_by(employee_id=cook).order_by(Notification.id.desc()).first()
        assert latest.title == 'Demande refusée'
        assert latest.type == 'error'


def test_review_needs_hr_capability(app, client, cook):
    request_id = leave(client).get_json()['request']['id']

    assert client.get('/hr/requests').status_code == 403
    assert client.post(f'/hr/requests/{request_id}/review', json={'status': 'approved'}).status_code == 403
    assert client.post('/hr/requests/999/review', json={'status': 'approved'}).status_code == 403


def test_review_unknown_request(app, client, admin):
    assert client.post('/hr/requests/999/review', json={'status': 'approved'}).status_code == 404
