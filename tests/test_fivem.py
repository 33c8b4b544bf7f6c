from henhouse.models import db as _db, Employee, Sale

from conftest import create_employee

HEADERS = {'X-HenHouse-Token': 'test-token'}


def call(client, payload, headers=HEADERS):
    return client.post('/fivem/webhook', json=payload, headers=headers)


def test_token_is_required(app, client, webhooks):
    response = call(client, {'action': 'setjob', 'data': {}}, headers={'X-HenHouse-Token': 'nope'})
    assert response.status_code == 401
    assert call(client, {'action': 'setjob', 'data': {}}, headers={}).status_code == 401
    assert webhooks[-1][0] == 'security'


def test_empty_configured_token_rejects_everything(app, client):
    app.config['FIVEM_TOKEN'] = ''
    response = call(client, {'action': 'setjob', 'data': {}}, headers={'X-HenHouse-Token': ''})
    assert response.status_code == 401


def test_preflight(client):
    response = client.options('/fivem/webhook')
    assert response.status_code == 200
    assert 'X-HenHouse-Token' in response.headers['Access-Control-Allow-Headers']


def test_banking_transfer_creates_pending_sale(app, client):
    employee_id = create_employee(app, 'alice', fivem_identifier='license:abc')

    response = call(client, {'action': 'banking_transfer', 'data': {'user_id': 'license:abc', 'amount': 125.5}})
    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is True

    with app.app_context():
        sale = _db.session.get(Sale, body['sale_id'])
        assert sale.status == 'pending'
        assert sale.payment_method == 'banking'
        assert sale.total == 125.5
        assert sale.employee_id == employee_id


def test_banking_transfer_unknown_user(client):
    response = call(client, {'action': 'banking_transfer', 'data': {'user_id': 'license:zzz', 'amount': 10}})
    assert response.status_code == 404


def test_setjob(app, client):
    employee_id = create_employee(app, 'alice', fivem_identifier='license:abc')

    def role():
        with app.app_context():
            return _db.session.get(Employee, employee_id).role

    assert call(client, {'action': 'setjob', 'data': {'user_id': 'license:abc', 'job': 'henhouse', 'grade': 2}}).status_code == 200
    assert role() == 'admin'

    call(client, {'action': 'setjob', 'data': {'user_id': 'license:abc', 'job': 'henhouse', 'grade': 1}})
    assert role() == 'employee'

    call(client, {'action': 'setjob', 'data': {'user_id': 'license:abc', 'job': 'police', 'grade': 4}})
    assert role() == 'employee'

    response = call(client, {'action': 'setjob', 'data': {'user_id': 'license:zzz', 'job': 'henhouse', 'grade': 3}})
    assert response.status_code == 404


def test_unknown_action(client):
    response = call(client, {'action': 'teleport', 'data': {}})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Unknown action'


def test_malformed_payloads(client):
    assert call(client, ['setjob']).status_code == 400
    assert call(client, {'action': ['setjob'], 'data': {}}).status_code == 400
    response = call(client, {'action': 'banking_transfer', 'data': ['license:abc', 10]})
    assert response.status_code == 400
    assert response.get_json()['success'] is False
