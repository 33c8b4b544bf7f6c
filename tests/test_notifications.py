import json
from urllib import error

from henhouse import notifications
from henhouse.models import db as _db, WebhookConfig

from conftest import create_product


class FakeResponse:
    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False

    def read(self):
        return b''


def test_embed_is_posted(app, db, monkeypatch):
    app.config['WEBHOOKS'] = {'sales': 'https://example.test/sales'}
    posted = []

    def fake_urlopen(req, timeout=None):
        posted.append((req.full_url, json.loads(req.data.decode('utf-8')), timeout))
        return FakeResponse()

    monkeypatch.setattr(notifications.request, 'urlopen', fake_urlopen)

    assert notifications.notify_sale('Alice Test', 'F-001', 30.0, 'cash', [('Bread', 2, 10.0)]) is True

    url, body, timeout = posted[0]
    assert url == 'https://example.test/sales'
    assert timeout == app.config['WEBHOOK_TIMEOUT']
    embed = body['embeds'][0]
    assert embed['title'] == '💰 Nouvelle Vente'
    assert {'name': 'Montant Total', 'value': '$30.00', 'inline': True} in embed['fields']
    assert 'timestamp' in embed


def test_delivery_failure_is_swallowed(app, db, monkeypatch):
    app.config['WEBHOOKS'] = {'low_stock': 'https://example.test/stock'}

    def failing_urlopen(req, timeout=None):
        raise error.URLError('connection refused')

    monkeypatch.setattr(notifications.request, 'urlopen', failing_urlopen)

    assert notifications.notify_low_stock('Flour', 3, 'Ingrédient') is False


def test_configured_row_overrides_environment(app, db):
    app.config['WEBHOOKS'] = {'expenses': 'https://example.test/env'}
    _db.session.add(WebhookConfig(module_name='expenses', webhook_url='https://example.test/db', is_enabled=False))
    _db.session.commit()

    assert notifications.resolve_webhook_url('expenses') is None

    WebhookConfig.query.filter_by(module_name='expenses').one().is_enabled = True
    _db.session.commit()
    assert notifications.resolve_webhook_url('expenses') == 'https://example.test/db'


def test_no_url_means_no_call(app, db, monkeypatch):
    def unexpected(req, timeout=None):
        raise AssertionError('should not be called')

    monkeypatch.setattr(notifications.request, 'urlopen', unexpected)
    assert notifications.send_webhook('hr', []) is False


def test_failing_webhook_does_not_break_a_sale(app, client, cook, monkeypatch):
    app.config['WEBHOOKS'] = {'sales': 'https://example.test/sales'}

    def failing_urlopen(req, timeout=None):
        raise OSError('timed out')

    monkeypatch.setattr(notifications.request, 'urlopen', failing_urlopen)
    bread = create_product(app, 'Bread', 10.0, stock=5)

    response = client.post('/pos/sales', json={
        'invoice_number': 'F-9', 'items': [{'product_id': bread, 'quantity': 1}]
    })
    assert response.status_code == 201
