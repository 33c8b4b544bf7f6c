import json
from datetime import datetime

import pytest

from henhouse.models import (
    db as _db, Sale, SaleItem, Ingredient, ReadyStock, WorkSession, AdminActionLog, Loss,
    Menu, Partner, PartnerMenuPermission
)
from henhouse.partners import record_partner_sale
from henhouse.routes.dashboard import sales_by_day

from conftest import create_employee, create_ingredient, create_product, login


def add_sale(employee_id, product_id, quantity, price, created_at):
    sale = Sale(employee_id=employee_id, total=price * quantity, created_at=created_at)
    sale.items.append(SaleItem(product_id=product_id, quantity=quantity, unit_price=price,
                               subtotal=price * quantity))
    _db.session.add(sale)


def test_sales_by_day_is_zero_filled(app, db):
    employee_id = create_employee(app, 'alice')
    bread = create_product(app, 'Bread', 10.0)
    now = datetime(2026, 3, 10, 15)
    add_sale(employee_id, bread, 1, 10.0, datetime(2026, 3, 10, 9))
    add_sale(employee_id, bread, 2, 10.0, datetime(2026, 3, 10, 11))
    add_sale(employee_id, bread, 1, 10.0, datetime(2026, 3, 8, 11))
    # Too old
    add_sale(employee_id, bread, 9, 10.0, datetime(2026, 3, 1, 11))
    _db.session.commit()

    days = sales_by_day(7, now)

    assert len(days) == 7
    assert days[0] == {'date': '2026-03-04', 'total': 0.0}
    assert days[4] == {'date': '2026-03-08', 'total': 10.0}
    assert days[-1] == {'date': '2026-03-10', 'total': 30.0}


def test_dashboard(app, client, cook):
    bread = create_product(app, 'Bread', 10.0, stock=2)
    create_ingredient(app, 'Flour', 2.0, quantity=50)
    with app.app_context():
        add_sale(cook, bread, 3, 10.0, datetime.utcnow())
        _db.session.add(WorkSession(employee_id=cook))
        _db.session.commit()

    data = client.get('/dashboard').get_json()
    assert data['sales']['today'] == pytest.approx(30.0)
    assert data['active_employees'] == 1
    assert data['open_work_sessions'] == 1
    assert data['low_stock_count'] == 1
    assert data['top_products'][0] == {'name': 'Bread', 'quantity': 3, 'revenue': 30.0}
    assert len(data['sales_by_day']) == 7


def test_dashboard_requires_login(client):
    assert client.get('/dashboard').status_code == 401


def test_backup(app, client, admin):
    create_ingredient(app, 'Flour', 2.0)

    response = client.get('/admin/backup')
    assert response.status_code == 200
    assert response.mimetype == 'application/json'
    data = json.loads(response.data.decode('utf-8'))
    assert data['ingredients'][0]['name'] == 'Flour'
    assert data['statistics']['model_counts']['employees'] == 1


def test_backup_includes_partner_daily_counters(app, client, admin):
    with app.app_context():
        partner = Partner(name='Burger Shot')
        menu = Menu(name='Menu Poulet', price=12.0)
        _db.session.add_all([partner, menu])
        _db.session.flush()
        _db.session.add(PartnerMenuPermission(partner_id=partner.id, menu_id=menu.id,
                                              partner_price=8.0, daily_limit=10))
        _db.session.commit()
        record_partner_sale(partner.id, menu.id, 4, admin, day='2026-03-02')

    data = json.loads(client.get('/admin/backup').data.decode('utf-8'))
    assert data['partner_daily_usage'] == [
        {'id': 1, 'partner_id': 1, 'menu_id': 1, 'sale_date': '2026-03-02', 'quantity': 4}
    ]
    assert data['statistics']['model_counts']['partner_daily_usage'] == 1


def test_reset_needs_confirmation(app, client, admin):
    bread = create_product(app, 'Bread', 10.0, stock=5)
    flour = create_ingredient(app, 'Flour', 2.0, quantity=50)
    with app.app_context():
        add_sale(admin, bread, 1, 10.0, datetime.utcnow())
        _db.session.commit()

    assert client.post('/admin/reset', json={}).status_code == 400

    response = client.post('/admin/reset', json={'confirm': 'RESET'})
    assert response.status_code == 200
    assert response.get_json()['deleted']['sales'] == 1
    with app.app_context():
        assert Sale.query.count() == 0
        assert ReadyStock.query.filter_by(product_id=bread).one().quantity == 0
        assert _db.session.get(Ingredient, flour).quantity == 0
        assert AdminActionLog.query.filter_by(module_name='admin').count() == 1


def test_admin_is_restricted(app, client, cook):
    assert client.get('/admin/backup').status_code == 403
    assert client.post('/admin/reset', json={'confirm': 'RESET'}).status_code == 403


def test_admin_logs(app, client, admin):
    client.post('/settings/ingredients', json={'name': 'Flour', 'cost_per_unit': 1})
    logs = client.get('/admin/logs').get_json()
    assert logs[0]['module_name'] == 'ingredients'
    assert logs[0]['details']['description'].startswith('Ingrédient ajouté')


def test_expenses(app, client, webhooks):
    create_employee(app, 'manager', grade='Manager')
    login(client, 'manager')

    assert client.post('/expenses', json={'amount': 0, 'description': 'Gaz'}).status_code == 400
    assert client.post('/expenses', json={'amount': 40}).status_code == 400
    response = client.post('/expenses', json={'amount': 40, 'description': 'Gaz', 'category': 'Énergie'})
    assert response.status_code == 201
    assert webhooks[-1][0] == 'expenses'
    assert len(client.get('/expenses').get_json()) == 1


def test_employees_cannot_record_expenses(app, client, cook):
    assert client.get('/expenses').status_code == 200
    assert client.post('/expenses', json={'amount': 40, 'description': 'Gaz'}).status_code == 403


def test_loss_is_valued(app, client, webhooks):
    create_employee(app, 'manager', grade='Manager')
    login(client, 'manager')
    create_ingredient(app, 'Flour', 2.5)

    response = client.post('/losses', json={
        'item_type': 'raw_material', 'item_name': 'Flour', 'quantity': 4, 'reason': 'Sac percé'
    })
    assert response.status_code == 201
    assert response.get_json()['loss']['estimated_value'] == pytest.approx(10.0)
    assert webhooks[-1][0] == 'losses'

    assert client.post('/losses', json={
        'item_type': 'vehicle', 'item_name': 'Van', 'quantity': 1, 'reason': 'x'
    }).status_code == 400
    with app.app_context():
        assert Loss.query.count() == 1
