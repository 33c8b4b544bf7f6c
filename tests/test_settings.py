import io

import pytest
from sqlalchemy.exc import OperationalError

from henhouse.models import db as _db, Ingredient, Product, Recipe, ReadyStock, AdminActionLog, ModulePermission

from conftest import create_ingredient, create_product


def product_figures(app, product_id):
    with app.app_context():
        product = _db.session.get(Product, product_id)
        return product.production_cost, product.margin


def test_ingredient_edit_updates_products(app, client, admin):
    response = client.post('/settings/ingredients', json={'name': 'Flour', 'unit': 'kg', 'cost_per_unit': 2.0})
    assert response.status_code == 201
    flour = response.get_json()['ingredient']['id']

    bread = client.post('/settings/products', json={'name': 'Bread', 'price': 10.0}).get_json()['product']['id']
    response = client.post('/settings/recipes', json={'product_id': bread, 'ingredient_id': flour, 'quantity_needed': 2})
    assert response.status_code == 201
    assert product_figures(app, bread) == (pytest.approx(4.0), pytest.approx(6.0))

    response = client.put(f'/settings/ingredients/{flour}', json={'cost_per_unit': 3.0})
    assert response.status_code == 200
    assert response.get_json()['recalculated_products'] == [bread]
    assert product_figures(app, bread) == (pytest.approx(6.0), pytest.approx(4.0))


def test_new_product_has_ready_stock(app, client, admin):
    response = client.post('/settings/products', json={'name': 'Cola', 'price': 2.5, 'category': 'Boissons'})
    product_id = response.get_json()['product']['id']

    with app.app_context():
        assert ReadyStock.query.filter_by(product_id=product_id).one().quantity == 0
        assert AdminActionLog.query.filter_by(module_name='products').count() == 1


def test_product_validation(app, client, admin):
    assert client.post('/settings/products', json={'name': 'Free', 'price': 0}).status_code == 400
    assert client.post('/settings/products', json={'name': 'Odd', 'price': 2, 'category': 'Nope'}).status_code == 400
    assert client.post('/settings/products', json={'name': 'Zero', 'price': 2, 'batch_size': 0}).status_code == 400


def test_price_change_moves_margin(app, client, admin):
    flour = create_ingredient(app, 'Flour', 2.0)
    bread = create_product(app, 'Bread', 10.0, recipes=[(flour, 2)])

    client.put(f'/settings/products/{bread}', json={'price': 12.0})
    assert product_figures(app, bread) == (pytest.approx(4.0), pytest.approx(8.0))


def test_recipe_edit_and_delete_recompute(app, client, admin):
    flour = create_ingredient(app, 'Flour', 2.0)
    bread = create_product(app, 'Bread', 10.0)
    recipe = client.post('/settings/recipes', json={
        'product_id': bread, 'ingredient_id': flour, 'quantity_needed': 1
    }).get_json()['recipe']['id']

    client.put(f'/settings/recipes/{recipe}', json={'quantity_needed': 3})
    assert product_figures(app, bread) == (pytest.approx(6.0), pytest.approx(4.0))

    client.delete(f'/settings/recipes/{recipe}')
    assert product_figures(app, bread) == (0, pytest.approx(10.0))


def test_recipe_quantity_must_be_positive(app, client, admin):
    flour = create_ingredient(app, 'Flour', 2.0)
    bread = create_product(app, 'Bread', 10.0)

    response = client.post('/settings/recipes', json={
        'product_id': bread, 'ingredient_id': flour, 'quantity_needed': -1
    })
    assert response.status_code == 400


def test_ingredient_delete_recomputes_products(app, client, admin):
    flour = create_ingredient(app, 'Flour', 2.0)
    sugar = create_ingredient(app, 'Sugar', 1.0)
    cake = create_product(app, 'Cake', 15.0, recipes=[(flour, 1), (sugar, 2)])

    response = client.delete(f'/settings/ingredients/{flour}')
    assert response.status_code == 200
    assert response.get_json()['recalculated_products'] == [cake]

    assert product_figures(app, cake) == (pytest.approx(2.0), pytest.approx(13.0))
    with app.app_context():
        assert Recipe.query.filter_by(ingredient_id=flour).count() == 0


def test_unknown_unit_rejected(app, client, admin):
    response = client.post('/settings/ingredients', json={'name': 'Milk', 'unit': 'gallon'})
    assert response.status_code == 400


def test_bulk_import(app, client, admin):
    flour = create_ingredient(app, 'Flour', 2.0)
    bread = create_product(app, 'Bread', 10.0, recipes=[(flour, 2)])

    csv = (
        "name,unit,cost_per_unit,quantity\n"
        "Flour,kg,2.5,\n"
        "Butter,kg,8,4\n"
        ",kg,1,\n"
        "Salt,kg,abc,\n"
    )
    response = client.post('/settings/ingredients/import', data={
        'file': (io.BytesIO(csv.encode('utf-8')), 'prices.csv')
    }, content_type='multipart/form-data')

    assert response.status_code == 200
    result = response.get_json()
    assert result['created'] == ['Butter']
    assert result['updated'] == ['Flour']
    assert result['skipped_rows'] == [4, 5]
    assert result['recalculated_products'] == [bread]

    assert product_figures(app, bread) == (pytest.approx(5.0), pytest.approx(5.0))
    with app.app_context():
        butter = Ingredient.query.filter_by(name='Butter').one()
        assert butter.quantity == 4
        assert butter.cost_per_unit == 8


def test_bulk_import_needs_columns(app, client, admin):
    response = client.post('/settings/ingredients/import', data={
        'file': (io.BytesIO(b"label,price\nFlour,2\n"), 'prices.csv')
    }, content_type='multipart/form-data')
    assert response.status_code == 400


def test_webhook_config(app, client, admin):
    response = client.post('/settings/webhooks', json={'module_name': 'sales', 'webhook_url': 'https://example.test/hook'})
    assert response.status_code == 201
    assert client.post('/settings/webhooks', json={'module_name': 'sales', 'webhook_url': 'x'}).status_code == 400
    assert client.post('/settings/webhooks', json={'module_name': 'weather', 'webhook_url': 'x'}).status_code == 400


def test_admin_action_is_announced_only_once_committed(app, client, admin, webhooks, monkeypatch):
    with app.app_context():
        permission_id = ModulePermission.query.filter_by(grade='Manager', module_name='menus').one().id

    real_commit = _db.session.commit
    failures = [OperationalError('COMMIT', {}, Exception('database is locked'))]

    def flaky_commit():
        if failures:
            raise failures.pop()
        return real_commit()

    monkeypatch.setattr(_db.session, 'commit', flaky_commit)

    response = client.post(f'/settings/permissions/{permission_id}', json={'can_edit': True})
    assert response.status_code == 500
    assert [category for category, _embeds in webhooks if category == 'admin_actions'] == []
    with app.app_context():
        assert _db.session.get(ModulePermission, permission_id).can_edit is False
        assert AdminActionLog.query.count() == 0

    response = client.post(f'/settings/permissions/{permission_id}', json={'can_edit': True})
    assert response.status_code == 200
    assert [category for category, _embeds in webhooks] == ['admin_actions']


def test_recipe_can_switch_ingredient(app, client, admin):
    flour = create_ingredient(app, 'Flour', 2.0)
    rye = create_ingredient(app, 'Rye', 5.0)
    bread = create_product(app, 'Bread', 10.0)
    recipe = client.post('/settings/recipes', json={
        'product_id': bread, 'ingredient_id': flour, 'quantity_needed': 1
    }).get_json()['recipe']['id']
    assert product_figures(app, bread) == (pytest.approx(2.0), pytest.approx(8.0))

    response = client.put(f'/settings/recipes/{recipe}', json={'quantity_needed': 1, 'ingredient_id': rye})
    assert response.status_code == 200
    assert product_figures(app, bread) == (pytest.approx(5.0), pytest.approx(5.0))

    # The old ingredient no longer drives the product, the new one does
    assert client.put(f'/settings/ingredients/{flour}', json={'cost_per_unit': 9.0}).get_json()['recalculated_products'] == []
    assert client.put(f'/settings/ingredients/{rye}', json={'cost_per_unit': 6.0}).get_json()['recalculated_products'] == [bread]
    assert product_figures(app, bread) == (pytest.approx(6.0), pytest.approx(4.0))


@pytest.mark.parametrize('url, payload', [
    ('/settings/ingredients', {'name': 5}),
    ('/settings/ingredients', ['Flour']),
    ('/settings/products', {'name': ['Bread'], 'price': 10}),
    ('/settings/products', {'name': 'Bread', 'price': 10, 'description': {'x': 1}}),
    ('/settings/partners', {'name': 42}),
    ('/settings/webhooks', {'module_name': ['sales'], 'webhook_url': 'https://example.test'}),
])
def test_wrongly_typed_fields_are_rejected(app, client, admin, url, payload):
    response = client.post(url, json=payload)
    assert response.status_code == 400
    assert response.get_json()['success'] is False
    with app.app_context():
        assert Ingredient.query.count() == 0
        assert Product.query.count() == 0
