import pytest

from henhouse import create_app
from henhouse import notifications
from henhouse.models import db as _db, Employee, Ingredient, Product, Recipe, ReadyStock

PASSWORD = 'secret'


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SECRET_KEY': 'test-secret',
        'FIVEM_TOKEN': 'test-token',
        'WEBHOOKS': {},
    })
    yield app
    with app.app_context():
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    with app.app_context():
        yield _db


@pytest.fixture
def webhooks(monkeypatch):
    """Records (category, embeds) instead of posting them"""
    sent = []

    def fake_send(category, embeds):
        sent.append((category, embeds))
        return True

    monkeypatch.setattr(notifications, 'send_webhook', fake_send)
    return sent


def create_employee(app, username, grade='Employé Polyvalent', password=PASSWORD, **kwargs):
    with app.app_context():
        employee = Employee(
            username=username,
            first_name=kwargs.pop('first_name', username.capitalize()),
            last_name=kwargs.pop('last_name', 'Test'),
            personal_id=kwargs.pop('personal_id', f"ID-{username}"),
            grade=grade,
            **kwargs
        )
        employee.set_password(password)
        _db.session.add(employee)
        _db.session.commit()
        return employee.id


def login(client, username, password=PASSWORD):
    return client.post('/auth/login', json={'username': username, 'password': password})


def create_ingredient(app, name, cost_per_unit, quantity=100.0, unit='kg', min_threshold=10.0):
    with app.app_context():
        ingredient = Ingredient(name=name, cost_per_unit=cost_per_unit, quantity=quantity,
                                unit=unit, min_threshold=min_threshold)
        _db.session.add(ingredient)
        _db.session.commit()
        return ingredient.id


def create_product(app, name, price, stock=0, batch_size=1, recipes=()):
    """`recipes` is a list of (ingredient_id, quantity_needed)"""
    with app.app_context():
        product = Product(name=name, price=price, margin=price, batch_size=batch_size)
        _db.session.add(product)
        _db.session.flush()
        _db.session.add(ReadyStock(product_id=product.id, quantity=stock))
        for ingredient_id, quantity_needed in recipes:
            _db.session.add(Recipe(product_id=product.id, ingredient_id=ingredient_id,
                                   quantity_needed=quantity_needed))
        _db.session.commit()
        return product.id


@pytest.fixture
def admin(app, client):
    employee_id = create_employee(app, 'boss', grade='PDG')
    login(client, 'boss')
    return employee_id


@pytest.fixture
def cook(app, client):
    employee_id = create_employee(app, 'cook', grade='Employé Polyvalent')
    login(client, 'cook')
    return employee_id
