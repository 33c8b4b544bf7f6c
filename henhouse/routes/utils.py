import json
from datetime import datetime
import math
from flask import request, current_app, g
from flask_babel import gettext as _
from sqlalchemy import update
from ..models import db, Ingredient, ReadyStock, AdminActionLog, INGREDIENT_UNITS
from ..errors import ValidationError, NotFoundError, InsufficientStockError
from ..auth import current_employee
from ..notifications import notify_admin_action, notify_low_stock


def get_payload():
    """JSON body of the request, or form fields for classic posts"""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationError(_('Invalid request body'))
    return data


def require_fields(data, *fields):
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise ValidationError(_('Missing required fields: %(fields)s', fields=', '.join(missing)))


def parse_str(value, field, required=True, default=None, strip=True):
    """Stripped text value; non-string JSON values are rejected"""
    if value is None or value == '':
        if required:
            raise ValidationError(_('%(field)s is required', field=field))
        return default
    if not isinstance(value, str):
        raise ValidationError(_('%(field)s must be text', field=field))
    text = value.strip() if strip else value
    if required and not text.strip():
        raise ValidationError(_('%(field)s is required', field=field))
    return text


def parse_items(value, field='items'):
    """A list of JSON objects, as sent for carts and menu contents"""
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise ValidationError(_('%(field)s must be a list of objects', field=field))
    return value


def parse_float(value, field, minimum=None, default=None):
    if value in (None, ''):
        if default is not None:
            return default
        raise ValidationError(_('%(field)s is required', field=field))
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(_('%(field)s must be a number', field=field))
    if not math.isfinite(number):
        raise ValidationError(_('%(field)s must be a number', field=field))
    if minimum is not None and number < minimum:
        raise ValidationError(_('%(field)s must be at least %(min)s', field=field, min=minimum))
    return number


def parse_int(value, field, minimum=None, default=None):
    number = parse_float(value, field, minimum=minimum, default=default)
    if number != int(number):
        raise ValidationError(_('%(field)s must be a whole number', field=field))
    return int(number)


def parse_date(value, field, required=True):
    """A YYYY-MM-DD date"""
    if not value:
        if required:
            raise ValidationError(_('%(field)s is required', field=field))
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError(_('Invalid date format'))


def parse_unit(value):
    unit = value or 'kg'
    if unit not in INGREDIENT_UNITS:
        raise ValidationError(_('Unit must be one of %(units)s', units=', '.join(INGREDIENT_UNITS)))
    return unit


def get_or_404(model, object_id, label=None):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(_('%(label)s not found', label=label or model.__name__))
    return obj


def log_admin_action(action_type, module_name, details):
    """Stores the admin action in the current session.

    The admin webhook is only posted by commit_admin_actions(), once the
    change is committed.
    """
    employee = current_employee()
    db.session.add(AdminActionLog(
        employee_id=employee.id if employee else None,
        action_type=action_type,
        module_name=module_name,
        details=json.dumps({'description': details}, ensure_ascii=False)
    ))
    g.setdefault('pending_admin_actions', []).append(
        (employee.full_name if employee else 'System', action_type, module_name, details)
    )


def commit_admin_actions():
    db.session.commit()
    for admin_name, action_type, module_name, details in g.pop('pending_admin_actions', []):
        notify_admin_action(admin_name, action_type, module_name, details)


def adjust_ingredient_stock(ingredient_id, delta):
    """
    Applies `delta` to an ingredient's quantity in one conditional UPDATE.

    Fails with InsufficientStockError instead of going below zero. Returns the
    refreshed ingredient.
    """
    result = db.session.execute(
        update(Ingredient)
        .where(Ingredient.id == ingredient_id)
        .where(Ingredient.quantity + delta >= 0)
        .values(quantity=Ingredient.quantity + delta)
        .execution_options(synchronize_session=False)
    )
    ingredient = db.session.get(Ingredient, ingredient_id)
    if ingredient is None:
        raise NotFoundError(_('Ingredient not found'))
    if result.rowcount == 0:
        raise InsufficientStockError(
            _('Insufficient stock for %(name)s (available: %(qty)s %(unit)s)',
              name=ingredient.name, qty=f"{ingredient.quantity:g}", unit=ingredient.unit)
        )
    db.session.refresh(ingredient)
    return ingredient


def adjust_ready_stock(product_id, delta):
    """Same as adjust_ingredient_stock for finished products."""
    stock = ReadyStock.query.filter_by(product_id=product_id).first()
    if stock is None:
        if delta < 0:
            raise InsufficientStockError(_('Insufficient stock'))
        stock = ReadyStock(product_id=product_id, quantity=0)
        db.session.add(stock)
        db.session.flush()

    result = db.session.execute(
        update(ReadyStock)
        .where(ReadyStock.id == stock.id)
        .where(ReadyStock.quantity + delta >= 0)
        .values(quantity=ReadyStock.quantity + delta)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        name = stock.product.name if stock.product else product_id
        raise InsufficientStockError(_('Insufficient stock for %(name)s', name=name))
    db.session.refresh(stock)
    return stock


def check_low_stock_ingredient(ingredient):
    if ingredient.quantity <= ingredient.min_threshold:
        notify_low_stock(ingredient.name, ingredient.quantity, 'Ingrédient')


def check_low_stock_product(stock):
    if stock.quantity <= current_app.config['READY_STOCK_LOW_THRESHOLD']:
        notify_low_stock(stock.product.name, stock.quantity, 'Produit')
