from flask import Blueprint, jsonify, current_app
from flask_babel import gettext as _
from ..models import db, Ingredient, Product, ReadyStock, StockAdjustment
from ..auth import current_employee
from ..errors import ValidationError
from ..permissions import requires
from .utils import (
    get_payload, require_fields, parse_str, parse_float, parse_int, get_or_404,
    adjust_ingredient_stock, adjust_ready_stock, check_low_stock_ingredient, check_low_stock_product
)

stock_blueprint = Blueprint('stock', __name__)


@stock_blueprint.route('/stock')
@requires('stocks')
def stock():
    ingredients = Ingredient.query.order_by(Ingredient.name).all()
    ready = ReadyStock.query.all()
    return jsonify({
        'ingredients': [i.to_dict() for i in ingredients],
        'ready_stock': [r.to_dict() for r in ready]
    })


@stock_blueprint.route('/stock/low')
@requires('stocks')
def low_stock():
    threshold = current_app.config['READY_STOCK_LOW_THRESHOLD']
    ingredients = Ingredient.query.filter(Ingredient.quantity <= Ingredient.min_threshold).all()
    ready = ReadyStock.query.filter(ReadyStock.quantity <= threshold).all()
    return jsonify({
        'ingredients': [i.to_dict() for i in ingredients],
        'ready_stock': [r.to_dict() for r in ready]
    })


@stock_blueprint.route('/stock/adjust', methods=['POST'])
@requires('stocks', edit=True)
def adjust():
    """
    Manual correction of an ingredient or ready stock level.

    Payload: item_type ('raw_material' or 'product'), item_id, delta, reason.
    """
    data = get_payload()
    require_fields(data, 'item_type', 'item_id', 'delta')
    reason = parse_str(data.get('reason'), 'reason')

    item_type = data['item_type']
    item_id = parse_int(data['item_id'], 'item_id')

    if item_type not in ('raw_material', 'product'):
        raise ValidationError(_('Unknown item type'))
    if item_type == 'product':
        delta = parse_int(data['delta'], 'delta')
    else:
        delta = parse_float(data['delta'], 'delta')
    if delta == 0:
        raise ValidationError(_('The adjustment cannot be zero'))

    if item_type == 'raw_material':
        get_or_404(Ingredient, item_id, 'Ingredient')
        item = adjust_ingredient_stock(item_id, delta)
    else:
        get_or_404(Product, item_id, 'Product')
        item = adjust_ready_stock(item_id, delta)

    employee = current_employee()
    db.session.add(StockAdjustment(
        item_type=item_type,
        item_id=item_id,
        quantity_change=delta,
        reason=reason,
        employee_id=employee.id
    ))
    db.session.commit()

    if item_type == 'raw_material':
        check_low_stock_ingredient(item)
    else:
        check_low_stock_product(item)

    return jsonify({'success': True, 'item': item.to_dict()})


@stock_blueprint.route('/stock/adjustments')
@requires('stocks')
def adjustments():
    rows = StockAdjustment.query.order_by(StockAdjustment.created_at.desc()).limit(100).all()
    return jsonify([a.to_dict() for a in rows])
