from datetime import datetime
from flask import Blueprint, request, jsonify
from flask_babel import gettext as _
from ..models import db, Product, ProductionOrder, Partner
from ..auth import current_employee
from ..errors import ValidationError
from ..notifications import notify_production
from ..permissions import requires
from .utils import (
    get_payload, require_fields, parse_int, get_or_404,
    adjust_ingredient_stock, adjust_ready_stock, check_low_stock_ingredient
)

production_blueprint = Blueprint('production', __name__)

STATUSES = ['pending', 'in_progress', 'completed', 'cancelled']


def consume_ingredients(product, quantity):
    """
    Takes the ingredients of `quantity` units out of stock.

    Recipes are written per batch of product.batch_size units, so each line
    uses quantity_needed * quantity / batch_size. Returns the consumed
    ingredients as (ingredient, amount).
    """
    batch_size = product.batch_size or 1
    consumed = []
    for recipe in product.recipes:
        amount = round(recipe.quantity_needed * quantity / batch_size, 4)
        ingredient = adjust_ingredient_stock(recipe.ingredient_id, -amount)
        consumed.append((ingredient, amount))
    return consumed


@production_blueprint.route('/production/orders')
@requires('production')
def orders():
    query = ProductionOrder.query.order_by(ProductionOrder.created_at.desc())
    status = request.args.get('status')
    if status:
        if status not in STATUSES:
            raise ValidationError(_('Unknown status'))
        query = query.filter_by(status=status)
    return jsonify([o.to_dict() for o in query.all()])


@production_blueprint.route('/production/orders', methods=['POST'])
@requires('production', edit=True)
def create_order():
    data = get_payload()
    require_fields(data, 'product_id', 'quantity')

    product = get_or_404(Product, parse_int(data['product_id'], 'product_id'), 'Product')
    quantity = parse_int(data['quantity'], 'quantity', minimum=1)

    partner_id = None
    if data.get('partner_id'):
        partner_id = get_or_404(Partner, parse_int(data['partner_id'], 'partner_id'), 'Partner').id

    order = ProductionOrder(
        product_id=product.id,
        quantity_ordered=quantity,
        status='pending',
        created_by=current_employee().id,
        partner_id=partner_id
    )
    db.session.add(order)
    db.session.commit()
    return jsonify({'success': True, 'order': order.to_dict()}), 201


@production_blueprint.route('/production/orders/<int:order_id>/start', methods=['POST'])
@requires('production', edit=True)
def start_order(order_id):
    order = get_or_404(ProductionOrder, order_id, 'Production order')
    if order.status != 'pending':
        raise ValidationError(_('Only pending orders can be started'))

    employee = current_employee()
    order.status = 'in_progress'
    order.started_by = employee.id
    order.started_at = datetime.utcnow()
    db.session.commit()

    notify_production(employee.full_name, order.product.name, order.quantity_ordered, 'En cours')
    return jsonify({'success': True, 'order': order.to_dict()})


@production_blueprint.route('/production/orders/<int:order_id>/complete', methods=['POST'])
@requires('production', edit=True)
def complete_order(order_id):
    order = get_or_404(ProductionOrder, order_id, 'Production order')
    if order.status not in ('pending', 'in_progress'):
        raise ValidationError(_('This order is already closed'))

    data = get_payload()
    quantity = parse_int(data.get('quantity_produced'), 'quantity_produced',
                         minimum=1, default=order.quantity_ordered)

    product = order.product
    consumed = consume_ingredients(product, quantity)
    adjust_ready_stock(product.id, quantity)

    employee = current_employee()
    order.status = 'completed'
    order.quantity_produced = quantity
    order.completed_at = datetime.utcnow()
    if order.started_by is None:
        order.started_by = employee.id
        order.started_at = order.completed_at
    db.session.commit()

    notify_production(employee.full_name, product.name, quantity, 'Terminé',
                      [(ingredient.name, amount, ingredient.unit) for ingredient, amount in consumed])
    for ingredient, _amount in consumed:
        check_low_stock_ingredient(ingredient)

    return jsonify({'success': True, 'order': order.to_dict()})


@production_blueprint.route('/production/orders/<int:order_id>/cancel', methods=['POST'])
@requires('production', edit=True)
def cancel_order(order_id):
    order = get_or_404(ProductionOrder, order_id, 'Production order')
    if order.status not in ('pending', 'in_progress'):
        raise ValidationError(_('This order is already closed'))
    order.status = 'cancelled'
    db.session.commit()
    return jsonify({'success': True, 'order': order.to_dict()})
