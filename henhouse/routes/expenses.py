from flask import Blueprint, jsonify
from flask_babel import gettext as _
from ..models import db, Expense, Loss, Ingredient, Product
from ..auth import current_employee
from ..errors import ValidationError
from ..notifications import notify_expense, notify_loss
from ..permissions import requires
from .utils import get_payload, parse_str, parse_float

expenses_blueprint = Blueprint('expenses', __name__)

LOSS_ITEM_TYPES = ['product', 'raw_material']


def estimate_loss_value(item_type, item_name, quantity):
    """Quantity valued at production cost for products, purchase cost for ingredients"""
    if item_type == 'product':
        product = Product.query.filter_by(name=item_name).first()
        return round(product.production_cost * quantity, 2) if product else 0.0
    ingredient = Ingredient.query.filter_by(name=item_name).first()
    return round(ingredient.cost_per_unit * quantity, 2) if ingredient else 0.0


@expenses_blueprint.route('/expenses')
@requires('expenses')
def expenses():
    rows = Expense.query.order_by(Expense.created_at.desc()).limit(200).all()
    return jsonify([e.to_dict() for e in rows])


@expenses_blueprint.route('/expenses', methods=['POST'])
@requires('expenses', edit=True)
def add_expense():
    data = get_payload()
    amount = parse_float(data.get('amount'), 'amount')
    if amount <= 0:
        raise ValidationError(_('Amount must be positive'))
    description = parse_str(data.get('description'), 'description')

    employee = current_employee()
    expense = Expense(
        employee_id=employee.id,
        category=parse_str(data.get('category'), 'category', required=False, default='Autre'),
        amount=amount,
        description=description
    )
    db.session.add(expense)
    db.session.commit()

    notify_expense(employee.full_name, expense.category, amount, description)
    return jsonify({'success': True, 'expense': expense.to_dict()}), 201


@expenses_blueprint.route('/losses')
@requires('expenses')
def losses():
    rows = Loss.query.order_by(Loss.created_at.desc()).limit(200).all()
    return jsonify([l.to_dict() for l in rows])


@expenses_blueprint.route('/losses', methods=['POST'])
@requires('expenses', edit=True)
def add_loss():
    data = get_payload()
    item_type = data.get('item_type')
    if item_type not in LOSS_ITEM_TYPES:
        raise ValidationError(_('Unknown item type'))
    item_name = parse_str(data.get('item_name'), 'item_name')
    quantity = parse_float(data.get('quantity'), 'quantity')
    if quantity <= 0:
        raise ValidationError(_('Quantity must be positive'))
    reason = parse_str(data.get('reason'), 'reason')

    employee = current_employee()
    loss = Loss(
        employee_id=employee.id,
        item_type=item_type,
        item_name=item_name,
        quantity=quantity,
        estimated_value=estimate_loss_value(item_type, item_name, quantity),
        reason=reason
    )
    db.session.add(loss)
    db.session.commit()

    notify_loss(employee.full_name, 'Produit' if item_type == 'product' else 'Matière première',
                item_name, quantity, reason)
    return jsonify({'success': True, 'loss': loss.to_dict()}), 201
