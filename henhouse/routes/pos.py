from datetime import datetime
from flask import Blueprint, request, jsonify
from flask_babel import gettext as _
from ..models import db, Product, Sale, SaleItem, Partner
from ..auth import current_employee
from ..costing import commission_for_sale
from ..errors import ValidationError
from ..notifications import notify_sale
from ..permissions import requires
from .utils import (
    get_payload, parse_str, parse_items, parse_int, get_or_404, adjust_ready_stock, check_low_stock_product
)

pos_blueprint = Blueprint('pos', __name__)

PAYMENT_METHODS = ['cash', 'card', 'banking']


@pos_blueprint.route('/pos/products')
@requires('pos')
def products():
    """Active products with what is left in ready stock"""
    rows = Product.query.filter_by(is_active=True).order_by(Product.category, Product.name).all()
    result = []
    for product in rows:
        data = product.to_dict()
        data['stock'] = product.ready_stock.quantity if product.ready_stock else 0
        result.append(data)
    return jsonify(result)


@pos_blueprint.route('/pos/sales')
@requires('pos')
def sales():
    query = Sale.query.order_by(Sale.created_at.desc())
    if request.args.get('date'):
        try:
            day = datetime.strptime(request.args['date'], '%Y-%m-%d').date()
        except ValueError:
            raise ValidationError(_('Invalid date format'))
        query = query.filter(db.func.date(Sale.created_at) == day.isoformat())
    return jsonify([s.to_dict() for s in query.limit(200).all()])


@pos_blueprint.route('/pos/sales', methods=['POST'])
@requires('pos', edit=True)
def create_sale():
    """
    Payload: invoice_number, payment_method, items [{product_id, quantity}],
    optional customer_type (B2C/B2B) and partner_id.

    Each line takes its quantity out of ready stock; one line short of stock
    cancels the whole sale.
    """
    data = get_payload()
    invoice_number = parse_str(data.get('invoice_number'), 'invoice_number')

    items = parse_items(data.get('items') or [])
    if not items:
        raise ValidationError(_('Cart is empty'))

    payment_method = data.get('payment_method') or 'cash'
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(_('Unknown payment method'))

    customer_type = data.get('customer_type') or 'B2C'
    partner_id = None
    if customer_type == 'B2B':
        partner_id = get_or_404(Partner, parse_int(data.get('partner_id'), 'partner_id'), 'Partner').id

    # Validate the whole cart before touching stock
    lines = []
    for item in items:
        product = get_or_404(Product, parse_int(item.get('product_id'), 'product_id'), 'Product')
        if not product.is_active:
            raise ValidationError(_('%(name)s is not for sale', name=product.name))
        quantity = parse_int(item.get('quantity'), 'quantity', minimum=1)
        lines.append((product, quantity, product.price))

    employee = current_employee()
    sale = Sale(
        employee_id=employee.id,
        invoice_number=invoice_number,
        total=round(sum(price * qty for _product, qty, price in lines), 2),
        commission_amount=commission_for_sale(employee.grade, lines),
        payment_method=payment_method,
        customer_type=customer_type,
        partner_id=partner_id,
        status='completed'
    )
    db.session.add(sale)

    stocks = []
    for product, quantity, price in lines:
        stocks.append(adjust_ready_stock(product.id, -quantity))
        sale.items.append(SaleItem(
            product_id=product.id,
            quantity=quantity,
            unit_price=price,
            subtotal=round(price * quantity, 2)
        ))

    db.session.commit()

    notify_sale(employee.full_name, invoice_number, sale.total, payment_method,
                [(product.name, quantity, price) for product, quantity, price in lines])
    for stock in stocks:
        check_low_stock_product(stock)

    return jsonify({'success': True, 'sale': sale.to_dict()}), 201


@pos_blueprint.route('/pos/sales/today')
@requires('pos')
def my_sales_today():
    employee = current_employee()
    rows = Sale.query.filter(
        Sale.employee_id == employee.id,
        db.func.date(Sale.created_at) == datetime.utcnow().date().isoformat()
    ).all()
    return jsonify({
        'count': len(rows),
        'total': round(sum(s.total for s in rows), 2),
        'commission': round(sum(s.commission_amount for s in rows), 2)
    })
