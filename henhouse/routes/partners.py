from datetime import datetime
from flask import Blueprint, request, jsonify
from flask_babel import gettext as _
from ..models import db, Partner, Menu, PartnerMenuPermission, PartnerSale, PartnerInvoice
from ..auth import current_employee
from ..errors import ValidationError
from ..notifications import notify_b2b_sale
from ..partners import record_partner_sale, today_quantity, generate_weekly_invoice
from ..permissions import requires
from .utils import get_payload, require_fields, parse_float, parse_int, get_or_404, log_admin_action, commit_admin_actions

partners_blueprint = Blueprint('partners', __name__)


# ----------------------------
# Menu permissions
# ----------------------------
@partners_blueprint.route('/partners/<int:partner_id>/permissions')
@requires('partner_sales')
def permissions(partner_id):
    partner = get_or_404(Partner, partner_id, 'Partner')
    result = []
    for permission in partner.menu_permissions:
        data = permission.to_dict()
        data['today_quantity'] = today_quantity(partner.id, permission.menu_id)
        result.append(data)
    return jsonify(result)


@partners_blueprint.route('/partners/<int:partner_id>/permissions', methods=['POST'])
@requires('settings', edit=True)
def add_permission(partner_id):
    partner = get_or_404(Partner, partner_id, 'Partner')
    data = get_payload()
    require_fields(data, 'menu_id', 'partner_price', 'daily_limit')

    menu = get_or_404(Menu, parse_int(data['menu_id'], 'menu_id'), 'Menu')
    partner_price = parse_float(data['partner_price'], 'partner_price', minimum=0)
    daily_limit = parse_int(data['daily_limit'], 'daily_limit', minimum=1)

    permission = PartnerMenuPermission.query.filter_by(partner_id=partner.id, menu_id=menu.id).first()
    if permission is None:
        permission = PartnerMenuPermission(partner_id=partner.id, menu_id=menu.id)
        db.session.add(permission)
    permission.partner_price = partner_price
    permission.daily_limit = daily_limit
    permission.is_active = True

    log_admin_action('permission_change', 'partners',
                     f"{partner.name}: {menu.name} à ${partner_price} (max {daily_limit}/jour)")
    commit_admin_actions()
    return jsonify({'success': True, 'permission': permission.to_dict()}), 201


@partners_blueprint.route('/partners/permissions/<int:permission_id>', methods=['DELETE'])
@requires('settings', edit=True)
def deactivate_permission(permission_id):
    permission = get_or_404(PartnerMenuPermission, permission_id, 'Permission')
    permission.is_active = False
    log_admin_action('permission_change', 'partners',
                     f"{permission.partner.name}: {permission.menu.name} retiré")
    commit_admin_actions()
    return jsonify({'success': True})


# ----------------------------
# Sales
# ----------------------------
@partners_blueprint.route('/partners/<int:partner_id>/sales')
@requires('partner_sales')
def sales(partner_id):
    get_or_404(Partner, partner_id, 'Partner')
    query = PartnerSale.query.filter_by(partner_id=partner_id).order_by(PartnerSale.created_at.desc())
    if request.args.get('date'):
        query = query.filter_by(sale_date=request.args['date'])
    return jsonify([s.to_dict() for s in query.all()])


@partners_blueprint.route('/partners/<int:partner_id>/sales', methods=['POST'])
@requires('partner_sales', edit=True)
def create_sale(partner_id):
    partner = get_or_404(Partner, partner_id, 'Partner')
    if not partner.is_active:
        raise ValidationError(_('This partner is inactive'))

    data = get_payload()
    require_fields(data, 'menu_id', 'quantity')
    menu = get_or_404(Menu, parse_int(data['menu_id'], 'menu_id'), 'Menu')

    employee = current_employee()
    sale = record_partner_sale(partner.id, menu.id, data['quantity'], employee.id)

    notify_b2b_sale(partner.name, employee.full_name, menu.name, sale.quantity, sale.total)
    return jsonify({
        'success': True,
        'sale': sale.to_dict(),
        'today_quantity': today_quantity(partner.id, menu.id)
    }), 201


@partners_blueprint.route('/partners/<int:partner_id>/menus/<int:menu_id>/today')
@requires('partner_sales')
def today(partner_id, menu_id):
    return jsonify({'quantity': today_quantity(partner_id, menu_id)})


# ----------------------------
# Invoices
# ----------------------------
@partners_blueprint.route('/partners/<int:partner_id>/invoices')
@requires('partner_sales')
def invoices(partner_id):
    get_or_404(Partner, partner_id, 'Partner')
    rows = PartnerInvoice.query.filter_by(partner_id=partner_id).order_by(PartnerInvoice.created_at.desc()).all()
    return jsonify([i.to_dict() for i in rows])


@partners_blueprint.route('/partners/<int:partner_id>/invoices', methods=['POST'])
@requires('settings', edit=True)
def create_invoice(partner_id):
    partner = get_or_404(Partner, partner_id, 'Partner')
    invoice = generate_weekly_invoice(partner.id)
    log_admin_action('create', 'partners',
                     f"Facture {invoice.invoice_number} pour {partner.name}: ${invoice.total_amount:.2f}")
    commit_admin_actions()
    return jsonify({'success': True, 'invoice': invoice.to_dict()}), 201


@partners_blueprint.route('/partners/invoices/<int:invoice_id>/paid', methods=['POST'])
@requires('settings', edit=True)
def mark_invoice_paid(invoice_id):
    invoice = get_or_404(PartnerInvoice, invoice_id, 'Invoice')
    if invoice.status == 'paid':
        raise ValidationError(_('Invoice already paid'))
    invoice.status = 'paid'
    invoice.paid_at = datetime.utcnow()
    log_admin_action('update', 'partners', f"Facture {invoice.invoice_number} payée")
    commit_admin_actions()
    return jsonify({'success': True, 'invoice': invoice.to_dict()})
