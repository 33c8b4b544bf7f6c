"""
Partner (B2B) sales rules: per-menu daily limits and weekly invoicing.
"""
from datetime import datetime, date, timedelta
from flask_babel import gettext as _
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from .models import db, Menu, Partner, PartnerMenuPermission, PartnerSale, PartnerDailyUsage, PartnerInvoice
from .errors import ValidationError, PermissionDeniedError, DailyLimitExceededError


def sale_date_str(day=None):
    """Local calendar day as YYYY-MM-DD; daily limits compare this string."""
    return (day or date.today()).strftime('%Y-%m-%d')


def get_active_permission(partner_id, menu_id):
    """Active permission on a menu that is still on sale to an active partner"""
    return PartnerMenuPermission.query.join(
        Menu, PartnerMenuPermission.menu_id == Menu.id
    ).join(
        Partner, PartnerMenuPermission.partner_id == Partner.id
    ).filter(
        PartnerMenuPermission.partner_id == partner_id,
        PartnerMenuPermission.menu_id == menu_id,
        PartnerMenuPermission.is_active.is_(True),
        Menu.is_active.is_(True),
        Partner.is_active.is_(True)
    ).first()


def recorded_quantity(partner_id, menu_id, day):
    total = db.session.query(func.coalesce(func.sum(PartnerSale.quantity), 0)).filter(
        PartnerSale.partner_id == partner_id,
        PartnerSale.menu_id == menu_id,
        PartnerSale.sale_date == day
    ).scalar()
    return int(total or 0)


def today_quantity(partner_id, menu_id, day=None):
    return recorded_quantity(partner_id, menu_id, day or sale_date_str())


def _get_or_create_usage(partner_id, menu_id, day):
    usage = PartnerDailyUsage.query.filter_by(
        partner_id=partner_id, menu_id=menu_id, sale_date=day
    ).first()
    if usage is not None:
        return usage

    try:
        with db.session.begin_nested():
            usage = PartnerDailyUsage(
                partner_id=partner_id,
                menu_id=menu_id,
                sale_date=day,
                quantity=recorded_quantity(partner_id, menu_id, day)
            )
            db.session.add(usage)
    except IntegrityError:
        # Another session created the counter first
        usage = PartnerDailyUsage.query.filter_by(
            partner_id=partner_id, menu_id=menu_id, sale_date=day
        ).one()
    return usage


def reserve_daily_quantity(permission, quantity, day):
    """
    Atomically adds `quantity` to the day's counter if it stays within the limit.

    The check and the increment are one conditional UPDATE, so two concurrent
    sales cannot both pass a stale read.
    """
    usage = _get_or_create_usage(permission.partner_id, permission.menu_id, day)
    result = db.session.execute(
        update(PartnerDailyUsage)
        .where(PartnerDailyUsage.id == usage.id)
        .where(PartnerDailyUsage.quantity + quantity <= permission.daily_limit)
        .values(quantity=PartnerDailyUsage.quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise DailyLimitExceededError(
            _('Daily limit exceeded (%(limit)d max)', limit=permission.daily_limit)
        )


def record_partner_sale(partner_id, menu_id, quantity, employee_id, day=None):
    try:
        number = float(quantity)
        if number != int(number):
            raise ValueError(quantity)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(_('Quantity must be a whole number'))
    quantity = int(number)
    if quantity <= 0:
        raise ValidationError(_('Quantity must be positive'))

    permission = get_active_permission(partner_id, menu_id)
    if permission is None:
        raise PermissionDeniedError(_('This menu is not allowed for this partner'))

    day = day or sale_date_str()
    reserve_daily_quantity(permission, quantity, day)

    sale = PartnerSale(
        partner_id=partner_id,
        menu_id=menu_id,
        employee_id=employee_id,
        quantity=quantity,
        unit_price=permission.partner_price,
        total=round(permission.partner_price * quantity, 2),
        sale_date=day
    )
    db.session.add(sale)
    db.session.commit()
    return sale


def week_bounds(today=None):
    """Sunday to Saturday week containing `today`."""
    today = today or date.today()
    start = today - timedelta(days=(today.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def generate_weekly_invoice(partner_id, today=None):
    start, end = week_bounds(today)
    start_str, end_str = sale_date_str(start), sale_date_str(end)

    week_sales = PartnerSale.query.filter(
        PartnerSale.partner_id == partner_id,
        PartnerSale.sale_date >= start_str,
        PartnerSale.sale_date <= end_str,
        PartnerSale.invoice_id.is_(None)
    ).all()

    if not week_sales:
        raise ValidationError(_('No uninvoiced sales for this period'))

    invoice = PartnerInvoice(
        partner_id=partner_id,
        invoice_number=f"INV-{datetime.now().strftime('%Y%m%d%H%M%S%f')}",
        start_date=start_str,
        end_date=end_str,
        total_amount=round(sum(s.total for s in week_sales), 2),
        status='pending'
    )
    db.session.add(invoice)
    db.session.flush()

    for sale in week_sales:
        sale.invoice_id = invoice.id

    db.session.commit()
    return invoice
