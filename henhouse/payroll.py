"""
Work sessions and payroll calculation.
"""
from datetime import datetime, timedelta
from flask_babel import gettext as _
from .models import db, WorkSession, Sale, SaleItem, Product, GradeSalaryConfig, PayrollRecord, GRADES
from .errors import ValidationError

DEFAULT_HOURLY_RATE = 15.0


def seed_salary_configs():
    """One fixed hourly config per grade, created when missing."""
    existing = {c.grade for c in GradeSalaryConfig.query.all()}
    for grade in GRADES:
        if grade not in existing:
            db.session.add(GradeSalaryConfig(
                grade=grade,
                salary_type='fixed_hourly',
                hourly_rate=DEFAULT_HOURLY_RATE,
                percentage=0.0,
                calculation_basis='revenue'
            ))
    db.session.commit()


def hourly_rate_for_grade(grade):
    config = GradeSalaryConfig.query.filter_by(grade=grade).first()
    return config.hourly_rate if config else 0.0


def open_session(employee_id):
    return WorkSession.query.filter_by(employee_id=employee_id, clock_out=None).first()


def clock_in(employee):
    if open_session(employee.id) is not None:
        raise ValidationError(_('Already clocked in'))
    work_session = WorkSession(employee_id=employee.id, clock_in=datetime.utcnow())
    db.session.add(work_session)
    db.session.commit()
    return work_session


def clock_out(employee, now=None):
    work_session = open_session(employee.id)
    if work_session is None:
        raise ValidationError(_('No open work session'))

    work_session.clock_out = now or datetime.utcnow()
    hours = (work_session.clock_out - work_session.clock_in).total_seconds() / 3600.0
    work_session.hours_worked = round(hours, 2)
    work_session.total_earned = round(work_session.hours_worked * employee.hourly_rate, 2)
    db.session.commit()
    return work_session


def _period_bounds(period_start, period_end):
    # Whole days, end inclusive
    start = datetime.combine(period_start, datetime.min.time())
    end = datetime.combine(period_end, datetime.min.time()) + timedelta(days=1)
    return start, end


def period_hours(employee_id, period_start, period_end):
    start, end = _period_bounds(period_start, period_end)
    total = db.session.query(db.func.coalesce(db.func.sum(WorkSession.hours_worked), 0.0)).filter(
        WorkSession.employee_id == employee_id,
        WorkSession.clock_out.isnot(None),
        WorkSession.clock_in >= start,
        WorkSession.clock_in < end
    ).scalar()
    return round(float(total or 0), 2)


def period_sales_figures(employee_id, period_start, period_end):
    """Revenue, margin and commissions of the employee's completed sales."""
    start, end = _period_bounds(period_start, period_end)
    sales = Sale.query.filter(
        Sale.employee_id == employee_id,
        Sale.status == 'completed',
        Sale.created_at >= start,
        Sale.created_at < end
    ).all()

    revenue = sum(s.total for s in sales)
    commissions = sum(s.commission_amount or 0 for s in sales)

    sale_ids = [s.id for s in sales]
    margin = 0.0
    if sale_ids:
        rows = db.session.query(SaleItem.quantity, Product.margin).join(
            Product, SaleItem.product_id == Product.id
        ).filter(SaleItem.sale_id.in_(sale_ids)).all()
        margin = sum(quantity * (product_margin or 0) for quantity, product_margin in rows)

    return round(revenue, 2), round(margin, 2), round(commissions, 2)


def base_salary(config, hours, revenue, margin, hourly_rate=None):
    """
    fixed_hourly pays hours * hourly_rate, the percentage types pay a share
    of the period revenue or margin.
    """
    if config is None or config.salary_type == 'fixed_hourly':
        rate = hourly_rate if hourly_rate is not None else (config.hourly_rate if config else 0.0)
        return round(hours * rate, 2)
    if config.salary_type == 'revenue_percentage':
        return round(revenue * config.percentage / 100.0, 2)
    if config.salary_type == 'margin_percentage':
        return round(margin * config.percentage / 100.0, 2)
    raise ValidationError(_('Unknown salary type %(type)s', type=config.salary_type))


def generate_payroll(employee, period_start, period_end, created_by, bonuses=0.0, deductions=0.0, notes=None):
    if period_end < period_start:
        raise ValidationError(_('The period end is before its start'))

    config = GradeSalaryConfig.query.filter_by(grade=employee.grade).first()
    hours = period_hours(employee.id, period_start, period_end)
    revenue, margin, commissions = period_sales_figures(employee.id, period_start, period_end)

    # Fixed hourly grades use the employee's own rate, which may differ from the grade default
    base = base_salary(config, hours, revenue, margin, hourly_rate=employee.hourly_rate)

    record = PayrollRecord(
        employee_id=employee.id,
        period_start=period_start,
        period_end=period_end,
        work_hours=hours,
        base_salary=base,
        commissions=commissions,
        bonuses=round(bonuses, 2),
        deductions=round(deductions, 2),
        total_amount=round(base + commissions + bonuses - deductions, 2),
        notes=notes,
        created_by=created_by
    )
    db.session.add(record)
    db.session.commit()
    return record
