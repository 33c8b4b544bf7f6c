from datetime import datetime, timedelta
import pandas as pd
from flask import Blueprint, jsonify, current_app
from sqlalchemy import func
from ..models import db, Sale, SaleItem, Product, Employee, WorkSession, Ingredient, ReadyStock, ProductionOrder
from ..permissions import requires

dashboard_blueprint = Blueprint('dashboard', __name__)


def _sales_total(since):
    total = db.session.query(func.coalesce(func.sum(Sale.total), 0.0)).filter(
        Sale.status == 'completed',
        Sale.created_at >= since
    ).scalar()
    return round(float(total or 0), 2)


def sales_by_day(days=7, now=None):
    """Completed sales totals for each of the last `days` days, zero-filled."""
    now = now or datetime.utcnow()
    start = datetime.combine((now - timedelta(days=days - 1)).date(), datetime.min.time())
    rows = db.session.query(Sale.created_at, Sale.total).filter(
        Sale.status == 'completed',
        Sale.created_at >= start
    ).all()

    index = pd.date_range(start=start.date(), periods=days, freq='D').date
    df = pd.DataFrame([tuple(row) for row in rows], columns=['created_at', 'total'])
    if df.empty:
        daily = pd.Series(0.0, index=index)
    else:
        df['day'] = pd.to_datetime(df['created_at']).dt.date
        daily = df.groupby('day')['total'].sum().reindex(index, fill_value=0.0)

    return [{'date': day.isoformat(), 'total': round(float(total), 2)} for day, total in daily.items()]


def top_products(since, limit=5):
    rows = db.session.query(
        Product.name,
        func.sum(SaleItem.quantity).label('quantity'),
        func.sum(SaleItem.subtotal).label('revenue')
    ).join(Product, SaleItem.product_id == Product.id).join(
        Sale, SaleItem.sale_id == Sale.id
    ).filter(
        Sale.status == 'completed',
        Sale.created_at >= since
    ).group_by(Product.name).order_by(func.sum(SaleItem.quantity).desc()).limit(limit).all()

    return [{'name': name, 'quantity': int(quantity), 'revenue': round(float(revenue), 2)}
            for name, quantity, revenue in rows]


@dashboard_blueprint.route('/dashboard')
@requires('dashboard')
def dashboard():
    now = datetime.utcnow()
    today = datetime.combine(now.date(), datetime.min.time())
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    month_start = today.replace(day=1)

    low_ingredients = Ingredient.query.filter(Ingredient.quantity <= Ingredient.min_threshold).count()
    low_products = ReadyStock.query.filter(
        ReadyStock.quantity <= current_app.config['READY_STOCK_LOW_THRESHOLD']
    ).count()

    return jsonify({
        'sales': {
            'today': _sales_total(today),
            'week': _sales_total(week_start),
            'month': _sales_total(month_start)
        },
        'active_employees': Employee.query.filter_by(is_active=True).count(),
        'open_work_sessions': WorkSession.query.filter(WorkSession.clock_out.is_(None)).count(),
        'low_stock_count': low_ingredients + low_products,
        'pending_production': ProductionOrder.query.filter(
            ProductionOrder.status.in_(['pending', 'in_progress'])
        ).count(),
        'sales_by_day': sales_by_day(7, now),
        'top_products': top_products(month_start)
    })
