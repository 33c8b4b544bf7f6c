import json
import io
from datetime import datetime
from flask import Blueprint, request, send_file, jsonify, current_app
from flask_babel import gettext as _
from ..models import (
    db, Employee, Ingredient, Product, Recipe, ReadyStock, StockAdjustment, Sale, SaleItem,
    ProductionOrder, Menu, Partner, PartnerMenuPermission, PartnerSale, PartnerDailyUsage,
    PartnerInvoice, GradeSalaryConfig, ModulePermission, WorkSession, PayrollRecord, Expense, Loss,
    WebhookConfig, AdminActionLog, Notification, Announcement, EmployeeRequest
)
from ..errors import ValidationError
from ..permissions import requires
from .utils import get_payload, log_admin_action, commit_admin_actions

admin_blueprint = Blueprint('admin', __name__)

# Parents before children
BACKUP_TABLES = [
    ('employees', Employee),
    ('ingredients', Ingredient),
    ('products', Product),
    ('menus', Menu),
    ('partners', Partner),
    ('grade_salary_configs', GradeSalaryConfig),
    ('module_permissions', ModulePermission),
    ('webhook_configs', WebhookConfig),
    ('recipes', Recipe),
    ('ready_stock', ReadyStock),
    ('partner_menu_permissions', PartnerMenuPermission),
    ('partner_invoices', PartnerInvoice),
    ('partner_sales', PartnerSale),
    ('partner_daily_usage', PartnerDailyUsage),
    ('sales', Sale),
    ('production_orders', ProductionOrder),
    ('stock_adjustments', StockAdjustment),
    ('work_sessions', WorkSession),
    ('payroll_records', PayrollRecord),
    ('expenses', Expense),
    ('losses', Loss),
    ('admin_action_logs', AdminActionLog),
    ('announcements', Announcement),
    ('employee_requests', EmployeeRequest),
    ('notifications', Notification),
]


@admin_blueprint.route('/admin/backup', methods=['GET'])
@requires('settings', edit=True)
def backup_db():
    """JSON backup of every table"""
    data = {
        'version': '1.0',
        'timestamp': datetime.now().isoformat(),
        'database_type': 'postgresql' if 'postgresql' in str(db.engine.url) else 'sqlite',
    }
    counts = {}
    for key, model in BACKUP_TABLES:
        rows = [row.to_dict() for row in model.query.all()]
        data[key] = rows
        counts[key] = len(rows)
    data['statistics'] = {'total_records': sum(counts.values()), 'model_counts': counts}

    json_str = json.dumps(data, indent=4, ensure_ascii=False)
    mem = io.BytesIO()
    mem.write(json_str.encode('utf-8'))
    mem.seek(0)

    filename = f"henhouse_backup_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"

    log_admin_action('settings_change', 'admin', f"Sauvegarde créée ({data['statistics']['total_records']} enregistrements)")
    commit_admin_actions()

    return send_file(
        mem,
        as_attachment=True,
        download_name=filename,
        mimetype='application/json'
    )


@admin_blueprint.route('/admin/reset', methods=['POST'])
@requires('settings', edit=True)
def reset_data():
    """
    Danger zone: deletes sales, partner sales, production orders and work
    sessions, and sets every stock level to zero. Catalog, employees and
    configuration are kept.

    The payload must carry confirm == 'RESET'.
    """
    data = get_payload()
    if data.get('confirm') != 'RESET':
        raise ValidationError(_('Type RESET to confirm'))

    counts = {
        'sale_items': SaleItem.query.delete(),
        'sales': Sale.query.delete(),
        'partner_sales': PartnerSale.query.delete(),
        'partner_daily_usage': PartnerDailyUsage.query.delete(),
        'partner_invoices': PartnerInvoice.query.delete(),
        'production_orders': ProductionOrder.query.delete(),
        'work_sessions': WorkSession.query.delete(),
    }
    Ingredient.query.update({Ingredient.quantity: 0.0})
    ReadyStock.query.update({ReadyStock.quantity: 0})

    log_admin_action('delete', 'admin', f"Réinitialisation des données: {counts}")
    commit_admin_actions()

    current_app.logger.warning("Business data reset: %s", counts)
    return jsonify({'success': True, 'deleted': counts})


@admin_blueprint.route('/admin/logs')
@requires('settings')
def admin_logs():
    query = AdminActionLog.query.order_by(AdminActionLog.created_at.desc())
    if request.args.get('module'):
        query = query.filter_by(module_name=request.args['module'])
    limit = request.args.get('limit', 100, type=int)
    return jsonify([log.to_dict() for log in query.limit(limit).all()])
