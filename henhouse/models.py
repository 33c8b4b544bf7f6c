import json
from datetime import datetime
from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()

GRADES = ['PDG', 'CoPDG', 'Manager', "Chef d'équipe", 'Employé Polyvalent']
INGREDIENT_UNITS = ['kg', 'L', 'unit']
PRODUCT_CATEGORIES = ['Plats', 'Boissons', 'Menus', 'Desserts']
SALARY_TYPES = ['fixed_hourly', 'revenue_percentage', 'margin_percentage']
NOTIFICATION_TYPES = ['info', 'success', 'warning', 'error']
ANNOUNCEMENT_PRIORITIES = ['low', 'medium', 'high']
REQUEST_TYPES = ['leave', 'advance', 'schedule_change', 'other']
REQUEST_STATUSES = ['pending', 'approved', 'rejected']


def _iso(value):
    return value.isoformat() if value else None


class Employee(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), nullable=False, unique=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    personal_id = db.Column(db.String(50), nullable=False)
    phone = db.Column(db.String(50), nullable=True, default='')
    rib = db.Column(db.String(100), nullable=True, default='')
    grade = db.Column(db.String(50), nullable=False, default='Employé Polyvalent')
    hourly_rate = db.Column(db.Float, nullable=False, default=0.0)
    commission_rate = db.Column(db.Float, nullable=False, default=0.0)
    hire_date = db.Column(db.Date, default=lambda: datetime.now().date())
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    role = db.Column(db.String(20), default='employee', nullable=False)  # set by the FiveM 'setjob' action
    fivem_identifier = db.Column(db.String(100), nullable=True, unique=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'personal_id': self.personal_id,
            'phone': self.phone,
            'rib': self.rib,
            'grade': self.grade,
            'hourly_rate': self.hourly_rate,
            'commission_rate': self.commission_rate,
            'hire_date': _iso(self.hire_date),
            'is_active': self.is_active,
            'role': self.role,
            'fivem_identifier': self.fivem_identifier,
            'created_at': _iso(self.created_at)
        }


class Ingredient(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    unit = db.Column(db.String(10), nullable=False, default='kg')
    quantity = db.Column(db.Float, nullable=False, default=0.0)  # quantity on hand
    cost_per_unit = db.Column(db.Float, nullable=False, default=0.0)
    min_threshold = db.Column(db.Float, nullable=False, default=10.0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_low(self):
        return self.quantity <= self.min_threshold

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'unit': self.unit,
            'quantity': self.quantity,
            'cost_per_unit': self.cost_per_unit,
            'min_threshold': self.min_threshold,
            'is_low': self.is_low,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class Product(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True, default='')
    price = db.Column(db.Float, nullable=False)
    # Cached by the cost engine: margin == price - production_cost
    production_cost = db.Column(db.Float, nullable=False, default=0.0)
    margin = db.Column(db.Float, nullable=False, default=0.0)
    category = db.Column(db.String(50), nullable=False, default='Plats')
    batch_size = db.Column(db.Integer, nullable=False, default=1)  # sale units produced by one recipe batch
    image_url = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    recipes = db.relationship('Recipe', backref='product', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'price': self.price,
            'production_cost': self.production_cost,
            'margin': self.margin,
            'category': self.category,
            'batch_size': self.batch_size,
            'image_url': self.image_url,
            'is_active': self.is_active,
            'created_at': _iso(self.created_at)
        }


class Recipe(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    ingredient_id = db.Column(db.Integer, db.ForeignKey('ingredient.id'), nullable=False)
    quantity_needed = db.Column(db.Float, nullable=False)  # per batch of product.batch_size units
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    ingredient = db.relationship('Ingredient', backref='recipes')

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'ingredient_id': self.ingredient_id,
            'ingredient_name': self.ingredient.name if self.ingredient else None,
            'unit': self.ingredient.unit if self.ingredient else None,
            'quantity_needed': self.quantity_needed,
            'created_at': _iso(self.created_at)
        }


class ReadyStock(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False, unique=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = db.relationship('Product', backref=db.backref('ready_stock', uselist=False))

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'quantity': self.quantity,
            'updated_at': _iso(self.updated_at)
        }


class StockAdjustment(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    item_type = db.Column(db.String(20), nullable=False)  # 'product' or 'raw_material'
    item_id = db.Column(db.Integer, nullable=False)
    quantity_change = db.Column(db.Float, nullable=False)
    reason = db.Column(db.String(255), nullable=False)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'item_type': self.item_type,
            'item_id': self.item_id,
            'quantity_change': self.quantity_change,
            'reason': self.reason,
            'employee_id': self.employee_id,
            'created_at': _iso(self.created_at)
        }


class Sale(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    invoice_number = db.Column(db.String(50), nullable=True)
    total = db.Column(db.Float, nullable=False)
    commission_amount = db.Column(db.Float, nullable=False, default=0.0)
    payment_method = db.Column(db.String(20), nullable=False, default='cash')
    customer_type = db.Column(db.String(10), nullable=False, default='B2C')
    status = db.Column(db.String(20), nullable=False, default='completed')
    partner_id = db.Column(db.Integer, db.ForeignKey('partner.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    employee = db.relationship('Employee', backref='sales')
    items = db.relationship('SaleItem', backref='sale', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'invoice_number': self.invoice_number,
            'total': self.total,
            'commission_amount': self.commission_amount,
            'payment_method': self.payment_method,
            'customer_type': self.customer_type,
            'status': self.status,
            'partner_id': self.partner_id,
            'items': [item.to_dict() for item in self.items],
            'created_at': _iso(self.created_at)
        }


class SaleItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey('sale.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)
    subtotal = db.Column(db.Float, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    product = db.relationship('Product')

    def to_dict(self):
        return {
            'id': self.id,
            'sale_id': self.sale_id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'subtotal': self.subtotal
        }


class ProductionOrder(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    quantity_ordered = db.Column(db.Integer, nullable=False)
    quantity_produced = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='pending')
    created_by = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    started_by = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=True)
    started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    partner_id = db.Column(db.Integer, db.ForeignKey('partner.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    product = db.relationship('Product', backref='production_orders')
    partner = db.relationship('Partner')

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'quantity_ordered': self.quantity_ordered,
            'quantity_produced': self.quantity_produced,
            'status': self.status,
            'created_by': self.created_by,
            'started_by': self.started_by,
            'started_at': _iso(self.started_at),
            'completed_at': _iso(self.completed_at),
            'partner_id': self.partner_id,
            'partner_name': self.partner.name if self.partner else None,
            'created_at': _iso(self.created_at)
        }


class Menu(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Float, nullable=False)
    category = db.Column(db.String(50), nullable=False, default='Menus')
    image_url = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    items = db.relationship('MenuItem', backref='menu', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'price': self.price,
            'category': self.category,
            'image_url': self.image_url,
            'is_active': self.is_active,
            'items': [item.to_dict() for item in self.items],
            'created_at': _iso(self.created_at)
        }


class MenuItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    menu_id = db.Column(db.Integer, db.ForeignKey('menu.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship('Product')

    def to_dict(self):
        return {
            'id': self.id,
            'menu_id': self.menu_id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'quantity': self.quantity
        }


class Partner(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    contact = db.Column(db.String(100), nullable=True)
    webhook_url = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'contact': self.contact,
            'webhook_url': self.webhook_url,
            'is_active': self.is_active,
            'created_at': _iso(self.created_at)
        }


class PartnerMenuPermission(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(db.Integer, db.ForeignKey('partner.id'), nullable=False)
    menu_id = db.Column(db.Integer, db.ForeignKey('menu.id'), nullable=False)
    partner_price = db.Column(db.Float, nullable=False)
    daily_limit = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    partner = db.relationship('Partner', backref='menu_permissions')
    menu = db.relationship('Menu')

    def to_dict(self):
        return {
            'id': self.id,
            'partner_id': self.partner_id,
            'menu_id': self.menu_id,
            'menu_name': self.menu.name if self.menu else None,
            'partner_price': self.partner_price,
            'daily_limit': self.daily_limit,
            'is_active': self.is_active
        }


class PartnerSale(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(db.Integer, db.ForeignKey('partner.id'), nullable=False)
    menu_id = db.Column(db.Integer, db.ForeignKey('menu.id'), nullable=False)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)
    total = db.Column(db.Float, nullable=False)
    sale_date = db.Column(db.String(10), nullable=False)  # YYYY-MM-DD, local date of the insert
    invoice_id = db.Column(db.Integer, db.ForeignKey('partner_invoice.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'partner_id': self.partner_id,
            'menu_id': self.menu_id,
            'employee_id': self.employee_id,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'total': self.total,
            'sale_date': self.sale_date,
            'invoice_id': self.invoice_id,
            'created_at': _iso(self.created_at)
        }


class PartnerDailyUsage(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(db.Integer, db.ForeignKey('partner.id'), nullable=False)
    menu_id = db.Column(db.Integer, db.ForeignKey('menu.id'), nullable=False)
    sale_date = db.Column(db.String(10), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (db.UniqueConstraint('partner_id', 'menu_id', 'sale_date'),)

    def to_dict(self):
        return {
            'id': self.id,
            'partner_id': self.partner_id,
            'menu_id': self.menu_id,
            'sale_date': self.sale_date,
            'quantity': self.quantity
        }


class PartnerInvoice(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(db.Integer, db.ForeignKey('partner.id'), nullable=False)
    invoice_number = db.Column(db.String(50), nullable=False, unique=True)
    start_date = db.Column(db.String(10), nullable=False)
    end_date = db.Column(db.String(10), nullable=False)
    total_amount = db.Column(db.Float, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending')
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)

    sales = db.relationship('PartnerSale', backref='invoice', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'partner_id': self.partner_id,
            'invoice_number': self.invoice_number,
            'start_date': self.start_date,
            'end_date': self.end_date,
            'total_amount': self.total_amount,
            'status': self.status,
            'sales_count': len(self.sales),
            'created_at': _iso(self.created_at),
            'paid_at': _iso(self.paid_at)
        }


class GradeSalaryConfig(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    grade = db.Column(db.String(50), nullable=False, unique=True)
    salary_type = db.Column(db.String(30), nullable=False, default='fixed_hourly')
    hourly_rate = db.Column(db.Float, nullable=False, default=0.0)
    percentage = db.Column(db.Float, nullable=False, default=0.0)
    calculation_basis = db.Column(db.String(10), nullable=False, default='revenue')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'grade': self.grade,
            'salary_type': self.salary_type,
            'hourly_rate': self.hourly_rate,
            'percentage': self.percentage,
            'calculation_basis': self.calculation_basis,
            'updated_at': _iso(self.updated_at)
        }


class ModulePermission(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    module_name = db.Column(db.String(30), nullable=False)
    grade = db.Column(db.String(50), nullable=False)
    can_view = db.Column(db.Boolean, default=False, nullable=False)
    can_edit = db.Column(db.Boolean, default=False, nullable=False)

    __table_args__ = (db.UniqueConstraint('module_name', 'grade'),)

    def to_dict(self):
        return {
            'id': self.id,
            'module_name': self.module_name,
            'grade': self.grade,
            'can_view': self.can_view,
            'can_edit': self.can_edit
        }


class WorkSession(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    clock_in = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    clock_out = db.Column(db.DateTime, nullable=True)
    hours_worked = db.Column(db.Float, nullable=True)
    total_earned = db.Column(db.Float, nullable=True)

    employee = db.relationship('Employee', backref='work_sessions')

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'clock_in': _iso(self.clock_in),
            'clock_out': _iso(self.clock_out),
            'hours_worked': self.hours_worked,
            'total_earned': self.total_earned
        }


class PayrollRecord(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    work_hours = db.Column(db.Float, nullable=False, default=0.0)
    base_salary = db.Column(db.Float, nullable=False, default=0.0)
    commissions = db.Column(db.Float, nullable=False, default=0.0)
    bonuses = db.Column(db.Float, nullable=False, default=0.0)
    deductions = db.Column(db.Float, nullable=False, default=0.0)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    paid = db.Column(db.Boolean, default=False, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    employee = db.relationship('Employee', foreign_keys=[employee_id], backref='payroll_records')

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'period_start': _iso(self.period_start),
            'period_end': _iso(self.period_end),
            'work_hours': self.work_hours,
            'base_salary': self.base_salary,
            'commissions': self.commissions,
            'bonuses': self.bonuses,
            'deductions': self.deductions,
            'total_amount': self.total_amount,
            'paid': self.paid,
            'paid_at': _iso(self.paid_at),
            'notes': self.notes,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at)
        }


class Expense(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    category = db.Column(db.String(100), nullable=True)
    amount = db.Column(db.Float, nullable=False)
    description = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'category': self.category,
            'amount': self.amount,
            'description': self.description,
            'created_at': _iso(self.created_at)
        }


class Loss(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    item_type = db.Column(db.String(20), nullable=False)  # 'product' or 'raw_material'
    item_name = db.Column(db.String(100), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    estimated_value = db.Column(db.Float, nullable=False, default=0.0)
    reason = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'item_type': self.item_type,
            'item_name': self.item_name,
            'quantity': self.quantity,
            'estimated_value': self.estimated_value,
            'reason': self.reason,
            'created_at': _iso(self.created_at)
        }


class WebhookConfig(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    module_name = db.Column(db.String(30), nullable=False, unique=True)
    webhook_url = db.Column(db.String(255), nullable=False)
    is_enabled = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'module_name': self.module_name,
            'webhook_url': self.webhook_url,
            'is_enabled': self.is_enabled,
            'updated_at': _iso(self.updated_at)
        }


class AdminActionLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=True)
    action_type = db.Column(db.String(30), nullable=False)
    module_name = db.Column(db.String(50), nullable=False)
    details = db.Column(db.Text, nullable=True)  # JSON string
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'action_type': self.action_type,
            'module_name': self.module_name,
            'details': json.loads(self.details) if self.details else None,
            'created_at': self.created_at.strftime('%Y-%m-%d %H:%M:%S')
        }


# ----------------------------
# Notification center
# ----------------------------
class Notification(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(20), nullable=False, default='info')
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    link = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'is_read': self.is_read,
            'link': self.link,
            'created_at': _iso(self.created_at)
        }


class Announcement(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)
    priority = db.Column(db.String(10), nullable=False, default='medium')
    created_by = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    creator = db.relationship('Employee')

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'content': self.content,
            'priority': self.priority,
            'created_by': self.created_by,
            'creator_name': self.creator.full_name if self.creator else None,
            'expires_at': _iso(self.expires_at),
            'created_at': _iso(self.created_at)
        }


class EmployeeRequest(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=False)
    request_type = db.Column(db.String(20), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending')
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    amount = db.Column(db.Float, nullable=True)
    reviewed_by = db.Column(db.Integer, db.ForeignKey('employee.id'), nullable=True)
    review_message = db.Column(db.Text, nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    employee = db.relationship('Employee', foreign_keys=[employee_id])
    reviewer = db.relationship('Employee', foreign_keys=[reviewed_by])

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'employee_name': self.employee.full_name if self.employee else None,
            'request_type': self.request_type,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'amount': self.amount,
            'reviewed_by': self.reviewed_by,
            'reviewer_name': self.reviewer.full_name if self.reviewer else None,
            'review_message': self.review_message,
            'reviewed_at': _iso(self.reviewed_at),
            'created_at': _iso(self.created_at)
        }
