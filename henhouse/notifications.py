"""
Outbound Discord-style webhook notifications.

Every business event category (sales, production, low stock, ...) posts an
embed to its own URL. Delivery is fire-and-forget: failures are logged and
otherwise ignored, nothing is retried.
"""
import json
from http.client import HTTPException
from datetime import datetime, timezone
from urllib import error, request
from flask import current_app
from .models import WebhookConfig

CATEGORIES = [
    'sales', 'production', 'low_stock', 'b2b', 'expenses', 'losses',
    'admin_actions', 'hr', 'payroll', 'security', 'announcements', 'requests',
]

GREEN = 0x00ff00
ORANGE = 0xff9500
RED = 0xff0000
BLUE = 0x0099ff

ADMIN_ACTION_COLORS = {
    'create': 0x10B981,
    'update': 0x3B82F6,
    'delete': 0xEF4444,
    'settings_change': 0xF59E0B,
    'permission_change': 0x8B5CF6,
}

ADMIN_ACTION_LABELS = {
    'create': 'Création',
    'update': 'Modification',
    'delete': 'Suppression',
    'settings_change': 'Paramètre modifié',
    'permission_change': 'Permission modifiée',
}


def build_embed(title, color, description=None, fields=None):
    embed = {
        'title': title,
        'color': color,
        'fields': [
            {'name': name, 'value': str(value), 'inline': inline}
            for name, value, inline in (fields or [])
        ],
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }
    if description:
        embed['description'] = description
    return embed


def resolve_webhook_url(category):
    """Enabled WebhookConfig row first, then the WEBHOOKS config mapping."""
    config = WebhookConfig.query.filter_by(module_name=category).first()
    if config is not None:
        return config.webhook_url if config.is_enabled else None
    return current_app.config.get('WEBHOOKS', {}).get(category)


def send_webhook(category, embeds):
    """Returns True when the POST went through; never raises."""
    try:
        url = resolve_webhook_url(category)
    except Exception as e:
        current_app.logger.warning("Could not resolve webhook for %s: %s", category, e)
        return False
    if not url:
        return False

    body = json.dumps({'embeds': embeds}).encode('utf-8')
    req = request.Request(url=url, method='POST', data=body,
                          headers={'Content-Type': 'application/json'})
    try:
        with request.urlopen(req, timeout=current_app.config.get('WEBHOOK_TIMEOUT', 5)) as response:
            response.read()
        return True
    except (error.URLError, HTTPException, OSError, ValueError) as e:
        current_app.logger.warning("Webhook %s delivery failed: %s", category, e)
        return False


def _money(amount):
    return f"{current_app.config.get('CURRENCY_SYMBOL', '$')}{amount:.2f}"


def notify_sale(employee_name, invoice_number, total, payment_method, items):
    embed = build_embed('💰 Nouvelle Vente', GREEN,
                        description=f"Facture N°{invoice_number} par {employee_name}",
                        fields=[
                            ('Montant Total', _money(total), True),
                            ('Paiement', payment_method, True),
                            ('Produits', '\n'.join(f"{qty}x {name} ({_money(price)})" for name, qty, price in items), False),
                        ])
    return send_webhook('sales', [embed])


def notify_production(employee_name, product_name, quantity, status, ingredients_used=None):
    used = '\n'.join(f"{qty:g}{unit} {name}" for name, qty, unit in (ingredients_used or []))
    embed = build_embed('🍳 Production', ORANGE,
                        description=f"Production par {employee_name}",
                        fields=[
                            ('Produit', product_name, True),
                            ('Quantité', quantity, True),
                            ('Statut', status, True),
                            ('Ingrédients Utilisés', used or 'Aucun', False),
                        ])
    return send_webhook('production', [embed])


def notify_low_stock(item_name, quantity, item_type):
    embed = build_embed('⚠️ Stock Faible', RED,
                        description=f"{item_type}: {item_name}",
                        fields=[
                            ('Stock Restant', f"{quantity:g}", True),
                            ('Type', item_type, True),
                        ])
    return send_webhook('low_stock', [embed])


def notify_b2b_sale(partner_name, employee_name, menu_name, quantity, total):
    embed = build_embed('🤝 Vente B2B', BLUE,
                        description=f"Partenaire: {partner_name}",
                        fields=[
                            ('Montant', _money(total), True),
                            ('Vendeur', employee_name, True),
                            ('Menu', f"{quantity}x {menu_name}", False),
                        ])
    return send_webhook('b2b', [embed])


def notify_expense(employee_name, category, amount, description):
    embed = build_embed('💸 Dépense', 0xff6600,
                        description=f"Par {employee_name}",
                        fields=[
                            ('Type', category or 'Autre', True),
                            ('Montant', _money(amount), True),
                            ('Description', description, False),
                        ])
    return send_webhook('expenses', [embed])


def notify_loss(employee_name, item_type, item_name, quantity, reason):
    embed = build_embed('❌ Perte Déclarée', RED,
                        description=f"Par {employee_name}",
                        fields=[
                            ('Type', item_type, True),
                            ('Item', item_name, True),
                            ('Quantité', f"{quantity:g}", True),
                            ('Raison', reason, False),
                        ])
    return send_webhook('losses', [embed])


def notify_security_alert(action, employee_name, details):
    embed = build_embed('🚨 Alerte Sécurité', RED, description=action,
                        fields=[
                            ('Employé', employee_name, True),
                            ('Détails', details, False),
                        ])
    return send_webhook('security', [embed])


def notify_admin_action(employee_name, action_type, module_name, details):
    label = ADMIN_ACTION_LABELS.get(action_type, action_type)
    embed = build_embed(f"📝 Action Admin: {label}",
                        ADMIN_ACTION_COLORS.get(action_type, 0x6B7280),
                        description=f"Module: {module_name}",
                        fields=[
                            ('Admin', employee_name, True),
                            ('Détails', details, False),
                        ])
    return send_webhook('admin_actions', [embed])


def notify_employee_change(admin_name, action, employee_name, grade):
    embed = build_embed('👥 Ressources Humaines', BLUE,
                        description=f"{action}: {employee_name}",
                        fields=[
                            ('Grade', grade, True),
                            ('Par', admin_name, True),
                        ])
    return send_webhook('hr', [embed])


def notify_payroll(admin_name, employee_name, period, total, paid=False):
    embed = build_embed('💵 Paie Payée' if paid else '💵 Fiche de Paie', GREEN if paid else BLUE,
                        description=f"{employee_name} ({period})",
                        fields=[
                            ('Montant', _money(total), True),
                            ('Par', admin_name, True),
                        ])
    return send_webhook('payroll', [embed])


PRIORITY_COLORS = {'low': BLUE, 'medium': ORANGE, 'high': RED}

REQUEST_TYPE_LABELS = {
    'leave': 'Congé',
    'advance': 'Avance sur Salaire',
    'schedule_change': "Changement d'Horaire",
    'other': 'Autre',
}


def notify_announcement(author_name, title, priority):
    embed = build_embed('📢 Nouvelle Annonce', PRIORITY_COLORS.get(priority, ORANGE),
                        description=title,
                        fields=[
                            ('Priorité', priority, True),
                            ('Par', author_name, True),
                        ])
    return send_webhook('announcements', [embed])


def notify_employee_request(employee_name, request_type, title, status, reviewer_name=None):
    colors = {'pending': ORANGE, 'approved': GREEN, 'rejected': RED}
    fields = [
        ('Employé', employee_name, True),
        ('Type', REQUEST_TYPE_LABELS.get(request_type, request_type), True),
        ('Statut', status, True),
    ]
    if reviewer_name:
        fields.append(('Traitée par', reviewer_name, True))
    embed = build_embed('📝 Demande Employé', colors.get(status, BLUE), description=title, fields=fields)
    return send_webhook('requests', [embed])
