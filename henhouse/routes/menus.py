from flask import Blueprint, jsonify
from flask_babel import gettext as _
from ..models import db, Menu, MenuItem, Product
from ..errors import ValidationError
from ..permissions import requires
from .utils import (
    get_payload, parse_str, parse_items, parse_float, parse_int, get_or_404, log_admin_action,
    commit_admin_actions
)

menus_blueprint = Blueprint('menus', __name__)


def _set_items(menu, items):
    """Replaces the menu content with [{product_id, quantity}]"""
    menu.items.clear()
    for item in parse_items(items or []):
        product = get_or_404(Product, parse_int(item.get('product_id'), 'product_id'), 'Product')
        menu.items.append(MenuItem(
            product_id=product.id,
            quantity=parse_int(item.get('quantity'), 'quantity', minimum=1, default=1)
        ))


@menus_blueprint.route('/menus')
@requires('menus')
def menus():
    return jsonify([m.to_dict() for m in Menu.query.order_by(Menu.name).all()])


@menus_blueprint.route('/menus', methods=['POST'])
@requires('menus', edit=True)
def add_menu():
    data = get_payload()
    name = parse_str(data.get('name'), 'name')
    price = parse_float(data.get('price'), 'price')
    if price <= 0:
        raise ValidationError(_('Price must be positive'))

    menu = Menu(
        name=name,
        description=parse_str(data.get('description'), 'description', required=False),
        price=price,
        category=parse_str(data.get('category'), 'category', required=False, default='Menus'),
        image_url=parse_str(data.get('image_url'), 'image_url', required=False),
        is_active=True
    )
    _set_items(menu, data.get('items'))
    db.session.add(menu)
    log_admin_action('create', 'menus', f"Menu ajouté: {menu.name} à ${menu.price}")
    commit_admin_actions()
    return jsonify({'success': True, 'menu': menu.to_dict()}), 201


@menus_blueprint.route('/menus/<int:menu_id>', methods=['PUT', 'POST'])
@requires('menus', edit=True)
def edit_menu(menu_id):
    menu = get_or_404(Menu, menu_id, 'Menu')
    data = get_payload()

    if 'name' in data:
        menu.name = parse_str(data['name'], 'name')
    if 'description' in data:
        menu.description = parse_str(data['description'], 'description', required=False)
    if 'price' in data:
        price = parse_float(data['price'], 'price')
        if price <= 0:
            raise ValidationError(_('Price must be positive'))
        menu.price = price
    if 'image_url' in data:
        menu.image_url = parse_str(data['image_url'], 'image_url', required=False)
    if 'is_active' in data:
        menu.is_active = bool(data['is_active'])
    if 'items' in data:
        _set_items(menu, data['items'])

    log_admin_action('update', 'menus', f"Menu modifié: {menu.name}")
    commit_admin_actions()
    return jsonify({'success': True, 'menu': menu.to_dict()})


@menus_blueprint.route('/menus/<int:menu_id>', methods=['DELETE'])
@requires('menus', edit=True)
def delete_menu(menu_id):
    menu = get_or_404(Menu, menu_id, 'Menu')
    name = menu.name
    # Partner sales reference the menu, so it is only deactivated
    menu.is_active = False
    log_admin_action('delete', 'menus', f"Menu désactivé: {name}")
    commit_admin_actions()
    return jsonify({'success': True})
