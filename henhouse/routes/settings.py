import pandas as pd
from flask import Blueprint, request, jsonify
from flask_babel import gettext as _
from ..models import (
    db, Ingredient, Product, Recipe, ReadyStock, ModulePermission, Partner,
    WebhookConfig, PRODUCT_CATEGORIES
)
from ..costing import compute_production_cost, propagate_ingredient_cost_change, products_using_ingredient
from ..errors import ValidationError
from ..notifications import CATEGORIES as WEBHOOK_CATEGORIES
from ..permissions import requires
from .utils import (
    get_payload, require_fields, parse_float, parse_int, parse_unit, get_or_404, log_admin_action,
    commit_admin_actions, parse_str
)

settings_blueprint = Blueprint('settings', __name__)

DEFAULT_IMAGE_URL = 'https://images.pexels.com/photos/1092730/pexels-photo-1092730.jpeg'


# ----------------------------
# Ingredients
# ----------------------------
@settings_blueprint.route('/settings/ingredients')
@requires('settings')
def ingredients():
    all_ingredients = Ingredient.query.order_by(Ingredient.name).all()
    return jsonify([i.to_dict() for i in all_ingredients])


@settings_blueprint.route('/settings/ingredients', methods=['POST'])
@requires('settings', edit=True)
def add_ingredient():
    data = get_payload()
    ingredient = Ingredient(
        name=parse_str(data.get('name'), 'name'),
        unit=parse_unit(data.get('unit')),
        quantity=parse_float(data.get('quantity'), 'quantity', minimum=0, default=0.0),
        cost_per_unit=parse_float(data.get('cost_per_unit'), 'cost_per_unit', minimum=0, default=0.0),
        min_threshold=parse_float(data.get('min_threshold'), 'min_threshold', minimum=0, default=10.0)
    )
    db.session.add(ingredient)
    db.session.commit()

    log_admin_action('create', 'ingredients',
                     f"Ingrédient ajouté: {ingredient.name} à ${ingredient.cost_per_unit}/{ingredient.unit}")
    commit_admin_actions()
    return jsonify({'success': True, 'ingredient': ingredient.to_dict()}), 201


@settings_blueprint.route('/settings/ingredients/<int:ingredient_id>', methods=['PUT', 'POST'])
@requires('settings', edit=True)
def edit_ingredient(ingredient_id):
    ingredient = get_or_404(Ingredient, ingredient_id, 'Ingredient')
    data = get_payload()

    if 'name' in data:
        ingredient.name = parse_str(data['name'], 'name')
    if 'unit' in data:
        ingredient.unit = parse_unit(data['unit'])
    if 'quantity' in data:
        ingredient.quantity = parse_float(data['quantity'], 'quantity', minimum=0)
    if 'cost_per_unit' in data:
        ingredient.cost_per_unit = parse_float(data['cost_per_unit'], 'cost_per_unit', minimum=0)
    if 'min_threshold' in data:
        ingredient.min_threshold = parse_float(data['min_threshold'], 'min_threshold', minimum=0)
    db.session.commit()

    log_admin_action('update', 'ingredients', f"Ingrédient modifié: {ingredient.name}")
    commit_admin_actions()

    # Every product using the ingredient gets its cost and margin recalculated
    updated = propagate_ingredient_cost_change(ingredient.id)

    return jsonify({'success': True, 'ingredient': ingredient.to_dict(), 'recalculated_products': updated})


@settings_blueprint.route('/settings/ingredients/<int:ingredient_id>', methods=['DELETE'])
@requires('settings', edit=True)
def delete_ingredient(ingredient_id):
    ingredient = get_or_404(Ingredient, ingredient_id, 'Ingredient')
    name = ingredient.name
    affected = products_using_ingredient(ingredient_id)

    Recipe.query.filter_by(ingredient_id=ingredient_id).delete()
    db.session.delete(ingredient)
    db.session.commit()

    log_admin_action('delete', 'ingredients', f"Ingrédient supprimé: {name}")
    commit_admin_actions()

    updated = propagate_ingredient_cost_change(ingredient_id, product_ids=affected)
    return jsonify({'success': True, 'recalculated_products': updated})


@settings_blueprint.route('/settings/ingredients/import', methods=['POST'])
@requires('settings', edit=True)
def import_ingredients():
    """
    Bulk price list upload (CSV or Excel) with columns name, unit,
    cost_per_unit and optionally quantity and min_threshold.

    Existing ingredients are matched by name. Rows without a name or with an
    unreadable cost are skipped. Changed costs are propagated to products.
    """
    if 'file' not in request.files or request.files['file'].filename == '':
        raise ValidationError(_('No file uploaded'))

    file = request.files['file']
    if file.filename.lower().endswith('.csv'):
        df = pd.read_csv(file)
    else:
        df = pd.read_excel(file)

    # Normalize column names (strip whitespace)
    df.columns = df.columns.str.strip().str.lower()
    if 'name' not in df.columns or 'cost_per_unit' not in df.columns:
        raise ValidationError(_('The file needs name and cost_per_unit columns'))

    created, updated, skipped = [], [], []
    changed_ids = []

    for index, row in df.iterrows():
        if pd.isna(row['name']) or not str(row['name']).strip():
            skipped.append(int(index) + 2)
            continue

        name = str(row['name']).strip()
        try:
            cost = float(row['cost_per_unit'])
        except (ValueError, TypeError):
            skipped.append(int(index) + 2)
            continue
        if pd.isna(cost) or cost < 0:
            skipped.append(int(index) + 2)
            continue

        unit = str(row['unit']).strip() if 'unit' in df.columns and not pd.isna(row.get('unit')) else None

        ingredient = Ingredient.query.filter_by(name=name).first()
        if ingredient is None:
            ingredient = Ingredient(name=name, unit=parse_unit(unit), cost_per_unit=cost)
            if 'quantity' in df.columns and not pd.isna(row.get('quantity')):
                ingredient.quantity = float(row['quantity'])
            if 'min_threshold' in df.columns and not pd.isna(row.get('min_threshold')):
                ingredient.min_threshold = float(row['min_threshold'])
            db.session.add(ingredient)
            created.append(name)
        else:
            if ingredient.cost_per_unit != cost:
                ingredient.cost_per_unit = cost
                changed_ids.append(ingredient.id)
                updated.append(name)
            if unit:
                ingredient.unit = parse_unit(unit)

    db.session.commit()

    log_admin_action('update', 'ingredients',
                     f"Import: {len(created)} créés, {len(updated)} mis à jour, {len(skipped)} ignorés")
    commit_admin_actions()

    recalculated = set()
    for ingredient_id in changed_ids:
        recalculated.update(propagate_ingredient_cost_change(ingredient_id))

    return jsonify({
        'success': True,
        'created': created,
        'updated': updated,
        'skipped_rows': skipped,
        'recalculated_products': sorted(recalculated)
    })


# ----------------------------
# Products
# ----------------------------
@settings_blueprint.route('/settings/products')
@requires('settings')
def products():
    all_products = Product.query.order_by(Product.name).all()
    return jsonify([p.to_dict() for p in all_products])


@settings_blueprint.route('/settings/products', methods=['POST'])
@requires('settings', edit=True)
def add_product():
    data = get_payload()
    name = parse_str(data.get('name'), 'name')
    price = parse_float(data.get('price'), 'price')
    if price <= 0:
        raise ValidationError(_('Price must be positive'))

    category = data.get('category') or 'Plats'
    if category not in PRODUCT_CATEGORIES:
        raise ValidationError(_('Unknown category'))

    product = Product(
        name=name,
        description=parse_str(data.get('description'), 'description', required=False, default=''),
        price=price,
        production_cost=0.0,
        margin=price,
        category=category,
        batch_size=parse_int(data.get('batch_size'), 'batch_size', minimum=1, default=1),
        image_url=parse_str(data.get('image_url'), 'image_url', required=False, default=DEFAULT_IMAGE_URL),
        is_active=True
    )
    db.session.add(product)
    db.session.flush()

    db.session.add(ReadyStock(product_id=product.id, quantity=0))
    log_admin_action('create', 'products', f"Produit ajouté: {product.name} à ${product.price}")
    commit_admin_actions()
    return jsonify({'success': True, 'product': product.to_dict()}), 201


@settings_blueprint.route('/settings/products/<int:product_id>', methods=['PUT', 'POST'])
@requires('settings', edit=True)
def edit_product(product_id):
    product = get_or_404(Product, product_id, 'Product')
    data = get_payload()

    if 'name' in data:
        product.name = parse_str(data['name'], 'name')
    if 'description' in data:
        product.description = parse_str(data['description'], 'description', required=False, default='')
    if 'category' in data:
        if data['category'] not in PRODUCT_CATEGORIES:
            raise ValidationError(_('Unknown category'))
        product.category = data['category']
    if 'image_url' in data:
        product.image_url = parse_str(data['image_url'], 'image_url', required=False, default=DEFAULT_IMAGE_URL)
    if 'batch_size' in data:
        product.batch_size = parse_int(data['batch_size'], 'batch_size', minimum=1)
    if 'price' in data:
        price = parse_float(data['price'], 'price')
        if price <= 0:
            raise ValidationError(_('Price must be positive'))
        product.price = price

    # Price changes move the margin
    compute_production_cost(product.id)
    log_admin_action('update', 'products', f"Produit modifié: {product.name}")
    commit_admin_actions()
    return jsonify({'success': True, 'product': product.to_dict()})


@settings_blueprint.route('/settings/products/<int:product_id>/toggle', methods=['POST'])
@requires('settings', edit=True)
def toggle_product(product_id):
    product = get_or_404(Product, product_id, 'Product')
    product.is_active = not product.is_active
    log_admin_action('update', 'products',
                     f"{product.name} {'activé' if product.is_active else 'désactivé'}")
    commit_admin_actions()
    return jsonify({'success': True, 'product': product.to_dict()})


# ----------------------------
# Recipes
# ----------------------------
@settings_blueprint.route('/settings/recipes')
@requires('settings')
def recipes():
    query = Recipe.query.order_by(Recipe.created_at)
    if request.args.get('product_id'):
        query = query.filter_by(product_id=request.args.get('product_id', type=int))
    return jsonify([r.to_dict() for r in query.all()])


@settings_blueprint.route('/settings/recipes', methods=['POST'])
@requires('settings', edit=True)
def add_recipe():
    data = get_payload()
    require_fields(data, 'product_id', 'ingredient_id')

    product = get_or_404(Product, parse_int(data['product_id'], 'product_id'), 'Product')
    ingredient = get_or_404(Ingredient, parse_int(data['ingredient_id'], 'ingredient_id'), 'Ingredient')
    quantity_needed = parse_float(data.get('quantity_needed'), 'quantity_needed', default=1.0)
    if quantity_needed <= 0:
        raise ValidationError(_('Quantity required'))

    recipe = Recipe(product_id=product.id, ingredient_id=ingredient.id, quantity_needed=quantity_needed)
    db.session.add(recipe)
    db.session.flush()

    compute_production_cost(product.id)
    log_admin_action('create', 'recipes',
                     f"{product.name}: {quantity_needed:g} {ingredient.unit} de {ingredient.name}")
    commit_admin_actions()
    return jsonify({'success': True, 'recipe': recipe.to_dict(), 'product': product.to_dict()}), 201


@settings_blueprint.route('/settings/recipes/<int:recipe_id>', methods=['PUT', 'POST'])
@requires('settings', edit=True)
def edit_recipe(recipe_id):
    recipe = get_or_404(Recipe, recipe_id, 'Recipe')
    data = get_payload()

    quantity_needed = parse_float(data.get('quantity_needed'), 'quantity_needed')
    if quantity_needed <= 0:
        raise ValidationError(_('Quantity required'))
    recipe.quantity_needed = quantity_needed

    if data.get('ingredient_id'):
        ingredient = get_or_404(Ingredient, parse_int(data['ingredient_id'], 'ingredient_id'), 'Ingredient')
        recipe.ingredient_id = ingredient.id
    db.session.flush()

    compute_production_cost(recipe.product_id)
    log_admin_action('update', 'recipes', 'Recette modifiée')
    commit_admin_actions()
    return jsonify({'success': True, 'recipe': recipe.to_dict(), 'product': recipe.product.to_dict()})


@settings_blueprint.route('/settings/recipes/<int:recipe_id>', methods=['DELETE'])
@requires('settings', edit=True)
def delete_recipe(recipe_id):
    recipe = get_or_404(Recipe, recipe_id, 'Recipe')
    product_id = recipe.product_id

    db.session.delete(recipe)
    db.session.flush()

    compute_production_cost(product_id)
    log_admin_action('delete', 'recipes', 'Recette supprimée')
    commit_admin_actions()
    return jsonify({'success': True, 'product': db.session.get(Product, product_id).to_dict()})


# ----------------------------
# Module permissions
# ----------------------------
@settings_blueprint.route('/settings/permissions')
@requires('settings')
def permissions():
    rows = ModulePermission.query.order_by(ModulePermission.grade, ModulePermission.module_name).all()
    return jsonify([p.to_dict() for p in rows])


@settings_blueprint.route('/settings/permissions/<int:permission_id>', methods=['PUT', 'POST'])
@requires('settings', edit=True)
def update_permission(permission_id):
    permission = get_or_404(ModulePermission, permission_id, 'Permission')
    data = get_payload()

    for field in ('can_view', 'can_edit'):
        if field in data:
            value = data[field]
            if isinstance(value, str):
                value = value.lower() in ('1', 'true', 'on', 'yes')
            setattr(permission, field, bool(value))
            log_admin_action('permission_change', permission.module_name,
                             f"{permission.grade}: {'Voir' if field == 'can_view' else 'Modifier'} = {'Oui' if value else 'Non'}")

    commit_admin_actions()
    return jsonify({'success': True, 'permission': permission.to_dict()})


# ----------------------------
# Partners
# ----------------------------
@settings_blueprint.route('/settings/partners')
@requires('settings')
def partners():
    return jsonify([p.to_dict() for p in Partner.query.order_by(Partner.name).all()])


@settings_blueprint.route('/settings/partners', methods=['POST'])
@requires('settings', edit=True)
def add_partner():
    data = get_payload()
    name = parse_str(data.get('name'), 'name')
    if Partner.query.filter_by(name=name).first():
        raise ValidationError(_('A partner with this name already exists'))

    partner = Partner(
        name=name,
        contact=parse_str(data.get('contact'), 'contact', required=False),
        webhook_url=parse_str(data.get('webhook_url'), 'webhook_url', required=False),
        is_active=True
    )
    db.session.add(partner)
    log_admin_action('create', 'partners', f"Partenaire ajouté: {partner.name}")
    commit_admin_actions()
    return jsonify({'success': True, 'partner': partner.to_dict()}), 201


@settings_blueprint.route('/settings/partners/<int:partner_id>/toggle', methods=['POST'])
@requires('settings', edit=True)
def toggle_partner(partner_id):
    partner = get_or_404(Partner, partner_id, 'Partner')
    partner.is_active = not partner.is_active
    log_admin_action('update', 'partners',
                     f"{partner.name} {'activé' if partner.is_active else 'désactivé'}")
    commit_admin_actions()
    return jsonify({'success': True, 'partner': partner.to_dict()})


# ----------------------------
# Webhooks
# ----------------------------
@settings_blueprint.route('/settings/webhooks')
@requires('settings')
def webhooks():
    rows = WebhookConfig.query.order_by(WebhookConfig.module_name).all()
    return jsonify([w.to_dict() for w in rows])


@settings_blueprint.route('/settings/webhooks', methods=['POST'])
@requires('settings', edit=True)
def add_webhook():
    data = get_payload()
    module_name = parse_str(data.get('module_name'), 'module_name')
    webhook_url = parse_str(data.get('webhook_url'), 'webhook_url')
    if module_name not in WEBHOOK_CATEGORIES:
        raise ValidationError(_('Unknown notification category'))
    if WebhookConfig.query.filter_by(module_name=module_name).first():
        raise ValidationError(_('A webhook already exists for this category'))

    webhook = WebhookConfig(module_name=module_name, webhook_url=webhook_url, is_enabled=True)
    db.session.add(webhook)
    log_admin_action('settings_change', 'webhooks', f"Webhook ajouté: {webhook.module_name}")
    commit_admin_actions()
    return jsonify({'success': True, 'webhook': webhook.to_dict()}), 201


@settings_blueprint.route('/settings/webhooks/<int:webhook_id>', methods=['PUT', 'POST'])
@requires('settings', edit=True)
def edit_webhook(webhook_id):
    webhook = get_or_404(WebhookConfig, webhook_id, 'Webhook')
    data = get_payload()
    if data.get('webhook_url'):
        webhook.webhook_url = parse_str(data['webhook_url'], 'webhook_url')
    if 'is_enabled' in data:
        webhook.is_enabled = bool(data['is_enabled'])
    log_admin_action('settings_change', 'webhooks', f"Webhook modifié: {webhook.module_name}")
    commit_admin_actions()
    return jsonify({'success': True, 'webhook': webhook.to_dict()})


@settings_blueprint.route('/settings/webhooks/<int:webhook_id>', methods=['DELETE'])
@requires('settings', edit=True)
def delete_webhook(webhook_id):
    webhook = get_or_404(WebhookConfig, webhook_id, 'Webhook')
    name = webhook.module_name
    db.session.delete(webhook)
    log_admin_action('settings_change', 'webhooks', f"Webhook supprimé: {name}")
    commit_admin_actions()
    return jsonify({'success': True})
