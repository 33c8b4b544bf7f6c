"""
Production cost and margin engine.

Keeps Product.production_cost and Product.margin consistent with the recipe
graph and the current ingredient costs, and holds the grade commission table
used to attribute sales commissions.
"""
from collections import namedtuple
from flask import current_app
from flask_babel import gettext as _
from .models import db, Product, Recipe, Ingredient
from .errors import ProductNotFoundError, MissingIngredientError, PropagationError

CommissionRate = namedtuple('CommissionRate', ['rate', 'basis'])

# Sales attribution rates. Payroll base salary uses GradeSalaryConfig instead.
COMMISSION_RATES = {
    'Employé Polyvalent': CommissionRate(80, 'margin'),
    "Chef d'équipe": CommissionRate(83, 'margin'),
    'Manager': CommissionRate(40, 'revenue'),
    'CoPDG': CommissionRate(50, 'revenue'),
    'PDG': CommissionRate(50, 'revenue'),
}

DEFAULT_COMMISSION_RATE = CommissionRate(0, 'revenue')


def compute_production_cost(product_id):
    """
    Recalculates and caches the production cost of a single product.

    cost = sum(ingredient.cost_per_unit * recipe.quantity_needed) over the
    product's recipes, 0 when it has none. Also sets margin = price - cost.
    Changes are flushed, not committed.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(_('Product %(id)s not found', id=product_id))

    rows = db.session.query(Recipe, Ingredient).outerjoin(
        Ingredient, Recipe.ingredient_id == Ingredient.id
    ).filter(Recipe.product_id == product_id).all()

    total_cost = 0.0
    for recipe, ingredient in rows:
        if ingredient is None:
            raise MissingIngredientError(
                _('Recipe %(recipe)s references missing ingredient %(ingredient)s',
                  recipe=recipe.id, ingredient=recipe.ingredient_id)
            )
        total_cost += ingredient.cost_per_unit * recipe.quantity_needed

    product.production_cost = total_cost
    product.margin = product.price - total_cost
    db.session.flush()
    return product.production_cost


def products_using_ingredient(ingredient_id):
    rows = db.session.query(Recipe.product_id).filter(
        Recipe.ingredient_id == ingredient_id
    ).distinct().all()
    return [row[0] for row in rows]


def propagate_ingredient_cost_change(ingredient_id, product_ids=None):
    """
    Recomputes every product with a recipe edge to the ingredient.

    Each recompute is committed on its own. Failures do not stop the loop and
    do not undo earlier commits; they are reported together at the end as a
    PropagationError. `product_ids` lets callers pass the affected set when the
    edges were already removed (ingredient deletion).
    """
    if product_ids is None:
        product_ids = products_using_ingredient(ingredient_id)

    updated = []
    failed = {}
    for product_id in product_ids:
        try:
            compute_production_cost(product_id)
            db.session.commit()
            updated.append(product_id)
        except Exception as e:
            db.session.rollback()
            failed[product_id] = str(e)

    current_app.logger.info(
        "Ingredient %s cost propagated to %d product(s), %d failure(s)",
        ingredient_id, len(updated), len(failed)
    )

    if failed:
        raise PropagationError(
            _('Cost recalculation failed for %(count)d product(s)', count=len(failed)),
            updated=updated,
            failed=failed
        )
    return updated


def derive_commission_rate(grade):
    """Table lookup; unknown grades earn no commission."""
    return COMMISSION_RATES.get(grade, DEFAULT_COMMISSION_RATE)


def commission_for_sale(grade, lines):
    """
    Commission earned by a seller of the given grade.

    `lines` is an iterable of (product, quantity, unit_price). Revenue-based
    grades earn a share of the sale total, margin-based grades a share of the
    cached product margins (never below zero).
    """
    commission = derive_commission_rate(grade)
    if commission.rate <= 0:
        return 0.0

    if commission.basis == 'margin':
        base = sum(max(product.margin or 0, 0) * quantity for product, quantity, _price in lines)
    else:
        base = sum(unit_price * quantity for _product, quantity, unit_price in lines)

    return round(base * commission.rate / 100.0, 2)
