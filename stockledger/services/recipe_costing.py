"""
Recipe and subrecipe authoring with cost rollup.

A recipe's stored cost is always Σ(line.quantity × line.unit_cost) over its
captured lines. Saving replaces the whole line collection and recomputes the
cost in the same flush; there is no partial line patch.
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockledger.models import Recipe, RecipeLine, Subrecipe, SubrecipeLine
from stockledger.services import catalog
from stockledger.services.context import TenantContext
from stockledger.services.exceptions import NotFoundError, ValidationError
from stockledger.utils.numbers import quantize_quantity, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
COST_TOLERANCE = Decimal("0.01")

# (header model, line model, display name)
RECIPE = (Recipe, RecipeLine, "Recipe")
SUBRECIPE = (Subrecipe, SubrecipeLine, "Subrecipe")


def compute_cost(lines: Iterable) -> Decimal:
    """Σ(quantity × unit_cost) over objects or mappings with those two fields."""
    total = ZERO
    for line in lines:
        quantity = _field(line, "quantity")
        unit_cost = _field(line, "unit_cost")
        total += to_decimal(quantity, "quantity") * to_decimal(unit_cost, "unit_cost", ZERO)
    return quantize_quantity(total)


def _field(line, name):
    if isinstance(line, Mapping):
        return line.get(name)
    return getattr(line, name, None)


def _build_lines(db: Session, ctx: TenantContext, line_model, lines: List) -> list:
    if not lines:
        raise ValidationError("lines", "at least one ingredient line is required")

    built = []
    for position, data in enumerate(lines):
        ingredient_id = _field(data, "ingredient_id")
        if ingredient_id is None:
            raise ValidationError(f"lines[{position}].ingredient_id", "is required")

        quantity = to_decimal(_field(data, "quantity"), f"lines[{position}].quantity")
        if quantity <= 0:
            raise ValidationError(f"lines[{position}].quantity", "must be greater than zero")

        ingredient = catalog.get_ingredient(db, ctx.tenant_id, ingredient_id)
        if ingredient is None:
            raise NotFoundError("Ingredient", ingredient_id)

        # Capture the ingredient's current cost unless the author supplied one
        unit_cost = to_decimal(
            _field(data, "unit_cost"),
            f"lines[{position}].unit_cost",
            to_decimal(ingredient.average_cost, "average_cost", ZERO),
        )
        if unit_cost < 0:
            raise ValidationError(f"lines[{position}].unit_cost", "must not be negative")

        built.append(
            line_model(
                tenant_id=ctx.tenant_id,
                position=position,
                ingredient_id=ingredient.id,
                ingredient_name=_field(data, "ingredient_name") or ingredient.name,
                unit=_field(data, "unit") or ingredient.unit,
                quantity=quantity,
                unit_cost=unit_cost,
            )
        )
    return built


def _get(db: Session, kind, tenant_id: int, item_id: int):
    model, _, label = kind
    item = db.execute(
        select(model).where(model.id == item_id, model.tenant_id == tenant_id)
    ).scalar_one_or_none()
    if item is None:
        raise NotFoundError(label, item_id)
    return item


def _save(
    db: Session,
    ctx: TenantContext,
    kind,
    name: str,
    lines: List,
    instructions: Optional[str] = None,
    item_id: Optional[int] = None,
):
    model, line_model, label = kind

    if not name or not name.strip():
        raise ValidationError("name", "is required")

    new_lines = _build_lines(db, ctx, line_model, lines)

    if item_id is None:
        item = model(tenant_id=ctx.tenant_id, created_by=ctx.user_alias)
        db.add(item)
    else:
        item = _get(db, kind, ctx.tenant_id, item_id)
        # Replace, never patch
        item.lines.clear()
        db.flush()

    item.name = name.strip()
    item.instructions = instructions
    item.lines.extend(new_lines)
    item.cost = compute_cost(new_lines)
    db.flush()

    logger.info(
        "%s %s saved for tenant %s: %d lines, cost %s",
        label,
        item.id,
        ctx.tenant_id,
        len(new_lines),
        item.cost,
    )
    return item


def save_recipe(db, ctx, name, lines, instructions=None, recipe_id=None) -> Recipe:
    """Create a recipe, or replace an existing one's lines when `recipe_id` is given."""
    return _save(db, ctx, RECIPE, name, lines, instructions, recipe_id)


def save_subrecipe(db, ctx, name, lines, instructions=None, subrecipe_id=None) -> Subrecipe:
    return _save(db, ctx, SUBRECIPE, name, lines, instructions, subrecipe_id)


def get_recipe(db: Session, tenant_id: int, recipe_id: int) -> Recipe:
    return _get(db, RECIPE, tenant_id, recipe_id)


def get_subrecipe(db: Session, tenant_id: int, subrecipe_id: int) -> Subrecipe:
    return _get(db, SUBRECIPE, tenant_id, subrecipe_id)


def _list(db: Session, kind, tenant_id: int, include_inactive: bool):
    model = kind[0]
    query = select(model).where(model.tenant_id == tenant_id)
    if not include_inactive:
        query = query.where(model.is_active.is_(True))
    return list(db.execute(query.order_by(model.name)).scalars())


def list_recipes(db: Session, tenant_id: int, include_inactive: bool = False) -> List[Recipe]:
    return _list(db, RECIPE, tenant_id, include_inactive)


def list_subrecipes(db: Session, tenant_id: int, include_inactive: bool = False) -> List[Subrecipe]:
    return _list(db, SUBRECIPE, tenant_id, include_inactive)


def live_cost(db: Session, tenant_id: int, item) -> Decimal:
    """
    Cost of a recipe or subrecipe at today's ingredient prices.

    Lines whose ingredient no longer exists contribute nothing.
    """
    total = ZERO
    for line in item.lines:
        ingredient = catalog.get_ingredient(db, tenant_id, line.ingredient_id)
        if ingredient is None:
            continue
        total += to_decimal(line.quantity, "quantity") * to_decimal(ingredient.average_cost, "average_cost", ZERO)
    return quantize_quantity(total)


def recompute_stored_costs(db: Session, tenant_id: Optional[int] = None) -> dict:
    """
    Recalculate every stored recipe and subrecipe cost from its lines.

    Only costs that drift by more than 0.01 are rewritten.
    """
    summary = {"checked": 0, "updated": 0, "unchanged": 0}

    for model, _, label in (RECIPE, SUBRECIPE):
        query = select(model)
        if tenant_id is not None:
            query = query.where(model.tenant_id == tenant_id)

        for item in db.execute(query.order_by(model.id)).scalars():
            summary["checked"] += 1
            stored = to_decimal(item.cost, "cost", ZERO)
            computed = compute_cost(item.lines)

            if abs(stored - computed) > COST_TOLERANCE:
                logger.info("%s %s cost %s -> %s", label, item.id, stored, computed)
                item.cost = computed
                summary["updated"] += 1
            else:
                summary["unchanged"] += 1

    db.flush()
    return summary
