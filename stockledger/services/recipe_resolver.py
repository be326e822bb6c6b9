"""
Recipe resolver.

Turns a sold product and a quantity into the flat list of ingredient
deductions it causes. Dispatch is on the product kind:

    DIRECTO     no inventory effect
    INVENTARIO  one deduction of the ingredient the product points to
    RECETA      one deduction per recipe line, scaled by the quantity sold

Costs and units come from the ingredient as it is now, not from the values
captured when the recipe was written. Subrecipes are pre-costed and are not
expanded here.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from stockledger.models import Ingredient, ProductKind
from stockledger.services import catalog
from stockledger.services.exceptions import UnknownProductKind, ValidationError
from stockledger.utils.numbers import quantize_quantity, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedLine:
    ingredient_id: int
    ingredient_name: str
    unit: str
    quantity: Decimal  # always <= 0
    unit_cost: Decimal
    unit_price: Optional[Decimal]
    stock_reference: Decimal


@dataclass
class Resolution:
    lines: List[ResolvedLine] = field(default_factory=list)
    # "ingredient:<id>" or "recipe:<id>" for references that could not be found
    missing: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing


def product_kind(value) -> ProductKind:
    if isinstance(value, ProductKind):
        return value
    try:
        return ProductKind(value)
    except ValueError:
        raise UnknownProductKind(value)


def _deduction(ingredient: Ingredient, quantity: Decimal) -> ResolvedLine:
    if not ingredient.is_active:
        logger.warning(
            "Inactive ingredient %s (%s) consumed by a sale",
            ingredient.id,
            ingredient.name,
        )
    return ResolvedLine(
        ingredient_id=ingredient.id,
        ingredient_name=ingredient.name,
        unit=ingredient.unit,
        quantity=-abs(quantize_quantity(quantity)),
        unit_cost=to_decimal(ingredient.average_cost, "average_cost", Decimal("0")),
        unit_price=to_decimal(ingredient.sale_price, "sale_price", None),
        stock_reference=to_decimal(ingredient.quantity_on_hand, "quantity_on_hand"),
    )


def resolve(db: Session, tenant_id: int, product, quantity_sold) -> Resolution:
    """
    Expand `quantity_sold` units of `product` into ingredient deductions.

    `product` is anything carrying `kind` and `reference_id` (normally a
    `Product`). Missing ingredients or recipes are reported in
    `Resolution.missing` and skipped; the caller decides what to do with an
    incomplete resolution.
    """
    kind = product_kind(product.kind)
    quantity = abs(to_decimal(quantity_sold, "quantity"))
    if quantity == 0:
        raise ValidationError("quantity", "must not be zero")

    resolution = Resolution()

    if kind is ProductKind.DIRECTO:
        return resolution

    elif kind is ProductKind.INVENTARIO:
        ingredient = catalog.get_ingredient(db, tenant_id, product.reference_id)
        if ingredient is None:
            logger.warning(
                "Product %s points to missing ingredient %s",
                getattr(product, "id", None),
                product.reference_id,
            )
            resolution.missing.append(f"ingredient:{product.reference_id}")
        else:
            resolution.lines.append(_deduction(ingredient, quantity))
        return resolution

    elif kind is ProductKind.RECETA:
        recipe = catalog.get_recipe(db, tenant_id, product.reference_id)
        if recipe is None:
            logger.warning(
                "Product %s points to missing recipe %s",
                getattr(product, "id", None),
                product.reference_id,
            )
            resolution.missing.append(f"recipe:{product.reference_id}")
            return resolution

        for line in catalog.get_recipe_lines(db, tenant_id, recipe.id):
            ingredient = catalog.get_ingredient(db, tenant_id, line.ingredient_id)
            if ingredient is None:
                logger.warning(
                    "Recipe %s line %s references missing ingredient %s (%s); skipped",
                    recipe.id,
                    line.id,
                    line.ingredient_id,
                    line.ingredient_name,
                )
                resolution.missing.append(f"ingredient:{line.ingredient_id}")
                continue
            per_batch = to_decimal(line.quantity, "recipe_line.quantity")
            resolution.lines.append(_deduction(ingredient, per_batch * quantity))
        return resolution

    raise UnknownProductKind(kind)
