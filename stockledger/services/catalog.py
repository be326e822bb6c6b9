"""
Ingredient catalog queries.

Everything outside the stock reconciler reads ingredients through this
module. The two balance fields (`quantity_on_hand`, `average_cost`) are
guarded at flush time: changing them on a persisted ingredient outside
`stock_write_scope()` raises `StockWriteViolation`.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import event, inspect, select
from sqlalchemy.orm import Session

from stockledger.models import (
    Ingredient,
    MovementLine,
    MovementReason,
    MovementStatus,
    Product,
    Recipe,
    RecipeLine,
)
from stockledger.services.exceptions import NotFoundError, StockWriteViolation

GUARDED_FIELDS = ("quantity_on_hand", "average_cost")

_stock_writer: ContextVar[bool] = ContextVar("stock_writer", default=False)


@dataclass(frozen=True)
class StockLevel:
    ingredient_id: int
    name: str
    unit: str
    quantity_on_hand: Decimal
    average_cost: Decimal
    min_stock: Decimal

    @property
    def is_low_stock(self) -> bool:
        return self.quantity_on_hand <= self.min_stock

    def as_dict(self) -> dict:
        return {
            "ingredient_id": self.ingredient_id,
            "name": self.name,
            "unit": self.unit,
            "quantity_on_hand": self.quantity_on_hand,
            "average_cost": self.average_cost,
            "min_stock": self.min_stock,
            "is_low_stock": self.is_low_stock,
        }


@contextmanager
def stock_write_scope():
    """Grant write access to the balance fields. Only the reconciler enters it."""
    token = _stock_writer.set(True)
    try:
        yield
    finally:
        _stock_writer.reset(token)


@event.listens_for(Session, "before_flush")
def _guard_stock_fields(session, flush_context, instances):
    if _stock_writer.get():
        return
    for obj in session.dirty:
        if not isinstance(obj, Ingredient):
            continue
        state = inspect(obj)
        for field in GUARDED_FIELDS:
            if state.attrs[field].history.has_changes():
                raise StockWriteViolation(
                    f"Ingredient {obj.id}: {field} can only be changed by the stock reconciler"
                )


def get_ingredient(db: Session, tenant_id: int, ingredient_id: int) -> Optional[Ingredient]:
    return db.execute(
        select(Ingredient).where(
            Ingredient.id == ingredient_id,
            Ingredient.tenant_id == tenant_id,
        )
    ).scalar_one_or_none()


def require_ingredient(db: Session, tenant_id: int, ingredient_id: int) -> Ingredient:
    ingredient = get_ingredient(db, tenant_id, ingredient_id)
    if ingredient is None:
        raise NotFoundError("Ingredient", ingredient_id)
    return ingredient


def lock_ingredient(db: Session, tenant_id: int, ingredient_id: int) -> Optional[Ingredient]:
    """Read an ingredient holding a row lock until the transaction ends."""
    return db.execute(
        select(Ingredient)
        .where(
            Ingredient.id == ingredient_id,
            Ingredient.tenant_id == tenant_id,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def get_product(db: Session, tenant_id: int, product_id: int) -> Optional[Product]:
    return db.execute(
        select(Product).where(Product.id == product_id, Product.tenant_id == tenant_id)
    ).scalar_one_or_none()


def get_recipe(db: Session, tenant_id: int, recipe_id: int) -> Optional[Recipe]:
    return db.execute(
        select(Recipe).where(Recipe.id == recipe_id, Recipe.tenant_id == tenant_id)
    ).scalar_one_or_none()


def get_recipe_lines(db: Session, tenant_id: int, recipe_id: int) -> List[RecipeLine]:
    return list(
        db.execute(
            select(RecipeLine)
            .where(RecipeLine.recipe_id == recipe_id, RecipeLine.tenant_id == tenant_id)
            .order_by(RecipeLine.position, RecipeLine.id)
        ).scalars()
    )


def stock_snapshot(db: Session, tenant_id: int, ingredient_ids: Iterable[int]) -> Dict[int, StockLevel]:
    """Current balances for the given ingredients, keyed by id."""
    ids = sorted(set(ingredient_ids))
    if not ids:
        return {}

    rows = db.execute(
        select(Ingredient).where(Ingredient.tenant_id == tenant_id, Ingredient.id.in_(ids))
    ).scalars()

    return {
        row.id: StockLevel(
            ingredient_id=row.id,
            name=row.name,
            unit=row.unit,
            quantity_on_hand=Decimal(str(row.quantity_on_hand)),
            average_cost=Decimal(str(row.average_cost)),
            min_stock=Decimal(str(row.min_stock)),
        )
        for row in rows
    }


def last_purchase(db: Session, tenant_id: int, ingredient_id: int) -> dict:
    """Current balance plus the most recent non-cancelled COMPRA line for an ingredient."""
    ingredient = require_ingredient(db, tenant_id, ingredient_id)

    line = db.execute(
        select(MovementLine)
        .where(
            MovementLine.tenant_id == tenant_id,
            MovementLine.ingredient_id == ingredient_id,
            MovementLine.reason == MovementReason.COMPRA,
            MovementLine.status != MovementStatus.ELIMINADO,
        )
        .order_by(MovementLine.created_at.desc(), MovementLine.id.desc())
        .limit(1)
    ).scalar_one_or_none()

    return {
        "ingredient_id": ingredient.id,
        "quantity_on_hand": Decimal(str(ingredient.quantity_on_hand or 0)),
        "average_cost": Decimal(str(ingredient.average_cost or 0)),
        "unit": ingredient.unit or "",
        "last_quantity": Decimal(str(line.quantity)) if line else Decimal("0"),
        "last_supplier": (line.supplier_name or "") if line else "",
        "last_cost": Decimal(str(line.unit_cost or 0)) if line else Decimal("0"),
    }
