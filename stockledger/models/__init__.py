from stockledger.models.base import TimestampMixin
from stockledger.models.enums import (
    ProductKind,
    MovementDirection,
    MovementReason,
    MovementStatus,
    ShiftStatus,
    SaleType,
    SaleStatus,
)
from stockledger.models.ingredient import Ingredient
from stockledger.models.recipe import Recipe, RecipeLine, Subrecipe, SubrecipeLine
from stockledger.models.product import Product
from stockledger.models.sale import Sale, SaleLine
from stockledger.models.movement import Movement, MovementLine
from stockledger.models.shift import Shift

__all__ = [
    "TimestampMixin",
    "ProductKind",
    "MovementDirection",
    "MovementReason",
    "MovementStatus",
    "ShiftStatus",
    "SaleType",
    "SaleStatus",
    "Ingredient",
    "Recipe",
    "RecipeLine",
    "Subrecipe",
    "SubrecipeLine",
    "Product",
    "Sale",
    "SaleLine",
    "Movement",
    "MovementLine",
    "Shift",
]
