"""
Stock reconciler.

The only component allowed to write `Ingredient.quantity_on_hand` and
`Ingredient.average_cost`. It takes PENDIENTE ledger lines, applies each one
to its ingredient under a row lock and flips it to PROCESADO. A header
becomes PROCESADO once none of its lines is still pending.

Line semantics by reason:

    VENTA, MERMA, CONSUMO    quantity_on_hand += line.quantity
    COMPRA                   quantity_on_hand += line.quantity, and the
                             weighted-average cost absorbs the line cost
    AJUSTE_MANUAL,
    INV_INICIAL              quantity_on_hand := line.quantity, cost and
                             supplier taken from the line

The stored sign of `line.quantity` is used as is; `direction` is never
consulted here. Negative results are allowed and reported as warnings.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockledger.logging_config import NEGATIVE_STOCK_LOGGER
from stockledger.models import Ingredient, Movement, MovementLine, MovementReason, MovementStatus
from stockledger.services import catalog
from stockledger.services.catalog import StockLevel
from stockledger.services.exceptions import (
    AlreadyProcessed,
    InvalidStatusTransition,
    NotFoundError,
    ValidationError,
)
from stockledger.utils.numbers import quantize_quantity, to_decimal
from stockledger.utils.timezone import utc_now

logger = logging.getLogger(__name__)
negative_stock_logger = logging.getLogger(NEGATIVE_STOCK_LOGGER)

ZERO = Decimal("0")


@dataclass(frozen=True)
class NegativeStockWarning:
    tenant_id: int
    ingredient_id: int
    ingredient_name: str
    quantity_on_hand: Decimal
    reference_id: str

    def as_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "ingredient_id": self.ingredient_id,
            "ingredient_name": self.ingredient_name,
            "quantity_on_hand": self.quantity_on_hand,
            "reference_id": self.reference_id,
        }


@dataclass
class ReconcileResult:
    reference_id: str
    applied_line_ids: List[int] = field(default_factory=list)
    stock: Dict[int, StockLevel] = field(default_factory=dict)
    warnings: List[NegativeStockWarning] = field(default_factory=list)
    already_processed: bool = False


def weighted_average_cost(old_quantity: Decimal, old_cost: Decimal, quantity: Decimal, cost: Decimal) -> Decimal:
    if old_quantity > 0 and old_quantity + quantity > 0:
        total = old_quantity * old_cost + quantity * cost
        return quantize_quantity(total / (old_quantity + quantity))
    return quantize_quantity(cost)


def _apply_line(ingredient: Ingredient, line: MovementLine) -> None:
    current = to_decimal(ingredient.quantity_on_hand, "quantity_on_hand")
    delta = to_decimal(line.quantity, "line.quantity")
    reason = line.reason

    if reason in (MovementReason.AJUSTE_MANUAL, MovementReason.INV_INICIAL):
        ingredient.quantity_on_hand = quantize_quantity(delta)
        if line.unit_cost is not None:
            ingredient.average_cost = quantize_quantity(to_decimal(line.unit_cost, "line.unit_cost"))
        if line.supplier_name:
            ingredient.supplier_name = line.supplier_name

    elif reason is MovementReason.COMPRA:
        if line.unit_cost is not None:
            ingredient.average_cost = weighted_average_cost(
                current,
                to_decimal(ingredient.average_cost, "average_cost", ZERO),
                delta,
                to_decimal(line.unit_cost, "line.unit_cost"),
            )
        if line.supplier_name:
            ingredient.supplier_name = line.supplier_name
        ingredient.quantity_on_hand = quantize_quantity(current + delta)

    elif reason in (MovementReason.VENTA, MovementReason.MERMA, MovementReason.CONSUMO):
        ingredient.quantity_on_hand = quantize_quantity(current + delta)

    else:
        raise ValidationError("reason", f"Unhandled movement reason: {reason!r}")


def _apply_lines(db: Session, tenant_id: int, reference_id: str, lines: List[MovementLine]) -> ReconcileResult:
    result = ReconcileResult(reference_id=reference_id)
    now = utc_now()
    touched_movements = set()

    # Lock ingredients in id order so concurrent passes cannot deadlock
    ordered = sorted(lines, key=lambda line: (line.ingredient_id, line.id))

    with catalog.stock_write_scope():
        for line in ordered:
            ingredient = catalog.lock_ingredient(db, tenant_id, line.ingredient_id)
            if ingredient is None:
                raise NotFoundError("Ingredient", line.ingredient_id)

            _apply_line(ingredient, line)
            line.status = MovementStatus.PROCESADO
            line.processed_at = now
            db.flush()
            result.applied_line_ids.append(line.id)
            touched_movements.add(line.movement_id)

            if ingredient.quantity_on_hand < 0:
                warning = NegativeStockWarning(
                    tenant_id=tenant_id,
                    ingredient_id=ingredient.id,
                    ingredient_name=ingredient.name,
                    quantity_on_hand=ingredient.quantity_on_hand,
                    reference_id=line.reference_id,
                )
                result.warnings.append(warning)
                negative_stock_logger.warning(
                    "Negative stock for ingredient %s (%s): %s after %s",
                    ingredient.id,
                    ingredient.name,
                    ingredient.quantity_on_hand,
                    line.reference_id,
                    extra={
                        "tenant_id": tenant_id,
                        "ingredient_id": ingredient.id,
                        "quantity_on_hand": str(ingredient.quantity_on_hand),
                        "reference_id": line.reference_id,
                    },
                )

    _settle_headers(db, touched_movements)

    result.stock = catalog.stock_snapshot(db, tenant_id, {line.ingredient_id for line in lines})
    logger.info(
        "Reconciled %d lines for tenant %s ref=%s (%d negative)",
        len(result.applied_line_ids),
        tenant_id,
        reference_id,
        len(result.warnings),
    )
    return result


def _settle_headers(db: Session, movement_ids) -> None:
    for movement_id in sorted(movement_ids):
        movement = db.get(Movement, movement_id)
        if movement is None or movement.status is not MovementStatus.PENDIENTE:
            continue
        if all(line.status is not MovementStatus.PENDIENTE for line in movement.lines):
            movement.status = MovementStatus.PROCESADO
    db.flush()


def _lines_for_reference(db: Session, tenant_id: int, reference_id: str, status: MovementStatus) -> List[MovementLine]:
    return list(
        db.execute(
            select(MovementLine)
            .where(
                MovementLine.tenant_id == tenant_id,
                MovementLine.reference_id == reference_id,
                MovementLine.status == status,
            )
            .order_by(MovementLine.id)
        ).scalars()
    )


def apply(db: Session, tenant_id: int, reference_id: str, strict: bool = False) -> ReconcileResult:
    """
    Apply every pending ledger line carrying `reference_id`.

    Calling it again for a reference with nothing pending is a no-op that
    reports `already_processed`; with `strict=True` it raises
    `AlreadyProcessed` instead.
    """
    if not reference_id:
        raise ValidationError("reference_id", "is required")

    pending = _lines_for_reference(db, tenant_id, reference_id, MovementStatus.PENDIENTE)
    if pending:
        return _apply_lines(db, tenant_id, reference_id, pending)

    processed = _lines_for_reference(db, tenant_id, reference_id, MovementStatus.PROCESADO)
    if strict:
        if processed:
            raise AlreadyProcessed(f"Reference {reference_id}")
        raise NotFoundError("Pending movement reference", reference_id)

    return ReconcileResult(
        reference_id=reference_id,
        stock=catalog.stock_snapshot(db, tenant_id, {line.ingredient_id for line in processed}),
        already_processed=bool(processed),
    )


def apply_movement(db: Session, tenant_id: int, movement_id: int, strict: bool = False) -> ReconcileResult:
    """Apply the pending lines of one movement, leaving others that share its reference alone."""
    movement = db.execute(
        select(Movement).where(Movement.id == movement_id, Movement.tenant_id == tenant_id)
    ).scalar_one_or_none()
    if movement is None:
        raise NotFoundError("Movement", movement_id)

    if movement.status is MovementStatus.ELIMINADO:
        raise InvalidStatusTransition("movement", movement.status, MovementStatus.PROCESADO)

    pending = [line for line in movement.lines if line.status is MovementStatus.PENDIENTE]
    if not pending:
        if strict:
            raise AlreadyProcessed(f"Movement {movement_id}")
        return ReconcileResult(
            reference_id=movement.reference_id,
            stock=catalog.stock_snapshot(db, tenant_id, {line.ingredient_id for line in movement.lines}),
            already_processed=True,
        )

    return _apply_lines(db, tenant_id, movement.reference_id, pending)


def process_movement(db: Session, tenant_id: int, movement_id: int) -> ReconcileResult:
    return apply_movement(db, tenant_id, movement_id, strict=True)
