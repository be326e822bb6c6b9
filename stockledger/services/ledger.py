"""
Ledger store: movement headers and lines.

A movement is written once, PENDIENTE, with one line per ingredient. Line
quantities are signed here and nowhere else:

    ENTRADA              +abs(quantity)
    SALIDA               -abs(quantity)
    AJUSTE_MANUAL,
    INV_INICIAL          the counted quantity as given (absolute, >= 0)

After creation only `notes` may change. Status moves forward through the
reconciler (PROCESADO) or `cancel_movement` (ELIMINADO); rows are never
deleted.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from stockledger.models import (
    Movement,
    MovementLine,
    MovementDirection,
    MovementReason,
    MovementStatus,
    Sale,
)
from stockledger.models.enums import ABSOLUTE_REASONS, ALLOWED_DIRECTIONS
from stockledger.services import catalog, folio, shifts
from stockledger.services.context import TenantContext
from stockledger.services.exceptions import (
    AlreadyProcessed,
    InvalidStatusTransition,
    NotFoundError,
    ValidationError,
)
from stockledger.services.recipe_resolver import Resolution, ResolvedLine
from stockledger.utils.numbers import quantize_quantity, to_decimal
from stockledger.utils.timezone import utc_now
from stockledger.utils.validation import coerce_enum

logger = logging.getLogger(__name__)


def check_direction(direction: MovementDirection, reason: MovementReason) -> None:
    if direction not in ALLOWED_DIRECTIONS[reason]:
        raise ValidationError(
            "direction",
            f"{direction.value} is not allowed for reason {reason.value}",
        )


def signed_quantity(direction: MovementDirection, reason: MovementReason, quantity: Decimal) -> Decimal:
    """Apply the ledger sign convention to a raw quantity."""
    if reason in ABSOLUTE_REASONS:
        if quantity < 0:
            raise ValidationError("quantity", f"{reason.value} states a count and must not be negative")
        return quantize_quantity(quantity)
    if direction is MovementDirection.ENTRADA:
        return quantize_quantity(abs(quantity))
    if direction is MovementDirection.SALIDA:
        return quantize_quantity(-abs(quantity))
    raise ValidationError("direction", f"unknown direction {direction!r}")


def _field(data, name, default=None):
    if isinstance(data, Mapping):
        return data.get(name, default)
    return getattr(data, name, default)


def _build_line(
    db: Session,
    ctx: TenantContext,
    index: int,
    data,
    direction: MovementDirection,
    reason: MovementReason,
    now: datetime,
) -> MovementLine:
    prefix = f"lines[{index}]"

    ingredient_id = _field(data, "ingredient_id")
    if ingredient_id is None:
        raise ValidationError(f"{prefix}.ingredient_id", "is required")

    quantity = to_decimal(_field(data, "quantity"), f"{prefix}.quantity")
    if quantity == 0 and reason not in ABSOLUTE_REASONS:
        raise ValidationError(f"{prefix}.quantity", "must not be zero")

    ingredient = catalog.get_ingredient(db, ctx.tenant_id, ingredient_id)
    if ingredient is None:
        raise NotFoundError("Ingredient", ingredient_id)

    unit_cost = to_decimal(_field(data, "unit_cost"), f"{prefix}.unit_cost", None)
    if unit_cost is not None and unit_cost < 0:
        raise ValidationError(f"{prefix}.unit_cost", "must not be negative")

    return MovementLine(
        tenant_id=ctx.tenant_id,
        ingredient_id=ingredient.id,
        # Captured now so the ledger stays readable after renames
        ingredient_name=ingredient.name,
        unit=ingredient.unit,
        direction=direction,
        reason=reason,
        quantity=signed_quantity(direction, reason, quantity),
        stock_reference=to_decimal(ingredient.quantity_on_hand, "quantity_on_hand"),
        unit_cost=unit_cost,
        unit_price=to_decimal(_field(data, "unit_price"), f"{prefix}.unit_price", None),
        supplier_name=_field(data, "supplier_name"),
        sale_line_id=_field(data, "sale_line_id"),
        notes=_field(data, "notes"),
        created_by=ctx.user_alias,
        status=MovementStatus.PENDIENTE,
        created_at=now,
    )


def record_movement(
    db: Session,
    ctx: TenantContext,
    direction,
    reason,
    reference_id: Optional[str],
    lines: List,
    notes: Optional[str] = None,
    folio_type: folio.FolioType = folio.FolioType.MOVEMENT,
) -> Movement:
    """
    Write a PENDIENTE movement header and its lines.

    When `reference_id` is None a folio is generated from the header id.
    Nothing is applied to stock here.
    """
    direction = coerce_enum(MovementDirection, direction, "direction")
    reason = coerce_enum(MovementReason, reason, "reason")
    check_direction(direction, reason)

    if reference_id is not None and not str(reference_id).strip():
        raise ValidationError("reference_id", "must not be blank")
    if not lines:
        raise ValidationError("lines", "at least one line is required")

    now = utc_now()
    built = [
        _build_line(db, ctx, index, data, direction, reason, now)
        for index, data in enumerate(lines)
    ]

    movement = Movement(
        tenant_id=ctx.tenant_id,
        direction=direction,
        reason=reason,
        reference_id=str(reference_id).strip() if reference_id is not None else "",
        movement_date=now,
        notes=notes,
        created_by=ctx.user_alias,
        status=MovementStatus.PENDIENTE,
    )
    for line in built:
        line.reference_id = movement.reference_id
    movement.lines.extend(built)
    db.add(movement)
    db.flush()

    if reference_id is None:
        # Folio needs the header id
        movement.reference_id = folio.generate(None, movement.id, folio_type)
        for line in movement.lines:
            line.reference_id = movement.reference_id
        db.flush()

    logger.info(
        "Movement %s recorded for tenant %s: %s/%s ref=%s lines=%d",
        movement.id,
        ctx.tenant_id,
        direction.value,
        reason.value,
        movement.reference_id,
        len(built),
    )
    return movement


def record_manual_movement(
    db: Session,
    ctx: TenantContext,
    direction,
    reason,
    lines: List,
    notes: Optional[str] = None,
) -> Movement:
    """Manual movement stamped with the user's open shift key, or an M folio."""
    shift = shifts.get_open_shift(db, ctx.tenant_id, ctx.user_id)
    reference_id = shift.key if shift is not None else None
    return record_movement(db, ctx, direction, reason, reference_id, lines, notes)


@dataclass
class SaleRecording:
    movement_id: Optional[int] = None
    line_ids: List[int] = field(default_factory=list)
    processed_sale_line_ids: List[int] = field(default_factory=list)
    unprocessed_sale_line_ids: List[int] = field(default_factory=list)


def _existing_sale_deductions(db: Session, tenant_id: int, sale_line_ids: List[int]) -> set:
    if not sale_line_ids:
        return set()
    rows = db.execute(
        select(MovementLine.sale_line_id, MovementLine.ingredient_id).where(
            MovementLine.tenant_id == tenant_id,
            MovementLine.sale_line_id.in_(sale_line_ids),
            MovementLine.status != MovementStatus.ELIMINADO,
        )
    ).all()
    return {(row.sale_line_id, row.ingredient_id) for row in rows}


def _merge_by_ingredient(lines: List[ResolvedLine]) -> List[ResolvedLine]:
    """One deduction per ingredient, summing recipe lines that repeat it."""
    merged: Dict[int, ResolvedLine] = {}
    for line in lines:
        current = merged.get(line.ingredient_id)
        if current is None:
            merged[line.ingredient_id] = line
        else:
            merged[line.ingredient_id] = replace(current, quantity=current.quantity + line.quantity)
    return list(merged.values())


def record_lines_for_sale(
    db: Session,
    ctx: TenantContext,
    sale_id: int,
    resolutions: Dict[int, Resolution],
) -> SaleRecording:
    """
    Record the ingredient deductions of a sale, once.

    `resolutions` maps sale line id to its resolved deductions. Sale lines
    already flagged `inventory_processed` are skipped, as are
    (sale line, ingredient) pairs that already have a live ledger line, so a
    retry never deducts twice. An ingredient listed on several recipe lines
    is recorded as one summed deduction per sale line. A sale line is
    flagged processed only when its resolution was complete.
    """
    sale = db.execute(
        select(Sale).where(Sale.id == sale_id, Sale.tenant_id == ctx.tenant_id)
    ).scalar_one_or_none()
    if sale is None:
        raise NotFoundError("Sale", sale_id)

    pending = [
        line for line in sale.lines
        if line.affects_inventory and not line.inventory_processed and line.id in resolutions
    ]
    recorded = _existing_sale_deductions(db, ctx.tenant_id, [line.id for line in pending])

    result = SaleRecording()
    now = utc_now()
    new_lines = []

    for sale_line in pending:
        resolution = resolutions[sale_line.id]
        for resolved in _merge_by_ingredient(resolution.lines):
            # Only rows already in the ledger count as recorded
            if (sale_line.id, resolved.ingredient_id) in recorded:
                continue
            new_lines.append(
                MovementLine(
                    tenant_id=ctx.tenant_id,
                    ingredient_id=resolved.ingredient_id,
                    ingredient_name=resolved.ingredient_name,
                    unit=resolved.unit,
                    direction=MovementDirection.SALIDA,
                    reason=MovementReason.VENTA,
                    quantity=signed_quantity(MovementDirection.SALIDA, MovementReason.VENTA, resolved.quantity),
                    stock_reference=resolved.stock_reference,
                    unit_cost=resolved.unit_cost,
                    unit_price=resolved.unit_price,
                    reference_id=sale.folio,
                    sale_line_id=sale_line.id,
                    created_by=ctx.user_alias,
                    status=MovementStatus.PENDIENTE,
                    created_at=now,
                )
            )

        if resolution.complete:
            sale_line.inventory_processed = True
            sale_line.inventory_processed_at = now
            result.processed_sale_line_ids.append(sale_line.id)
        else:
            logger.warning(
                "Sale %s line %s left unprocessed; missing %s",
                sale.folio,
                sale_line.id,
                ", ".join(resolution.missing),
            )
            result.unprocessed_sale_line_ids.append(sale_line.id)

    if new_lines:
        movement = Movement(
            tenant_id=ctx.tenant_id,
            direction=MovementDirection.SALIDA,
            reason=MovementReason.VENTA,
            reference_id=sale.folio,
            movement_date=now,
            notes=f"Venta {sale.folio}",
            created_by=ctx.user_alias,
            status=MovementStatus.PENDIENTE,
        )
        movement.lines.extend(new_lines)
        db.add(movement)
        db.flush()
        result.movement_id = movement.id
        result.line_ids = [line.id for line in new_lines]
        logger.info(
            "Movement %s recorded for sale %s: %d lines",
            movement.id,
            sale.folio,
            len(new_lines),
        )
    else:
        db.flush()

    return result


def list_movements(
    db: Session,
    tenant_id: int,
    status=None,
    reason=None,
    limit: int = 100,
) -> List[Movement]:
    query = (
        select(Movement)
        .options(selectinload(Movement.lines))
        .where(Movement.tenant_id == tenant_id)
    )
    if status is not None:
        query = query.where(Movement.status == coerce_enum(MovementStatus, status, "status"))
    if reason is not None:
        query = query.where(Movement.reason == coerce_enum(MovementReason, reason, "reason"))

    query = query.order_by(Movement.movement_date.desc(), Movement.id.desc()).limit(limit)
    return list(db.execute(query).scalars())


def get_movement(db: Session, tenant_id: int, movement_id: int) -> Movement:
    movement = db.execute(
        select(Movement)
        .options(selectinload(Movement.lines))
        .where(Movement.id == movement_id, Movement.tenant_id == tenant_id)
    ).scalar_one_or_none()
    if movement is None:
        raise NotFoundError("Movement", movement_id)
    return movement


def update_movement_notes(db: Session, ctx: TenantContext, movement_id: int, notes: Optional[str]) -> Movement:
    movement = get_movement(db, ctx.tenant_id, movement_id)
    movement.notes = notes
    db.flush()
    return movement


def cancel_movement(db: Session, ctx: TenantContext, movement_id: int) -> Movement:
    """PENDIENTE -> ELIMINADO for the header and every line."""
    movement = get_movement(db, ctx.tenant_id, movement_id)

    if movement.status is MovementStatus.ELIMINADO:
        raise AlreadyProcessed(f"Movement {movement_id} cancellation")
    if movement.status is MovementStatus.PROCESADO:
        raise InvalidStatusTransition("movement", movement.status, MovementStatus.ELIMINADO)

    for line in movement.lines:
        if line.status is MovementStatus.PROCESADO:
            raise InvalidStatusTransition("movement line", line.status, MovementStatus.ELIMINADO)
        line.status = MovementStatus.ELIMINADO
    movement.status = MovementStatus.ELIMINADO
    db.flush()

    logger.info("Movement %s cancelled by %s", movement.id, ctx.user_alias)
    return movement
