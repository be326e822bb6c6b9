"""
Sale, purchase and adjustment entry points.

Each function is one business event and must run inside a single
`unit_of_work`: ledger rows, stock balances and sale-line flags are written
together or not at all.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockledger.models import (
    MovementDirection,
    MovementReason,
    ProductKind,
    Sale,
    SaleLine,
    SaleStatus,
    SaleType,
)
from stockledger.models.enums import ALLOWED_DIRECTIONS
from stockledger.services import catalog, folio, ledger, reconciler, shifts
from stockledger.services.catalog import StockLevel
from stockledger.services.context import TenantContext
from stockledger.services.exceptions import InvalidStatusTransition, NotFoundError, ValidationError
from stockledger.services.reconciler import NegativeStockWarning, ReconcileResult
from stockledger.services.recipe_resolver import Resolution, product_kind, resolve
from stockledger.utils.numbers import quantize_money, to_decimal
from stockledger.utils.validation import coerce_enum

logger = logging.getLogger(__name__)

ADJUSTMENT_REASONS = frozenset({
    MovementReason.AJUSTE_MANUAL,
    MovementReason.INV_INICIAL,
    MovementReason.MERMA,
    MovementReason.CONSUMO,
})


@dataclass
class InventoryResult:
    reference_id: str
    movement_ids: List[int] = field(default_factory=list)
    stock: Dict[int, StockLevel] = field(default_factory=dict)
    warnings: List[NegativeStockWarning] = field(default_factory=list)
    unprocessed_sale_line_ids: List[int] = field(default_factory=list)

    @classmethod
    def from_reconcile(cls, reconciled: ReconcileResult, movement_ids: List[int]) -> "InventoryResult":
        return cls(
            reference_id=reconciled.reference_id,
            movement_ids=movement_ids,
            stock=reconciled.stock,
            warnings=reconciled.warnings,
        )


def _field(data, name, default=None):
    if isinstance(data, Mapping):
        return data.get(name, default)
    return getattr(data, name, default)


def get_sale(db: Session, tenant_id: int, sale_id: int) -> Sale:
    sale = db.execute(
        select(Sale).where(Sale.id == sale_id, Sale.tenant_id == tenant_id)
    ).scalar_one_or_none()
    if sale is None:
        raise NotFoundError("Sale", sale_id)
    return sale


def register_sale(
    db: Session,
    ctx: TenantContext,
    lines: List,
    description: Optional[str] = None,
    clock=None,
) -> Sale:
    """
    Write an ORDENADO sale and its lines.

    The sale carries the user's open shift key (if any) and a V folio
    prefixed by it. Lines for non-DIRECTO products are marked as affecting
    inventory; nothing is deducted until `complete_sale`.
    """
    if not lines:
        raise ValidationError("lines", "at least one line is required")

    shift = shifts.get_open_shift(db, ctx.tenant_id, ctx.user_id)
    sale = Sale(
        tenant_id=ctx.tenant_id,
        sale_type=SaleType.VENTA,
        status=SaleStatus.ORDENADO,
        shift_key=shift.key if shift else None,
        description=description,
        created_by=ctx.user_alias,
    )

    total = Decimal("0")
    for index, data in enumerate(lines):
        product_id = _field(data, "product_id")
        if product_id is None:
            raise ValidationError(f"lines[{index}].product_id", "is required")

        product = catalog.get_product(db, ctx.tenant_id, product_id)
        if product is None:
            raise NotFoundError("Product", product_id)

        kind = product_kind(product.kind)
        quantity = to_decimal(_field(data, "quantity"), f"lines[{index}].quantity")
        if quantity <= 0:
            raise ValidationError(f"lines[{index}].quantity", "must be greater than zero")
        unit_price = to_decimal(_field(data, "unit_price"), f"lines[{index}].unit_price", product.price)

        sale.lines.append(
            SaleLine(
                tenant_id=ctx.tenant_id,
                product_id=product.id,
                product_name=product.name,
                product_kind=kind,
                quantity=quantity,
                unit_price=unit_price,
                unit_cost=to_decimal(_field(data, "unit_cost"), f"lines[{index}].unit_cost", None),
                affects_inventory=kind is not ProductKind.DIRECTO,
                inventory_processed=False,
            )
        )
        total += quantity * to_decimal(unit_price, "unit_price")

    sale.total = quantize_money(total)
    db.add(sale)
    db.flush()

    sale.folio = folio.generate(sale.shift_key, sale.id, folio.FolioType.SALE, clock=clock)
    db.flush()

    logger.info("Sale %s registered for tenant %s (%d lines)", sale.folio, ctx.tenant_id, len(sale.lines))
    return sale


def complete_sale(db: Session, ctx: TenantContext, sale_id: int) -> InventoryResult:
    """
    Deduct a sale's ingredients and reconcile them, once.

    Safe to call again: already processed sale lines are skipped and the
    reconciler treats a settled reference as a no-op. Sale lines with
    missing ingredients stay unprocessed and are reported back.
    """
    sale = get_sale(db, ctx.tenant_id, sale_id)
    if sale.sale_type is not SaleType.VENTA:
        raise ValidationError("sale_type", f"{sale.sale_type.value} rows carry no inventory")
    if sale.status is SaleStatus.CANCELADO:
        raise InvalidStatusTransition("sale", sale.status, SaleStatus.COBRADO)

    resolutions: Dict[int, Resolution] = {}
    for sale_line in sale.lines:
        if not sale_line.affects_inventory or sale_line.inventory_processed:
            continue
        product = catalog.get_product(db, ctx.tenant_id, sale_line.product_id)
        if product is None:
            logger.warning("Sale %s line %s: product %s no longer exists", sale.folio, sale_line.id, sale_line.product_id)
            resolutions[sale_line.id] = Resolution(missing=[f"product:{sale_line.product_id}"])
            continue
        resolutions[sale_line.id] = resolve(db, ctx.tenant_id, product, sale_line.quantity)

    recording = ledger.record_lines_for_sale(db, ctx, sale.id, resolutions)
    reconciled = reconciler.apply(db, ctx.tenant_id, sale.folio)

    sale.status = SaleStatus.COBRADO
    db.flush()

    result = InventoryResult.from_reconcile(
        reconciled,
        [recording.movement_id] if recording.movement_id else [],
    )
    # Lines left over from an earlier incomplete attempt are reported too
    result.unprocessed_sale_line_ids = sorted(
        line.id for line in sale.lines if line.affects_inventory and not line.inventory_processed
    )
    return result


def record_purchase(
    db: Session,
    ctx: TenantContext,
    lines: List,
    reference_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> InventoryResult:
    """ENTRADA/COMPRA movement applied immediately. Without a reference a C folio is used."""
    movement = ledger.record_movement(
        db,
        ctx,
        MovementDirection.ENTRADA,
        MovementReason.COMPRA,
        reference_id,
        lines,
        notes=notes,
        folio_type=folio.FolioType.PURCHASE,
    )
    reconciled = reconciler.apply_movement(db, ctx.tenant_id, movement.id)
    return InventoryResult.from_reconcile(reconciled, [movement.id])


def record_adjustment(
    db: Session,
    ctx: TenantContext,
    reason,
    lines: List,
    direction=None,
    notes: Optional[str] = None,
) -> InventoryResult:
    """Manual adjustment, initial count, waste or consumption, applied immediately."""
    reason = coerce_enum(MovementReason, reason, "reason")
    if reason not in ADJUSTMENT_REASONS:
        raise ValidationError("reason", f"{reason.value} is not an adjustment reason")

    if direction is None:
        allowed = ALLOWED_DIRECTIONS[reason]
        direction = MovementDirection.ENTRADA if len(allowed) > 1 else next(iter(allowed))

    movement = ledger.record_manual_movement(db, ctx, direction, reason, lines, notes=notes)
    reconciled = reconciler.apply_movement(db, ctx.tenant_id, movement.id)
    return InventoryResult.from_reconcile(reconciled, [movement.id])
