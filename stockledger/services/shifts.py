"""
Shift (turno) lifecycle.

    abierto --close--> cerrado   (once, irreversible)

At most one shift per (tenant, user) may be open. The check runs inside the
caller's transaction and is backed by a partial unique index, so a racing
insert surfaces as `ShiftAlreadyOpen` too.

Opening and withdrawing cash are recorded as sale-shaped MOVIMIENTO rows
carrying the shift key, so the cash position of a shift is auditable.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockledger.models import Sale, SaleStatus, SaleType, Shift, ShiftStatus
from stockledger.services import folio
from stockledger.services.context import TenantContext
from stockledger.services.exceptions import (
    NotFoundError,
    ShiftAlreadyClosed,
    ShiftAlreadyOpen,
    ValidationError,
)
from stockledger.utils.numbers import quantize_money, to_decimal
from stockledger.utils.timezone import utc_now
from stockledger.utils.validation import coerce_enum

logger = logging.getLogger(__name__)

OPENING_FLOAT_DESCRIPTION = "Fondo de caja inicial"
WITHDRAWAL_DESCRIPTION = "Retiro de efectivo"


def get_open_shift(db: Session, tenant_id: int, user_id: int) -> Optional[Shift]:
    return db.execute(
        select(Shift).where(
            Shift.tenant_id == tenant_id,
            Shift.user_id == user_id,
            Shift.status == ShiftStatus.ABIERTO,
        )
    ).scalar_one_or_none()


def get_shift(db: Session, tenant_id: int, shift_id: int) -> Shift:
    shift = db.execute(
        select(Shift).where(Shift.id == shift_id, Shift.tenant_id == tenant_id)
    ).scalar_one_or_none()
    if shift is None:
        raise NotFoundError("Shift", shift_id)
    return shift


def list_shifts(
    db: Session,
    tenant_id: int,
    status=None,
    user_id: Optional[int] = None,
    limit: int = 100,
) -> List[Shift]:
    query = select(Shift).where(Shift.tenant_id == tenant_id)
    if status is not None:
        query = query.where(Shift.status == coerce_enum(ShiftStatus, status, "status"))
    if user_id is not None:
        query = query.where(Shift.user_id == user_id)
    query = query.order_by(Shift.started_at.desc(), Shift.id.desc()).limit(limit)
    return list(db.execute(query).scalars())


def has_open_orders(db: Session, tenant_id: int, shift_key: str) -> bool:
    """True while a sale under this shift key is still ORDENADO."""
    return db.execute(
        select(
            exists().where(
                Sale.tenant_id == tenant_id,
                Sale.shift_key == shift_key,
                Sale.sale_type == SaleType.VENTA,
                Sale.status == SaleStatus.ORDENADO,
            )
        )
    ).scalar()


def record_cash_movement(
    db: Session,
    ctx: TenantContext,
    shift: Shift,
    amount: Decimal,
    description: str,
    clock=None,
) -> Sale:
    """
    Sale-shaped MOVIMIENTO row stamped with the shift key.

    Its folio uses the regular `<key><HHMMSS>M<id>` shape rather than the
    bare `<key><id>` of older opening-float rows, so cash rows sort and read
    like every other folio.
    """
    sale = Sale(
        tenant_id=ctx.tenant_id,
        sale_type=SaleType.MOVIMIENTO,
        status=SaleStatus.COBRADO,
        shift_key=shift.key,
        total=quantize_money(amount),
        description=description,
        created_by=ctx.user_alias,
    )
    db.add(sale)
    db.flush()

    sale.folio = folio.generate(shift.key, sale.id, folio.FolioType.MOVEMENT, clock=clock)
    db.flush()
    return sale


def open_shift(
    db: Session,
    ctx: TenantContext,
    opening_float=0,
    sales_goal=None,
    clock=None,
) -> Shift:
    """Open a shift for the acting user and record its opening float."""
    amount = to_decimal(opening_float, "opening_float", Decimal("0"))
    if amount < 0:
        raise ValidationError("opening_float", "must not be negative")
    goal = to_decimal(sales_goal, "sales_goal", None)

    if get_open_shift(db, ctx.tenant_id, ctx.user_id) is not None:
        raise ShiftAlreadyOpen(ctx.tenant_id, ctx.user_id)

    shift = Shift(
        tenant_id=ctx.tenant_id,
        started_at=utc_now(),
        status=ShiftStatus.ABIERTO,
        key=folio.generate_shift_key(ctx.tenant_id, ctx.user_id, clock=clock),
        user_id=ctx.user_id,
        user_alias=ctx.user_alias,
        sales_goal=goal,
    )
    db.add(shift)
    try:
        db.flush()
    except IntegrityError:
        # Lost a race with a concurrent open for the same user
        raise ShiftAlreadyOpen(ctx.tenant_id, ctx.user_id)

    shift.number = shift.id
    record_cash_movement(db, ctx, shift, amount, OPENING_FLOAT_DESCRIPTION, clock=clock)

    logger.info(
        "Shift %s opened for tenant %s user %s key=%s float=%s",
        shift.id,
        ctx.tenant_id,
        ctx.user_id,
        shift.key,
        amount,
    )
    return shift


def close_shift(
    db: Session,
    ctx: TenantContext,
    shift_id: int,
    withdrawal=None,
    clock=None,
) -> Shift:
    """
    Close a shift, recording an optional cash withdrawal first.

    Callers must check `has_open_orders` before closing.
    """
    shift = get_shift(db, ctx.tenant_id, shift_id)
    if shift.status is ShiftStatus.CERRADO:
        raise ShiftAlreadyClosed(shift.id)

    amount = to_decimal(withdrawal, "withdrawal", None)
    if amount is not None:
        if amount < 0:
            raise ValidationError("withdrawal", "must not be negative")
        if amount > 0:
            record_cash_movement(db, ctx, shift, -amount, WITHDRAWAL_DESCRIPTION, clock=clock)

    shift.status = ShiftStatus.CERRADO
    shift.ended_at = utc_now()
    db.flush()

    logger.info("Shift %s closed for tenant %s by %s", shift.id, ctx.tenant_id, ctx.user_alias)
    return shift


def close_current_shift(db: Session, ctx: TenantContext, withdrawal=None, clock=None) -> Shift:
    shift = get_open_shift(db, ctx.tenant_id, ctx.user_id)
    if shift is None:
        raise NotFoundError("Open shift for user", ctx.user_id)
    return close_shift(db, ctx, shift.id, withdrawal=withdrawal, clock=clock)
