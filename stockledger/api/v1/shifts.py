from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from stockledger.database import get_db, unit_of_work
from stockledger.dependencies import get_tenant_context
from stockledger.models.enums import ShiftStatus
from stockledger.schemas.shift import ShiftOpen, ShiftClose, ShiftResponse
from stockledger.services import shifts
from stockledger.services.context import TenantContext
from stockledger.services.exceptions import ConflictError, NotFoundError

router = APIRouter()


def ensure_no_open_orders(db: Session, tenant_id: int, shift_key: str) -> None:
    if shifts.has_open_orders(db, tenant_id, shift_key):
        raise ConflictError(
            "There are open orders in this shift. Charge or cancel them before closing.",
            code="SHIFT_HAS_OPEN_ORDERS",
        )


@router.get("/", response_model=List[ShiftResponse])
def get_shifts(
    shift_status: Optional[ShiftStatus] = Query(None, alias="status", description="Filter by status"),
    user_id: Optional[int] = Query(None, description="Filter by user"),
    limit: int = Query(100, le=1000, description="Limit results"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Get shifts, newest first"""
    return shifts.list_shifts(db, ctx.tenant_id, status=shift_status, user_id=user_id, limit=limit)


@router.get("/current", response_model=ShiftResponse)
def get_current_shift(
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Get the acting user's open shift"""
    shift = shifts.get_open_shift(db, ctx.tenant_id, ctx.user_id)
    if shift is None:
        raise NotFoundError("Open shift for user", ctx.user_id)
    return shift


@router.post("/open", response_model=ShiftResponse, status_code=status.HTTP_201_CREATED)
def open_shift(
    data: ShiftOpen,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Open a shift and record its opening float"""
    with unit_of_work(db):
        shift = shifts.open_shift(db, ctx, opening_float=data.opening_float, sales_goal=data.sales_goal)
        shift_id = shift.id

    return shifts.get_shift(db, ctx.tenant_id, shift_id)


@router.post("/close-current", response_model=ShiftResponse)
def close_current_shift(
    data: ShiftClose,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Close the acting user's open shift"""
    with unit_of_work(db):
        current = shifts.get_open_shift(db, ctx.tenant_id, ctx.user_id)
        if current is not None:
            ensure_no_open_orders(db, ctx.tenant_id, current.key)
        shift = shifts.close_current_shift(db, ctx, withdrawal=data.withdrawal)
        shift_id = shift.id

    return shifts.get_shift(db, ctx.tenant_id, shift_id)


@router.post("/{shift_id}/close", response_model=ShiftResponse)
def close_shift(
    shift_id: int,
    data: ShiftClose,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Close a shift; refused while it still has open orders"""
    with unit_of_work(db):
        shift = shifts.get_shift(db, ctx.tenant_id, shift_id)
        ensure_no_open_orders(db, ctx.tenant_id, shift.key)
        shifts.close_shift(db, ctx, shift_id, withdrawal=data.withdrawal)

    return shifts.get_shift(db, ctx.tenant_id, shift_id)
