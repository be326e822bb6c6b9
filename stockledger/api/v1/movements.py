from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from stockledger.database import get_db, unit_of_work
from stockledger.dependencies import get_tenant_context, require_role
from stockledger.models.enums import MovementReason, MovementStatus
from stockledger.schemas.inventory import InventoryResultResponse
from stockledger.schemas.movement import MovementCreate, MovementNotesUpdate, MovementResponse
from stockledger.services import ledger, reconciler
from stockledger.services.context import TenantContext

router = APIRouter()

MANAGER_ROLES = ("OWNER", "ADMIN", "MANAGER")


@router.get("/", response_model=List[MovementResponse])
def get_movements(
    movement_status: Optional[MovementStatus] = Query(None, alias="status", description="Filter by status"),
    reason: Optional[MovementReason] = Query(None, description="Filter by reason"),
    limit: int = Query(100, le=1000, description="Limit results"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """List movements, newest first"""
    return ledger.list_movements(db, ctx.tenant_id, status=movement_status, reason=reason, limit=limit)


@router.post("/", response_model=MovementResponse, status_code=status.HTTP_201_CREATED)
def create_movement(
    data: MovementCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Record a PENDIENTE movement; stock changes only when it is processed"""
    with unit_of_work(db):
        movement = ledger.record_manual_movement(
            db,
            ctx,
            data.direction,
            data.reason,
            [line.model_dump() for line in data.lines],
            notes=data.notes,
        )
        movement_id = movement.id

    return ledger.get_movement(db, ctx.tenant_id, movement_id)


@router.get("/{movement_id}", response_model=MovementResponse)
def get_movement_by_id(
    movement_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Get movement by ID"""
    return ledger.get_movement(db, ctx.tenant_id, movement_id)


@router.patch("/{movement_id}", response_model=MovementResponse)
def update_movement(
    movement_id: int,
    data: MovementNotesUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Update movement notes (the only editable field)"""
    with unit_of_work(db):
        ledger.update_movement_notes(db, ctx, movement_id, data.notes)

    return ledger.get_movement(db, ctx.tenant_id, movement_id)


@router.post("/{movement_id}/process", response_model=InventoryResultResponse)
def process_movement(
    movement_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Apply a pending movement to stock"""
    with unit_of_work(db):
        result = reconciler.process_movement(db, ctx.tenant_id, movement_id)

    return InventoryResultResponse.from_result(result, movement_ids=[movement_id])


@router.delete("/{movement_id}", response_model=MovementResponse)
def cancel_movement(
    movement_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_role(*MANAGER_ROLES)),
):
    """Cancel a pending movement (status ELIMINADO; nothing is deleted)"""
    with unit_of_work(db):
        ledger.cancel_movement(db, ctx, movement_id)

    return ledger.get_movement(db, ctx.tenant_id, movement_id)
