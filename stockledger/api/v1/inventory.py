from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import select, text
from typing import List, Optional

from stockledger.database import get_db, unit_of_work
from stockledger.dependencies import get_tenant_context, require_role
from stockledger.models import MovementLine
from stockledger.models.enums import MovementReason
from stockledger.schemas.inventory import (
    StockLevelResponse,
    LedgerEntryResponse,
    LastPurchaseResponse,
    InventoryAdjustmentCreate,
    PurchaseCreate,
    InventoryResultResponse,
)
from stockledger.services import catalog, inventory_workflow
from stockledger.services.context import TenantContext

router = APIRouter()


@router.get("/stock", response_model=List[StockLevelResponse])
def get_inventory_stock(
    low_stock_only: bool = Query(False, description="Show only low stock items"),
    include_inactive: bool = Query(False, description="Include deactivated ingredients"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Get inventory stock levels"""

    query = """
        SELECT
            i.id, i.name, i.unit, i.quantity_on_hand, i.average_cost, i.min_stock,
            CASE WHEN i.quantity_on_hand <= i.min_stock THEN 1 ELSE 0 END as is_low_stock
        FROM ingredients i
        WHERE i.tenant_id = :tenant_id
        AND i.is_inventoriable = :inventoriable
    """

    params = {"tenant_id": ctx.tenant_id, "inventoriable": True}

    if not include_inactive:
        query += " AND i.is_active = :active"
        params["active"] = True

    if low_stock_only:
        query += " AND i.quantity_on_hand <= i.min_stock"

    query += " ORDER BY i.name"

    results = db.execute(text(query), params).fetchall()

    return [
        {
            "ingredient_id": r.id,
            "name": r.name,
            "unit": r.unit,
            "quantity_on_hand": r.quantity_on_hand,
            "average_cost": r.average_cost,
            "min_stock": r.min_stock,
            "is_low_stock": bool(r.is_low_stock)
        }
        for r in results
    ]


@router.get("/ledger", response_model=List[LedgerEntryResponse])
def get_inventory_ledger(
    ingredient_id: Optional[int] = Query(None, description="Filter by ingredient"),
    reason: Optional[MovementReason] = Query(None, description="Filter by movement reason"),
    reference_id: Optional[str] = Query(None, description="Filter by sale/purchase folio or shift key"),
    limit: int = Query(100, le=1000, description="Limit results"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Get ledger lines (audit trail)"""

    query = select(MovementLine).where(MovementLine.tenant_id == ctx.tenant_id)

    if ingredient_id is not None:
        query = query.where(MovementLine.ingredient_id == ingredient_id)

    if reason is not None:
        query = query.where(MovementLine.reason == reason)

    if reference_id:
        query = query.where(MovementLine.reference_id == reference_id)

    query = query.order_by(MovementLine.created_at.desc(), MovementLine.id.desc()).limit(limit)

    return [
        {
            "id": line.id,
            "movement_id": line.movement_id,
            "ingredient_id": line.ingredient_id,
            "ingredient_name": line.ingredient_name,
            "unit": line.unit,
            "direction": line.direction,
            "reason": line.reason,
            "quantity": line.quantity,
            "stock_reference": line.stock_reference,
            "unit_cost": line.unit_cost,
            "reference_id": line.reference_id,
            "status": line.status,
            "created_by": line.created_by,
            "created_at": line.created_at,
            "processed_at": line.processed_at
        }
        for line in db.execute(query).scalars()
    ]


@router.get("/low-stock-alerts")
def get_low_stock_alerts(
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Get active ingredients at or under their minimum stock"""

    results = db.execute(
        text("""
            SELECT
                i.id, i.name, i.unit, i.quantity_on_hand, i.min_stock, i.supplier_name
            FROM ingredients i
            WHERE i.tenant_id = :tenant_id
            AND i.is_active = :active
            AND i.is_inventoriable = :inventoriable
            AND i.quantity_on_hand <= i.min_stock
            ORDER BY i.quantity_on_hand ASC, i.name
        """),
        {"tenant_id": ctx.tenant_id, "active": True, "inventoriable": True}
    ).fetchall()

    return {
        "total_alerts": len(results),
        "items": [
            {
                "ingredient_id": r.id,
                "ingredient_name": r.name,
                "unit": r.unit,
                "quantity_on_hand": float(r.quantity_on_hand),
                "min_stock": float(r.min_stock),
                "supplier_name": r.supplier_name,
                "shortage": float(r.min_stock) - float(r.quantity_on_hand)
            }
            for r in results
        ]
    }


@router.get("/{ingredient_id}/last-purchase", response_model=LastPurchaseResponse)
def get_last_purchase(
    ingredient_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Current stock and cost plus the latest purchase of an ingredient"""
    return catalog.last_purchase(db, ctx.tenant_id, ingredient_id)


@router.post("/adjustments", response_model=InventoryResultResponse, status_code=status.HTTP_201_CREATED)
def create_inventory_adjustment(
    data: InventoryAdjustmentCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_role("OWNER", "ADMIN", "MANAGER")),
):
    """Record and apply a manual adjustment, initial count, waste or consumption"""
    with unit_of_work(db):
        result = inventory_workflow.record_adjustment(
            db,
            ctx,
            data.reason,
            [line.model_dump() for line in data.lines],
            direction=data.direction,
            notes=data.notes,
        )

    return InventoryResultResponse.from_result(result)


@router.post("/purchases", response_model=InventoryResultResponse, status_code=status.HTTP_201_CREATED)
def create_purchase(
    data: PurchaseCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Record and apply a purchase (ENTRADA / COMPRA)"""
    with unit_of_work(db):
        result = inventory_workflow.record_purchase(
            db,
            ctx,
            [line.model_dump() for line in data.lines],
            reference_id=data.reference_id,
            notes=data.notes,
        )

    return InventoryResultResponse.from_result(result)
