from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import text
from typing import Optional
from decimal import Decimal

from stockledger.database import get_db, unit_of_work
from stockledger.dependencies import get_tenant_context
from stockledger.models.enums import SaleStatus
from stockledger.schemas.inventory import InventoryResultResponse
from stockledger.schemas.sales import SaleCreate, SaleResponse, MarginResponse
from stockledger.services import inventory_workflow, margin
from stockledger.services.context import TenantContext

router = APIRouter()


@router.get("/margin", response_model=MarginResponse)
def get_margin(
    sales: Optional[Decimal] = Query(None, description="Total sales; defaults to charged sales of the tenant"),
    cost: Optional[Decimal] = Query(None, description="Total cost of sales; defaults to processed sale deductions"),
    shift_key: Optional[str] = Query(None, description="Restrict defaults to one shift"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Gross margin with its classification band and improvement alerts"""

    if sales is None or cost is None:
        shift_filter = " AND s.shift_key = :shift_key" if shift_key else ""
        params = {"tenant_id": ctx.tenant_id, "venta": "VENTA", "cobrado": SaleStatus.COBRADO.value}
        if shift_key:
            params["shift_key"] = shift_key

        totals = db.execute(
            text(f"""
                SELECT
                    (SELECT COALESCE(SUM(s.total), 0)
                     FROM sales s
                     WHERE s.tenant_id = :tenant_id
                     AND s.sale_type = :venta
                     AND s.status = :cobrado{shift_filter}) as sales_total,
                    (SELECT COALESCE(SUM(-ml.quantity * COALESCE(ml.unit_cost, 0)), 0)
                     FROM movement_lines ml
                     JOIN sale_lines sl ON sl.id = ml.sale_line_id
                     JOIN sales s ON s.id = sl.sale_id
                     WHERE ml.tenant_id = :tenant_id
                     AND ml.reason = :venta
                     AND ml.status = 'PROCESADO'
                     AND s.status = :cobrado{shift_filter}) as cost_total
            """),
            params
        ).fetchone()

        if sales is None:
            sales = totals.sales_total
        if cost is None:
            cost = totals.cost_total

    return margin.calculate_and_evaluate(sales, cost)


@router.post("/", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
def create_sale(
    data: SaleCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Register a sale under the user's open shift"""
    with unit_of_work(db):
        sale = inventory_workflow.register_sale(
            db,
            ctx,
            [line.model_dump() for line in data.lines],
            description=data.description,
        )
        sale_id = sale.id

    return inventory_workflow.get_sale(db, ctx.tenant_id, sale_id)


@router.get("/{sale_id}", response_model=SaleResponse)
def get_sale_by_id(
    sale_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Get sale by ID"""
    return inventory_workflow.get_sale(db, ctx.tenant_id, sale_id)


@router.post("/{sale_id}/complete", response_model=InventoryResultResponse)
def complete_sale(
    sale_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Charge the sale and deduct its ingredients (safe to retry)"""
    with unit_of_work(db):
        result = inventory_workflow.complete_sale(db, ctx, sale_id)

    return InventoryResultResponse.from_result(result)
