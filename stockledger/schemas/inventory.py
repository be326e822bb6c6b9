from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from stockledger.models.enums import MovementDirection, MovementReason, MovementStatus
from stockledger.schemas.movement import MovementLineCreate


class StockLevelResponse(BaseModel):
    ingredient_id: int
    name: str
    unit: str
    quantity_on_hand: Decimal
    average_cost: Decimal
    min_stock: Decimal
    is_low_stock: bool = False


class LedgerEntryResponse(BaseModel):
    id: int
    movement_id: int
    ingredient_id: int
    ingredient_name: str
    unit: str
    direction: MovementDirection
    reason: MovementReason
    quantity: Decimal
    stock_reference: Optional[Decimal]
    unit_cost: Optional[Decimal]
    reference_id: str
    status: MovementStatus
    created_by: str
    created_at: datetime
    processed_at: Optional[datetime]


class LastPurchaseResponse(BaseModel):
    ingredient_id: int
    quantity_on_hand: Decimal
    average_cost: Decimal
    unit: str
    last_quantity: Decimal
    last_supplier: str
    last_cost: Decimal


class InventoryAdjustmentCreate(BaseModel):
    reason: MovementReason
    # Defaults to the only direction the reason allows (ENTRADA for AJUSTE_MANUAL)
    direction: Optional[MovementDirection] = None
    notes: Optional[str] = None
    lines: List[MovementLineCreate] = Field(..., min_length=1)


class PurchaseCreate(BaseModel):
    reference_id: Optional[str] = None
    notes: Optional[str] = None
    lines: List[MovementLineCreate] = Field(..., min_length=1)


class NegativeStockWarningResponse(BaseModel):
    tenant_id: int
    ingredient_id: int
    ingredient_name: str
    quantity_on_hand: Decimal
    reference_id: str


class InventoryResultResponse(BaseModel):
    reference_id: str
    movement_ids: List[int] = []
    stock: List[StockLevelResponse] = []
    warnings: List[NegativeStockWarningResponse] = []
    unprocessed_sale_line_ids: List[int] = []
    already_processed: bool = False

    @classmethod
    def from_result(cls, result, movement_ids: Optional[List[int]] = None) -> "InventoryResultResponse":
        """Build from an InventoryResult or a ReconcileResult"""
        return cls(
            reference_id=result.reference_id,
            movement_ids=movement_ids if movement_ids is not None else getattr(result, "movement_ids", []),
            stock=[level.as_dict() for level in result.stock.values()],
            warnings=[warning.as_dict() for warning in result.warnings],
            unprocessed_sale_line_ids=getattr(result, "unprocessed_sale_line_ids", []),
            already_processed=getattr(result, "already_processed", False),
        )
