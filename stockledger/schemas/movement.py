from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from stockledger.models.enums import MovementDirection, MovementReason, MovementStatus


class MovementLineCreate(BaseModel):
    ingredient_id: int
    # Sign is applied by the ledger from direction/reason
    quantity: Decimal
    unit_cost: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    supplier_name: Optional[str] = None
    notes: Optional[str] = None


class MovementCreate(BaseModel):
    direction: MovementDirection
    reason: MovementReason
    notes: Optional[str] = None
    lines: List[MovementLineCreate] = Field(..., min_length=1)


class MovementNotesUpdate(BaseModel):
    notes: Optional[str] = None


class MovementLineResponse(BaseModel):
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
    unit_price: Optional[Decimal]
    supplier_name: Optional[str]
    reference_id: str
    sale_line_id: Optional[int]
    notes: Optional[str]
    status: MovementStatus
    created_at: datetime
    processed_at: Optional[datetime]

    class Config:
        from_attributes = True


class MovementResponse(BaseModel):
    id: int
    direction: MovementDirection
    reason: MovementReason
    reference_id: str
    movement_date: datetime
    notes: Optional[str]
    created_by: str
    status: MovementStatus
    created_at: datetime
    updated_at: datetime
    lines: List[MovementLineResponse] = []

    class Config:
        from_attributes = True
