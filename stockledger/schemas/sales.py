from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from stockledger.models.enums import ProductKind, SaleStatus, SaleType


class SaleLineCreate(BaseModel):
    product_id: int
    quantity: Decimal
    # Product list price when omitted
    unit_price: Optional[Decimal] = None


class SaleCreate(BaseModel):
    description: Optional[str] = None
    lines: List[SaleLineCreate] = Field(..., min_length=1)


class SaleLineResponse(BaseModel):
    id: int
    product_id: int
    product_name: str
    product_kind: ProductKind
    quantity: Decimal
    unit_price: Decimal
    affects_inventory: bool
    inventory_processed: bool
    inventory_processed_at: Optional[datetime]

    class Config:
        from_attributes = True


class SaleResponse(BaseModel):
    id: int
    folio: str
    sale_type: SaleType
    status: SaleStatus
    shift_key: Optional[str]
    total: Decimal
    description: Optional[str]
    created_by: Optional[str]
    created_at: datetime
    lines: List[SaleLineResponse] = []

    class Config:
        from_attributes = True


class MarginAlert(BaseModel):
    code: str
    message: str
    description: str
    action: str


class MarginResponse(BaseModel):
    sales: Decimal
    cost: Decimal
    gross_margin: Decimal
    margin_pct: Decimal
    classification: str  # CRÍTICO, BAJO, SALUDABLE, MUY BUENO, REVISAR COSTEO
    description: str
    color: str
    alert_level: str
    alerts: List[MarginAlert] = []
