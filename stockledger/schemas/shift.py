from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal

from stockledger.models.enums import ShiftStatus


class ShiftOpen(BaseModel):
    opening_float: Decimal = Decimal("0")
    sales_goal: Optional[Decimal] = None


class ShiftClose(BaseModel):
    withdrawal: Optional[Decimal] = None


class ShiftResponse(BaseModel):
    id: int
    number: int
    key: str
    status: ShiftStatus
    user_id: int
    user_alias: str
    sales_goal: Optional[Decimal]
    started_at: datetime
    ended_at: Optional[datetime]

    class Config:
        from_attributes = True
