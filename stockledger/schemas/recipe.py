from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal


class RecipeLineCreate(BaseModel):
    ingredient_id: int
    quantity: Decimal
    # Captured from the ingredient's current average cost when omitted
    unit_cost: Optional[Decimal] = None
    ingredient_name: Optional[str] = None
    unit: Optional[str] = None


class RecipeCreate(BaseModel):
    name: str
    instructions: Optional[str] = None
    lines: List[RecipeLineCreate] = Field(..., min_length=1)


class RecipeLineResponse(BaseModel):
    id: int
    position: int
    ingredient_id: int
    ingredient_name: str
    unit: str
    quantity: Decimal
    unit_cost: Decimal

    class Config:
        from_attributes = True


class RecipeResponse(BaseModel):
    id: int
    name: str
    instructions: Optional[str]
    cost: Decimal
    # Same lines priced at today's ingredient costs
    live_cost: Optional[Decimal] = None
    is_active: bool
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime
    lines: List[RecipeLineResponse] = []

    class Config:
        from_attributes = True
