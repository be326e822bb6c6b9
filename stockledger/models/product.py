from sqlalchemy import Column, String, Boolean, Integer, Numeric

from stockledger.database import Base
from stockledger.models.base import TimestampMixin
from stockledger.models.enums import ProductKind, enum_column


class Product(Base, TimestampMixin):
    """Sale-side product; `kind` decides how a sale touches inventory."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    kind = Column(enum_column(ProductKind), nullable=False, default=ProductKind.DIRECTO)
    # Ingredient id for INVENTARIO, recipe id for RECETA, unused for DIRECTO
    reference_id = Column(Integer)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
