from sqlalchemy import Column, String, Boolean, Integer, Numeric, Index

from stockledger.database import Base
from stockledger.models.base import TimestampMixin


class Ingredient(Base, TimestampMixin):
    """Stock-keeping unit (insumo). Never deleted, only deactivated."""

    __tablename__ = "ingredients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    unit = Column(String(20), nullable=False)
    # Owned by the stock reconciler; everything else only reads these two
    quantity_on_hand = Column(Numeric(14, 4), nullable=False, default=0)
    average_cost = Column(Numeric(14, 4), nullable=False, default=0)
    min_stock = Column(Numeric(14, 4), nullable=False, default=0)
    sale_price = Column(Numeric(12, 2))
    is_active = Column(Boolean, nullable=False, default=True)
    is_inventoriable = Column(Boolean, nullable=False, default=True)
    account_category_id = Column(Integer)
    supplier_name = Column(String(255))  # denormalized by name

    __table_args__ = (
        Index("ix_ingredients_tenant_name", "tenant_id", "name"),
    )
