from sqlalchemy import Column, String, ForeignKey, DateTime, Integer, Numeric, Boolean
from sqlalchemy.orm import relationship

from stockledger.database import Base
from stockledger.models.base import TimestampMixin
from stockledger.models.enums import SaleType, SaleStatus, ProductKind, enum_column


class Sale(Base, TimestampMixin):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    folio = Column(String(64), nullable=False, default="", index=True)
    sale_type = Column(enum_column(SaleType), nullable=False, default=SaleType.VENTA)
    status = Column(enum_column(SaleStatus), nullable=False, default=SaleStatus.ORDENADO)
    shift_key = Column(String(64), index=True)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    description = Column(String(255))
    created_by = Column(String(100))

    # Relationships
    lines = relationship("SaleLine", back_populates="sale", cascade="all, delete-orphan", order_by="SaleLine.id")


class SaleLine(Base):
    __tablename__ = "sale_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sale_id = Column(Integer, ForeignKey('sales.id', ondelete='CASCADE'), nullable=False, index=True)
    tenant_id = Column(Integer, nullable=False)
    product_id = Column(Integer, nullable=False)
    product_name = Column(String(255), nullable=False)
    product_kind = Column(enum_column(ProductKind), nullable=False)
    quantity = Column(Numeric(12, 4), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    unit_cost = Column(Numeric(14, 4))
    affects_inventory = Column(Boolean, nullable=False, default=False)
    # Guard against applying the same sale line twice on retries
    inventory_processed = Column(Boolean, nullable=False, default=False)
    inventory_processed_at = Column(DateTime(timezone=True))

    # Relationships
    sale = relationship("Sale", back_populates="lines")
