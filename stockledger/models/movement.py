from sqlalchemy import Column, String, ForeignKey, DateTime, Integer, Numeric, Index
from sqlalchemy.orm import relationship

from stockledger.database import Base
from stockledger.models.base import TimestampMixin
from stockledger.models.enums import (
    MovementDirection,
    MovementReason,
    MovementStatus,
    enum_column,
)


class Movement(Base, TimestampMixin):
    """Ledger header: one inventory-affecting business event."""

    __tablename__ = "movements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False)
    direction = Column(enum_column(MovementDirection), nullable=False)
    reason = Column(enum_column(MovementReason), nullable=False)
    # Folio of the originating sale/purchase, or the shift key
    reference_id = Column(String(64), nullable=False)
    movement_date = Column(DateTime(timezone=True), nullable=False)
    notes = Column(String)
    created_by = Column(String(100), nullable=False)
    status = Column(enum_column(MovementStatus), nullable=False, default=MovementStatus.PENDIENTE)

    # Relationships
    lines = relationship(
        "MovementLine",
        back_populates="movement",
        cascade="all, delete-orphan",
        order_by="MovementLine.id",
    )

    __table_args__ = (
        Index("ix_movements_tenant_reference", "tenant_id", "reference_id"),
        Index("ix_movements_tenant_status", "tenant_id", "status"),
    )


class MovementLine(Base):
    """
    Effect of a movement on one ingredient.

    `quantity` is signed by the writer (negative depletes) and is never
    re-derived from `direction` when applied.
    """

    __tablename__ = "movement_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    movement_id = Column(Integer, ForeignKey('movements.id', ondelete='CASCADE'), nullable=False, index=True)
    tenant_id = Column(Integer, nullable=False)
    ingredient_id = Column(Integer, nullable=False)
    ingredient_name = Column(String(255), nullable=False)
    unit = Column(String(20), nullable=False)
    direction = Column(enum_column(MovementDirection), nullable=False)
    reason = Column(enum_column(MovementReason), nullable=False)
    quantity = Column(Numeric(14, 4), nullable=False)
    # Stock observed when the line was written; audit only
    stock_reference = Column(Numeric(14, 4))
    unit_cost = Column(Numeric(14, 4))
    unit_price = Column(Numeric(12, 2))
    supplier_name = Column(String(255))
    reference_id = Column(String(64), nullable=False)
    sale_line_id = Column(Integer, index=True)
    notes = Column(String)
    created_by = Column(String(100), nullable=False)
    status = Column(enum_column(MovementStatus), nullable=False, default=MovementStatus.PENDIENTE)
    created_at = Column(DateTime(timezone=True), nullable=False)
    processed_at = Column(DateTime(timezone=True))

    # Relationships
    movement = relationship("Movement", back_populates="lines")

    __table_args__ = (
        Index("ix_movement_lines_tenant_reference_status", "tenant_id", "reference_id", "status"),
        Index("ix_movement_lines_tenant_ingredient", "tenant_id", "ingredient_id"),
    )
