from sqlalchemy import Column, String, DateTime, Integer, Numeric, Index, text

from stockledger.database import Base
from stockledger.models.enums import ShiftStatus, enum_column


class Shift(Base):
    """Turno: one user's working period inside a tenant."""

    __tablename__ = "shifts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False)
    number = Column(Integer, nullable=False, default=0)  # equals id once flushed
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True))
    status = Column(enum_column(ShiftStatus), nullable=False, default=ShiftStatus.ABIERTO)
    key = Column(String(64), nullable=False, index=True)
    user_id = Column(Integer, nullable=False)
    user_alias = Column(String(100), nullable=False)
    sales_goal = Column(Numeric(12, 2))

    __table_args__ = (
        # At most one open shift per (tenant, user)
        Index(
            "ux_shifts_one_open_per_user",
            "tenant_id", "user_id",
            unique=True,
            postgresql_where=text("status = 'abierto'"),
            sqlite_where=text("status = 'abierto'"),
        ),
    )
