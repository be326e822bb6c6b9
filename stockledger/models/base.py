from sqlalchemy import Column, DateTime, func

from stockledger.utils.timezone import utc_now


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now(), onupdate=utc_now, nullable=False)
