"""Received oil batches: quantity received and what is left of it."""
import enum
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Enum, Integer, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from oilstock.core.database import Base


class StockOwner(str, enum.Enum):
    INTERNAL = "internal"   # organisation's own stock
    EXTERNAL = "external"   # held for a client airline


class StockBatch(Base):
    """One received lot. quantity_remaining changes only through usage records."""
    __tablename__ = "oil_stock"
    __table_args__ = (
        CheckConstraint("quantity_received > 0", name="ck_oil_stock_received_positive"),
        CheckConstraint(
            "quantity_remaining >= 0 AND quantity_remaining <= quantity_received",
            name="ck_oil_stock_remaining_range",
        ),
        Index("ix_oil_stock_scope", "oil_type_id", "owner", "owner_airline_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    oil_type_id: Mapped[int] = mapped_column(ForeignKey("oil_types.id"), nullable=False)
    owner: Mapped[StockOwner] = mapped_column(Enum(StockOwner), nullable=False)
    owner_airline_id: Mapped[Optional[int]] = mapped_column(ForeignKey("airlines.id"), nullable=True)
    batch_number: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity_received: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey("staff.id"), nullable=True)

    oil_type = relationship("OilType")
    owner_airline = relationship("Airline")
    creator = relationship("Staff")
    usage_records = relationship("UsageRecord", back_populates="batch")
