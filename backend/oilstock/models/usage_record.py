"""Oil consumption: each record debits exactly one batch."""
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from oilstock.core.database import Base


class UsageRecord(Base):
    __tablename__ = "oil_usage"
    __table_args__ = (
        CheckConstraint("quantity_used > 0", name="ck_oil_usage_quantity_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    batch_id: Mapped[int] = mapped_column(ForeignKey("oil_stock.id"), nullable=False, index=True)
    airline_id: Mapped[int] = mapped_column(ForeignKey("airlines.id"), nullable=False)
    aircraft_registration: Mapped[str] = mapped_column(String(32), nullable=False)
    quantity_used: Mapped[int] = mapped_column(Integer, nullable=False)
    staff_id: Mapped[int] = mapped_column(ForeignKey("staff.id"), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    usage_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    batch = relationship("StockBatch", back_populates="usage_records")
    airline = relationship("Airline")
    staff = relationship("Staff")
