from __future__ import annotations
from typing import Any, Optional
import datetime
from decimal import Decimal

from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import JSON, DateTime, Numeric, String, func

class Base(DeclarativeBase):
    pass


class CalculationRecord(Base):
    """A stored court fee calculation (calculator history)."""

    __tablename__ = "court_fee_calculations"

    id: Mapped[int] = mapped_column(primary_key=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    claim_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    court_type: Mapped[str] = mapped_column(String(16))       # general/arbitration
    exemption_id: Mapped[Optional[str]] = mapped_column(String(64))

    base_fee: Mapped[Decimal] = mapped_column(Numeric(18, 4))
    exemption_discount: Mapped[Decimal] = mapped_column(Numeric(18, 4))
    final_fee: Mapped[Decimal] = mapped_column(Numeric(18, 4))
    effective_rate: Mapped[Decimal] = mapped_column(Numeric(12, 8))

    schedule_version: Mapped[str] = mapped_column(String(24))
    breakdown: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
