"""Calculation history storage.

The fee engine never persists anything; callers that want a history of past
calculations hand finished results to :func:`save_calculation`.
"""
from __future__ import annotations

import logging
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .models import CalculationRecord
from .rules.fee_engine import CalculationInput, CalculationResult
from .rules.fee_schedule import parse_court_type

logger = logging.getLogger(__name__)


def save_calculation(
    db: Session,
    calc_input: CalculationInput,
    result: CalculationResult,
    *,
    schedule_version: str,
) -> CalculationRecord:
    exemption = calc_input.exemption_category
    row = CalculationRecord(
        claim_amount=calc_input.claim_amount,
        court_type=parse_court_type(calc_input.court_type).value,
        exemption_id=exemption.id if exemption is not None else None,
        base_fee=result.base_fee,
        exemption_discount=result.exemption_discount,
        final_fee=result.final_fee,
        effective_rate=result.effective_rate,
        schedule_version=schedule_version,
        breakdown=result.to_dict()["breakdown"],
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Stored court fee calculation id=%s court=%s", row.id, row.court_type)
    return row


def list_calculations(db: Session, *, limit: int = 20) -> List[CalculationRecord]:
    """Most recent calculations first."""
    return list(
        db.execute(
            select(CalculationRecord)
            .order_by(CalculationRecord.created_at.desc(), CalculationRecord.id.desc())
            .limit(limit)
        )
        .scalars()
        .all()
    )


def clear_history(db: Session) -> int:
    result = db.execute(delete(CalculationRecord))
    db.commit()
    return result.rowcount or 0
