# src/court_fees/api/routes.py
"""
Court fee API routes.

Notes:
- Amounts in responses are strings: exact engine values plus a "display" block
  rounded to kopecks.
- Validation problems (bad amount, unknown court type, inapplicable exemption)
  return 422; a defective tariff table returns 500.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import SessionLocal
from ..history import clear_history, list_calculations, save_calculation
from ..models import CalculationRecord
from ..rules.data_status import check_data_freshness, get_data_version_info, validate_data_integrity
from ..rules.errors import FeeValidationError, MissingScheduleField, ScheduleConfigurationError
from ..rules.exemptions import (
    EXEMPTION_CATEGORIES,
    ExemptionCategory,
    find_exemption_by_id,
    get_available_exemptions,
)
from ..rules.fee_engine import CalculationInput, FeeEngine
from ..rules.fee_schedule import CourtType, FeeRule, parse_court_type
from ..rules.schedule_loader import FeeSchedule, load_fee_schedule
from ..settings import settings

logger = logging.getLogger("court-fees-api")

router = APIRouter(prefix="/api/v1", tags=["Court Fees"])

# ============ Pydantic Models ============

class CalculateRequest(BaseModel):
    claim_amount: Decimal = Field(..., examples=[150000])
    court_type: str = Field("general", examples=["general", "arbitration"])
    exemption_id: Optional[str] = Field(None, examples=["disabled_1_2"])
    save: bool = Field(False, description="Store the result in calculation history")


class ExemptionOut(BaseModel):
    id: str
    name: str
    description: str
    discount_type: str
    discount_value: str
    applicable_courts: List[str]
    legal_basis: str


class HistoryItem(BaseModel):
    id: int
    created_at: Optional[datetime] = None
    claim_amount: str
    court_type: str
    exemption_id: Optional[str] = None
    base_fee: str
    exemption_discount: str
    final_fee: str
    effective_rate: str
    schedule_version: str


# ============ Database Dependency ============

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ============ Helpers ============

def _money(x: Decimal | int | float | str) -> Decimal:
    if not isinstance(x, Decimal):
        x = Decimal(str(x))
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _court_or_422(value: str) -> CourtType:
    try:
        return parse_court_type(value)
    except FeeValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


def _load_schedule(court: CourtType) -> FeeSchedule:
    try:
        return load_fee_schedule(court, registry_path=settings.schedule_path)
    except (MissingScheduleField, ScheduleConfigurationError, KeyError, ValueError, OSError):
        logger.exception("Failed to load %s fee schedule", court.value)
        raise HTTPException(status_code=500, detail="fee schedule unavailable")


def _engine_for(court: CourtType) -> Tuple[FeeEngine, FeeSchedule]:
    schedule = _load_schedule(court)
    return FeeEngine({court: schedule.rules}), schedule


def _rule_out(rule: FeeRule) -> Dict[str, Any]:
    def _s(v: Optional[Decimal]) -> Optional[str]:
        return None if v is None else str(v)

    return {
        "min_amount": str(rule.min_amount),
        "max_amount": _s(rule.max_amount),
        "fee_type": rule.fee_type.value,
        "fee_value": str(rule.fee_value),
        "minimum_fee": _s(rule.minimum_fee),
        "maximum_fee": _s(rule.maximum_fee),
        "fixed_part": _s(rule.fixed_part),
        "excess_over": _s(rule.excess_over),
        "formula": rule.formula,
        "legal_basis": rule.legal_basis,
    }


def _exemption_out(e: ExemptionCategory) -> ExemptionOut:
    return ExemptionOut(
        id=e.id,
        name=e.name,
        description=e.description,
        discount_type=e.discount_type.value,
        discount_value=str(e.discount_value),
        applicable_courts=sorted(c.value for c in e.applicable_courts),
        legal_basis=e.legal_basis,
    )


def _history_out(row: CalculationRecord) -> HistoryItem:
    return HistoryItem(
        id=row.id,
        created_at=row.created_at,
        claim_amount=str(row.claim_amount),
        court_type=row.court_type,
        exemption_id=row.exemption_id,
        base_fee=str(row.base_fee),
        exemption_discount=str(row.exemption_discount),
        final_fee=str(row.final_fee),
        effective_rate=str(row.effective_rate),
        schedule_version=row.schedule_version,
    )


# ============ Schedules & Exemptions ============

@router.get("/schedules/{court_type}")
async def get_schedule(court_type: str) -> Dict[str, Any]:
    """Tiers of the fee schedule currently in force for a court type."""
    court = _court_or_422(court_type)
    schedule = _load_schedule(court)
    return {
        "court_type": court.value,
        "version": schedule.version,
        "effective": schedule.effective.isoformat(),
        "rules": [_rule_out(r) for r in schedule.rules],
    }


@router.get("/exemptions", response_model=List[ExemptionOut])
async def list_exemptions(
    court_type: Optional[str] = Query(None, description="Only exemptions usable in this court type"),
):
    if court_type is None:
        return [_exemption_out(e) for e in EXEMPTION_CATEGORIES]
    court = _court_or_422(court_type)
    return [_exemption_out(e) for e in get_available_exemptions(court)]


# ============ Calculation ============

@router.post("/calculate")
async def calculate_fee(request: CalculateRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    court = _court_or_422(request.court_type)

    exemption: Optional[ExemptionCategory] = None
    if request.exemption_id:
        exemption = find_exemption_by_id(request.exemption_id)
        if exemption is None:
            raise HTTPException(status_code=422, detail=f"unknown exemption {request.exemption_id!r}")

    engine, schedule = _engine_for(court)
    calc_input = CalculationInput(
        claim_amount=request.claim_amount,
        court_type=court,
        exemption_category=exemption,
    )

    try:
        result = engine.calculate(calc_input)
    except FeeValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except ScheduleConfigurationError:
        logger.exception("Fee schedule defect for %s amount=%s", court.value, request.claim_amount)
        raise HTTPException(status_code=500, detail="fee schedule is misconfigured")

    payload = result.to_dict()
    payload.update(
        {
            "claim_amount": str(request.claim_amount),
            "court_type": court.value,
            "exemption_id": exemption.id if exemption else None,
            "schedule_version": schedule.version,
            "rule": _rule_out(result.rule),
            "display": {
                "base_fee": str(_money(result.base_fee)),
                "exemption_discount": str(_money(result.exemption_discount)),
                "final_fee": str(_money(result.final_fee)),
                "effective_rate_percent": str(_money(result.effective_rate * 100)),
            },
        }
    )

    if request.save:
        row = save_calculation(db, calc_input, result, schedule_version=schedule.version)
        payload["id"] = row.id

    return payload


# ============ History ============

@router.get("/history", response_model=List[HistoryItem])
async def get_history(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return [_history_out(r) for r in list_calculations(db, limit=limit)]


@router.delete("/history")
async def delete_history(db: Session = Depends(get_db)):
    return {"deleted": clear_history(db)}


# ============ Data Status ============

@router.get("/data/status", tags=["System"])
async def data_status() -> Dict[str, Any]:
    schedules = [_load_schedule(c) for c in CourtType]
    info = get_data_version_info(schedules)
    freshness = check_data_freshness(
        settings.last_update or info.release_date,
        freshness_days=settings.freshness_days,
    )
    return {
        "version": info.version,
        "release_date": info.release_date.isoformat(),
        "source": info.source,
        "checksum": info.checksum,
        "integrity_ok": validate_data_integrity(schedules),
        "freshness": {
            "is_up_to_date": freshness.is_up_to_date,
            "last_update_date": freshness.last_update_date.isoformat(),
            "days_since_update": freshness.days_since_update,
            "warning_message": freshness.warning_message,
        },
    }
