"""Version, integrity and freshness reporting for the fee tables.

The tariff tables only change when the Tax Code does, so a deployment can be
left running with stale data. These helpers let the API report which version
of the tables is in use, whether the tables are internally consistent, and how
long ago the data was last confirmed against the statute.
"""
from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from datetime import date
from typing import Iterable, Optional

from .errors import ScheduleConfigurationError
from .exemptions import EXEMPTION_CATEGORIES
from .fee_schedule import CourtType, FeeRule, validate_rule_ranges
from .schedule_loader import BUILTIN_RELEASE_DATE, BUILTIN_VERSION, FeeSchedule, builtin_schedule

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS_DAYS = 30
DATA_SOURCE = "НК РФ статьи 333.19, 333.21, 333.36, 333.37"


@dataclass(frozen=True)
class DataVersionInfo:
    version: str
    release_date: date
    source: str
    checksum: str


@dataclass(frozen=True)
class DataFreshnessStatus:
    is_up_to_date: bool
    last_update_date: date
    days_since_update: int
    warning_message: Optional[str] = None


def _rule_payload(rule: FeeRule) -> dict:
    payload = asdict(rule)
    payload["fee_type"] = rule.fee_type.value
    return {k: (str(v) if v is not None and k != "fee_type" else v) for k, v in payload.items()}


def calculate_data_checksum(schedules: Optional[Iterable[FeeSchedule]] = None) -> str:
    """Short SHA-256 digest over the tier tables, exemption catalog and version."""

    tables = list(schedules) if schedules is not None else [builtin_schedule(c) for c in CourtType]
    document = {
        "schedules": {
            s.court_type.value: {"version": s.version, "rules": [_rule_payload(r) for r in s.rules]}
            for s in tables
        },
        "exemptions": [
            {
                "id": e.id,
                "discount_type": e.discount_type.value,
                "discount_value": str(e.discount_value),
                "applicable_courts": sorted(c.value for c in e.applicable_courts),
            }
            for e in EXEMPTION_CATEGORIES
        ],
    }
    blob = json.dumps(document, sort_keys=True, ensure_ascii=False).encode("utf-8")
    return hashlib.sha256(blob).hexdigest()[:16]


def get_data_version_info(schedules: Optional[Iterable[FeeSchedule]] = None) -> DataVersionInfo:
    tables = list(schedules) if schedules is not None else None
    version = tables[0].version if tables else BUILTIN_VERSION
    release = tables[0].effective if tables else BUILTIN_RELEASE_DATE
    return DataVersionInfo(
        version=version,
        release_date=release,
        source=DATA_SOURCE,
        checksum=calculate_data_checksum(tables),
    )


def validate_data_integrity(schedules: Optional[Iterable[FeeSchedule]] = None) -> bool:
    tables = list(schedules) if schedules is not None else [builtin_schedule(c) for c in CourtType]
    if {s.court_type for s in tables} != set(CourtType):
        logger.warning("Fee schedules missing for some court types")
        return False
    for schedule in tables:
        try:
            validate_rule_ranges(schedule.rules)
        except ScheduleConfigurationError as exc:
            logger.warning("Fee schedule %s failed integrity check: %s", schedule.court_type.value, exc)
            return False
    return True


def check_data_freshness(
    last_update: Optional[date] = None,
    *,
    today: Optional[date] = None,
    freshness_days: int = DEFAULT_FRESHNESS_DAYS,
) -> DataFreshnessStatus:
    """Classify how stale the tables are; ``last_update`` defaults to the built-in release date."""

    last = last_update or BUILTIN_RELEASE_DATE
    now = today or date.today()
    # Future update dates (clock skew, tests) count as fresh.
    days = max(0, (now - last).days)
    is_up_to_date = days <= freshness_days

    warning: Optional[str] = None
    if not is_up_to_date:
        if days <= 60:
            warning = (
                f"Данные о госпошлинах обновлялись {days} дней назад. "
                "Рекомендуется проверить актуальность тарифов."
            )
        elif days <= 180:
            warning = (
                f"Внимание! Данные о госпошлинах устарели ({days} дней). "
                "Обязательно проверьте актуальные тарифы в НК РФ."
            )
        else:
            warning = (
                f"Критическое предупреждение! Данные сильно устарели ({days} дней). "
                "Расчеты могут быть неточными."
            )

    return DataFreshnessStatus(
        is_up_to_date=is_up_to_date,
        last_update_date=last,
        days_since_update=days,
        warning_message=warning,
    )
