"""Court fee schedule registry loader."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import MissingScheduleField, ScheduleConfigurationError
from .fee_schedule import (
    CourtType,
    FeeRule,
    FeeType,
    get_fee_rules,
    parse_court_type,
    validate_rule_ranges,
)

__all__ = [
    "BUILTIN_RELEASE_DATE",
    "BUILTIN_VERSION",
    "FeeSchedule",
    "builtin_schedule",
    "load_fee_schedule",
]

# Bumped whenever the built-in tables change with the Tax Code.
BUILTIN_VERSION = "2024.1.0"
BUILTIN_RELEASE_DATE = date(2024, 1, 1)

_REQUIRED_VERSION_KEYS = {"version", "effective", "rules"}
_REQUIRED_RULE_KEYS = {"min_amount", "max_amount", "fee_type", "fee_value", "formula", "legal_basis"}
_OPTIONAL_DECIMAL_KEYS = ("minimum_fee", "maximum_fee", "fixed_part", "excess_over")


@dataclass(frozen=True)
class FeeSchedule:
    court_type: CourtType
    version: str
    effective: date
    rules: Tuple[FeeRule, ...]


def builtin_schedule(court_type: CourtType | str) -> FeeSchedule:
    court = parse_court_type(court_type)
    return FeeSchedule(
        court_type=court,
        version=BUILTIN_VERSION,
        effective=BUILTIN_RELEASE_DATE,
        rules=get_fee_rules(court),
    )


def _resolve_registry_path(path: str | os.PathLike[str] | None) -> Optional[Path]:
    if path is not None:
        return Path(path)
    override = os.getenv("COURT_FEE_SCHEDULE_PATH")
    if override:
        return Path(override)
    return None


@lru_cache(maxsize=None)
def _load_registry(path_str: str) -> Dict[str, Any]:
    path = Path(path_str)
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, Mapping):
        raise ValueError("schedule registry must be a mapping of court type to versions")
    return dict(data)


def _to_decimal(value: Any, field_path: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ScheduleConfigurationError(f"{field_path}: not a number ({value!r})") from None
    if not amount.is_finite():
        raise ScheduleConfigurationError(f"{field_path}: must be finite, got {value!r}")
    return amount


def _optional_decimal(value: Any, field_path: str) -> Optional[Decimal]:
    return None if value is None else _to_decimal(value, field_path)


def _parse_rule(court: str, index: int, record: Mapping[str, Any]) -> FeeRule:
    prefix = f"{court}.rules[{index}]"
    for key in _REQUIRED_RULE_KEYS:
        if key not in record:
            raise MissingScheduleField(f"{prefix}.{key}")

    try:
        fee_type = FeeType(str(record["fee_type"]).lower())
    except ValueError:
        raise ScheduleConfigurationError(
            f"{prefix}.fee_type: unknown fee type {record['fee_type']!r}"
        ) from None

    extras = {k: _optional_decimal(record.get(k), f"{prefix}.{k}") for k in _OPTIONAL_DECIMAL_KEYS}
    return FeeRule(
        min_amount=_to_decimal(record["min_amount"], f"{prefix}.min_amount"),
        max_amount=_optional_decimal(record["max_amount"], f"{prefix}.max_amount"),
        fee_type=fee_type,
        fee_value=_to_decimal(record["fee_value"], f"{prefix}.fee_value"),
        formula=str(record["formula"]),
        legal_basis=str(record["legal_basis"]),
        **extras,
    )


def _normalise_version(court: str, record: Mapping[str, Any]) -> Dict[str, Any]:
    for key in _REQUIRED_VERSION_KEYS:
        if key not in record:
            raise MissingScheduleField(f"{court}.{key}")

    effective = record["effective"]
    if isinstance(effective, date):
        effective_date = effective
    else:
        effective_date = datetime.strptime(str(effective), "%Y-%m-%d").date()

    raw_rules = record["rules"]
    if not isinstance(raw_rules, list):
        raise ScheduleConfigurationError(f"{court}.rules must be a list")
    rules = tuple(_parse_rule(court, i, r) for i, r in enumerate(raw_rules))
    validate_rule_ranges(rules)

    return {
        "version": str(record["version"]),
        "effective": effective_date,
        "rules": rules,
    }


def load_fee_schedule(
    court_type: CourtType | str,
    on: Optional[date] = None,
    *,
    registry_path: str | os.PathLike[str] | None = None,
) -> FeeSchedule:
    """Return the schedule for ``court_type`` effective on ``on`` (default: today).

    Reads the JSON registry at ``registry_path`` or ``$COURT_FEE_SCHEDULE_PATH``;
    without either, the built-in statutory tables are returned.
    """

    court = parse_court_type(court_type)
    path = _resolve_registry_path(registry_path)
    if path is None:
        return builtin_schedule(court)

    job_date = on or date.today()
    registry = _load_registry(str(path))
    versions = registry.get(court.value)
    if not versions:
        raise KeyError(f"no fee schedule configured for court type {court.value}")

    selected: Dict[str, Any] | None = None
    for entry in versions:
        if not isinstance(entry, Mapping):
            raise ValueError(f"invalid registry entry for court type {court.value}")
        version = _normalise_version(court.value, entry)
        if version["effective"] <= job_date and (
            selected is None or version["effective"] > selected["effective"]
        ):
            selected = version

    if selected is None:
        raise ValueError(
            f"no fee schedule effective on {job_date.isoformat()} for court type {court.value}"
        )

    return FeeSchedule(
        court_type=court,
        version=selected["version"],
        effective=selected["effective"],
        rules=selected["rules"],
    )
