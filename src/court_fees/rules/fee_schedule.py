"""Statutory court fee tariff tables.

Encodes the progressive state duty scales of the Russian Tax Code:

  - art. 333.19 for claims filed with courts of general jurisdiction, and
  - art. 333.21 for claims filed with arbitration courts.

Each jurisdiction is an ordered tuple of tiers bounded in whole roubles
(``[min_amount, max_amount]``, the top tier open-ended). Progressive tiers
carry the statutory ``fixed_part`` and ``excess_over`` literals exactly as
the statute writes them ("800 руб. + 3% с суммы, превышающей 20 000 руб.");
they are never rederived from the lower tiers at runtime.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from .errors import FeeValidationError, ScheduleConfigurationError

logger = logging.getLogger(__name__)

__all__ = [
    "ARBITRATION_RULES",
    "ARTICLE_REFERENCES",
    "CourtType",
    "FeeRule",
    "FeeType",
    "GENERAL_JURISDICTION_RULES",
    "LegalReference",
    "find_applicable_rule",
    "get_fee_rules",
    "parse_court_type",
    "to_amount",
    "validate_rule_ranges",
]

# Tier bounds are whole roubles; kopecks between two bounds belong to the upper tier.
_UNIT = Decimal("1")


class CourtType(Enum):
    GENERAL = "general"
    ARBITRATION = "arbitration"


class FeeType(Enum):
    PERCENTAGE = "percentage"
    PROGRESSIVE = "progressive"
    FIXED = "fixed"


@dataclass(frozen=True)
class FeeRule:
    """One tier of a jurisdiction's fee scale."""

    min_amount: Decimal
    max_amount: Optional[Decimal]
    fee_type: FeeType
    fee_value: Decimal
    formula: str
    legal_basis: str
    minimum_fee: Optional[Decimal] = None
    maximum_fee: Optional[Decimal] = None
    fixed_part: Optional[Decimal] = None
    excess_over: Optional[Decimal] = None

    def covers(self, amount: Decimal) -> bool:
        return amount >= self.min_amount and (self.max_amount is None or amount <= self.max_amount)


@dataclass(frozen=True)
class LegalReference:
    article: str
    description: str
    url: str
    paragraph: Optional[str] = None


_CONSULTANT_TAX_CODE_URL = "https://www.consultant.ru/document/cons_doc_LAW_19671/"

ARTICLE_REFERENCES: Dict[CourtType, LegalReference] = {
    CourtType.GENERAL: LegalReference(
        article="ст. 333.19 НК РФ",
        description="Размеры государственной пошлины по делам, рассматриваемым судами общей юрисдикции",
        url=_CONSULTANT_TAX_CODE_URL,
        paragraph="п. 1",
    ),
    CourtType.ARBITRATION: LegalReference(
        article="ст. 333.21 НК РФ",
        description="Размеры государственной пошлины по делам, рассматриваемым арбитражными судами",
        url=_CONSULTANT_TAX_CODE_URL,
        paragraph="п. 1",
    ),
}


# art. 333.19 (courts of general jurisdiction)
GENERAL_JURISDICTION_RULES: Tuple[FeeRule, ...] = (
    FeeRule(
        min_amount=Decimal("0"),
        max_amount=Decimal("20000"),
        fee_type=FeeType.PERCENTAGE,
        fee_value=Decimal("0.04"),
        minimum_fee=Decimal("400"),
        formula="цена иска × 4%, но не менее 400 руб.",
        legal_basis="пп. 1 п. 1 ст. 333.19 НК РФ",
    ),
    FeeRule(
        min_amount=Decimal("20001"),
        max_amount=Decimal("100000"),
        fee_type=FeeType.PROGRESSIVE,
        fee_value=Decimal("0.03"),
        fixed_part=Decimal("800"),
        excess_over=Decimal("20000"),
        formula="800 руб. + 3% с суммы, превышающей 20 000 руб.",
        legal_basis="пп. 2 п. 1 ст. 333.19 НК РФ",
    ),
    FeeRule(
        min_amount=Decimal("100001"),
        max_amount=Decimal("200000"),
        fee_type=FeeType.PROGRESSIVE,
        fee_value=Decimal("0.02"),
        fixed_part=Decimal("3200"),
        excess_over=Decimal("100000"),
        formula="3 200 руб. + 2% с суммы, превышающей 100 000 руб.",
        legal_basis="пп. 3 п. 1 ст. 333.19 НК РФ",
    ),
    FeeRule(
        min_amount=Decimal("200001"),
        max_amount=Decimal("1000000"),
        fee_type=FeeType.PROGRESSIVE,
        fee_value=Decimal("0.01"),
        fixed_part=Decimal("5200"),
        excess_over=Decimal("200000"),
        formula="5 200 руб. + 1% с суммы, превышающей 200 000 руб.",
        legal_basis="пп. 4 п. 1 ст. 333.19 НК РФ",
    ),
    FeeRule(
        min_amount=Decimal("1000001"),
        max_amount=None,
        fee_type=FeeType.FIXED,
        fee_value=Decimal("60000"),
        maximum_fee=Decimal("60000"),
        formula="60 000 руб.",
        legal_basis="пп. 5 п. 1 ст. 333.19 НК РФ",
    ),
)

# art. 333.21 (arbitration courts)
ARBITRATION_RULES: Tuple[FeeRule, ...] = (
    FeeRule(
        min_amount=Decimal("0"),
        max_amount=Decimal("100000"),
        fee_type=FeeType.PERCENTAGE,
        fee_value=Decimal("0.04"),
        minimum_fee=Decimal("2000"),
        formula="цена иска × 4%, но не менее 2 000 руб.",
        legal_basis="пп. 1 п. 1 ст. 333.21 НК РФ",
    ),
    FeeRule(
        min_amount=Decimal("100001"),
        max_amount=Decimal("500000"),
        fee_type=FeeType.PROGRESSIVE,
        fee_value=Decimal("0.03"),
        fixed_part=Decimal("4000"),
        excess_over=Decimal("100000"),
        formula="4 000 руб. + 3% с суммы, превышающей 100 000 руб.",
        legal_basis="пп. 2 п. 1 ст. 333.21 НК РФ",
    ),
    FeeRule(
        min_amount=Decimal("500001"),
        max_amount=Decimal("1500000"),
        fee_type=FeeType.PROGRESSIVE,
        fee_value=Decimal("0.02"),
        fixed_part=Decimal("16000"),
        excess_over=Decimal("500000"),
        formula="16 000 руб. + 2% с суммы, превышающей 500 000 руб.",
        legal_basis="пп. 3 п. 1 ст. 333.21 НК РФ",
    ),
    FeeRule(
        min_amount=Decimal("1500001"),
        max_amount=Decimal("10000000"),
        fee_type=FeeType.PROGRESSIVE,
        fee_value=Decimal("0.01"),
        fixed_part=Decimal("36000"),
        excess_over=Decimal("1500000"),
        formula="36 000 руб. + 1% с суммы, превышающей 1 500 000 руб.",
        legal_basis="пп. 4 п. 1 ст. 333.21 НК РФ",
    ),
    FeeRule(
        min_amount=Decimal("10000001"),
        max_amount=Decimal("500000000"),
        fee_type=FeeType.PROGRESSIVE,
        fee_value=Decimal("0.005"),
        fixed_part=Decimal("136000"),
        excess_over=Decimal("10000000"),
        formula="136 000 руб. + 0,5% с суммы, превышающей 10 000 000 руб.",
        legal_basis="пп. 5 п. 1 ст. 333.21 НК РФ",
    ),
    FeeRule(
        min_amount=Decimal("500000001"),
        max_amount=None,
        fee_type=FeeType.FIXED,
        fee_value=Decimal("200000"),
        maximum_fee=Decimal("200000"),
        formula="200 000 руб.",
        legal_basis="пп. 6 п. 1 ст. 333.21 НК РФ",
    ),
)

_RULES_BY_COURT: Dict[CourtType, Tuple[FeeRule, ...]] = {
    CourtType.GENERAL: GENERAL_JURISDICTION_RULES,
    CourtType.ARBITRATION: ARBITRATION_RULES,
}


def parse_court_type(value: CourtType | str) -> CourtType:
    if isinstance(value, CourtType):
        return value
    try:
        return CourtType((value or "").strip().lower())
    except (AttributeError, ValueError):
        raise FeeValidationError(f"unknown court type: {value!r}", field="court_type") from None


def to_amount(value: Decimal | int | float | str, *, field: str = "claim_amount") -> Decimal:
    """Coerce a claim amount to ``Decimal`` and reject negative or non-finite values."""

    if isinstance(value, bool):
        raise FeeValidationError(f"{field} must be a number", field=field)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise FeeValidationError(f"{field} must be a number, got {value!r}", field=field) from None
    if not amount.is_finite():
        raise FeeValidationError(f"{field} must be finite", field=field)
    if amount < 0:
        raise FeeValidationError(f"{field} must not be negative", field=field)
    return amount


def get_fee_rules(court_type: CourtType | str) -> Tuple[FeeRule, ...]:
    return _RULES_BY_COURT[parse_court_type(court_type)]


def _matches(rule: FeeRule, amount: Decimal, previous_max: Optional[Decimal]) -> bool:
    if rule.covers(amount):
        return True
    if rule.max_amount is not None and amount > rule.max_amount:
        return False
    return (
        previous_max is not None
        and rule.min_amount - previous_max == _UNIT
        and amount > previous_max
    )


def find_applicable_rule(
    amount: Decimal | int | float | str,
    court_type: CourtType | str,
    *,
    rules: Optional[Iterable[FeeRule]] = None,
) -> FeeRule:
    """Return the single tier of ``court_type`` that applies to ``amount``.

    ``rules`` overrides the built-in table (used for registry-loaded schedules).
    Raises :class:`ScheduleConfigurationError` when no tier matches, which can
    only happen with a defective table.
    """

    value = to_amount(amount)
    court = parse_court_type(court_type)
    table = tuple(rules) if rules is not None else _RULES_BY_COURT[court]

    previous_max: Optional[Decimal] = None
    for rule in table:
        if _matches(rule, value, previous_max):
            return rule
        previous_max = rule.max_amount

    logger.error("No %s fee tier covers claim amount %s", court.value, value)
    raise ScheduleConfigurationError(
        f"no {court.value} fee tier covers claim amount {value}; tariff table is defective"
    )


def _validate_rule_values(index: int, rule: FeeRule) -> None:
    if rule.fee_value < 0:
        raise ScheduleConfigurationError(f"tier {index} has a negative fee value {rule.fee_value}")
    # Percentage and progressive tiers carry a rate, not an amount.
    if rule.fee_type is not FeeType.FIXED and rule.fee_value > 1:
        raise ScheduleConfigurationError(
            f"tier {index} rate {rule.fee_value} is outside [0, 1]"
        )
    for name in ("minimum_fee", "maximum_fee", "fixed_part", "excess_over"):
        value = getattr(rule, name)
        if value is not None and value < 0:
            raise ScheduleConfigurationError(f"tier {index} has a negative {name} {value}")


def validate_rule_ranges(rules: Iterable[FeeRule]) -> None:
    """Check that ``rules`` form a contiguous, ascending scale starting at zero
    with non-negative amounts and rates within ``[0, 1]``.

    Raises :class:`ScheduleConfigurationError` describing the first defect.
    """

    table = list(rules)
    if not table:
        raise ScheduleConfigurationError("fee schedule has no tiers")
    if table[0].min_amount != 0:
        raise ScheduleConfigurationError(
            f"first tier must start at 0, starts at {table[0].min_amount}"
        )

    for i, rule in enumerate(table):
        if rule.min_amount < 0:
            raise ScheduleConfigurationError(f"tier {i} has a negative lower bound")
        if rule.max_amount is not None and rule.max_amount <= rule.min_amount:
            raise ScheduleConfigurationError(
                f"tier {i} upper bound {rule.max_amount} is not above {rule.min_amount}"
            )
        if rule.fee_type is FeeType.PROGRESSIVE and (rule.fixed_part is None or rule.excess_over is None):
            raise ScheduleConfigurationError(f"progressive tier {i} lacks fixed_part/excess_over")
        _validate_rule_values(i, rule)
        if i == 0:
            continue
        previous = table[i - 1]
        if previous.max_amount is None:
            raise ScheduleConfigurationError(f"open-ended tier {i - 1} is not the last tier")
        if rule.min_amount != previous.max_amount + _UNIT:
            raise ScheduleConfigurationError(
                f"tiers {i - 1} and {i} are not contiguous "
                f"({previous.max_amount} -> {rule.min_amount})"
            )

    if table[-1].max_amount is not None:
        raise ScheduleConfigurationError("last tier must be open-ended")
