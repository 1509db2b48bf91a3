"""Statutory court fee exemptions (Tax Code art. 333.36, 333.37)."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple

from .errors import FeeValidationError
from .fee_schedule import CourtType, parse_court_type

logger = logging.getLogger(__name__)

__all__ = [
    "DiscountType",
    "EXEMPTION_CATEGORIES",
    "ExemptionCategory",
    "calculate_discount",
    "ensure_applicable",
    "find_exemption_by_id",
    "get_available_exemptions",
    "get_best_exemption",
    "validate_exemption",
]


class DiscountType(Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    EXEMPT = "exempt"


@dataclass(frozen=True)
class ExemptionCategory:
    """A class of claimants entitled to a fee reduction or waiver.

    ``discount_value`` is an amount in roubles for ``FIXED``, a fraction in
    ``[0, 1]`` for ``PERCENTAGE`` and is ignored for ``EXEMPT``.
    """

    id: str
    name: str
    description: str
    discount_type: DiscountType
    discount_value: Decimal
    applicable_courts: FrozenSet[CourtType]
    legal_basis: str

    def applies_to(self, court_type: CourtType | str) -> bool:
        return parse_court_type(court_type) in self.applicable_courts


EXEMPTION_CATEGORIES: Tuple[ExemptionCategory, ...] = (
    ExemptionCategory(
        id="disabled_1_2",
        name="Инвалиды I-II группы",
        description="Инвалиды I или II группы, дети-инвалиды, инвалиды с детства",
        discount_type=DiscountType.FIXED,
        discount_value=Decimal("25000"),
        applicable_courts=frozenset({CourtType.GENERAL}),
        legal_basis="п.2 ст.333.36 НК РФ",
    ),
    ExemptionCategory(
        id="veterans",
        name="Ветераны боевых действий",
        description="Ветераны боевых действий, ветераны военной службы",
        discount_type=DiscountType.EXEMPT,
        discount_value=Decimal("0"),
        applicable_courts=frozenset({CourtType.GENERAL}),
        legal_basis="п.3 ст.333.36 НК РФ",
    ),
    ExemptionCategory(
        id="consumer_disputes",
        name="Потребительские споры",
        description="Иски, связанные с нарушением прав потребителей",
        discount_type=DiscountType.EXEMPT,
        discount_value=Decimal("0"),
        applicable_courts=frozenset({CourtType.GENERAL}),
        legal_basis="п.2 ст.333.36 НК РФ",
    ),
    ExemptionCategory(
        id="pensioners",
        name="Пенсионеры",
        description="Пенсионеры по искам к ПФР и НПФ",
        discount_type=DiscountType.EXEMPT,
        discount_value=Decimal("0"),
        applicable_courts=frozenset({CourtType.GENERAL}),
        legal_basis="п.2 ст.333.36 НК РФ",
    ),
    ExemptionCategory(
        id="disabled_arbitration",
        name="Инвалиды I-II группы (арбитраж)",
        description="Инвалиды I и II группы в арбитражных судах",
        discount_type=DiscountType.FIXED,
        discount_value=Decimal("55000"),
        applicable_courts=frozenset({CourtType.ARBITRATION}),
        legal_basis="п.2 ст.333.37 НК РФ",
    ),
)


def get_available_exemptions(court_type: CourtType | str) -> List[ExemptionCategory]:
    court = parse_court_type(court_type)
    return [e for e in EXEMPTION_CATEGORIES if court in e.applicable_courts]


def find_exemption_by_id(exemption_id: str) -> Optional[ExemptionCategory]:
    for exemption in EXEMPTION_CATEGORIES:
        if exemption.id == exemption_id:
            return exemption
    return None


def validate_exemption(exemption: ExemptionCategory, court_type: CourtType | str) -> bool:
    """True if ``exemption`` may be used for ``court_type`` and its value is well-formed."""

    if not exemption.applies_to(court_type):
        return False
    if exemption.discount_type is DiscountType.PERCENTAGE:
        return Decimal("0") <= exemption.discount_value <= Decimal("1")
    if exemption.discount_type is DiscountType.FIXED:
        return exemption.discount_value >= 0
    return True


def ensure_applicable(exemption: ExemptionCategory, court_type: CourtType | str) -> None:
    court = parse_court_type(court_type)
    if not exemption.applies_to(court):
        raise FeeValidationError(
            f"exemption {exemption.id!r} is not applicable to {court.value} courts",
            field="exemption_category",
        )
    if not validate_exemption(exemption, court):
        raise FeeValidationError(
            f"exemption {exemption.id!r} has an invalid discount value {exemption.discount_value}",
            field="exemption_category",
        )


def calculate_discount(base_fee: Decimal, exemption: Optional[ExemptionCategory]) -> Decimal:
    """Discount granted by ``exemption`` on ``base_fee``, never exceeding the fee itself."""

    if base_fee < 0:
        raise FeeValidationError("base fee must not be negative", field="base_fee")
    if exemption is None:
        return Decimal("0")

    if exemption.discount_type is DiscountType.EXEMPT:
        return base_fee
    if exemption.discount_type is DiscountType.FIXED:
        return max(Decimal("0"), min(exemption.discount_value, base_fee))
    # No shipped category uses percentage discounts.
    return max(Decimal("0"), min(base_fee * exemption.discount_value, base_fee))


def get_best_exemption(
    base_fee: Decimal, exemptions: Iterable[ExemptionCategory]
) -> Optional[ExemptionCategory]:
    """The exemption granting the largest discount on ``base_fee``; first wins on ties."""

    best: Optional[ExemptionCategory] = None
    best_discount = Decimal("0")
    for exemption in exemptions:
        discount = calculate_discount(base_fee, exemption)
        if discount > best_discount:
            best, best_discount = exemption, discount
    return best
