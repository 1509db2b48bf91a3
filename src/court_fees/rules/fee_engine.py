# src/court_fees/rules/fee_engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import ScheduleConfigurationError
from .exemptions import (
    DiscountType,
    ExemptionCategory,
    calculate_discount,
    ensure_applicable,
    get_available_exemptions,
)
from .fee_schedule import (
    ARTICLE_REFERENCES,
    CourtType,
    FeeRule,
    FeeType,
    LegalReference,
    find_applicable_rule,
    get_fee_rules,
    parse_court_type,
    to_amount,
    validate_rule_ranges,
)

logger = logging.getLogger(__name__)

_EXEMPTION_REFERENCE_URL = "https://www.consultant.ru/document/cons_doc_LAW_19671/"


# -------------------------------
# Helpers & common data models
# -------------------------------

def _percent(rate: Decimal) -> str:
    return f"{(rate * 100).normalize():f}%"


@dataclass(frozen=True)
class CalculationInput:
    claim_amount: Decimal
    court_type: CourtType
    exemption_category: Optional[ExemptionCategory] = None


@dataclass(frozen=True)
class FeeBreakdownItem:
    description: str
    amount: Decimal
    legal_basis: str
    formula: Optional[str] = None


@dataclass(frozen=True)
class CalculationResult:
    """Outcome of one fee calculation. Amounts are exact and unrounded."""

    base_fee: Decimal
    exemption_discount: Decimal
    final_fee: Decimal
    effective_rate: Decimal
    breakdown: Tuple[FeeBreakdownItem, ...]
    legal_references: Tuple[LegalReference, ...]
    rule: FeeRule = field(repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_fee": str(self.base_fee),
            "exemption_discount": str(self.exemption_discount),
            "final_fee": str(self.final_fee),
            "effective_rate": str(self.effective_rate),
            "breakdown": [
                {
                    "description": item.description,
                    "amount": str(item.amount),
                    "formula": item.formula,
                    "legal_basis": item.legal_basis,
                }
                for item in self.breakdown
            ],
            "legal_references": [
                {
                    "article": ref.article,
                    "paragraph": ref.paragraph,
                    "description": ref.description,
                    "url": ref.url,
                }
                for ref in self.legal_references
            ],
        }


# -------------------------------
# Fee Engine
# -------------------------------

class FeeEngine:
    """
    Court fee engine:
      - lookup: claim amount + court type -> the single applicable FeeRule
      - compute: base fee from that rule
      - apply exemption: statutory discount, clamped to the base fee
      - assemble: breakdown lines and legal references
    Uses the built-in statutory tables unless ``schedules`` overrides them.
    """

    def __init__(self, schedules: Optional[Mapping[CourtType, Sequence[FeeRule]]] = None):
        self._schedules: Dict[CourtType, Tuple[FeeRule, ...]] = {}
        for court, rules in (schedules or {}).items():
            table = tuple(rules)
            validate_rule_ranges(table)
            self._schedules[parse_court_type(court)] = table

    # ------------- Lookup -------------

    def rules_for(self, court_type: CourtType | str) -> Tuple[FeeRule, ...]:
        court = parse_court_type(court_type)
        return self._schedules.get(court) or get_fee_rules(court)

    def find_applicable_rule(self, amount: Decimal | int | float | str, court_type: CourtType | str) -> FeeRule:
        court = parse_court_type(court_type)
        return find_applicable_rule(amount, court, rules=self.rules_for(court))

    # ------------- Base fee -------------

    @staticmethod
    def fee_for_rule(rule: FeeRule, amount: Decimal) -> Decimal:
        if rule.fee_type is FeeType.PERCENTAGE:
            fee = max(amount * rule.fee_value, rule.minimum_fee or Decimal("0"))
        elif rule.fee_type is FeeType.PROGRESSIVE:
            if rule.fixed_part is None or rule.excess_over is None:
                raise ScheduleConfigurationError(
                    f"progressive tier starting at {rule.min_amount} lacks fixed_part/excess_over"
                )
            fee = rule.fixed_part + (amount - rule.excess_over) * rule.fee_value
        else:
            fee = rule.fee_value

        if rule.maximum_fee is not None:
            fee = min(fee, rule.maximum_fee)
        return fee

    def calculate_base_fee(
        self, amount: Decimal | int | float | str, court_type: CourtType | str
    ) -> Tuple[Decimal, FeeRule]:
        value = to_amount(amount)
        rule = self.find_applicable_rule(value, court_type)
        return self.fee_for_rule(rule, value), rule

    # ------------- Exemptions -------------

    @staticmethod
    def get_available_exemptions(court_type: CourtType | str) -> List[ExemptionCategory]:
        return get_available_exemptions(court_type)

    @staticmethod
    def _exemption_formula(exemption: ExemptionCategory) -> str:
        if exemption.discount_type is DiscountType.EXEMPT:
            return "Полное освобождение"
        if exemption.discount_type is DiscountType.FIXED:
            return f"Скидка {exemption.discount_value} руб., но не более суммы пошлины"
        return f"Скидка {_percent(exemption.discount_value)}"

    # ------------- Full calculation -------------

    def calculate(self, calc_input: CalculationInput) -> CalculationResult:
        amount = to_amount(calc_input.claim_amount)
        court = parse_court_type(calc_input.court_type)
        exemption = calc_input.exemption_category

        # Reject inapplicable exemptions before computing anything.
        if exemption is not None:
            ensure_applicable(exemption, court)

        base_fee, rule = self.calculate_base_fee(amount, court)
        discount = calculate_discount(base_fee, exemption)
        final_fee = base_fee - discount
        effective_rate = final_fee / amount if amount > 0 else Decimal("0")

        breakdown: List[FeeBreakdownItem] = [
            FeeBreakdownItem(
                description="Государственная пошлина",
                amount=base_fee,
                formula=rule.formula,
                legal_basis=rule.legal_basis,
            )
        ]
        references: List[LegalReference] = [ARTICLE_REFERENCES[court]]

        # A category that grants nothing on this fee leaves no line.
        applied = exemption is not None and discount > 0
        if applied:
            breakdown.append(
                FeeBreakdownItem(
                    description=f"Льгота: {exemption.name}",
                    amount=Decimal("0") - discount,
                    formula=self._exemption_formula(exemption),
                    legal_basis=exemption.legal_basis,
                )
            )
            references.append(
                LegalReference(
                    article=exemption.legal_basis,
                    description=f"Льгота: {exemption.name}",
                    url=_EXEMPTION_REFERENCE_URL,
                )
            )

        breakdown.append(
            FeeBreakdownItem(
                description="Итого к оплате",
                amount=final_fee,
                formula=f"{base_fee} − {discount} = {final_fee}" if applied else rule.formula,
                legal_basis=ARTICLE_REFERENCES[court].article,
            )
        )

        logger.debug(
            "court fee: court=%s amount=%s base=%s discount=%s final=%s",
            court.value, amount, base_fee, discount, final_fee,
        )

        return CalculationResult(
            base_fee=base_fee,
            exemption_discount=discount,
            final_fee=final_fee,
            effective_rate=effective_rate,
            breakdown=tuple(breakdown),
            legal_references=tuple(references),
            rule=rule,
        )


def calculate(calc_input: CalculationInput) -> CalculationResult:
    """Calculate with the built-in statutory tables."""
    return FeeEngine().calculate(calc_input)
