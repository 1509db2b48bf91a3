from dataclasses import replace
from decimal import Decimal

import pytest

from court_fees.rules.errors import FeeValidationError, ScheduleConfigurationError
from court_fees.rules.exemptions import (
    DiscountType,
    ExemptionCategory,
    find_exemption_by_id,
    get_available_exemptions,
)
from court_fees.rules.fee_engine import CalculationInput, FeeEngine, calculate
from court_fees.rules.fee_schedule import (
    ARBITRATION_RULES,
    GENERAL_JURISDICTION_RULES,
    CourtType,
    FeeType,
)


@pytest.fixture()
def engine() -> FeeEngine:
    return FeeEngine()


@pytest.mark.parametrize(
    "amount, expected",
    [
        ("0", "400"),
        ("1", "400"),
        ("15000", "600"),
        ("20000", "800"),
        ("20001", "800.03"),
        ("20000.5", "800.015"),
        ("50000", "1700"),
        ("100000", "3200"),
        ("100001", "3200.02"),
        ("200000", "5200"),
        ("200001", "5200.01"),
        ("1000000", "13200"),
        ("1000001", "60000"),
        ("2000000", "60000"),
    ],
)
def test_general_jurisdiction_base_fee(engine: FeeEngine, amount: str, expected: str) -> None:
    fee, _ = engine.calculate_base_fee(Decimal(amount), CourtType.GENERAL)
    assert fee == Decimal(expected)


@pytest.mark.parametrize(
    "amount, expected",
    [
        ("1", "2000"),
        ("50000", "2000"),
        ("60000", "2400"),
        ("100000", "4000"),
        ("100001", "4000.03"),
        ("500000", "16000"),
        ("500001", "16000.02"),
        ("1500000", "36000"),
        ("1500001", "36000.01"),
        ("10000000", "121000"),
        ("10000001", "136000.005"),
        ("500000000", "2586000"),
        ("500000001", "200000"),
    ],
)
def test_arbitration_base_fee(engine: FeeEngine, amount: str, expected: str) -> None:
    fee, _ = engine.calculate_base_fee(Decimal(amount), "arbitration")
    assert fee == Decimal(expected)


def _sample_amounts(rules, ceiling=None):
    points = set()
    for rule in rules:
        points.update({rule.min_amount, rule.min_amount + Decimal("0.5"), rule.min_amount + 7})
        if rule.max_amount is not None:
            points.update({rule.max_amount, rule.max_amount - 1})
        else:
            points.update({rule.min_amount * 2, rule.min_amount * 10})
    ordered = sorted(points)
    if ceiling is not None:
        ordered = [p for p in ordered if p <= ceiling]
    return ordered


def test_general_fee_is_monotonic(engine: FeeEngine) -> None:
    fees = [engine.calculate_base_fee(a, CourtType.GENERAL)[0] for a in _sample_amounts(GENERAL_JURISDICTION_RULES)]
    assert fees == sorted(fees)


def test_arbitration_fee_is_monotonic_below_top_tier(engine: FeeEngine) -> None:
    amounts = _sample_amounts(ARBITRATION_RULES, ceiling=Decimal("500000000"))
    fees = [engine.calculate_base_fee(a, CourtType.ARBITRATION)[0] for a in amounts]
    assert fees == sorted(fees)


def test_arbitration_top_tier_drops_to_flat_fee(engine: FeeEngine) -> None:
    below, _ = engine.calculate_base_fee(Decimal("500000000"), CourtType.ARBITRATION)
    above, _ = engine.calculate_base_fee(Decimal("500000001"), CourtType.ARBITRATION)
    assert above < below


def test_calculate_without_exemption(engine: FeeEngine) -> None:
    result = engine.calculate(CalculationInput(Decimal("50000"), CourtType.GENERAL))

    assert result.base_fee == Decimal("1700")
    assert result.exemption_discount == Decimal("0")
    assert result.final_fee == Decimal("1700")
    assert result.effective_rate == Decimal("0.034")
    assert [item.description for item in result.breakdown] == ["Государственная пошлина", "Итого к оплате"]
    assert result.breakdown[0].legal_basis == "пп. 1 п. 1 ст. 333.19 НК РФ"
    assert [ref.article for ref in result.legal_references] == ["ст. 333.19 НК РФ"]


def test_zero_claim_pays_minimum_with_zero_effective_rate(engine: FeeEngine) -> None:
    result = engine.calculate(CalculationInput(Decimal("0"), CourtType.ARBITRATION))
    assert result.final_fee == Decimal("2000")
    assert result.effective_rate == Decimal("0")


@pytest.mark.parametrize(
    "amount, court, exemption_id, discount, final",
    [
        ("15000", CourtType.GENERAL, "disabled_1_2", "600", "0"),
        ("2000000", CourtType.GENERAL, "disabled_1_2", "25000", "35000"),
        ("50000", CourtType.GENERAL, "veterans", "1700", "0"),
        ("50000", CourtType.GENERAL, "consumer_disputes", "1700", "0"),
        ("200000", CourtType.ARBITRATION, "disabled_arbitration", "7000", "0"),
        ("10000000", CourtType.ARBITRATION, "disabled_arbitration", "55000", "66000"),
    ],
)
def test_calculate_with_exemption(
    engine: FeeEngine, amount: str, court: CourtType, exemption_id: str, discount: str, final: str
) -> None:
    exemption = find_exemption_by_id(exemption_id)
    result = engine.calculate(CalculationInput(Decimal(amount), court, exemption))

    assert result.exemption_discount == Decimal(discount)
    assert result.final_fee == Decimal(final)
    assert result.final_fee == result.base_fee - result.exemption_discount
    assert Decimal("0") <= result.final_fee <= result.base_fee

    assert len(result.breakdown) == 3
    exemption_line = result.breakdown[1]
    assert exemption_line.amount == -Decimal(discount)
    assert exemption_line.legal_basis == exemption.legal_basis
    assert result.breakdown[-1].amount == result.final_fee
    assert len(result.legal_references) == 2


def test_inapplicable_exemption_is_rejected(engine: FeeEngine) -> None:
    exemption = find_exemption_by_id("veterans")
    with pytest.raises(FeeValidationError):
        engine.calculate(CalculationInput(Decimal("50000"), CourtType.ARBITRATION, exemption))


def test_percentage_exemption_is_a_fraction(engine: FeeEngine) -> None:
    half = ExemptionCategory(
        id="half",
        name="Половина",
        description="",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("0.5"),
        applicable_courts=frozenset({CourtType.GENERAL}),
        legal_basis="ст. 333.36 НК РФ",
    )
    result = engine.calculate(CalculationInput(Decimal("50000"), CourtType.GENERAL, half))
    assert result.exemption_discount == Decimal("850")
    assert result.final_fee == Decimal("850")
    assert result.breakdown[1].formula == "Скидка 50%"


def test_malformed_percentage_exemption_is_rejected(engine: FeeEngine) -> None:
    broken = ExemptionCategory(
        id="broken",
        name="Неверная",
        description="",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("50"),
        applicable_courts=frozenset({CourtType.GENERAL}),
        legal_basis="ст. 333.36 НК РФ",
    )
    with pytest.raises(FeeValidationError):
        engine.calculate(CalculationInput(Decimal("50000"), CourtType.GENERAL, broken))


def test_calculation_is_deterministic() -> None:
    calc_input = CalculationInput(Decimal("123456.78"), CourtType.GENERAL, find_exemption_by_id("disabled_1_2"))
    first = calculate(calc_input)
    second = calculate(calc_input)
    assert first == second
    assert first.to_dict() == second.to_dict()


def test_result_keeps_full_precision(engine: FeeEngine) -> None:
    result = engine.calculate(CalculationInput(Decimal("10000001"), CourtType.ARBITRATION))
    assert result.final_fee == Decimal("136000.005")
    assert result.to_dict()["final_fee"] == "136000.005"


@pytest.mark.parametrize("amount", ["-1", "abc"])
def test_invalid_claim_amount(engine: FeeEngine, amount: str) -> None:
    with pytest.raises(FeeValidationError):
        engine.calculate(CalculationInput(amount, CourtType.GENERAL))


def test_engine_rejects_defective_override_table() -> None:
    broken = list(GENERAL_JURISDICTION_RULES)
    broken[2] = replace(broken[2], min_amount=Decimal("150000"))
    with pytest.raises(ScheduleConfigurationError):
        FeeEngine({CourtType.GENERAL: broken})


def test_override_table_only_replaces_its_court() -> None:
    flat = (replace(GENERAL_JURISDICTION_RULES[-1], min_amount=Decimal("0"), maximum_fee=None),)
    engine = FeeEngine({"general": flat})

    assert engine.calculate_base_fee(Decimal("100"), CourtType.GENERAL)[0] == Decimal("60000")
    assert engine.calculate_base_fee(Decimal("100"), CourtType.ARBITRATION)[0] == Decimal("2000")


@pytest.mark.parametrize("court", list(CourtType))
def test_no_downward_jump_into_progressive_tiers(engine: FeeEngine, court: CourtType) -> None:
    rules = engine.rules_for(court)
    for lower, upper in zip(rules, rules[1:]):
        if upper.fee_type is not FeeType.PROGRESSIVE:
            continue
        at_max = engine.fee_for_rule(lower, lower.max_amount)
        at_min = engine.fee_for_rule(upper, upper.min_amount)
        assert at_max <= at_min


@pytest.mark.parametrize("amount", ["0", "1", "20000.5", "999999", "5000000"])
def test_exempt_categories_always_pay_nothing(engine: FeeEngine, amount: str) -> None:
    for exemption in get_available_exemptions(CourtType.GENERAL):
        if exemption.discount_type is not DiscountType.EXEMPT:
            continue
        result = engine.calculate(CalculationInput(Decimal(amount), CourtType.GENERAL, exemption))
        assert result.final_fee == Decimal("0")


def test_exemption_granting_nothing_adds_no_line(engine: FeeEngine) -> None:
    nothing = ExemptionCategory(
        id="zero",
        name="Нулевая",
        description="",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("0"),
        applicable_courts=frozenset({CourtType.GENERAL}),
        legal_basis="ст. 333.36 НК РФ",
    )
    result = engine.calculate(CalculationInput(Decimal("50000"), CourtType.GENERAL, nothing))

    assert result.exemption_discount == Decimal("0")
    assert result.final_fee == Decimal("1700")
    assert [item.description for item in result.breakdown] == ["Государственная пошлина", "Итого к оплате"]
    assert len(result.legal_references) == 1
