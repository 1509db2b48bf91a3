from decimal import Decimal

import pytest

from court_fees.rules.errors import FeeValidationError
from court_fees.rules.exemptions import (
    EXEMPTION_CATEGORIES,
    DiscountType,
    ExemptionCategory,
    calculate_discount,
    ensure_applicable,
    find_exemption_by_id,
    get_available_exemptions,
    get_best_exemption,
    validate_exemption,
)
from court_fees.rules.fee_schedule import CourtType


def _category(discount_type: DiscountType, value: str) -> ExemptionCategory:
    return ExemptionCategory(
        id=f"test_{discount_type.value}",
        name="Тест",
        description="",
        discount_type=discount_type,
        discount_value=Decimal(value),
        applicable_courts=frozenset({CourtType.GENERAL}),
        legal_basis="ст. 333.36 НК РФ",
    )


def test_catalog_ids_are_unique() -> None:
    ids = [e.id for e in EXEMPTION_CATEGORIES]
    assert len(ids) == len(set(ids))


def test_available_exemptions_by_court() -> None:
    general = {e.id for e in get_available_exemptions(CourtType.GENERAL)}
    arbitration = {e.id for e in get_available_exemptions("arbitration")}

    assert general == {"disabled_1_2", "veterans", "consumer_disputes", "pensioners"}
    assert arbitration == {"disabled_arbitration"}


def test_unknown_exemption_id() -> None:
    assert find_exemption_by_id("nobody") is None
    assert find_exemption_by_id("veterans").discount_type is DiscountType.EXEMPT


def test_validate_exemption_checks_court_and_value() -> None:
    disabled = find_exemption_by_id("disabled_1_2")
    assert validate_exemption(disabled, CourtType.GENERAL)
    assert not validate_exemption(disabled, CourtType.ARBITRATION)

    assert validate_exemption(_category(DiscountType.PERCENTAGE, "1"), "general")
    assert not validate_exemption(_category(DiscountType.PERCENTAGE, "1.5"), "general")
    assert not validate_exemption(_category(DiscountType.FIXED, "-10"), "general")


def test_ensure_applicable_names_the_field() -> None:
    with pytest.raises(FeeValidationError) as excinfo:
        ensure_applicable(find_exemption_by_id("disabled_arbitration"), CourtType.GENERAL)
    assert excinfo.value.field == "exemption_category"


@pytest.mark.parametrize(
    "discount_type, value, base_fee, expected",
    [
        (DiscountType.EXEMPT, "0", "1700", "1700"),
        (DiscountType.FIXED, "25000", "600", "600"),
        (DiscountType.FIXED, "25000", "60000", "25000"),
        (DiscountType.PERCENTAGE, "0.25", "4000", "1000"),
        (DiscountType.PERCENTAGE, "0", "4000", "0"),
    ],
)
def test_calculate_discount(discount_type: DiscountType, value: str, base_fee: str, expected: str) -> None:
    discount = calculate_discount(Decimal(base_fee), _category(discount_type, value))
    assert discount == Decimal(expected)


def test_no_exemption_means_no_discount() -> None:
    assert calculate_discount(Decimal("400"), None) == Decimal("0")


def test_negative_base_fee_is_rejected() -> None:
    with pytest.raises(FeeValidationError):
        calculate_discount(Decimal("-1"), find_exemption_by_id("veterans"))


def test_best_exemption_prefers_largest_discount() -> None:
    fixed = find_exemption_by_id("disabled_1_2")
    exempt = find_exemption_by_id("veterans")

    assert get_best_exemption(Decimal("60000"), [fixed, exempt]) is exempt
    # Both wipe out a small fee; the first listed wins.
    assert get_best_exemption(Decimal("600"), [fixed, exempt]) is fixed
    assert get_best_exemption(Decimal("600"), []) is None
