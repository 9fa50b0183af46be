"""
Tests for rate records and the rate registry.

Covers:
- Amount calculation (percentage, per-unit, clamping, rounding)
- Record invariants
- Registry uniqueness and version lifecycle
- Exemption rules
"""

from datetime import date
from decimal import Decimal

import pytest

from gst_engines.rates import (
    ExemptionCriterion,
    ExemptionRules,
    RateRegistry,
    TaxRateRecord,
)
from gst_kernel.domain.types import (
    BusinessType,
    GeographicalZone,
    TaxComponentType,
    ThresholdCondition,
)
from gst_kernel.exceptions import (
    DuplicateRateVersionError,
    InvalidRateRecordError,
    RateNotFoundError,
)


def _rate(
    rate: str = "18",
    component: TaxComponentType = TaxComponentType.IGST,
    effective_from: date = date(2017, 7, 1),
    **kwargs,
) -> TaxRateRecord:
    kwargs.setdefault("classification_code", "8471")
    kwargs.setdefault("business_type", BusinessType.B2B)
    return TaxRateRecord(
        component_type=component,
        rate_percentage=Decimal(rate),
        effective_from=effective_from,
        **kwargs,
    )


class TestRateAmount:
    """Tests for TaxRateRecord.calculate_amount."""

    def test_percentage_amount(self):
        assert _rate("18").calculate_amount(Decimal("1000")) == Decimal("180.0000")

    def test_rounded_half_up_to_four_places(self):
        # 0.12345 * 10 / 100 = 0.012345
        amount = _rate("10").calculate_amount(Decimal("0.12345"))
        assert amount == Decimal("0.0123")
        amount = _rate("10").calculate_amount(Decimal("0.12355"))
        assert amount == Decimal("0.0124")

    def test_fixed_amount_per_unit(self):
        record = _rate("5", fixed_amount_per_unit=Decimal("2.076"))
        # 5% of 1000 + 2.076 x 10 units
        assert record.calculate_amount(Decimal("1000"), Decimal("10")) == Decimal("70.7600")

    def test_minimum_clamp(self):
        record = _rate("3", minimum_amount=Decimal("50"))
        # raw 3% of 1000 = 30
        assert record.calculate_amount(Decimal("1000")) == Decimal("50.0000")

    def test_maximum_clamp(self):
        record = _rate("18", maximum_amount=Decimal("100"))
        assert record.calculate_amount(Decimal("1000")) == Decimal("100.0000")

    def test_zero_rate(self):
        assert _rate("0").calculate_amount(Decimal("1000")) == Decimal("0.0000")
        assert not _rate("0").has_amount

    def test_halved_splits_every_amount(self):
        record = _rate(
            "28",
            fixed_amount_per_unit=Decimal("4"),
            minimum_amount=Decimal("10"),
            maximum_amount=Decimal("1000"),
        )
        half = record.halved()
        assert half.rate_percentage == Decimal("14")
        assert half.fixed_amount_per_unit == Decimal("2")
        assert half.minimum_amount == Decimal("5")
        assert half.maximum_amount == Decimal("500")
        assert half.version_number == record.version_number


class TestRateRecordInvariants:
    """Tests for record validation."""

    def test_negative_rate_rejected(self):
        with pytest.raises(InvalidRateRecordError):
            _rate("-1")

    def test_min_above_max_rejected(self):
        with pytest.raises(InvalidRateRecordError):
            _rate("5", minimum_amount=Decimal("100"), maximum_amount=Decimal("50"))

    def test_empty_window_rejected(self):
        with pytest.raises(InvalidRateRecordError):
            _rate("5", effective_from=date(2025, 1, 1), effective_to=date(2025, 1, 1))

    def test_validity_window_end_exclusive(self):
        record = _rate(
            "5",
            effective_from=date(2025, 1, 1),
            effective_to=date(2025, 6, 1),
        )
        assert not record.is_valid_for(date(2024, 12, 31))
        assert record.is_valid_for(date(2025, 1, 1))
        assert record.is_valid_for(date(2025, 5, 31))
        assert not record.is_valid_for(date(2025, 6, 1))

    def test_inactive_record_never_valid(self):
        assert not _rate("5", active=False).is_valid_for(date(2024, 1, 1))

    def test_all_india_normalized(self):
        record = _rate("5", geographical_zone=GeographicalZone.ALL_INDIA)
        assert record.normalized_zone is None
        assert not record.is_zone_specific
        assert record.applies_to_zone("KA")
        assert record.applies_to_zone(None)

    def test_zone_match_case_insensitive(self):
        record = _rate("5", geographical_zone=GeographicalZone.SOUTH)
        assert record.applies_to_zone("ka")
        assert not record.applies_to_zone("MH")
        assert not record.applies_to_zone(None)

    def test_business_type_fallback(self):
        b2b = _rate("5")
        assert b2b.applies_to_business_type(BusinessType.B2B)
        assert b2b.applies_to_business_type(BusinessType.B2C)
        assert not b2b.applies_to_business_type(BusinessType.EXPORT)


class TestRateRegistry:
    """Tests for registration and version lifecycle."""

    def setup_method(self):
        self.registry = RateRegistry([
            _rate("28", classification_code="2523", notification_number="1/2017"),
            _rate("28", classification_code="2523", component=TaxComponentType.CESS),
        ])

    def test_rates_for_filters_by_code_and_component(self):
        igst = self.registry.rates_for("2523", TaxComponentType.IGST)
        assert len(igst) == 1
        assert igst[0].rate_percentage == Decimal("28")
        assert self.registry.rates_for("2523", TaxComponentType.CGST) == ()
        assert self.registry.rates_for("9999", TaxComponentType.IGST) == ()

    def test_duplicate_version_key_rejected(self):
        with pytest.raises(DuplicateRateVersionError):
            self.registry.register(_rate("18", classification_code="2523"))

    def test_zone_distinguishes_version_key(self):
        self.registry.register(_rate(
            "18", classification_code="2523", geographical_zone=GeographicalZone.NORTH,
        ))
        assert len(self.registry.rates_for("2523", TaxComponentType.IGST)) == 2

    def test_supersede_closes_open_version(self):
        new = self.registry.supersede(
            _rate("18", classification_code="2523", effective_from=date(2025, 9, 22))
        )
        assert new.version_number == 2

        history = self.registry.history("2523", TaxComponentType.IGST, BusinessType.B2B)
        assert [r.version_number for r in history] == [1, 2]
        assert history[0].effective_to == date(2025, 9, 22)
        assert history[0].notification_number == "1/2017"
        assert history[1].effective_to is None
        assert len(self.registry) == 3

    def test_supersede_requires_later_start(self):
        with pytest.raises(InvalidRateRecordError):
            self.registry.supersede(
                _rate("18", classification_code="2523", effective_from=date(2017, 1, 1))
            )

    def test_supersede_without_open_version(self):
        with pytest.raises(RateNotFoundError):
            self.registry.supersede(
                _rate("18", classification_code="9999", effective_from=date(2025, 9, 22))
            )


class TestExemptionRules:
    """Tests for exemption rule evaluation and their stored form."""

    def test_no_rules_never_apply(self):
        assert ExemptionRules().evaluate(Decimal("0"), Decimal("1")) is None

    @pytest.mark.parametrize("condition, value, expected", [
        (ThresholdCondition.GREATER_THAN, "101", True),
        (ThresholdCondition.GREATER_THAN, "100", False),
        (ThresholdCondition.LESS_THAN, "99", True),
        (ThresholdCondition.LESS_THAN, "100", False),
        (ThresholdCondition.EQUALS, "100.00", True),
        (ThresholdCondition.EQUALS, "100.01", False),
    ])
    def test_conditional_criterion(self, condition, value, expected):
        criterion = ExemptionCriterion(condition=condition, threshold=Decimal("100"))
        assert criterion.applies(Decimal(value)) is expected

    def test_conditional_criterion_needs_value(self):
        criterion = ExemptionCriterion(ThresholdCondition.LESS_THAN, Decimal("100"))
        assert not criterion.applies()

    def test_conditional_essential_goods_never_applies(self):
        rules = ExemptionRules(essential_goods=ExemptionCriterion(
            ThresholdCondition.LESS_THAN, Decimal("100"),
        ))
        assert rules.evaluate(Decimal("1"), Decimal("1")) is None

    def test_condition_without_threshold_rejected(self):
        with pytest.raises(ValueError):
            ExemptionCriterion(condition=ThresholdCondition.EQUALS)

    def test_stored_form_round_trips(self):
        rules = ExemptionRules(
            amount_threshold=Decimal("1000"),
            small_business=ExemptionCriterion(ThresholdCondition.LESS_THAN, Decimal("2000000")),
            essential_goods=ExemptionCriterion(),
        )
        stored = rules.as_mapping()
        assert stored == {
            "EXEMPTION_THRESHOLD": "1000",
            "SMALL_BUSINESS": {"condition": "LESS_THAN", "threshold": "2000000"},
            "ESSENTIAL_GOODS": True,
        }
        assert ExemptionRules.from_mapping(stored) == rules

    def test_halved_record_keeps_rules(self):
        rules = ExemptionRules(essential_goods=ExemptionCriterion())
        assert _rate("18", exemptions=rules).halved().exemptions == rules
