"""
Tests for the rate resolver.

Covers:
- Validity window filtering
- Zone precedence over nationwide rates
- Business type preference and B2B fallback for B2C
- Latest effective_from and deterministic tie-breaks
"""

from datetime import date
from decimal import Decimal

from gst_engines.rates import RateRegistry, TaxRateRecord
from gst_engines.resolver import RateResolver, select_rate
from gst_kernel.domain.types import BusinessType, GeographicalZone, TaxComponentType

CODE = "8471"


def _rate(rate: str, **kwargs) -> TaxRateRecord:
    kwargs.setdefault("classification_code", CODE)
    kwargs.setdefault("component_type", TaxComponentType.IGST)
    kwargs.setdefault("business_type", BusinessType.B2B)
    kwargs.setdefault("effective_from", date(2017, 7, 1))
    return TaxRateRecord(rate_percentage=Decimal(rate), **kwargs)


def _resolve(records, business_type=BusinessType.B2B, state="KA", as_of=date(2025, 3, 1),
             component=TaxComponentType.IGST):
    resolver = RateResolver(RateRegistry(records))
    return resolver.resolve(CODE, component, business_type, state, as_of)


class TestValidityWindow:
    """Tests for as-of date filtering."""

    def setup_method(self):
        self.records = [
            _rate("12", effective_from=date(2025, 1, 1), effective_to=date(2025, 6, 1)),
        ]

    def test_before_window(self):
        assert _resolve(self.records, as_of=date(2024, 12, 31)) is None

    def test_inside_window(self):
        assert _resolve(self.records, as_of=date(2025, 3, 1)).rate_percentage == Decimal("12")

    def test_end_is_exclusive(self):
        assert _resolve(self.records, as_of=date(2025, 6, 1)) is None

    def test_inactive_ignored(self):
        assert _resolve([_rate("12", active=False)]) is None

    def test_latest_effective_from_wins(self):
        records = [
            _rate("28", effective_to=date(2025, 9, 22)),
            _rate("18", effective_from=date(2025, 9, 22), version_number=2),
        ]
        assert _resolve(records, as_of=date(2025, 9, 21)).rate_percentage == Decimal("28")
        assert _resolve(records, as_of=date(2025, 9, 22)).rate_percentage == Decimal("18")

    def test_overlapping_windows_take_later_start(self):
        records = [
            _rate("18"),
            _rate("12", effective_from=date(2024, 1, 1)),
        ]
        assert _resolve(records).rate_percentage == Decimal("12")


class TestZonePrecedence:
    """Tests for geographical zone matching."""

    def setup_method(self):
        self.records = [
            _rate("18"),
            _rate("12", geographical_zone=GeographicalZone.NORTH_EAST,
                  effective_from=date(2010, 1, 1)),
        ]

    def test_zone_specific_outranks_nationwide(self):
        # the zone record wins even though the nationwide one started later
        assert _resolve(self.records, state="AS").rate_percentage == Decimal("12")

    def test_state_outside_zone_gets_nationwide(self):
        assert _resolve(self.records, state="KA").rate_percentage == Decimal("18")

    def test_zone_match_is_case_insensitive(self):
        assert _resolve(self.records, state="as").rate_percentage == Decimal("12")

    def test_unknown_buyer_state_gets_nationwide(self):
        assert _resolve(self.records, state=None).rate_percentage == Decimal("18")

    def test_zone_only_rate_unresolved_for_other_state(self):
        records = [_rate("12", geographical_zone=GeographicalZone.NORTH_EAST)]
        assert _resolve(records, state="KA") is None


class TestBusinessTypePreference:
    """Tests for exact-match preference and the B2C fallback."""

    def test_exact_b2c_preferred(self):
        records = [_rate("18"), _rate("12", business_type=BusinessType.B2C)]
        record = _resolve(records, business_type=BusinessType.B2C)
        assert record.business_type == BusinessType.B2C

    def test_b2c_falls_back_to_b2b(self):
        record = _resolve([_rate("18")], business_type=BusinessType.B2C)
        assert record.business_type == BusinessType.B2B

    def test_exact_match_beats_zone_specific_fallback(self):
        records = [
            _rate("12", geographical_zone=GeographicalZone.SOUTH),
            _rate("15", business_type=BusinessType.B2C),
        ]
        record = _resolve(records, business_type=BusinessType.B2C, state="KA")
        assert record.rate_percentage == Decimal("15")

    def test_b2b_never_falls_back_to_b2c(self):
        assert _resolve([_rate("12", business_type=BusinessType.B2C)]) is None

    def test_export_has_no_fallback(self):
        assert _resolve([_rate("18")], business_type=BusinessType.EXPORT) is None


class TestTieBreaks:
    """Tests for deterministic selection among equally ranked candidates."""

    def test_higher_version_wins(self):
        # same key twice cannot be registered, so select over a plain list
        records = [
            _rate("18", version_number=1),
            _rate("12", version_number=3, geographical_zone=GeographicalZone.ALL_INDIA),
        ]
        record = select_rate(
            records, CODE, TaxComponentType.IGST, BusinessType.B2B, "KA", date(2025, 1, 1),
        )
        assert record.version_number == 3

    def test_order_of_candidates_does_not_matter(self):
        records = [
            _rate("18"),
            _rate("12", effective_from=date(2024, 1, 1)),
            _rate("5", geographical_zone=GeographicalZone.SOUTH),
        ]
        forward = select_rate(records, CODE, TaxComponentType.IGST, BusinessType.B2B,
                              "KA", date(2025, 1, 1))
        backward = select_rate(list(reversed(records)), CODE, TaxComponentType.IGST,
                               BusinessType.B2B, "KA", date(2025, 1, 1))
        assert forward == backward
        assert forward.rate_percentage == Decimal("5")

    def test_other_codes_and_components_filtered(self):
        records = [
            _rate("18", classification_code="9999"),
            _rate("3", component_type=TaxComponentType.CESS),
        ]
        assert select_rate(records, CODE, TaxComponentType.IGST, BusinessType.B2B,
                           "KA", date(2025, 1, 1)) is None


class TestResolveMany:
    """Tests for resolving several components at once."""

    def test_returns_none_for_missing_components(self):
        resolver = RateResolver(RateRegistry([
            _rate("28"),
            _rate("12", component_type=TaxComponentType.CESS),
        ]))
        resolved = resolver.resolve_many(
            CODE,
            (TaxComponentType.IGST, TaxComponentType.CESS, TaxComponentType.CGST),
            BusinessType.B2B,
            "KA",
            date(2025, 1, 1),
        )
        assert resolved[TaxComponentType.IGST].rate_percentage == Decimal("28")
        assert resolved[TaxComponentType.CESS].rate_percentage == Decimal("12")
        assert resolved[TaxComponentType.CGST] is None

    def test_not_resolved_is_logged(self, captured_logs):
        _resolve([])
        logs = captured_logs()
        assert any(r["message"] == "rate_not_resolved" for r in logs)
