"""
Tests for the engine tracer.

Covers:
- Deterministic input fingerprints
- Positional and keyword calls fingerprint identically
- Trace record content
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from gst_engines.tracer import compute_input_fingerprint, traced_engine
from gst_kernel.domain.types import TransactionTaxSpec


@dataclass(frozen=True)
class _Outcome:
    is_success: bool


@traced_engine("test_engine", "2.1", fingerprint_fields=("amount", "spec", "as_of"))
def _engine(amount, spec, as_of, succeed=True):
    return _Outcome(is_success=succeed)


@traced_engine("raising_engine", "1.0")
def _raising_engine():
    raise ValueError("bad input")


class TestInputFingerprint:
    """Tests for compute_input_fingerprint."""

    def test_deterministic(self):
        args = {"amount": Decimal("100"), "spec": TransactionTaxSpec.INTRA}
        fields = ("amount", "spec")
        assert compute_input_fingerprint(fields, args) == compute_input_fingerprint(fields, args)

    def test_decimal_scale_ignored(self):
        fields = ("amount",)
        assert (
            compute_input_fingerprint(fields, {"amount": Decimal("100")})
            == compute_input_fingerprint(fields, {"amount": Decimal("100.00")})
        )

    def test_different_inputs_differ(self):
        fields = ("amount",)
        assert (
            compute_input_fingerprint(fields, {"amount": Decimal("100")})
            != compute_input_fingerprint(fields, {"amount": Decimal("101")})
        )

    def test_non_finite_decimal_fingerprints(self):
        fields = ("amount",)
        signalling = compute_input_fingerprint(fields, {"amount": Decimal("sNaN")})
        infinite = compute_input_fingerprint(fields, {"amount": Decimal("Infinity")})
        assert signalling != infinite

    def test_missing_field_is_null(self):
        fp = compute_input_fingerprint(("amount", "spec"), {"amount": Decimal("1")})
        assert len(fp) == 16


class TestTracedEngine:
    """Tests for the GST_ENGINE_TRACE record."""

    def _traces(self, captured_logs):
        return [r for r in captured_logs() if r["message"] == "GST_ENGINE_TRACE"]

    def test_trace_fields(self, captured_logs):
        _engine(Decimal("10"), TransactionTaxSpec.INTER, date(2024, 1, 1))
        (trace,) = self._traces(captured_logs)
        assert trace["trace_type"] == "GST_ENGINE_TRACE"
        assert trace["engine_name"] == "test_engine"
        assert trace["engine_version"] == "2.1"
        assert trace["outcome"] == "success"
        assert len(trace["input_fingerprint"]) == 16
        assert trace["duration_ms"] >= 0

    def test_failure_outcome(self, captured_logs):
        _engine(Decimal("10"), TransactionTaxSpec.INTER, date(2024, 1, 1), succeed=False)
        (trace,) = self._traces(captured_logs)
        assert trace["outcome"] == "failure"

    def test_positional_and_keyword_calls_match(self, captured_logs):
        _engine(Decimal("10"), TransactionTaxSpec.INTER, date(2024, 1, 1))
        _engine(amount=Decimal("10"), spec=TransactionTaxSpec.INTER, as_of=date(2024, 1, 1))
        first, second = self._traces(captured_logs)
        assert first["input_fingerprint"] == second["input_fingerprint"]

    def test_exception_propagates_without_trace(self, captured_logs):
        with pytest.raises(ValueError):
            _raising_engine()
        assert self._traces(captured_logs) == []

    def test_wraps_preserves_name(self):
        assert _engine.__name__ == "_engine"
