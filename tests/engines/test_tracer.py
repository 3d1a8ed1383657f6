"""Tests for engine invocation tracing."""

from datetime import date
from decimal import Decimal

from freight_engines.tracer import compute_input_fingerprint, traced_engine


@traced_engine("sample", "2.1", fingerprint_fields=("amount", "day"))
def _sample(amount, day, note=None):
    return amount


class TestFingerprint:

    def test_stable_for_equal_inputs(self):
        a = compute_input_fingerprint(("amount",), {"amount": Decimal("10.00")})
        b = compute_input_fingerprint(("amount",), {"amount": Decimal("10.00")})
        assert a == b
        assert len(a) == 16

    def test_changes_with_input(self):
        a = compute_input_fingerprint(("amount",), {"amount": Decimal("10.00")})
        b = compute_input_fingerprint(("amount",), {"amount": Decimal("10.01")})
        assert a != b

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(("x",), {"x": None})


class TestTracedEngine:

    def test_emits_trace_record(self, captured_logs):
        assert _sample(Decimal("5.00"), date(2024, 1, 1)) == Decimal("5.00")

        traces = [r for r in captured_logs() if r["message"] == "FREIGHT_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.1"
        assert trace["function"] == "_sample"
        assert len(trace["input_fingerprint"]) == 16

    def test_positional_and_keyword_fingerprint_match(self, captured_logs):
        _sample(Decimal("5.00"), date(2024, 1, 1))
        _sample(amount=Decimal("5.00"), day=date(2024, 1, 1), note="ignored")

        traces = [r for r in captured_logs() if r["message"] == "FREIGHT_ENGINE_TRACE"]
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]
