"""Tests for the @traced_engine decorator and input fingerprints."""

from datetime import date

from recon_engines.tracer import compute_input_fingerprint, traced_engine
from recon_kernel.domain.values import RecordKind, ReportingPeriod


@traced_engine("sample", "2.1", fingerprint_fields=("items", "period"))
def _sample(items, period=None, scale=1):
    return len(items) * scale


class TestFingerprint:
    def test_deterministic(self):
        args = {"items": [1, 2], "period": ReportingPeriod.parse("2025-Q2")}
        assert compute_input_fingerprint(("items", "period"), args) == (
            compute_input_fingerprint(("items", "period"), dict(args))
        )

    def test_sensitive_to_values(self):
        a = compute_input_fingerprint(("items",), {"items": [1, 2]})
        b = compute_input_fingerprint(("items",), {"items": [2, 1]})
        assert a != b

    def test_sets_are_order_free(self):
        a = compute_input_fingerprint(("ids",), {"ids": {"a", "b", "c"}})
        b = compute_input_fingerprint(("ids",), {"ids": {"c", "a", "b"}})
        assert a == b

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(
            ("x",), {"x": None},
        )

    def test_enums_and_dates(self):
        fp = compute_input_fingerprint(
            ("kind", "day"), {"kind": RecordKind.INCOME, "day": date(2025, 4, 1)},
        )
        assert len(fp) == 16


class TestTracedEngine:
    def test_returns_result(self):
        assert _sample([1, 2, 3], scale=2) == 6

    def test_emits_trace(self, captured_logs):
        _sample([1], ReportingPeriod.parse("2025"))
        traces = [r for r in captured_logs() if r["message"] == "RECON_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.1"
        assert trace["function"] == "_sample"
        assert len(trace["input_fingerprint"]) == 16
        assert "duration_ms" in trace

    def test_positional_and_keyword_fingerprint_match(self, captured_logs):
        period = ReportingPeriod.parse("2025")
        _sample([1], period)
        _sample(items=[1], period=period)
        fps = [
            r["input_fingerprint"] for r in captured_logs()
            if r["message"] == "RECON_ENGINE_TRACE"
        ]
        assert fps[0] == fps[1]

    def test_preserves_metadata(self):
        assert _sample.__name__ == "_sample"
