"""Tests for usage accounting: token totals, costs, cache-hit rates."""

from datetime import datetime

import pytest

from client.metrics import PRICING, SessionMetrics, TokenBreakdown, cache_hit_rate
from shared.schemas import Usage


def _usage(text_in=0, text_cached=0, text_out=0, image_in=0, image_cached=0) -> Usage:
    return Usage.model_validate({
        "input_token_details": {
            "text_tokens": text_in,
            "image_tokens": image_in,
            "cached_tokens_details": {
                "text_tokens": text_cached,
                "image_tokens": image_cached,
            },
        },
        "output_token_details": {"text_tokens": text_out},
    })


class TestRecordCompletion:
    def test_text_only_scenario(self) -> None:
        metrics = SessionMetrics()
        detail = metrics.record_completion(_usage(text_in=100, text_cached=20, text_out=50))

        assert detail is not None
        assert metrics.total_requests == 1
        assert metrics.text_input == 100
        assert metrics.text_input_cached == 20
        assert metrics.text_output == 50
        expected = (80 / 1e6) * 4.00 + (20 / 1e6) * 0.40 + (50 / 1e6) * 16.00
        assert detail.total_cost == pytest.approx(expected)
        assert detail.tokens.text_input_non_cached == 80

    def test_zero_usage_is_not_a_request(self) -> None:
        metrics = SessionMetrics()
        metrics.record_completion(_usage(text_in=10, text_out=5), latency_ms=120.0)
        assert metrics.record_completion(_usage(), latency_ms=300.0) is None

        assert metrics.total_requests == 1
        assert metrics.text_input == 10
        assert metrics.latencies_ms == [120.0]
        assert len(metrics.request_details) == 1

    def test_cached_only_counts_are_still_zero_usage(self) -> None:
        # Cached tokens are a subset of input, so they alone do not make a request billable
        metrics = SessionMetrics()
        assert metrics.record_completion(_usage(text_cached=5)) is None
        assert metrics.total_requests == 0

    def test_totals_are_sums_over_events(self) -> None:
        metrics = SessionMetrics()
        events = [
            _usage(text_in=100, text_cached=10, text_out=20, image_in=500, image_cached=100),
            _usage(text_in=40, text_out=7, image_in=250, image_cached=250),
            _usage(text_in=1, text_cached=1, text_out=1),
        ]
        for usage in events:
            metrics.record_completion(usage)

        assert metrics.text_input == 141
        assert metrics.text_input_cached == 11
        assert metrics.text_output == 28
        assert metrics.image_input == 750
        assert metrics.image_input_cached == 350
        assert [d.number for d in metrics.request_details] == [1, 2, 3]

    def test_total_cost_is_sum_of_category_costs(self) -> None:
        metrics = SessionMetrics()
        detail = metrics.record_completion(
            _usage(text_in=1000, text_cached=300, text_out=400, image_in=2000, image_cached=500)
        )
        costs = detail.costs
        assert costs.text_input == pytest.approx((700 / 1e6) * PRICING.text_input)
        assert costs.text_input_cached == pytest.approx((300 / 1e6) * PRICING.text_input_cached)
        assert costs.text_output == pytest.approx((400 / 1e6) * PRICING.text_output)
        assert costs.image_input == pytest.approx((1500 / 1e6) * PRICING.image_input)
        assert costs.image_input_cached == pytest.approx((500 / 1e6) * PRICING.image_input_cached)
        assert detail.total_cost == pytest.approx(
            costs.text_input + costs.text_input_cached + costs.text_output
            + costs.image_input + costs.image_input_cached
        )

    def test_latency_only_sampled_when_tracked(self) -> None:
        metrics = SessionMetrics()
        metrics.record_completion(_usage(text_in=1), latency_ms=0.0)
        metrics.record_completion(_usage(text_in=1), latency_ms=200.0)
        metrics.record_completion(_usage(text_in=1), latency_ms=400.0)

        assert metrics.total_requests == 3
        assert metrics.latencies_ms == [200.0, 400.0]
        assert metrics.average_latency_ms == pytest.approx(300.0)

    def test_detail_keeps_timestamp(self) -> None:
        when = datetime(2024, 5, 1, 12, 30, 0)
        detail = SessionMetrics().record_completion(_usage(text_out=3), timestamp=when)
        assert detail.timestamp == when


class TestSummary:
    def test_empty_session(self) -> None:
        summary = SessionMetrics().summary()
        assert summary.total_requests == 0
        assert summary.total_cost == 0.0
        assert summary.average_cost_per_request == 0.0
        assert summary.average_latency_ms == 0.0
        assert summary.text_cache_hit_rate == 0.0
        assert summary.image_cache_hit_rate == 0.0

    def test_average_cost_and_hit_rates(self) -> None:
        metrics = SessionMetrics()
        metrics.record_completion(_usage(text_in=100, text_cached=25, text_out=10, image_in=200))
        metrics.record_completion(_usage(text_in=100, text_cached=75, image_in=200, image_cached=100))
        summary = metrics.summary()

        assert summary.average_cost_per_request == pytest.approx(summary.total_cost / 2)
        assert summary.text_cache_hit_rate == pytest.approx(50.0)
        assert summary.image_cache_hit_rate == pytest.approx(25.0)
        assert summary.total_tokens == 200 + 10 + 400
        assert summary.costs.total == pytest.approx(
            sum(detail.total_cost for detail in metrics.request_details)
        )


class TestHelpers:
    def test_cache_hit_rate(self) -> None:
        assert cache_hit_rate(0, 0) == 0.0
        assert cache_hit_rate(5, 0) == 0.0
        assert cache_hit_rate(1, 4) == pytest.approx(25.0)

    def test_non_cached_counts(self) -> None:
        tokens = TokenBreakdown(text_input=10, text_input_cached=4, image_input=9, image_input_cached=9)
        assert tokens.text_input_non_cached == 6
        assert tokens.image_input_non_cached == 0

    def test_usage_with_missing_details_defaults_to_zero(self) -> None:
        tokens = TokenBreakdown.from_usage(Usage.model_validate({"total_tokens": 12}))
        assert tokens == TokenBreakdown()
