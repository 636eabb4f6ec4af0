# =============================================================================
# Realtime Screen Share - Usage Accounting
# =============================================================================
# Accumulates token usage, cost and latency for one session from the usage
# blocks attached to completed responses.
#
# Cached tokens are a subset of the input tokens of the same modality, so a
# request's billable input splits into a non-cached part (input - cached) at
# the full rate and a cached part at the reduced rate. Responses whose usage
# is all zeros are not billed and are not counted as requests.
# =============================================================================

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from shared.schemas import Usage

logger = logging.getLogger(__name__)

TOKENS_PER_RATE_UNIT = 1_000_000


@dataclass(frozen=True)
class Pricing:
    """USD per 1M tokens for each billing category."""

    text_input: float = 4.00
    text_input_cached: float = 0.40
    text_output: float = 16.00
    image_input: float = 5.00
    image_input_cached: float = 0.50


PRICING = Pricing()


def _cost(tokens: int, rate: float) -> float:
    return (tokens / TOKENS_PER_RATE_UNIT) * rate


def cache_hit_rate(cached: int, total: int) -> float:
    """Percentage of input tokens served from cache; 0 when there was no input."""
    if total <= 0:
        return 0.0
    return (cached / total) * 100.0


@dataclass(frozen=True)
class TokenBreakdown:
    """Raw and derived token counts for one request or a whole session."""

    text_input: int = 0
    text_input_cached: int = 0
    text_output: int = 0
    image_input: int = 0
    image_input_cached: int = 0

    @classmethod
    def from_usage(cls, usage: Usage) -> "TokenBreakdown":
        input_details = usage.input_token_details
        cached_details = input_details.cached_tokens_details
        return cls(
            text_input=input_details.text_tokens,
            text_input_cached=cached_details.text_tokens,
            text_output=usage.output_token_details.text_tokens,
            image_input=input_details.image_tokens,
            image_input_cached=cached_details.image_tokens,
        )

    @property
    def text_input_non_cached(self) -> int:
        return self.text_input - self.text_input_cached

    @property
    def image_input_non_cached(self) -> int:
        return self.image_input - self.image_input_cached

    @property
    def total(self) -> int:
        """Input plus output across modalities (cached tokens are part of input)."""
        return self.text_input + self.text_output + self.image_input

    def costs(self, pricing: Pricing = PRICING) -> "CostBreakdown":
        return CostBreakdown(
            text_input=_cost(self.text_input_non_cached, pricing.text_input),
            text_input_cached=_cost(self.text_input_cached, pricing.text_input_cached),
            text_output=_cost(self.text_output, pricing.text_output),
            image_input=_cost(self.image_input_non_cached, pricing.image_input),
            image_input_cached=_cost(self.image_input_cached, pricing.image_input_cached),
        )


@dataclass(frozen=True)
class CostBreakdown:
    """USD cost per billing category."""

    text_input: float = 0.0
    text_input_cached: float = 0.0
    text_output: float = 0.0
    image_input: float = 0.0
    image_input_cached: float = 0.0

    @property
    def text_total(self) -> float:
        return self.text_input + self.text_input_cached + self.text_output

    @property
    def image_total(self) -> float:
        return self.image_input + self.image_input_cached

    @property
    def total(self) -> float:
        return self.text_total + self.image_total


@dataclass(frozen=True)
class RequestDetail:
    """
    Accounting record for one billable response.

    Attributes:
        number:     1-based sequence number within the session.
        timestamp:  Wall-clock time the completion was recorded.
        latency_ms: Time from the completion request to the completion,
                    0 when it was not tracked.
        tokens:     Raw and derived token counts.
        costs:      Per-category cost.
        total_cost: Sum of the per-category costs.
    """

    number: int
    timestamp: datetime
    latency_ms: float
    tokens: TokenBreakdown
    costs: CostBreakdown
    total_cost: float


@dataclass(frozen=True)
class SessionSummary:
    """Aggregate figures rendered in the end-of-session report."""

    total_requests: int
    tokens: TokenBreakdown
    costs: CostBreakdown
    average_cost_per_request: float
    average_latency_ms: float
    text_cache_hit_rate: float
    image_cache_hit_rate: float

    @property
    def total_cost(self) -> float:
        return self.costs.total

    @property
    def total_tokens(self) -> int:
        return self.tokens.total


@dataclass
class SessionMetrics:
    """
    Mutable usage counters for one session.

    Created at session start, updated on every completion carrying usage,
    read once at session end.
    """

    pricing: Pricing = PRICING
    text_input: int = 0
    text_input_cached: int = 0
    text_output: int = 0
    image_input: int = 0
    image_input_cached: int = 0
    total_requests: int = 0
    total_latency_ms: float = 0.0
    latencies_ms: List[float] = field(default_factory=list)
    request_details: List[RequestDetail] = field(default_factory=list)

    def record_completion(
        self,
        usage: Usage,
        latency_ms: float = 0.0,
        timestamp: Optional[datetime] = None,
    ) -> Optional[RequestDetail]:
        """
        Account for one completed response.

        Args:
            usage:      Usage block of the response.
            latency_ms: Elapsed time since the completion request, 0 if untracked.
            timestamp:  Record time; defaults to now.

        Returns:
            The appended RequestDetail, or None when the usage was all zeros
            and the response was not counted.
        """
        tokens = TokenBreakdown.from_usage(usage)
        if tokens.total == 0:
            logger.debug("Ignoring response with zero token usage")
            return None

        if latency_ms > 0:
            self.latencies_ms.append(latency_ms)
            self.total_latency_ms += latency_ms

        self.total_requests += 1
        self.text_input += tokens.text_input
        self.text_input_cached += tokens.text_input_cached
        self.text_output += tokens.text_output
        self.image_input += tokens.image_input
        self.image_input_cached += tokens.image_input_cached

        costs = tokens.costs(self.pricing)
        detail = RequestDetail(
            number=self.total_requests,
            timestamp=timestamp or datetime.now(),
            latency_ms=latency_ms,
            tokens=tokens,
            costs=costs,
            total_cost=costs.total,
        )
        self.request_details.append(detail)

        logger.info(
            "Request %d - Cost: $%.6f, Response time: %.0fms",
            detail.number,
            detail.total_cost,
            latency_ms,
        )
        return detail

    @property
    def totals(self) -> TokenBreakdown:
        return TokenBreakdown(
            text_input=self.text_input,
            text_input_cached=self.text_input_cached,
            text_output=self.text_output,
            image_input=self.image_input,
            image_input_cached=self.image_input_cached,
        )

    @property
    def average_latency_ms(self) -> float:
        if not self.latencies_ms:
            return 0.0
        return self.total_latency_ms / len(self.latencies_ms)

    def summary(self) -> SessionSummary:
        totals = self.totals
        costs = totals.costs(self.pricing)
        average_cost = costs.total / self.total_requests if self.total_requests > 0 else 0.0
        return SessionSummary(
            total_requests=self.total_requests,
            tokens=totals,
            costs=costs,
            average_cost_per_request=average_cost,
            average_latency_ms=self.average_latency_ms,
            text_cache_hit_rate=cache_hit_rate(totals.text_input_cached, totals.text_input),
            image_cache_hit_rate=cache_hit_rate(totals.image_input_cached, totals.image_input),
        )
