# =============================================================================
# Realtime Screen Share - Session Report
# =============================================================================
# Renders the end-of-session summary: duration, token usage, per-request
# details, cost breakdown, cache-hit rates and session statistics.
# =============================================================================

from datetime import datetime
from typing import List

from client.metrics import RequestDetail, SessionMetrics

_RULE = "=" * 60


def format_duration(seconds: float) -> str:
    """Format a duration as "Xm Ys", or "Ys" when under a minute."""
    total_seconds = int(seconds)
    minutes, remaining = divmod(total_seconds, 60)
    if minutes > 0:
        return f"{minutes}m {remaining}s"
    return f"{total_seconds}s"


def _format_latency(latency_ms: float) -> str:
    return f"{round(latency_ms)}ms" if latency_ms > 0 else "N/A"


def render_session_banner(metrics: SessionMetrics, started_at: datetime, ended_at: datetime) -> str:
    """Separator block appended to the transcript when a session ends."""
    duration = format_duration((ended_at - started_at).total_seconds())
    return "\n".join([
        "",
        _RULE,
        f"SESSION ENDED (Duration: {duration})",
        f"{metrics.total_requests} responses received",
        f"Average response time: {round(metrics.average_latency_ms)}ms",
        "Complete cost breakdown displayed below",
        _RULE,
        "",
    ])


def _render_request(detail: RequestDetail) -> List[str]:
    tokens = detail.tokens
    return [
        f"  Request #{detail.number} ({detail.timestamp.strftime('%H:%M:%S')})",
        (
            f"    Text: {tokens.text_input} input ({tokens.text_input_cached} cached), "
            f"{tokens.text_output} output | "
            f"Images: {tokens.image_input} input ({tokens.image_input_cached} cached)"
        ),
        f"    Cost: ${detail.total_cost:.6f} | Response Time: {_format_latency(detail.latency_ms)}",
    ]


def render_report(metrics: SessionMetrics, started_at: datetime, ended_at: datetime) -> str:
    """
    Render the full cost and usage report for a finished session.

    Args:
        metrics:    The session's accumulated metrics.
        started_at: Session start time.
        ended_at:   Session end time.

    Returns:
        str: Multi-line plain-text report.
    """
    summary = metrics.summary()
    tokens = summary.tokens
    costs = summary.costs

    lines = [
        "Session Duration",
        f"  Session Duration: {format_duration((ended_at - started_at).total_seconds())}",
        f"  Started: {started_at.strftime('%H:%M:%S')}",
        f"  Ended: {ended_at.strftime('%H:%M:%S')}",
        "",
        "Token Usage Summary",
        "  Text Tokens",
        f"    Input (Non-cached): {tokens.text_input_non_cached:,}",
        f"    Input (Cached): {tokens.text_input_cached:,}",
        f"    Total Input: {tokens.text_input:,}",
        f"    Output: {tokens.text_output:,}",
        "  Image Tokens",
        f"    Input (Non-cached): {tokens.image_input_non_cached:,}",
        f"    Input (Cached): {tokens.image_input_cached:,}",
        f"    Total Input: {tokens.image_input:,}",
        "",
        "Individual Request Details",
    ]
    for detail in metrics.request_details:
        lines.extend(_render_request(detail))

    lines.extend([
        "",
        "Cost Breakdown",
        "  Text Costs",
        f"    Input (Non-cached): ${costs.text_input:.6f}",
        f"    Input (Cached): ${costs.text_input_cached:.6f}",
        f"    Output: ${costs.text_output:.6f}",
        f"    Subtotal: ${costs.text_total:.6f}",
        "  Image Costs",
        f"    Input (Non-cached): ${costs.image_input:.6f}",
        f"    Input (Cached): ${costs.image_input_cached:.6f}",
        f"    Subtotal: ${costs.image_total:.6f}",
        f"  Total Session Cost: ${summary.total_cost:.6f}",
        (
            f"  Cache Hit Rate: Text: {summary.text_cache_hit_rate:.1f}% | "
            f"Images: {summary.image_cache_hit_rate:.1f}%"
        ),
        "",
        "Session Stats",
        f"  Total API Responses: {summary.total_requests}",
        f"  Average Cost per Response: ${summary.average_cost_per_request:.6f}",
        f"  Average Response Time: {_format_latency(summary.average_latency_ms)}",
        f"  Total Tokens Used: {summary.total_tokens:,}",
    ])
    return "\n".join(lines) + "\n"
