"""
Latency statistics.

Contains pure Python implementations of:
- percentile: ceil-based nearest-rank percentile
- median: middle value, averaging the two middle values for even counts
- aggregate: full LatencyStats for one target
- summarize_records: run-level counters plus per-target stats
"""

from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence

from elserbench.models.metrics import LatencyStats, LoadTestStats, RunStats
from elserbench.models.test_result import ComparisonRecord


def percentile(values: Sequence[float], p: float) -> float | None:
    """
    Calculate the p-th percentile using the nearest-rank method.

    The rank is ``ceil(p / 100 * n) - 1`` over the ascending values, clamped to
    ``[0, n - 1]``.

    Args:
        values: Numeric values in any order.
        p: Percentile to compute (0-100).

    Returns:
        The percentile value, or None if input is empty.

    Example:
        >>> percentile([10, 20, 30, 40, 50, 60, 70, 80, 90, 100], 95)
        100.0
        >>> percentile([1, 2, 3, 4], 50)
        2.0
    """
    if not values:
        return None

    ordered = sorted(values)
    n = len(ordered)
    idx = math.ceil((p / 100.0) * n) - 1
    idx = max(0, min(n - 1, idx))
    return float(ordered[idx])


def median(values: Sequence[float]) -> float | None:
    if not values:
        return None
    ordered = sorted(values)
    n = len(ordered)
    mid = n // 2
    if n % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2.0
    return float(ordered[mid])


def aggregate(durations: Iterable[float]) -> LatencyStats:
    """Reduce durations (ms) to LatencyStats. Empty input yields count=0 and None figures."""
    values = [float(d) for d in durations]
    if not values:
        return LatencyStats(count=0)

    return LatencyStats(
        count=len(values),
        avg=sum(values) / len(values),
        min=min(values),
        max=max(values),
        median=median(values),
        p95=percentile(values, 95),
        p99=percentile(values, 99),
    )


def summarize_records(
    records: Sequence[ComparisonRecord],
    *,
    targets: Sequence[str],
    elapsed_seconds: float,
    concurrency: int,
    target_qps: Optional[float] = None,
    stats_cls: type[RunStats] = LoadTestStats,
) -> RunStats:
    """
    Build run statistics from every record of a run.

    A record counts as successful only when both targets answered without
    error. Latency figures are computed from successful records, separately per
    target, in the order given by ``targets``.
    """
    successful = [r for r in records if r.ok]
    failed = len(records) - len(successful)

    per_target: dict[str, list[float]] = {name: [] for name in targets}
    for record in successful:
        for result in (record.result_a, record.result_b):
            per_target.setdefault(result.target, []).append(result.duration_ms)

    actual_qps = len(records) / elapsed_seconds if elapsed_seconds > 0 else 0.0

    extra = {}
    if "target_qps" in stats_cls.model_fields:
        extra["target_qps"] = target_qps
    return stats_cls(
        duration_seconds=max(0.0, elapsed_seconds),
        concurrency=concurrency,
        total_queries=len(records),
        successful_queries=len(successful),
        failed_queries=failed,
        actual_qps=actual_qps,
        targets={name: aggregate(values) for name, values in per_target.items()},
        **extra,
    )
