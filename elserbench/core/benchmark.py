"""
Sequential benchmark: repeated side-by-side comparisons per query.
"""

from __future__ import annotations

import logging
from typing import Optional

from elserbench.core.comparator import Comparator, compare_durations
from elserbench.core.load_driver import ProgressCallback, emit_progress, record_summary
from elserbench.models.metrics import ProgressEvent
from elserbench.models.test_config import BenchmarkConfig
from elserbench.models.test_result import BenchmarkQueryResult, ComparisonRecord

logger = logging.getLogger(__name__)


def _average(values: list[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def summarize_iterations(
    query: str,
    records: list[ComparisonRecord],
    targets: tuple[str, str],
) -> BenchmarkQueryResult:
    """Average the successful durations of each target and compare the averages."""
    durations: dict[str, list[float]] = {name: [] for name in targets}
    for record in records:
        for result in (record.result_a, record.result_b):
            if result.ok:
                durations.setdefault(result.target, []).append(result.duration_ms)

    averages = {name: _average(values) for name, values in durations.items()}
    target_a, target_b = targets
    return BenchmarkQueryResult(
        query=query,
        iterations=len(records),
        avg_duration_ms=averages,
        comparison=compare_durations(
            target_a, averages.get(target_a), target_b, averages.get(target_b)
        ),
        records=records,
    )


async def run_benchmark(
    comparator: Comparator,
    config: BenchmarkConfig,
    *,
    on_progress: Optional[ProgressCallback] = None,
) -> list[BenchmarkQueryResult]:
    """Run ``config.iterations`` sequential comparisons for each query."""
    results: list[BenchmarkQueryResult] = []
    total = len(config.queries) * config.iterations
    completed = 0
    sequence = 0

    for query in config.queries:
        logger.info("Benchmarking %r (%d iterations)", query, config.iterations)
        records: list[ComparisonRecord] = []
        for _ in range(config.iterations):
            record = await comparator.compare(query, sequence=sequence)
            sequence += 1
            completed += 1
            records.append(record)
            await emit_progress(
                on_progress,
                ProgressEvent(completed=completed, total=total, last=record_summary(record)),
            )
        summary = summarize_iterations(query, records, comparator.targets)
        logger.info(
            "%r: faster=%s speedup=%s",
            query,
            summary.comparison.faster_target,
            f"{summary.comparison.speedup:.2f}x" if summary.comparison.speedup else "n/a",
        )
        results.append(summary)

    return results
