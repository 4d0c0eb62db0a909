"""
Plain-text reports for CLI output.
"""

from __future__ import annotations

from typing import Optional, Sequence

from elserbench.core.stress import select_best_step
from elserbench.models.metrics import LatencyStats, RunStats, StressStepResult
from elserbench.models.test_result import (
    BenchmarkQueryResult,
    Comparison,
    ComparisonRecord,
    QueryResult,
)


def _ms(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.2f}ms"


def _ratio(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.2f}x"


def render_table(headers: Sequence[str], rows: Sequence[Sequence[object]]) -> str:
    cells = [[str(h) for h in headers]] + [[str(c) for c in row] for row in rows]
    widths = [max(len(r[i]) for r in cells) for i in range(len(headers))]
    sep = "+" + "+".join("-" * (w + 2) for w in widths) + "+"

    def _line(row: list[str]) -> str:
        return "| " + " | ".join(c.ljust(w) for c, w in zip(row, widths)) + " |"

    out = [sep, _line(cells[0]), sep]
    out.extend(_line(r) for r in cells[1:])
    out.append(sep)
    return "\n".join(out)


def _comparison_line(comparison: Comparison) -> str:
    if comparison.faster_target is None:
        return "Both targets failed."
    if comparison.speedup is None:
        return f"Faster: {comparison.faster_target}"
    return (
        f"Faster: {comparison.faster_target} by {_ms(comparison.time_difference_ms)} "
        f"({_ratio(comparison.speedup)})"
    )


def _result_rows(result: QueryResult) -> list[list[object]]:
    if result.error:
        return [[result.target, result.model_id, _ms(result.duration_ms), "-", result.error]]
    note = "match fallback" if result.fallback else ""
    return [[result.target, result.model_id, _ms(result.duration_ms), result.hits, note]]


def format_comparison(record: ComparisonRecord) -> str:
    rows = _result_rows(record.result_a) + _result_rows(record.result_b)
    lines = [
        f'Query: "{record.query}"',
        render_table(["Target", "Model", "Duration", "Hits", "Notes"], rows),
        _comparison_line(record.comparison),
    ]
    for result in (record.result_a, record.result_b):
        if result.top_results:
            lines.append(f"\nTop results ({result.target}):")
            for i, hit in enumerate(result.top_results[:3], start=1):
                score = "-" if hit.score is None else f"{hit.score:.3f}"
                lines.append(f"  {i}. [{score}] {hit.play} / {hit.speaker}: {hit.text}")
    return "\n".join(lines)


def format_benchmark(results: Sequence[BenchmarkQueryResult]) -> str:
    if not results:
        return "No benchmark results."
    targets = list(results[0].avg_duration_ms.keys())
    rows = []
    for r in results:
        rows.append(
            [r.query, r.iterations]
            + [_ms(r.avg_duration_ms.get(t)) for t in targets]
            + [r.comparison.faster_target or "-", _ratio(r.comparison.speedup)]
        )
    headers = ["Query", "Iterations"] + [f"{t} avg" for t in targets] + ["Faster", "Speedup"]
    return render_table(headers, rows)


def _latency_rows(targets: dict[str, LatencyStats]) -> list[list[object]]:
    return [
        [
            name,
            s.count,
            _ms(s.avg),
            _ms(s.min),
            _ms(s.max),
            _ms(s.median),
            _ms(s.p95),
            _ms(s.p99),
        ]
        for name, s in targets.items()
    ]


def format_run_stats(stats: RunStats, title: str = "Run results") -> str:
    target_qps = getattr(stats, "target_qps", None)
    lines = [
        title,
        f"  Duration:     {stats.duration_seconds:.2f}s",
        f"  Concurrency:  {stats.concurrency}",
    ]
    if target_qps is not None:
        lines.append(f"  Target QPS:   {target_qps:.2f}")
    lines.extend(
        [
            f"  Queries:      {stats.total_queries} "
            f"({stats.successful_queries} ok, {stats.failed_queries} failed)",
            f"  Actual QPS:   {stats.actual_qps:.2f}",
            render_table(
                ["Target", "Count", "Avg", "Min", "Max", "Median", "P95", "P99"],
                _latency_rows(stats.targets),
            ),
        ]
    )
    return "\n".join(lines)


def format_stress(steps: Sequence[StressStepResult]) -> str:
    if not steps:
        return "No stress steps completed."
    rows = []
    for step in steps:
        p95 = " / ".join(_ms(s.p95) for s in step.stats.targets.values())
        rows.append(
            [
                step.step,
                step.concurrency,
                f"{step.stats.actual_qps:.2f}",
                step.stats.successful_queries,
                step.stats.failed_queries,
                p95,
                "yes" if step.saturated else "",
            ]
        )
    target_names = " / ".join(steps[0].stats.targets.keys())
    table = render_table(
        ["Step", "Concurrency", "QPS", "OK", "Failed", f"P95 ({target_names})", "Saturated"],
        rows,
    )
    best = select_best_step(steps)
    summary = (
        f"Optimal concurrency: {best.concurrency} ({best.stats.actual_qps:.2f} QPS)"
        if best is not None
        else ""
    )
    return f"{table}\n{summary}"
