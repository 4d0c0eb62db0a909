"""
Comparator

Runs one query against both targets concurrently and pairs the results.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, runtime_checkable

from elserbench.models.test_result import Comparison, ComparisonRecord, QueryResult

logger = logging.getLogger(__name__)


@runtime_checkable
class QueryExecutor(Protocol):
    """Sends one query to a single bound target."""

    target: str
    model_id: str

    async def execute(self, query: str) -> QueryResult: ...

    async def aclose(self) -> None: ...


def compare_durations(
    target_a: str,
    duration_a: Optional[float],
    target_b: str,
    duration_b: Optional[float],
) -> Comparison:
    """
    Compare two durations (ms). None marks a failed side.

    Equal durations favour target A with a speedup of exactly 1.0. A zero
    minimum duration leaves the speedup undefined.
    """
    if duration_a is None and duration_b is None:
        return Comparison()
    if duration_b is None:
        return Comparison(faster_target=target_a)
    if duration_a is None:
        return Comparison(faster_target=target_b)

    faster = target_a if duration_a <= duration_b else target_b
    diff = abs(duration_a - duration_b)
    if duration_a == duration_b:
        speedup: Optional[float] = 1.0
    else:
        fastest = min(duration_a, duration_b)
        speedup = max(duration_a, duration_b) / fastest if fastest > 0 else None
    return Comparison(faster_target=faster, time_difference_ms=diff, speedup=speedup)


def compare_results(result_a: QueryResult, result_b: QueryResult) -> Comparison:
    return compare_durations(
        result_a.target,
        result_a.duration_ms if result_a.ok else None,
        result_b.target,
        result_b.duration_ms if result_b.ok else None,
    )


class Comparator:
    """Pairs two query executors. Owns both and closes them on ``aclose``."""

    def __init__(self, executor_a: QueryExecutor, executor_b: QueryExecutor) -> None:
        self.executor_a = executor_a
        self.executor_b = executor_b

    @property
    def targets(self) -> tuple[str, str]:
        return (self.executor_a.target, self.executor_b.target)

    async def _safe_execute(self, executor: QueryExecutor, query: str) -> QueryResult:
        try:
            return await executor.execute(query)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("Executor %s raised for %r: %s", executor.target, query, e)
            return QueryResult(
                target=executor.target,
                model_id=executor.model_id,
                query=query,
                duration_ms=0.0,
                error=str(e) or type(e).__name__,
            )

    async def compare(self, query: str, *, sequence: int = 0) -> ComparisonRecord:
        result_a, result_b = await asyncio.gather(
            self._safe_execute(self.executor_a, query),
            self._safe_execute(self.executor_b, query),
        )
        return ComparisonRecord(
            sequence=sequence,
            query=query,
            result_a=result_a,
            result_b=result_b,
            comparison=compare_results(result_a, result_b),
        )

    async def aclose(self) -> None:
        await asyncio.gather(
            self.executor_a.aclose(),
            self.executor_b.aclose(),
            return_exceptions=True,
        )
