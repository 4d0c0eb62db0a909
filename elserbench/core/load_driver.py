"""
Load Driver

Issues a stream of comparisons against both targets:
- run_load: time-boxed, optionally rate-limited, bounded by a concurrency ceiling
- run_concurrent: a fixed number of comparisons with bounded concurrency

Both runs route every comparison through a ConcurrencyLimiter, drain in-flight
work before returning, and aggregate the collected records.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Optional, Sequence

from elserbench.core.comparator import Comparator
from elserbench.core.concurrency import ConcurrencyLimiter
from elserbench.core.statistics import summarize_records
from elserbench.models.metrics import ConcurrentRunStats, LoadTestStats, ProgressEvent
from elserbench.models.test_config import ConcurrentRunConfig, LoadTestConfig
from elserbench.models.test_result import ComparisonRecord

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], Optional[Awaitable[None]]]


@dataclass
class LoadTestResult:
    """Records and statistics of one load run."""

    stats: LoadTestStats
    records: list[ComparisonRecord] = field(default_factory=list)
    cancelled: bool = False


@dataclass
class ConcurrentRunResult:
    """Records and statistics of one fixed-count concurrent run."""

    stats: ConcurrentRunStats
    records: list[ComparisonRecord] = field(default_factory=list)


def record_summary(record: ComparisonRecord) -> dict[str, Any]:
    """Compact, JSON-friendly view of a record for progress events."""
    return {
        "sequence": record.sequence,
        "query": record.query,
        "durations_ms": {
            record.result_a.target: record.result_a.duration_ms,
            record.result_b.target: record.result_b.duration_ms,
        },
        "errors": {
            r.target: r.error for r in (record.result_a, record.result_b) if r.error
        },
        "faster": record.comparison.faster_target,
    }


async def emit_progress(
    callback: Optional[ProgressCallback], event: ProgressEvent
) -> None:
    if callback is None:
        return
    try:
        result = callback(event)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error(f"Progress callback error: {e}")


class LoadDriver:
    def __init__(self, comparator: Comparator) -> None:
        self.comparator = comparator
        self._log = logging.LoggerAdapter(logger, {"component": "LOAD_DRIVER"})

    @staticmethod
    async def _pause(
        waitable: Optional[Awaitable[Any]],
        cancel_event: asyncio.Event,
        until: float,
    ) -> None:
        """Wait for ``waitable``, the cancel signal or loop time ``until``, whichever is first."""
        loop = asyncio.get_running_loop()
        timeout = max(0.0, until - loop.time())
        waiters = {asyncio.ensure_future(cancel_event.wait())}
        if waitable is not None:
            waiters.add(asyncio.ensure_future(waitable))
        try:
            await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for w in waiters:
                if not w.done():
                    w.cancel()

    async def _compare_and_report(
        self,
        *,
        query: str,
        sequence: int,
        records: list[ComparisonRecord],
        started: float,
        total: Optional[int],
        concurrency: int,
        on_progress: Optional[ProgressCallback],
    ) -> ComparisonRecord:
        record = await self.comparator.compare(query, sequence=sequence)
        records.append(record)
        if not record.ok:
            self._log.debug(
                "Comparison %d for %r had errors: %s",
                sequence,
                query,
                record_summary(record)["errors"],
            )

        elapsed = asyncio.get_running_loop().time() - started
        await emit_progress(
            on_progress,
            ProgressEvent(
                completed=len(records),
                total=total,
                elapsed_seconds=elapsed,
                current_qps=len(records) / elapsed if elapsed > 0 else 0.0,
                concurrency=concurrency,
                last=record_summary(record),
            ),
        )
        return record

    async def run_load(
        self,
        config: LoadTestConfig,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> LoadTestResult:
        """
        Run a time-boxed load test.

        Queries are taken round-robin from ``config.queries`` starting at the
        first element. With ``target_qps`` set, dispatch ticks are scheduled at
        ``start + i / target_qps``; otherwise the driver dispatches whenever the
        limiter has a free slot. In both modes a comparison is only submitted
        into a free slot, so nothing queues behind the ceiling. Submission
        stops at the deadline or when ``cancel_event`` is set; in-flight
        comparisons are always drained.
        """
        cancel_event = cancel_event or asyncio.Event()
        limiter = ConcurrencyLimiter(config.concurrency)
        loop = asyncio.get_running_loop()
        records: list[ComparisonRecord] = []
        pool: Sequence[str] = config.queries
        interval = 1.0 / config.target_qps if config.target_qps else None
        # Ticks at start + i / qps strictly before the deadline.
        expected_total = (
            math.ceil(round(config.duration_seconds * config.target_qps, 6))
            if config.target_qps
            else None
        )

        self._log.info(
            "Starting load run (duration=%.1fs, concurrency=%d, target_qps=%s)",
            config.duration_seconds,
            config.concurrency,
            config.target_qps if config.target_qps else "unlimited",
        )

        started = loop.time()
        deadline = started + config.duration_seconds
        dispatched = 0
        try:
            while not cancel_event.is_set() and loop.time() < deadline:
                if interval is not None:
                    next_at = started + dispatched * interval
                    if next_at >= deadline:
                        await self._pause(None, cancel_event, deadline)
                        break
                    if next_at > loop.time():
                        await self._pause(None, cancel_event, next_at)
                        continue
                # Admit only into a free slot; late ticks fire once one opens.
                if limiter.outstanding >= limiter.limit:
                    await self._pause(limiter.wait_for_capacity(), cancel_event, deadline)
                    continue

                limiter.submit(
                    partial(
                        self._compare_and_report,
                        query=pool[dispatched % len(pool)],
                        sequence=dispatched,
                        records=records,
                        started=started,
                        total=expected_total,
                        concurrency=config.concurrency,
                        on_progress=on_progress,
                    )
                )
                dispatched += 1

            cancelled = cancel_event.is_set()
            if cancelled:
                self._log.info("Load run cancelled after %d dispatches; draining", dispatched)
            await limiter.drain()
        except asyncio.CancelledError:
            limiter.cancel_all()
            raise
        elapsed = loop.time() - started

        records.sort(key=lambda r: r.sequence)
        stats = summarize_records(
            records,
            targets=self.comparator.targets,
            elapsed_seconds=elapsed,
            concurrency=config.concurrency,
            target_qps=config.target_qps,
            stats_cls=LoadTestStats,
        )
        self._log.info(
            "Load run finished: total=%d ok=%d failed=%d qps=%.2f peak_in_flight=%d",
            stats.total_queries,
            stats.successful_queries,
            stats.failed_queries,
            stats.actual_qps,
            limiter.peak_in_flight,
        )
        return LoadTestResult(records=records, stats=stats, cancelled=cancelled)

    async def run_concurrent(
        self,
        config: ConcurrentRunConfig,
        *,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ConcurrentRunResult:
        """Issue exactly ``config.total_queries`` comparisons, at most ``config.concurrency`` at once."""
        limiter = ConcurrencyLimiter(config.concurrency)
        loop = asyncio.get_running_loop()
        records: list[ComparisonRecord] = []
        pool = config.queries

        self._log.info(
            "Starting concurrent run (total=%d, concurrency=%d)",
            config.total_queries,
            config.concurrency,
        )
        started = loop.time()
        await limiter.gather(
            partial(
                self._compare_and_report,
                query=pool[i % len(pool)],
                sequence=i,
                records=records,
                started=started,
                total=config.total_queries,
                concurrency=config.concurrency,
                on_progress=on_progress,
            )
            for i in range(config.total_queries)
        )
        elapsed = loop.time() - started

        records.sort(key=lambda r: r.sequence)
        stats = summarize_records(
            records,
            targets=self.comparator.targets,
            elapsed_seconds=elapsed,
            concurrency=config.concurrency,
            stats_cls=ConcurrentRunStats,
        )
        self._log.info(
            "Concurrent run finished: ok=%d failed=%d qps=%.2f",
            stats.successful_queries,
            stats.failed_queries,
            stats.actual_qps,
        )
        return ConcurrentRunResult(records=records, stats=stats)
