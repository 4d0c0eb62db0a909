"""
Tests for StressSweepController and best-step selection.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from elserbench.core.load_driver import LoadDriver, LoadTestResult
from elserbench.core.stress import (
    StressSweepController,
    is_saturated,
    select_best_step,
)
from elserbench.models.metrics import LoadTestStats, StressStepResult
from elserbench.models.test_config import LoadTestConfig, StressTestConfig


def _stats(concurrency: int, *, ok: int = 100, failed: int = 0, qps: float = 10.0) -> LoadTestStats:
    return LoadTestStats(
        duration_seconds=1.0,
        concurrency=concurrency,
        total_queries=ok + failed,
        successful_queries=ok,
        failed_queries=failed,
        actual_qps=qps,
    )


class ScriptedDriver:
    """Stands in for LoadDriver, returning scripted failure counts per step."""

    def __init__(self, failures: list[int], *, cancel_after: Optional[int] = None) -> None:
        self.failures = failures
        self.cancel_after = cancel_after
        self.configs: list[LoadTestConfig] = []

    async def run_load(self, config, *, cancel_event=None, on_progress=None) -> LoadTestResult:
        self.configs.append(config)
        step = len(self.configs)
        failed = self.failures[step - 1] if step <= len(self.failures) else 0
        if self.cancel_after is not None and step >= self.cancel_after:
            cancel_event.set()
        return LoadTestResult(
            stats=_stats(config.concurrency, failed=failed, qps=float(config.concurrency))
        )


def _config(**overrides) -> StressTestConfig:
    values = dict(
        queries=("love",),
        start_concurrency=5,
        max_concurrency=50,
        step_size=5,
        step_duration_ms=100,
    )
    values.update(overrides)
    return StressTestConfig(**values)


class TestSaturation:
    def test_threshold_is_strict(self) -> None:
        assert not is_saturated(_stats(1, ok=100, failed=10))
        assert is_saturated(_stats(1, ok=100, failed=11))

    def test_zero_successes_with_failures_saturates(self) -> None:
        assert is_saturated(_stats(1, ok=0, failed=1))
        assert not is_saturated(_stats(1, ok=0, failed=0))


class TestStressSweep:
    @pytest.mark.asyncio
    async def test_stops_after_saturated_step(self) -> None:
        """Failure ratios 0%, 0%, 15% stop the sweep after the third step."""
        driver = ScriptedDriver([0, 0, 15, 0, 0])
        steps = await StressSweepController(driver).run_stress(_config())

        assert len(steps) == 3
        assert [s.concurrency for s in steps] == [5, 10, 15]
        assert [s.step for s in steps] == [1, 2, 3]
        assert steps[-1].saturated
        assert not any(s.saturated for s in steps[:-1])

    @pytest.mark.asyncio
    async def test_full_sweep_without_saturation(self) -> None:
        driver = ScriptedDriver([])
        steps = await StressSweepController(driver).run_stress(_config())

        assert [s.concurrency for s in steps] == list(range(5, 51, 5))
        assert all(c.duration_ms == 100 for c in driver.configs)

    @pytest.mark.asyncio
    async def test_range_not_divisible_by_step(self) -> None:
        driver = ScriptedDriver([])
        steps = await StressSweepController(driver).run_stress(
            _config(start_concurrency=1, max_concurrency=10, step_size=4)
        )
        assert [s.concurrency for s in steps] == [1, 5, 9]

    @pytest.mark.asyncio
    async def test_cancel_stops_sweep(self) -> None:
        driver = ScriptedDriver([], cancel_after=2)
        steps = await StressSweepController(driver).run_stress(
            _config(), cancel_event=asyncio.Event()
        )
        assert len(steps) == 2

    @pytest.mark.asyncio
    async def test_on_step_called_per_step(self) -> None:
        seen: list[StressStepResult] = []

        async def on_step(step: StressStepResult) -> None:
            seen.append(step)

        driver = ScriptedDriver([0, 20])
        steps = await StressSweepController(driver).run_stress(_config(), on_step=on_step)

        assert seen == steps
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_with_real_driver(self, make_comparator) -> None:
        comparator = make_comparator(a={"latency": 0.002}, b={"latency": 0.002})
        steps = await StressSweepController(LoadDriver(comparator)).run_stress(
            _config(start_concurrency=1, max_concurrency=3, step_size=1, step_duration_ms=80)
        )

        assert [s.concurrency for s in steps] == [1, 2, 3]
        assert all(s.stats.total_queries > 0 for s in steps)
        assert all(s.stats.failed_queries == 0 for s in steps)


class TestSelectBestStep:
    def _step(self, step: int, concurrency: int, qps: float) -> StressStepResult:
        return StressStepResult(
            step=step, concurrency=concurrency, stats=_stats(concurrency, qps=qps)
        )

    def test_highest_qps_wins(self) -> None:
        steps = [self._step(1, 5, 10.0), self._step(2, 10, 25.0), self._step(3, 15, 20.0)]
        assert select_best_step(steps).concurrency == 10

    def test_tie_goes_to_lowest_concurrency(self) -> None:
        steps = [self._step(1, 5, 30.0), self._step(2, 10, 30.0)]
        assert select_best_step(steps).concurrency == 5

    def test_empty(self) -> None:
        assert select_best_step([]) is None
