"""
Stress Sweep Controller

Runs fixed-duration load steps at increasing concurrency levels until the
targets saturate or the configured maximum is reached. Cancellation ends the
sweep after the current step.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Sequence

from elserbench.core.load_driver import LoadDriver, ProgressCallback
from elserbench.models.metrics import LoadTestStats, StressStepResult
from elserbench.models.test_config import LoadTestConfig, StressTestConfig

logger = logging.getLogger(__name__)

StepCallback = Callable[[StressStepResult], Optional[Awaitable[None]]]

# A step saturates when failures exceed this share of successes.
SATURATION_FAILURE_RATIO = 0.1


def is_saturated(stats: LoadTestStats) -> bool:
    return stats.failed_queries > SATURATION_FAILURE_RATIO * stats.successful_queries


def select_best_step(steps: Sequence[StressStepResult]) -> StressStepResult | None:
    """Step with the highest achieved QPS; ties go to the lowest concurrency."""
    if not steps:
        return None
    return max(steps, key=lambda s: (s.stats.actual_qps, -s.concurrency))


class StressSweepController:
    def __init__(self, driver: LoadDriver) -> None:
        self.driver = driver

    async def run_stress(
        self,
        config: StressTestConfig,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        on_step: Optional[StepCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[StressStepResult]:
        controller_logger = logging.LoggerAdapter(logger, {"component": "STRESS"})
        cancel_event = cancel_event or asyncio.Event()

        controller_logger.info(
            "Starting stress sweep (start=%d, step=%d, max=%d, step_duration=%.1fs)",
            config.start_concurrency,
            config.step_size,
            config.max_concurrency,
            config.step_duration_ms / 1000.0,
        )

        steps: list[StressStepResult] = []
        for step_num, concurrency in enumerate(config.step_levels(), start=1):
            if cancel_event.is_set():
                break

            load_config = LoadTestConfig(
                queries=config.queries,
                duration_ms=config.step_duration_ms,
                concurrency=concurrency,
            )
            outcome = await self.driver.run_load(
                load_config, cancel_event=cancel_event, on_progress=on_progress
            )
            stats = outcome.stats
            saturated = is_saturated(stats)
            step = StressStepResult(
                step=step_num,
                concurrency=concurrency,
                stats=stats,
                saturated=saturated,
            )
            steps.append(step)

            controller_logger.info(
                "Step %d: concurrency=%d qps=%.2f ok=%d failed=%d",
                step_num,
                concurrency,
                stats.actual_qps,
                stats.successful_queries,
                stats.failed_queries,
            )
            if on_step is not None:
                try:
                    result = on_step(step)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    controller_logger.error(f"Step callback error: {e}")

            if saturated:
                controller_logger.warning(
                    "Saturation at concurrency %d (failed=%d > %.0f%% of successful=%d); stopping",
                    concurrency,
                    stats.failed_queries,
                    SATURATION_FAILURE_RATIO * 100,
                    stats.successful_queries,
                )
                break

        return steps
