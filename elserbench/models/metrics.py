"""
Metrics Models

Aggregated latency and throughput figures produced by load, concurrent and
stress runs.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class LatencyStats(BaseModel):
    """Latency distribution for one target. All figures are None when count is 0."""

    model_config = ConfigDict(frozen=True)

    count: int = Field(0, ge=0)
    avg: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    median: Optional[float] = None
    p95: Optional[float] = None
    p99: Optional[float] = None


class RunStats(BaseModel):
    """Counters shared by every multi-query run."""

    model_config = ConfigDict(frozen=True)

    duration_seconds: float = Field(..., ge=0, description="Measured wall clock")
    concurrency: int = Field(..., ge=1)
    total_queries: int = Field(0, ge=0, description="Comparisons issued")
    successful_queries: int = Field(0, ge=0)
    failed_queries: int = Field(0, ge=0)
    actual_qps: float = Field(0.0, ge=0)
    targets: dict[str, LatencyStats] = Field(default_factory=dict)


class LoadTestStats(RunStats):
    target_qps: Optional[float] = None


class ConcurrentRunStats(RunStats):
    pass


class StressStepResult(BaseModel):
    """Outcome of one concurrency level of a stress sweep."""

    model_config = ConfigDict(frozen=True)

    step: int = Field(..., ge=1)
    concurrency: int = Field(..., ge=1)
    stats: LoadTestStats
    saturated: bool = Field(
        False, description="failed > 10% of successful; the sweep stops here"
    )

    @computed_field
    @property
    def failure_ratio(self) -> float:
        total = self.stats.total_queries
        return self.stats.failed_queries / total if total else 0.0


class ProgressEvent(BaseModel):
    """Progress notification emitted after each completed comparison."""

    completed: int = Field(0, ge=0)
    total: Optional[int] = Field(None, description="None for open-ended runs")
    elapsed_seconds: float = 0.0
    current_qps: float = 0.0
    concurrency: Optional[int] = None
    last: Optional[dict[str, Any]] = Field(
        None, description="Summary of the most recent record"
    )
