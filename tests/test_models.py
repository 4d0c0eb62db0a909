"""
Unit tests for Pydantic models (configs, results, metrics).
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from elserbench.config import settings
from elserbench.models import (
    BenchmarkConfig,
    CompareConfig,
    ConcurrentRunConfig,
    LatencyStats,
    LoadTestConfig,
    LoadTestStats,
    QueryResult,
    StressStepResult,
    StressTestConfig,
)


def test_load_config_defaults_come_from_settings() -> None:
    cfg = LoadTestConfig()
    assert cfg.queries == tuple(settings.DEFAULT_QUERIES)
    assert cfg.concurrency == settings.DEFAULT_CONCURRENCY
    assert cfg.duration_ms == settings.DEFAULT_TEST_DURATION * 1000
    assert cfg.duration_seconds == settings.DEFAULT_TEST_DURATION
    assert cfg.target_qps is None
    assert cfg.test_type == "load"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"queries": ()},
        {"queries": ("love", "  ")},
        {"duration_ms": 0},
        {"concurrency": 0},
        {"target_qps": 0},
        {"target_qps": -1.0},
        {"unexpected": True},
    ],
)
def test_load_config_rejects_invalid_values(kwargs) -> None:
    with pytest.raises(ValidationError):
        LoadTestConfig(**kwargs)


def test_configs_are_frozen() -> None:
    cfg = LoadTestConfig(queries=("a",))
    with pytest.raises(ValidationError):
        cfg.concurrency = 99


def test_queries_are_stripped() -> None:
    assert BenchmarkConfig(queries=(" love ", "king")).queries == ("love", "king")


def test_stress_config_range() -> None:
    cfg = StressTestConfig(start_concurrency=5, max_concurrency=50, step_size=5)
    assert cfg.step_levels() == [5, 10, 15, 20, 25, 30, 35, 40, 45, 50]

    with pytest.raises(ValidationError):
        StressTestConfig(start_concurrency=10, max_concurrency=5)
    with pytest.raises(ValidationError):
        StressTestConfig(step_size=0)


def test_other_config_defaults() -> None:
    assert CompareConfig().query == "love"
    assert BenchmarkConfig().iterations == 5
    run = ConcurrentRunConfig()
    assert run.total_queries == 50
    assert run.test_type == "multithread"
    with pytest.raises(ValidationError):
        ConcurrentRunConfig(total_queries=0)


def test_query_result_properties() -> None:
    ok = QueryResult(target="EIS", model_id="m", query="q", duration_ms=5.0, hits=9)
    failed = QueryResult(
        target="EIS", model_id="m", query="q", duration_ms=5.0, hits=9, error="boom"
    )
    assert ok.ok and ok.effective_hits == 9
    assert not failed.ok and failed.effective_hits == 0

    with pytest.raises(ValidationError):
        QueryResult(target="EIS", model_id="m", query="q", duration_ms=-1.0)


def test_stress_step_failure_ratio() -> None:
    stats = LoadTestStats(
        duration_seconds=1.0,
        concurrency=5,
        total_queries=20,
        successful_queries=15,
        failed_queries=5,
        actual_qps=20.0,
    )
    step = StressStepResult(step=1, concurrency=5, stats=stats)
    assert step.failure_ratio == 0.25

    empty = StressStepResult(
        step=2, concurrency=10, stats=LoadTestStats(duration_seconds=0.0, concurrency=10)
    )
    assert empty.failure_ratio == 0.0


def test_latency_stats_default_is_undefined() -> None:
    stats = LatencyStats()
    assert stats.count == 0
    assert stats.avg is None and stats.p99 is None


def test_stress_step_dump_includes_failure_ratio() -> None:
    stats = LoadTestStats(
        duration_seconds=1.0,
        concurrency=5,
        total_queries=10,
        successful_queries=9,
        failed_queries=1,
        actual_qps=10.0,
    )
    dumped = StressStepResult(step=1, concurrency=5, stats=stats).model_dump(mode="json")
    assert dumped["failure_ratio"] == 0.1
