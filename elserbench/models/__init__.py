"""
Data models for ElserBench.

This package contains Pydantic models for:
- Per-test-type configurations
- Query results and paired comparisons
- Aggregated latency and throughput metrics
"""

from elserbench.models.test_config import (
    CompareConfig,
    BenchmarkConfig,
    ConcurrentRunConfig,
    LoadTestConfig,
    StressTestConfig,
    TestConfig,
)

from elserbench.models.test_result import (
    TestStatus,
    HitSummary,
    QueryResult,
    Comparison,
    ComparisonRecord,
    BenchmarkQueryResult,
)

from elserbench.models.metrics import (
    LatencyStats,
    RunStats,
    LoadTestStats,
    ConcurrentRunStats,
    StressStepResult,
    ProgressEvent,
)

__all__ = [
    # test_config
    "CompareConfig",
    "BenchmarkConfig",
    "ConcurrentRunConfig",
    "LoadTestConfig",
    "StressTestConfig",
    "TestConfig",
    # test_result
    "TestStatus",
    "HitSummary",
    "QueryResult",
    "Comparison",
    "ComparisonRecord",
    "BenchmarkQueryResult",
    # metrics
    "LatencyStats",
    "RunStats",
    "LoadTestStats",
    "ConcurrentRunStats",
    "StressStepResult",
    "ProgressEvent",
]
