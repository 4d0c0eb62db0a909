"""
Global pytest configuration and fixtures for ElserBench tests.

This module provides:
- Fake query executors with controllable latency and failures
- Comparator factories built on the fakes
- FastAPI test client fixtures wired to fake targets
"""

from __future__ import annotations

import asyncio
import os
from typing import Callable, Optional, Union

# Keep test runs from writing result files into the working directory.
os.environ.setdefault("SAVE_RESULTS", "false")

import pytest
from fastapi.testclient import TestClient

from elserbench.core.comparator import Comparator
from elserbench.models.test_result import HitSummary, QueryResult


# =============================================================================
# Fake Query Executors
# =============================================================================


class InFlightTracker:
    """Counts executor calls that are running at the same time."""

    def __init__(self) -> None:
        self.in_flight = 0
        self.peak = 0

    def enter(self) -> None:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)

    def exit(self) -> None:
        self.in_flight -= 1


class FakeExecutor:
    """
    In-memory QueryExecutor.

    ``duration_ms`` is the reported duration; ``latency`` is how long the call
    really takes (seconds). ``fail`` is a bool or a predicate on the query.
    """

    def __init__(
        self,
        target: str,
        *,
        model_id: Optional[str] = None,
        duration_ms: float = 10.0,
        latency: float = 0.0,
        fail: Union[bool, Callable[[str], bool]] = False,
        raise_exc: Optional[BaseException] = None,
        hits: int = 3,
        tracker: Optional[InFlightTracker] = None,
    ) -> None:
        self.target = target
        self.model_id = model_id or f"{target.lower().replace(' ', '-')}-model"
        self.duration_ms = duration_ms
        self.latency = latency
        self.fail = fail
        self.raise_exc = raise_exc
        self.hits = hits
        self.tracker = tracker
        self.calls: list[str] = []
        self.call_times: list[float] = []
        self.closed = False

    async def execute(self, query: str) -> QueryResult:
        self.calls.append(query)
        self.call_times.append(asyncio.get_running_loop().time())
        if self.tracker is not None:
            self.tracker.enter()
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
            if self.raise_exc is not None:
                raise self.raise_exc
            failed = self.fail(query) if callable(self.fail) else self.fail
            if failed:
                return QueryResult(
                    target=self.target,
                    model_id=self.model_id,
                    query=query,
                    duration_ms=self.duration_ms,
                    error="simulated failure",
                )
            return QueryResult(
                target=self.target,
                model_id=self.model_id,
                query=query,
                duration_ms=self.duration_ms,
                hits=self.hits,
                top_results=[HitSummary(score=1.0, play="Hamlet", speaker="HAMLET", text=query)],
            )
        finally:
            if self.tracker is not None:
                self.tracker.exit()

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def tracker() -> InFlightTracker:
    return InFlightTracker()


@pytest.fixture
def make_comparator() -> Callable[..., Comparator]:
    """
    Factory fixture for comparators over two fake executors.

    Usage:
        comparator = make_comparator(a={"latency": 0.01}, b={"fail": True})
    """

    def _make(
        a: Optional[dict] = None,
        b: Optional[dict] = None,
        tracker: Optional[InFlightTracker] = None,
    ) -> Comparator:
        a_kwargs = {"tracker": tracker, **(a or {})}
        b_kwargs = {"tracker": tracker, **(b or {})}
        return Comparator(
            FakeExecutor("EIS", **a_kwargs),
            FakeExecutor("ML Node", **b_kwargs),
        )

    return _make


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest.fixture
def client():
    """
    Synchronous FastAPI test client against fake targets.

    Runs the app lifespan so the registry is available on ``app.state``.
    """
    from elserbench.main import create_app

    app = create_app(
        comparator_factory=lambda: Comparator(
            FakeExecutor("EIS", latency=0.005, duration_ms=12.0),
            FakeExecutor("ML Node", latency=0.005, duration_ms=30.0),
        )
    )
    with TestClient(app) as test_client:
        yield test_client


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "websocket: marks tests that test WebSocket functionality",
    )
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )
