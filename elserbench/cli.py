"""Command-line entry point for running ElserBench tests without the API server."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from elserbench.config import settings
from elserbench.connectors.search_client import build_default_clients
from elserbench.core import report
from elserbench.core.benchmark import run_benchmark
from elserbench.core.comparator import Comparator
from elserbench.core.load_driver import LoadDriver
from elserbench.core.results_store import save_results
from elserbench.core.stress import StressSweepController, select_best_step
from elserbench.models.metrics import ProgressEvent, StressStepResult
from elserbench.models.test_config import (
    BenchmarkConfig,
    CompareConfig,
    ConcurrentRunConfig,
    LoadTestConfig,
    StressTestConfig,
)

logger = logging.getLogger("elserbench.cli")


def _add_queries(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-q",
        "--queries",
        nargs="+",
        default=None,
        help="Query pool (default: DEFAULT_QUERIES setting).",
    )


def _add_save(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--save",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Write results JSON to RESULTS_DIR (default: SAVE_RESULTS setting).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="elserbench",
        description="Compare ELSER search latency between EIS and ML Node deployments.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ...).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("compare", help="Run one query against both targets.")
    p.add_argument("query", nargs="?", default="love", help="Query text.")

    p = sub.add_parser("benchmark", help="Sequential iterations per query.")
    _add_queries(p)
    p.add_argument("-i", "--iterations", type=int, default=5)
    _add_save(p)

    p = sub.add_parser("multi-thread", help="Fixed number of concurrent comparisons.")
    _add_queries(p)
    p.add_argument("-c", "--concurrency", type=int, default=None)
    p.add_argument("-n", "--count", type=int, default=50, help="Comparisons to issue.")
    _add_save(p)

    p = sub.add_parser("load-test", help="Sustained load for a fixed duration.")
    _add_queries(p)
    p.add_argument("-c", "--concurrency", type=int, default=None)
    p.add_argument(
        "-d", "--duration", type=float, default=None, help="Duration in seconds."
    )
    p.add_argument("--qps", type=float, default=None, help="Target queries per second.")
    _add_save(p)

    p = sub.add_parser("stress-test", help="Escalating concurrency sweep.")
    _add_queries(p)
    p.add_argument("--start", type=int, default=5, help="Starting concurrency.")
    p.add_argument("--max", type=int, default=50, help="Maximum concurrency.")
    p.add_argument("--increment", type=int, default=5, help="Concurrency step size.")
    p.add_argument(
        "-d", "--duration", type=float, default=10.0, help="Seconds per step."
    )
    _add_save(p)

    p = sub.add_parser("serve", help="Run the API server.")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)
    p.add_argument("--reload", action="store_true", default=None)

    return parser


def build_config(args: argparse.Namespace) -> Any:
    """Translate parsed arguments into the matching config model."""
    common: dict[str, Any] = {}
    if getattr(args, "queries", None):
        common["queries"] = tuple(args.queries)
    if getattr(args, "concurrency", None) is not None:
        common["concurrency"] = args.concurrency

    if args.command == "compare":
        return CompareConfig(query=args.query)
    if args.command == "benchmark":
        return BenchmarkConfig(iterations=args.iterations, **common)
    if args.command == "multi-thread":
        return ConcurrentRunConfig(total_queries=args.count, **common)
    if args.command == "load-test":
        if args.duration is not None:
            common["duration_ms"] = int(args.duration * 1000)
        return LoadTestConfig(target_qps=args.qps, **common)
    if args.command == "stress-test":
        return StressTestConfig(
            start_concurrency=args.start,
            max_concurrency=args.max,
            step_size=args.increment,
            step_duration_ms=int(args.duration * 1000),
            **common,
        )
    raise ValueError(f"Unknown command: {args.command}")


def _print_progress(event: ProgressEvent) -> None:
    total = f"/{event.total}" if event.total else ""
    print(
        f"\r  {event.completed}{total} queries, {event.current_qps:.1f} qps",
        end="",
        file=sys.stderr,
        flush=True,
    )


def _print_step(step: StressStepResult) -> None:
    print(file=sys.stderr)
    print(
        f"  step {step.step}: concurrency={step.concurrency} "
        f"qps={step.stats.actual_qps:.2f} failed={step.stats.failed_queries}",
        file=sys.stderr,
    )


async def _run(config: Any, *, save: bool) -> int:
    comparator = Comparator(*build_default_clients())
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except NotImplementedError:
        pass

    try:
        driver = LoadDriver(comparator)
        results: Any
        if isinstance(config, CompareConfig):
            record = await comparator.compare(config.query)
            print(report.format_comparison(record))
            return 0 if record.ok else 1
        if isinstance(config, BenchmarkConfig):
            results = await run_benchmark(comparator, config, on_progress=_print_progress)
            print(file=sys.stderr)
            print(report.format_benchmark(results))
        elif isinstance(config, ConcurrentRunConfig):
            outcome = await driver.run_concurrent(config, on_progress=_print_progress)
            print(file=sys.stderr)
            print(report.format_run_stats(outcome.stats, "Multi-thread results"))
            results = {"stats": outcome.stats, "records": outcome.records}
        elif isinstance(config, LoadTestConfig):
            outcome = await driver.run_load(
                config, cancel_event=cancel_event, on_progress=_print_progress
            )
            print(file=sys.stderr)
            print(report.format_run_stats(outcome.stats, "Load test results"))
            results = {
                "stats": outcome.stats,
                "cancelled": outcome.cancelled,
                "records": outcome.records,
            }
        else:
            steps = await StressSweepController(driver).run_stress(
                config, cancel_event=cancel_event, on_step=_print_step
            )
            print(report.format_stress(steps))
            results = {"steps": steps, "best": select_best_step(steps)}

        if save:
            path = save_results(config.test_type, results)
            print(f"Results saved to {path}")
        return 0
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass
        await comparator.aclose()


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "elserbench.main:app",
        host=args.host or settings.APP_HOST,
        port=args.port or settings.APP_PORT,
        reload=bool(args.reload if args.reload is not None else settings.APP_RELOAD),
        log_level=settings.LOG_LEVEL.lower(),
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    level = (args.log_level or settings.LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=settings.LOG_FORMAT)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if args.command == "serve":
        return _serve(args)

    try:
        config = build_config(args)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    save = settings.SAVE_RESULTS if getattr(args, "save", None) is None else args.save
    try:
        return asyncio.run(_run(config, save=save))
    except KeyboardInterrupt:
        print("[elserbench] interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
