"""Command-line interface for perf-eval."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from rich.console import Console

from .core.config import LoadTestConfig, StressTestConfig
from .core.metrics import LoadTestMetrics
from .core.regression import RegressionDetector
from .core.benchmarks import BenchmarkStore
from .core.results import (
    render_load_test_summary,
    render_regression,
    render_stress_summary,
    save_json,
)
from .core.service import LoadTestingService
from .settings import PerfEvalSettings
from .utils.errors import PerfEvalError


console = Console()


def parse_headers(values: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated ``Name: value`` options into a dict."""
    headers: Dict[str, str] = {}
    for raw in values or []:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"Invalid header '{raw}', expected 'Name: value'")
        headers[name.strip()] = value.strip()
    return headers


def load_metrics(path: str) -> LoadTestMetrics:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, list):
        if not data:
            raise ValueError(f"{path} contains no results")
        data = data[-1]
    if "metrics" in data and isinstance(data["metrics"], dict):
        data = data["metrics"]
    return LoadTestMetrics.from_dict(data)


def _add_request_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("url", help="Target URL")
    parser.add_argument("--name", help="Test name (defaults to the URL)")
    parser.add_argument("--method", default="GET", help="HTTP method (default: GET)")
    parser.add_argument(
        "-H", "--header",
        action="append",
        dest="headers",
        help="Request header as 'Name: value' (repeatable)",
    )
    parser.add_argument("--json", dest="json_body", help="JSON request body")
    parser.add_argument("--data", help="Raw request body")
    parser.add_argument("--users", type=int, default=10, help="Concurrent virtual users (default: 10)")
    parser.add_argument("--ramp-up", type=float, default=0.0, help="Ramp-up time in seconds")
    parser.add_argument("--think-time", type=float, default=0.0, help="Milliseconds between a user's requests")
    parser.add_argument("--output", help="Write results as JSON to this file")


def _base_config(args: argparse.Namespace) -> Dict[str, Any]:
    body: Any = None
    if args.json_body is not None:
        body = json.loads(args.json_body)
    elif args.data is not None:
        body = args.data
    return {
        "name": args.name or args.url,
        "target_url": args.url,
        "method": args.method,
        "headers": parse_headers(args.headers),
        "body": body,
        "concurrent_users": args.users,
        "ramp_up_time": args.ramp_up,
        "think_time": args.think_time,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="perf-eval",
        description="Load test an HTTP endpoint and detect performance regressions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 30 second run with 20 users, saved as the baseline
  perf-eval run https://api.example.com/health --duration 30 --users 20 \\
           --save-benchmark nightly --baseline --output baseline.json

  # Escalate from 10 to 200 users in steps of 10 until 5% of requests fail
  perf-eval stress https://api.example.com/search --users 10 --max-users 200 \\
           --step 10 --interval 15 --failure-threshold 5

  # Compare a new run against the baseline (exit code 1 on regression)
  perf-eval compare current.json baseline.json
        """,
    )
    parser.add_argument("--log-level", help="Logging level (default from PERF_EVAL_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a single load test")
    _add_request_arguments(run_parser)
    run_parser.add_argument("--duration", type=float, default=30.0, help="Duration in seconds (default: 30)")
    run_parser.add_argument(
        "--save-benchmark",
        metavar="NAME",
        help="Save the run as a named benchmark; --output then writes the benchmark",
    )
    run_parser.add_argument("--baseline", action="store_true", help="Flag the saved benchmark as a baseline")

    stress_parser = subparsers.add_parser("stress", help="Run an escalating stress test")
    _add_request_arguments(stress_parser)
    stress_parser.add_argument("--max-users", type=int, required=True, help="Highest concurrency to try")
    stress_parser.add_argument("--step", type=int, default=10, help="Users added per step (default: 10)")
    stress_parser.add_argument("--interval", type=float, default=30.0, help="Seconds per step (default: 30)")
    stress_parser.add_argument(
        "--failure-threshold",
        type=float,
        default=5.0,
        help="Stop once more than this percent of requests fail (default: 5)",
    )

    compare_parser = subparsers.add_parser("compare", help="Compare saved results against a baseline")
    compare_parser.add_argument("current", help="JSON file with the current run's metrics")
    compare_parser.add_argument("baseline", help="JSON file with the baseline metrics")

    return parser


async def _run(args: argparse.Namespace, settings: PerfEvalSettings) -> int:
    config = LoadTestConfig(**_base_config(args), duration=args.duration)
    async with LoadTestingService(settings=settings) as service:
        metrics = await service.run_load_test(config)
        benchmark = None
        if args.save_benchmark:
            benchmark = service.save_benchmark(args.save_benchmark, metrics, baseline=args.baseline)
    render_load_test_summary(metrics, console)
    if args.output:
        data = benchmark.to_dict() if benchmark else metrics.to_dict()
        path = save_json(data, args.output)
        console.print(f"[blue]Results saved to:[/blue] {path}")
    return 0


async def _stress(args: argparse.Namespace, settings: PerfEvalSettings) -> int:
    config = StressTestConfig(
        **_base_config(args),
        max_users=args.max_users,
        user_increment_step=args.step,
        user_increment_interval=args.interval,
        failure_threshold_percent=args.failure_threshold,
    )
    async with LoadTestingService(settings=settings) as service:
        results = await service.run_stress_test(config)
    render_stress_summary(results, console, failure_threshold_percent=config.failure_threshold_percent)
    if args.output:
        path = save_json([m.to_dict() for m in results], args.output)
        console.print(f"[blue]Results saved to:[/blue] {path}")
    return 0


def _compare(args: argparse.Namespace, settings: PerfEvalSettings) -> int:
    current = load_metrics(args.current)
    baseline = load_metrics(args.baseline)

    store = BenchmarkStore()
    store.save(Path(args.baseline).stem, baseline, baseline=True)
    detection = RegressionDetector(store, settings.regression_thresholds()).detect(current)
    render_regression(detection, console)
    return 1 if detection.detected else 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = PerfEvalSettings()
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "run":
            return asyncio.run(_run(args, settings))
        if args.command == "stress":
            return asyncio.run(_stress(args, settings))
        return _compare(args, settings)
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        return 130
    except (PerfEvalError, ValueError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
