#!/usr/bin/env python3
# cli.py: command line entry point for the data loader

import argparse
import asyncio
import logging
import sys

from rich.console import Console

from dataloader.config import build_options, load_test_matrix
from dataloader.errors import BenchmarkAborted, ConfigurationError, DataLoaderError
from dataloader.loader import source_factory
from dataloader.logging_config import setup_logging
from dataloader.models import Mode
from dataloader.orchestrator import BenchmarkOrchestrator
from dataloader.report import check_output_file, render_report, render_stats, write_report
from dataloader.utils import GracefulKiller

logger = logging.getLogger("dataloader")

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def parse_args(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        description="Drive record operations against a service with bounded concurrency and report latency stats",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "path",
        help="Input records: .jsonl/.ndjson (one object per line), .json (array) or .csv",
    )

    # Operation
    parser.add_argument(
        "-m",
        "--mode",
        choices=[m.value for m in Mode],
        default=Mode.LOAD.value,
        help="Operation to run against every record",
    )
    parser.add_argument(
        "-c",
        "--concurrency",
        type=int,
        default=16,
        help="Maximum number of operations in flight",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML test matrix ('tests' modes x 'concurrency' levels); overrides --mode/--concurrency",
    )

    # Driver
    parser.add_argument(
        "--driver",
        choices=["http", "simulated"],
        default="simulated",
        help="Backend the operations run against",
    )
    parser.add_argument("--url", default=None, help="Base URL for the http driver")
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Per-request timeout in seconds (http driver)",
    )
    parser.add_argument("--sim-min-latency", type=float, default=0.005, help="Simulated minimum latency (s)")
    parser.add_argument("--sim-max-latency", type=float, default=0.05, help="Simulated maximum latency (s)")
    parser.add_argument("--sim-failure-rate", type=float, default=0.0, help="Simulated failure probability")
    parser.add_argument("--sim-seed", type=int, default=None, help="Seed for the simulated driver")

    # Reporting
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the progress bar",
    )
    parser.add_argument(
        "--verbose-errors",
        action="store_true",
        help="Log every failed record at ERROR instead of TRACE",
    )
    parser.add_argument(
        "--fatal-errors",
        action="store_true",
        help="Exit non-zero on any failure; abort a benchmark at the first failed run",
    )
    parser.add_argument(
        "-o",
        "--output-file",
        default=None,
        help="Write the stats or benchmark report to this .json or .csv file",
    )

    # Logging & Debugging
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging threshold",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Optional file to write logs to (e.g., dataloader.log)",
    )

    return parser.parse_args(argv)


async def run(argv: list[str] | None = None, console: Console | None = None) -> int:
    args = parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file)
    console = console or Console()
    killer = GracefulKiller()
    try:
        return await _run(args, console, killer)
    finally:
        killer.restore()


async def _run(args, console: Console, killer: GracefulKiller) -> int:
    try:
        options = build_options(
            mode=args.mode,
            concurrency=args.concurrency,
            progress=not args.no_progress,
            verbose_errors=args.verbose_errors,
            fatal_errors=args.fatal_errors,
            driver=args.driver,
            url=args.url,
            request_timeout_s=args.timeout,
            sim_min_latency_s=args.sim_min_latency,
            sim_max_latency_s=args.sim_max_latency,
            sim_failure_rate=args.sim_failure_rate,
            sim_seed=args.sim_seed,
            output_file=args.output_file,
        )
        if options.output_file:
            check_output_file(options.output_file)
        matrix = load_test_matrix(args.config) if args.config else None
        records = source_factory(args.path)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG

    orchestrator = BenchmarkOrchestrator(options, should_stop=killer, console=console)

    try:
        if matrix is not None:
            report = await orchestrator.run(matrix.tests, matrix.concurrency, records)
            render_report(report, console)
            payload = report
            failed = report.has_errors or report.total_failures > 0
        else:
            logger.info(
                f"Starting {options.mode.value} with concurrency {options.concurrency} "
                f"against the {options.driver} driver"
            )
            stats = await orchestrator.run_one(options.mode, options.concurrency, records)
            render_stats(stats, label=options.mode.value, console=console)
            payload = stats
            failed = stats.failures > 0
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG
    except BenchmarkAborted as e:
        logger.error(f"Benchmark aborted: {e}")
        return EXIT_FAILURES
    except DataLoaderError as e:
        logger.error(f"Exception detected: {e}")
        return EXIT_FAILURES
    except Exception as e:
        logger.error(f"Exception detected: {e!r}")
        return EXIT_FAILURES

    if options.output_file:
        try:
            write_report(payload, options.output_file)
        except OSError as e:
            logger.error(f"Failed to write results to file: {e}")
            return EXIT_FAILURES

    if killer.kill_now:
        return EXIT_INTERRUPTED
    if options.fatal_errors and failed:
        return EXIT_FAILURES
    return EXIT_OK


def main():
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
