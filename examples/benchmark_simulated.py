"""
Quick sanity run: sweep two modes over three concurrency levels against the
simulated driver and print the report.
Run: uv run examples/benchmark_simulated.py
"""
import asyncio
import os

from dataloader.config import LoaderOptions
from dataloader.loader import from_records
from dataloader.models import Mode
from dataloader.orchestrator import BenchmarkOrchestrator
from dataloader.report import render_report

RECORDS = [{"Email": f"user{i}@example.com", "FirstName": f"User{i}"} for i in range(200)]


async def main():
    options = LoaderOptions(
        driver="simulated",
        sim_min_latency_s=0.002,
        sim_max_latency_s=0.02,
        sim_failure_rate=float(os.getenv("SIM_FAILURE_RATE", "0.05")),
        sim_seed=7,
    )
    orchestrator = BenchmarkOrchestrator(options)
    report = await orchestrator.run(
        [Mode.CREATE, Mode.QUERY],
        [1, 8, 32],
        lambda: from_records(RECORDS),
    )
    render_report(report)


if __name__ == "__main__":
    asyncio.run(main())
