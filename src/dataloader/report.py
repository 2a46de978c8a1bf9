import csv
import json
import logging
import os
from typing import Any

from rich.console import Console
from rich.table import Table

from .errors import ConfigurationError
from .models import STAT_FIELDS, BenchmarkReport, RunError, RunStats

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("concurrency", "mode", *STAT_FIELDS, "error")


def stats_table(rows: list[tuple[str, RunStats | RunError]], title: str | None = None) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("run", style="cyan")
    for name in STAT_FIELDS:
        table.add_column(name, justify="right")
    for label, outcome in rows:
        if isinstance(outcome, RunError):
            table.add_row(label, f"[red]error: {outcome.message}[/red]", *[""] * (len(STAT_FIELDS) - 1))
            continue
        values = outcome.rounded()
        table.add_row(label, *(str(values[name]) for name in STAT_FIELDS))
    return table


def render_stats(stats: RunStats, label: str = "run", console: Console | None = None) -> None:
    (console or Console()).print(stats_table([(label, stats)]))


def render_report(report: BenchmarkReport, console: Console | None = None) -> None:
    rows = [(f"{mode} @ {c}", outcome) for c, mode, outcome in report.entries()]
    (console or Console()).print(stats_table(rows, title=f"Benchmark {report.timestamp}"))


# ────────────────────────────────
# File sinks
# ────────────────────────────────


def _csv_rows(payload: RunStats | BenchmarkReport) -> list[dict[str, Any]]:
    if isinstance(payload, RunStats):
        return [payload.rounded()]
    rows = []
    for concurrency, mode, outcome in payload.entries():
        row: dict[str, Any] = {"concurrency": concurrency, "mode": mode}
        if isinstance(outcome, RunError):
            row["error"] = outcome.message
        else:
            row.update(outcome.rounded())
        rows.append(row)
    return rows


def write_json_report(payload: RunStats | BenchmarkReport, output_file: str) -> None:
    data = payload.rounded() if isinstance(payload, RunStats) else payload.to_dict()
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def write_csv_report(payload: RunStats | BenchmarkReport, output_file: str) -> None:
    with open(output_file, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS, restval="")
        writer.writeheader()
        writer.writerows(_csv_rows(payload))


WRITERS = {".json": write_json_report, ".csv": write_csv_report}


def check_output_file(output_file: str) -> None:
    suffix = os.path.splitext(output_file)[1].lower()
    if suffix not in WRITERS:
        raise ConfigurationError(f"Unsupported report format '{suffix}' (use .json or .csv)")


def write_report(payload: RunStats | BenchmarkReport, output_file: str) -> None:
    check_output_file(output_file)
    writer = WRITERS[os.path.splitext(output_file)[1].lower()]
    writer(payload, output_file)
    logger.info(f"Results written to {output_file}")
