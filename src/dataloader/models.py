from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from .utils import round_to


class Mode(str, Enum):
    CREATE = "create"
    LOAD = "load"
    QUERY = "query"
    DELETE = "delete"


@dataclass(frozen=True)
class Record:
    key: str
    data: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Success:
    value: Any = None


@dataclass(frozen=True)
class Failure:
    error: BaseException


Outcome = Union[Success, Failure]

# Operation function: one record in, awaitable payload out. Raising means failure.
Operation = Callable[[Record], Awaitable[Any]]


@dataclass(frozen=True)
class ErrorInfo:
    type: str
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorInfo":
        return cls(type=type(exc).__name__, message=str(exc))


@dataclass(frozen=True)
class Result:
    key: str
    success: bool
    duration_ms: float
    error: Optional[ErrorInfo] = None


@dataclass
class DistributionSummary:
    count: int = 0
    min: float = 0.0
    mean: float = 0.0
    stddev: float = 0.0
    p50: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    max: float = 0.0


# Report column order, shared by the terminal table and the file writers.
STAT_FIELDS = (
    "successes",
    "failures",
    "min",
    "mean",
    "stddev",
    "p50",
    "p90",
    "p95",
    "p99",
    "max",
    "total_duration",
    "rate",
    "count",
)


@dataclass
class RunStats(DistributionSummary):
    successes: int = 0
    failures: int = 0
    total_duration_ms: float = 0.0
    rate: float = 0.0

    @classmethod
    def from_summary(
        cls, summary: DistributionSummary, successes: int, failures: int
    ) -> "RunStats":
        values = {f.name: getattr(summary, f.name) for f in fields(DistributionSummary)}
        return cls(**values, successes=successes, failures=failures)

    def finish(self, total_duration_ms: float) -> "RunStats":
        self.total_duration_ms = total_duration_ms
        if total_duration_ms > 0:
            self.rate = self.successes / (total_duration_ms / 1000)
        else:
            self.rate = 0.0
        return self

    def rounded(self) -> dict[str, Any]:
        """Report view: time fields to 3 decimals, rate to 2."""
        out: dict[str, Any] = {
            "successes": self.successes,
            "failures": self.failures,
        }
        for name in ("min", "mean", "stddev", "p50", "p90", "p95", "p99", "max"):
            out[name] = round_to(3, getattr(self, name))
        out["total_duration"] = round_to(3, self.total_duration_ms)
        out["rate"] = round_to(2, self.rate)
        out["count"] = self.count
        return out


@dataclass(frozen=True)
class RunError:
    mode: str
    message: str

    def rounded(self) -> dict[str, Any]:
        return {"error": True, "mode": self.mode, "message": self.message}


RunOutcome = Union[RunStats, RunError]


@dataclass
class ConcurrencyResults:
    concurrency: int
    tests: dict[str, RunOutcome] = field(default_factory=dict)


@dataclass
class BenchmarkReport:
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    results: list[ConcurrencyResults] = field(default_factory=list)

    def entries(self) -> list[tuple[int, str, RunOutcome]]:
        return [
            (group.concurrency, mode, outcome)
            for group in self.results
            for mode, outcome in group.tests.items()
        ]

    @property
    def has_errors(self) -> bool:
        return any(isinstance(o, RunError) for _, _, o in self.entries())

    @property
    def total_failures(self) -> int:
        return sum(o.failures for _, _, o in self.entries() if isinstance(o, RunStats))

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "results": [
                {
                    "concurrency": group.concurrency,
                    "tests": {
                        mode: outcome.rounded()
                        for mode, outcome in sorted(group.tests.items())
                    },
                }
                for group in self.results
            ],
        }
