import logging
import math
from collections.abc import AsyncIterable, Iterable

from .models import DistributionSummary, Result, RunStats

logger = logging.getLogger(__name__)

PERCENTILES = {"p50": 0.50, "p90": 0.90, "p95": 0.95, "p99": 0.99}


def nearest_rank(sorted_values: list[float], p: float) -> float:
    """Nearest-rank percentile: the value at 1-based rank ceil(p * n)."""
    n = len(sorted_values)
    if not n:
        return 0.0
    # Absorb float noise such as 0.07 * 100 == 7.000000000000001.
    rank = math.ceil(round(p * n, 9))
    return sorted_values[max(0, min(n - 1, rank - 1))]


class StreamingSummary:
    """
    Incremental latency summary.

    Mean and variance use Welford's update so nothing is re-scanned. The
    percentiles are exact, which needs the raw samples: they are kept as
    plain floats and sorted once in ``summary()``.
    """

    def __init__(self) -> None:
        self.count = 0
        self.mean = 0.0
        self._m2 = 0.0
        self.min: float | None = None
        self.max: float | None = None
        self._samples: list[float] = []

    def add(self, value: float) -> None:
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self._m2 += delta * (value - self.mean)
        if self.min is None or value < self.min:
            self.min = value
        if self.max is None or value > self.max:
            self.max = value
        self._samples.append(value)

    @property
    def stddev(self) -> float:
        if self.count < 2:
            return 0.0
        return math.sqrt(self._m2 / (self.count - 1))

    def summary(self) -> DistributionSummary:
        if not self.count:
            return DistributionSummary()
        ordered = sorted(self._samples)
        return DistributionSummary(
            count=self.count,
            min=self.min,
            mean=self.mean,
            stddev=self.stddev,
            max=self.max,
            **{name: nearest_rank(ordered, p) for name, p in PERCENTILES.items()},
        )


def summarize(durations: Iterable[float]) -> DistributionSummary:
    acc = StreamingSummary()
    for d in durations:
        acc.add(d)
    return acc.summary()


class StatsAggregator:
    """Single-pass fold of a result stream: latency summary plus success and failure counts."""

    def __init__(self) -> None:
        self.durations = StreamingSummary()
        self.successes = 0
        self.failures = 0

    def add(self, result: Result) -> None:
        self.durations.add(result.duration_ms)
        if result.success is True:
            self.successes += 1
        elif result.success is False:
            self.failures += 1

    def stats(self) -> RunStats:
        return RunStats.from_summary(self.durations.summary(), self.successes, self.failures)


async def aggregate(subscription: AsyncIterable[Result]) -> RunStats:
    aggregator = StatsAggregator()
    async for result in subscription:
        aggregator.add(result)
    stats = aggregator.stats()
    logger.debug(
        f"Stats computed: count={stats.count}, successes={stats.successes}, "
        f"failures={stats.failures}, mean={stats.mean:.3f}ms, p95={stats.p95:.3f}ms"
    )
    return stats
