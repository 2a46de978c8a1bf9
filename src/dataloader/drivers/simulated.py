import asyncio
import logging
import random

from ..errors import OperationError
from ..models import Mode, Operation, Record

logger = logging.getLogger(__name__)


class SimulatedDriver:
    """In-process driver: sleeps a random latency and fails with a fixed probability."""

    name = "simulated"

    def __init__(
        self,
        min_latency_s: float = 0.005,
        max_latency_s: float = 0.05,
        failure_rate: float = 0.0,
        seed: int | None = None,
    ) -> None:
        if not 0 <= min_latency_s <= max_latency_s:
            raise ValueError(
                f"need 0 <= min_latency_s <= max_latency_s, got {min_latency_s} and {max_latency_s}"
            )
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1], got {failure_rate}")
        self.min_latency_s = min_latency_s
        self.max_latency_s = max_latency_s
        self.failure_rate = failure_rate
        self._rng = random.Random(seed)
        self.calls: dict[Mode, int] = {m: 0 for m in Mode}
        logger.debug(
            f"Simulated driver: latency={min_latency_s}-{max_latency_s}s, failure_rate={failure_rate}"
        )

    async def connect(self) -> "SimulatedDriver":
        return self

    async def close(self) -> None:
        pass

    def _operation(self, mode: Mode) -> Operation:
        async def run(record: Record) -> str:
            self.calls[mode] += 1
            await asyncio.sleep(self._rng.uniform(self.min_latency_s, self.max_latency_s))
            if self._rng.random() < self.failure_rate:
                raise OperationError(f"simulated {mode.value} failure for {record.key}")
            return f"{mode.value}:{record.key}"

        return run

    def handlers(self) -> dict[Mode, Operation]:
        return {mode: self._operation(mode) for mode in Mode}
