import asyncio

import pytest

from dataloader.loader import RecordSource, from_records
from dataloader.models import Record


def make_records(n: int) -> list[Record]:
    return [Record(key=f"user{i}@example.com", data={"Email": f"user{i}@example.com", "n": i}) for i in range(n)]


@pytest.fixture
def records_factory():
    def factory(n: int) -> RecordSource:
        return from_records(make_records(n))

    return factory


class OverlapCounter:
    """Operation that tracks how many invocations are running at once."""

    def __init__(self, delay: float = 0.002, fail_keys: set[str] | None = None):
        self.delay = delay
        self.fail_keys = fail_keys or set()
        self.running = 0
        self.max_running = 0
        self.calls = 0

    async def __call__(self, record: Record):
        self.calls += 1
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            await asyncio.sleep(self.delay)
            if record.key in self.fail_keys:
                raise RuntimeError(f"boom {record.key}")
            return record.key
        finally:
            self.running -= 1


@pytest.fixture
def counter():
    return OverlapCounter()
