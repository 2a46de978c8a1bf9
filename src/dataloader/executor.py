import asyncio
import logging
from collections.abc import AsyncIterable, Callable, Iterable

from .broadcast import BroadcastHub
from .errors import EngineError
from .logging_config import TRACE
from .models import ErrorInfo, Failure, Operation, Outcome, Record, Result, Success
from .utils import duration_ms, now

logger = logging.getLogger(__name__)


async def _iterate(records: Iterable[Record] | AsyncIterable[Record]):
    if isinstance(records, AsyncIterable):
        async for record in records:
            yield record
    else:
        for record in records:
            yield record


class BoundedExecutor:
    """
    Runs an operation over a record stream with at most ``concurrency``
    invocations in flight, publishing one timed Result per record to a
    BroadcastHub and closing it once every in-flight operation has settled.
    """

    def __init__(
        self,
        op: Operation,
        concurrency: int,
        verbose_errors: bool = False,
        log: logging.Logger | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.op = op
        self.concurrency = concurrency
        self.verbose_errors = verbose_errors
        self.log = log or logger
        self.should_stop = should_stop
        self._slots = asyncio.Semaphore(concurrency)
        self.in_flight = 0
        self.emitted = 0
        self._task_errors: list[BaseException] = []

    # ────────────────────────────────
    # Per-record stages
    # ────────────────────────────────

    async def _invoke(self, record: Record) -> Outcome:
        try:
            return Success(await self.op(record))
        except Exception as e:
            return Failure(e)

    def _wrap(self, record: Record, outcome: Outcome, elapsed_ms: float) -> Result:
        if isinstance(outcome, Success):
            self.log.log(TRACE, f"success for {record.key} in {elapsed_ms:.3f} msecs")
            return Result(record.key, True, elapsed_ms)

        level = logging.ERROR if self.verbose_errors else TRACE
        self.log.log(level, f"{record.key}: {outcome.error!r} ({elapsed_ms:.3f} msecs)")
        return Result(record.key, False, elapsed_ms, ErrorInfo.from_exception(outcome.error))

    async def _process(self, record: Record, hub: BroadcastHub[Result]) -> None:
        self.in_flight += 1
        try:
            start = now()
            outcome = await self._invoke(record)
            elapsed = duration_ms(now(), start)
        finally:
            self.in_flight -= 1
        try:
            await hub.publish(self._wrap(record, outcome, elapsed))
            self.emitted += 1
        finally:
            self._slots.release()

    def _stop_requested(self, dispatched: int, n: int) -> bool:
        if self.should_stop is None or not self.should_stop():
            return False
        if dispatched < n:
            self.log.warning(f"Stop requested after dispatching {dispatched}/{n} records")
        return True

    def _settled(self, tasks: set[asyncio.Task]):
        def callback(task: asyncio.Task) -> None:
            tasks.discard(task)
            if not task.cancelled() and task.exception() is not None:
                self._task_errors.append(task.exception())

        return callback

    # ────────────────────────────────
    # Main loop
    # ────────────────────────────────

    async def execute(
        self,
        records: Iterable[Record] | AsyncIterable[Record],
        n: int,
        hub: BroadcastHub[Result],
    ) -> int:
        """Drive every record through the operation. Returns the number of Results emitted."""
        self.log.debug(f"launching {n} records with concurrency {self.concurrency}")
        tasks: set[asyncio.Task] = set()
        dispatched = 0
        try:
            # The stop flag is checked before the next record is pulled, so
            # every record taken from the source gets a Result.
            if not self._stop_requested(dispatched, n):
                async for record in _iterate(records):
                    await self._slots.acquire()
                    task = asyncio.create_task(self._process(record, hub))
                    tasks.add(task)
                    task.add_done_callback(self._settled(tasks))
                    dispatched += 1
                    if self._task_errors or self._stop_requested(dispatched, n):
                        break

            if tasks:
                await asyncio.gather(*tasks)
            if self._task_errors:
                raise self._task_errors[0]
        except Exception as e:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if isinstance(e, EngineError):
                raise
            raise EngineError(f"execution aborted after {self.emitted} results: {e}") from e
        finally:
            await hub.close()

        if self.emitted != dispatched:
            raise EngineError(f"emitted {self.emitted} results for {dispatched} records")
        if dispatched != n and not (self.should_stop and self.should_stop()):
            raise EngineError(f"source declared {n} records but yielded {dispatched}")

        self.log.debug(f"all {self.emitted} results emitted")
        return self.emitted


async def execute(
    records: Iterable[Record] | AsyncIterable[Record],
    n: int,
    concurrency: int,
    op: Operation,
    hub: BroadcastHub[Result],
    **kwargs,
) -> int:
    return await BoundedExecutor(op, concurrency, **kwargs).execute(records, n, hub)
