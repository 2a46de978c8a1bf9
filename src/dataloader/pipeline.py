import asyncio
import logging
from collections.abc import Callable

from rich.console import Console

from .broadcast import BroadcastHub, Subscription
from .errors import EngineError
from .executor import BoundedExecutor
from .loader import RecordSource
from .models import Operation, Result, RunStats
from .progress import observe_progress
from .stats import aggregate
from .utils import duration_ms, now

logger = logging.getLogger(__name__)

# Per-subscriber buffer, as a multiple of the concurrency level.
BUFFER_FACTOR = 4


async def _observe(hub: BroadcastHub[Result], sub: Subscription[Result], observer, *args):
    """Run one observer; if it dies, stop the hub from waiting on its buffer."""
    try:
        return await observer(sub, *args)
    except BaseException:
        hub.detach(sub)
        raise


async def _run_all(executor_coro, observer_coros) -> list:
    """Run executor and observers together; the first failure cancels the rest."""
    tasks = [asyncio.create_task(executor_coro)] + [asyncio.create_task(c) for c in observer_coros]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        for task in done:
            if task.exception() is not None:
                raise task.exception()
        return [task.result() for task in tasks]
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def run_pipeline(
    source: RecordSource,
    op: Operation,
    concurrency: int,
    *,
    progress: bool = False,
    verbose_errors: bool = False,
    should_stop: Callable[[], bool] | None = None,
    description: str = "Loading...",
    console: Console | None = None,
    log: logging.Logger | None = None,
) -> RunStats:
    """
    One complete run: executor feeding a broadcast hub that is tapped by the
    statistics aggregator and, when enabled, the progress bar. The returned
    stats carry the wall-clock total from start until every observer finished.
    """
    log = log or logger
    executor = BoundedExecutor(
        op, concurrency, verbose_errors=verbose_errors, log=log, should_stop=should_stop
    )
    hub: BroadcastHub[Result] = BroadcastHub(default_maxsize=BUFFER_FACTOR * concurrency)

    # Subscribe before the executor pulls its first record.
    observers = [_observe(hub, hub.subscribe("stats"), aggregate)]
    if progress:
        observers.append(
            _observe(
                hub, hub.subscribe("progress"), observe_progress, source.count, description, console
            )
        )

    log.debug(f"processing {source.count} records with concurrency {concurrency}")
    start = now()
    try:
        results = await _run_all(executor.execute(source.stream, source.count, hub), observers)
    except EngineError:
        raise
    except Exception as e:
        raise EngineError(str(e)) from e
    total = duration_ms(now(), start)

    stats: RunStats = results[1]
    stats.finish(total)
    log.debug(
        f"run finished: {stats.successes} ok, {stats.failures} failed in {total:.3f} msecs"
    )
    return stats
