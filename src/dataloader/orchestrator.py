import logging
from collections.abc import Awaitable, Callable, Sequence

from rich.console import Console

from .config import LoaderOptions
from .drivers import Driver, create_driver, get_handler
from .errors import BenchmarkAborted
from .loader import SourceFactory
from .models import BenchmarkReport, ConcurrencyResults, Mode, RunError, RunOutcome, RunStats
from .pipeline import run_pipeline

logger = logging.getLogger(__name__)

DriverFactory = Callable[[LoaderOptions], Awaitable[Driver]]


class BenchmarkOrchestrator:
    """
    Sweeps every (concurrency, mode) pair in declared order, one pipeline at
    a time, and collects the stats into a BenchmarkReport.
    """

    def __init__(
        self,
        options: LoaderOptions,
        driver_factory: DriverFactory = create_driver,
        should_stop: Callable[[], bool] | None = None,
        console: Console | None = None,
    ) -> None:
        self.options = options
        self.driver_factory = driver_factory
        self.should_stop = should_stop
        self.console = console

    async def run_one(
        self, mode: Mode, concurrency: int, source_factory: SourceFactory
    ) -> RunStats:
        """A single pipeline run with a fresh driver and a fresh record stream."""
        options = self.options.model_copy(update={"mode": mode, "concurrency": concurrency})
        driver = await self.driver_factory(options)
        try:
            op = get_handler(mode, driver)
            source = source_factory()
            return await run_pipeline(
                source,
                op,
                concurrency,
                progress=options.progress,
                verbose_errors=options.verbose_errors,
                should_stop=self.should_stop,
                description=f"{mode.value} @ {concurrency}",
                console=self.console,
            )
        finally:
            await driver.close()

    async def _run_pairing(
        self, mode: Mode, concurrency: int, source_factory: SourceFactory
    ) -> RunOutcome:
        try:
            return await self.run_one(mode, concurrency, source_factory)
        except Exception as e:
            logger.error(f"Exception detected during {mode.value} @ {concurrency}: {e!r}")
            if self.options.fatal_errors:
                raise BenchmarkAborted(mode.value, concurrency, str(e) or repr(e)) from e
            return RunError(mode=mode.value, message=str(e) or repr(e))

    async def run(
        self,
        modes: Sequence[Mode],
        levels: Sequence[int],
        source_factory: SourceFactory,
    ) -> BenchmarkReport:
        report = BenchmarkReport()
        logger.info(
            f"Benchmark: modes={[Mode(m).value for m in modes]}, concurrency={list(levels)}"
        )
        for concurrency in levels:
            group = ConcurrencyResults(concurrency=concurrency)
            report.results.append(group)
            for mode in modes:
                mode = Mode(mode)
                if self.should_stop and self.should_stop():
                    logger.warning("Stop requested, skipping remaining benchmark runs")
                    return report
                logger.info(f"Running {mode.value} with concurrency {concurrency}")
                group.tests[mode.value] = await self._run_pairing(mode, concurrency, source_factory)
        return report
