import asyncio

import pytest

from conftest import make_records
from dataloader.config import LoaderOptions
from dataloader.errors import BenchmarkAborted, EngineError
from dataloader.loader import from_records
from dataloader.models import Mode, RunError, RunStats
from dataloader.orchestrator import BenchmarkOrchestrator


class RecordingDriver:
    """Records (mode, concurrency) for every operation invocation, globally ordered."""

    name = "recording"

    def __init__(self, options: LoaderOptions, log: list, fail_modes=()):
        self.concurrency = options.concurrency
        self.log = log
        self.fail_modes = set(fail_modes)
        self.closed = False

    def _op(self, mode: Mode):
        async def run(record):
            self.log.append((mode, self.concurrency))
            await asyncio.sleep(0.001)
            if mode in self.fail_modes:
                raise RuntimeError("rejected")
            return record.key

        return run

    def handlers(self):
        return {m: self._op(m) for m in Mode}

    async def close(self):
        self.closed = True


def options(**kwargs) -> LoaderOptions:
    return LoaderOptions(progress=False, **kwargs)


def factory_for(log: list, drivers: list, **driver_kwargs):
    async def factory(opts: LoaderOptions):
        driver = RecordingDriver(opts, log, **driver_kwargs)
        drivers.append(driver)
        return driver

    return factory


def runs_in_order(log: list) -> list:
    order = []
    for entry in log:
        if not order or order[-1] != entry:
            order.append(entry)
    return order


@pytest.mark.asyncio
async def test_matrix_runs_sequentially_in_declared_order():
    log, drivers, sources = [], [], []

    def source_factory():
        sources.append(1)
        return from_records(make_records(6))

    orchestrator = BenchmarkOrchestrator(options(), driver_factory=factory_for(log, drivers))
    report = await orchestrator.run([Mode.CREATE, Mode.QUERY], [1, 2], source_factory)

    assert runs_in_order(log) == [
        (Mode.CREATE, 1),
        (Mode.QUERY, 1),
        (Mode.CREATE, 2),
        (Mode.QUERY, 2),
    ]
    assert len(log) == 24
    assert len(sources) == 4
    assert all(d.closed for d in drivers)

    entries = report.entries()
    assert len(entries) == 4
    assert [(c, m) for c, m, _ in entries] == [(1, "create"), (1, "query"), (2, "create"), (2, "query")]
    for _, _, stats in entries:
        assert isinstance(stats, RunStats)
        assert stats.successes == 6 and stats.count == 6

    data = report.to_dict()
    assert [g["concurrency"] for g in data["results"]] == [1, 2]
    assert set(data["results"][0]["tests"]) == {"create", "query"}


@pytest.mark.asyncio
async def test_per_record_failures_do_not_fail_the_run():
    log, drivers = [], []
    orchestrator = BenchmarkOrchestrator(
        options(fatal_errors=True), driver_factory=factory_for(log, drivers, fail_modes={Mode.DELETE})
    )

    report = await orchestrator.run([Mode.DELETE], [3], lambda: from_records(make_records(4)))

    (_, _, stats), = report.entries()
    assert stats.failures == 4 and stats.successes == 0
    assert report.total_failures == 4
    assert not report.has_errors


@pytest.mark.asyncio
async def test_pipeline_error_is_recorded_and_matrix_continues():
    async def factory(opts: LoaderOptions):
        if opts.mode == Mode.LOAD:
            raise EngineError("cannot reach service")
        return RecordingDriver(opts, [])

    orchestrator = BenchmarkOrchestrator(options(), driver_factory=factory)
    report = await orchestrator.run([Mode.LOAD, Mode.QUERY], [1], lambda: from_records(make_records(3)))

    tests = report.results[0].tests
    assert isinstance(tests["load"], RunError)
    assert "cannot reach service" in tests["load"].message
    assert isinstance(tests["query"], RunStats)
    assert report.has_errors
    assert report.to_dict()["results"][0]["tests"]["load"] == {
        "error": True,
        "mode": "load",
        "message": "cannot reach service",
    }


@pytest.mark.asyncio
async def test_fatal_errors_abort_the_matrix():
    calls = []

    async def factory(opts: LoaderOptions):
        calls.append(opts.mode)
        raise EngineError("cannot reach service")

    orchestrator = BenchmarkOrchestrator(options(fatal_errors=True), driver_factory=factory)

    with pytest.raises(BenchmarkAborted) as excinfo:
        await orchestrator.run([Mode.LOAD, Mode.QUERY], [1, 2], lambda: from_records(make_records(3)))

    assert calls == [Mode.LOAD]
    assert excinfo.value.mode == "load" and excinfo.value.concurrency == 1


@pytest.mark.asyncio
async def test_stop_request_skips_remaining_runs():
    log, drivers = [], []
    stop = {"now": False}

    def source_factory():
        stop["now"] = True
        return from_records(make_records(2))

    orchestrator = BenchmarkOrchestrator(
        options(), driver_factory=factory_for(log, drivers), should_stop=lambda: stop["now"]
    )
    report = await orchestrator.run([Mode.CREATE, Mode.QUERY], [1, 2], source_factory)

    assert len(report.entries()) == 1


@pytest.mark.asyncio
async def test_unexpected_driver_error_is_recorded_as_run_error():
    async def factory(opts: LoaderOptions):
        if opts.mode == Mode.LOAD:
            raise RuntimeError("driver init blew up")
        return RecordingDriver(opts, [])

    orchestrator = BenchmarkOrchestrator(options(), driver_factory=factory)
    report = await orchestrator.run([Mode.LOAD, Mode.QUERY], [1], lambda: from_records(make_records(3)))

    tests = report.results[0].tests
    assert isinstance(tests["load"], RunError)
    assert tests["load"].message == "driver init blew up"
    assert isinstance(tests["query"], RunStats)
    assert tests["query"].successes == 3


@pytest.mark.asyncio
async def test_unexpected_driver_error_aborts_under_fatal_errors():
    async def factory(opts: LoaderOptions):
        raise RuntimeError("driver init blew up")

    orchestrator = BenchmarkOrchestrator(options(fatal_errors=True), driver_factory=factory)

    with pytest.raises(BenchmarkAborted, match="driver init blew up"):
        await orchestrator.run([Mode.LOAD, Mode.QUERY], [1], lambda: from_records(make_records(3)))


@pytest.mark.asyncio
async def test_unsupported_mode_is_recorded_and_driver_closed():
    drivers = []

    class LoadOnlyDriver(RecordingDriver):
        def handlers(self):
            return {Mode.LOAD: self._op(Mode.LOAD)}

    async def factory(opts: LoaderOptions):
        driver = LoadOnlyDriver(opts, [])
        drivers.append(driver)
        return driver

    orchestrator = BenchmarkOrchestrator(options(), driver_factory=factory)
    report = await orchestrator.run([Mode.LOAD, Mode.DELETE], [2], lambda: from_records(make_records(2)))

    tests = report.results[0].tests
    assert isinstance(tests["load"], RunStats)
    assert isinstance(tests["delete"], RunError)
    assert all(d.closed for d in drivers)
