class DataLoaderError(Exception):
    """Base class for every error raised by dataloader."""


class ConfigurationError(DataLoaderError):
    """Invalid input file, options or test matrix. Raised before any run starts."""


class OperationError(DataLoaderError):
    """A single record operation failed. Always recovered into a failed Result."""

    def __init__(self, message: str, status: int | None = None, data: dict | None = None):
        super().__init__(message)
        self.status = status
        self.data = data or {}


class EngineError(DataLoaderError):
    """The execution pipeline itself failed."""


class ChannelClosedError(EngineError):
    """A result was published after the broadcast hub was closed."""


class BenchmarkAborted(DataLoaderError):
    """A benchmark matrix was stopped early because fatal errors are enabled."""

    def __init__(self, mode: str, concurrency: int, message: str):
        super().__init__(f"{mode} @ concurrency {concurrency}: {message}")
        self.mode = mode
        self.concurrency = concurrency
