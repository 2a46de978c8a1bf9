import logging
import sys

# Per-record success/failure events sit below DEBUG.
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-22s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty libraries stay at WARNING unless the run itself is being debugged.
NOISY_LOGGERS = ("aiohttp", "asyncio")


def resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def setup_logging(level: str | int = "INFO", log_file: str | None = None) -> logging.Logger:
    """
    Route all records to stdout, and to ``log_file`` when given, at ``level``.

    TRACE shows one line per processed record; DEBUG and above show per-run
    summaries only. Uncaught exceptions are logged before the process exits.
    """
    threshold = resolve_level(level)
    root = logging.getLogger()
    root.setLevel(threshold)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if threshold <= logging.DEBUG else logging.WARNING)

    if log_file:
        root.info(f"Logging to file: {log_file}")

    def log_uncaught(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        root.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    sys.excepthook = log_uncaught
    return root
