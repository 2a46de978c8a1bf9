import logging
import signal
import time

logger = logging.getLogger(__name__)

# ────────────────────────────────
# Time Helpers
# ────────────────────────────────


def now() -> float:
    return time.perf_counter()


def duration_ms(end: float, start: float) -> float:
    return (end - start) * 1000.0


def round_to(precision: int, value: float | None) -> float:
    """Round to the given number of decimal places, treating None as 0."""
    return round(float(value or 0.0), precision)


# ────────────────────────────────
# Signal Handling
# ────────────────────────────────


class GracefulKiller:
    """Turns SIGINT/SIGTERM into a flag the executor polls between dispatches."""

    def __init__(self):
        self.kill_now = False
        self._previous = {
            sig: signal.signal(sig, self.exit_gracefully)
            for sig in (signal.SIGINT, signal.SIGTERM)
        }

    def restore(self):
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)

    def exit_gracefully(self, signum, frame):
        print("\n[!] Received shutdown signal. Letting in-flight operations finish...")
        logger.warning(f"Signal {signum} received, no further records will be dispatched")
        self.kill_now = True

    def __call__(self) -> bool:
        return self.kill_now
