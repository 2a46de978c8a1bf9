import logging
from typing import Protocol

from ..errors import ConfigurationError
from ..models import Mode, Operation

logger = logging.getLogger(__name__)


class Driver(Protocol):
    name: str

    def handlers(self) -> dict[Mode, Operation]:
        ...

    async def close(self) -> None:
        ...


def get_handler(mode: Mode | str, driver: Driver) -> Operation:
    """Look up the operation bound to ``mode`` in the driver's capability table."""
    try:
        mode = Mode(mode)
    except ValueError:
        raise ConfigurationError(
            f"Unknown mode '{mode}' (choose from {', '.join(m.value for m in Mode)})"
        ) from None
    table = driver.handlers()
    if mode not in table:
        raise ConfigurationError(f"Driver '{driver.name}' does not support mode '{mode.value}'")
    logger.debug(f"Mode '{mode.value}' bound to driver '{driver.name}'")
    return table[mode]
