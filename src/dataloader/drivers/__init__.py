from ..config import LoaderOptions
from .base import Driver, get_handler
from .http import HttpDriver
from .simulated import SimulatedDriver

__all__ = ["Driver", "HttpDriver", "SimulatedDriver", "create_driver", "get_handler"]


async def create_driver(options: LoaderOptions) -> Driver:
    if options.driver == "http":
        driver = HttpDriver(options.url, request_timeout_s=options.request_timeout_s)
    else:
        driver = SimulatedDriver(
            min_latency_s=options.sim_min_latency_s,
            max_latency_s=options.sim_max_latency_s,
            failure_rate=options.sim_failure_rate,
            seed=options.sim_seed,
        )
    return await driver.connect()
