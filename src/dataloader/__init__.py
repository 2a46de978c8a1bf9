__all__ = [
    "BoundedExecutor",
    "BroadcastHub",
    "BenchmarkOrchestrator",
    "Record",
    "Result",
    "RunStats",
    "aggregate",
    "execute",
    "run_pipeline",
]


from .broadcast import BroadcastHub
from .executor import BoundedExecutor, execute
from .models import Record, Result, RunStats
from .orchestrator import BenchmarkOrchestrator
from .pipeline import run_pipeline
from .stats import aggregate
