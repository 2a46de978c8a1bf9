import logging
from collections.abc import AsyncIterable

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .models import Result

logger = logging.getLogger(__name__)


def make_progress(console: Console | None = None) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    )


async def observe_progress(
    subscription: AsyncIterable[Result],
    n: int,
    description: str = "Loading...",
    console: Console | None = None,
) -> int:
    """
    Advance a progress bar once per result, from 0/n to n/n.

    The subscription is drained to its close so a strict-delivery hub never
    waits on this observer.
    """
    seen = 0
    with make_progress(console) as progress:
        task_id = progress.add_task(f"[cyan]{description}", total=n)
        async for _ in subscription:
            if seen < n:
                seen += 1
                progress.advance(task_id)
    if seen < n:
        logger.warning(f"Progress ended at {seen}/{n}: result stream closed early")
    return seen
