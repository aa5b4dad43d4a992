"""Stage timing"""
import logging
import time
from typing import Any, Dict, Optional
from rich.console import Console

logger = logging.getLogger(__name__)
console = Console(stderr=True)


class Timer:
    """
    Time a pipeline stage

    Args:
        name: Stage name used in the report and as the key in ``record``
        verbose: Print the elapsed time through rich
        record: Optional dict that receives ``{name: seconds}`` on exit
    """

    def __init__(
        self,
        name: str = "Operation",
        verbose: bool = True,
        record: Optional[Dict[str, float]] = None,
    ):
        self.name = name
        self.verbose = verbose
        self.record = record
        self.start_time: float = 0
        self.elapsed: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.elapsed = time.perf_counter() - self.start_time
        if self.record is not None:
            self.record[self.name] = self.elapsed
        logger.debug(f"{self.name}: {self.elapsed:.3f}s")
        if self.verbose:
            console.print(f"[cyan]{self.name}[/cyan] completed in [bold]{self.elapsed:.2f}s[/bold]")
