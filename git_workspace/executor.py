"""
Bounded-concurrency execution engine.

Applies one operation to every item of a batch on a fixed-size thread pool.
A failing item never stops the batch: its error is recorded against the
item and reported once every item has been attempted.
"""

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from rich.console import Console

from git_workspace.exceptions import ConfigurationError, error_chain
from git_workspace.logging import get_logger
from git_workspace.progress import ItemProgress, ProgressContext

T = TypeVar("T")
R = TypeVar("R")

logger = get_logger()

DEFAULT_THREADS = 8


@dataclass
class Failure(Generic[T]):
    """An item whose operation raised."""

    item: T
    label: str
    error: Exception

    @property
    def chain(self) -> list[str]:
        return error_chain(self.error)


@dataclass
class BatchResult(Generic[T, R]):
    """Outcome of one batch."""

    total: int
    results: list[tuple[T, R]] = field(default_factory=list)
    failures: list[Failure[T]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def _default_describe(item: object) -> str:
    name = getattr(item, "name", None)
    return name if isinstance(name, str) and name else str(item)


class Executor:
    """
    Run an operation over many items with at most ``threads`` in flight.

    Example:
        ```python
        executor = Executor(threads=8)
        result = executor.map(repositories, lambda repo, progress: git.fetch(repo, ws, progress))
        report_failures(result, Console(stderr=True))
        ```
    """

    def __init__(
        self,
        threads: int = DEFAULT_THREADS,
        console: Console | None = None,
        attended: bool | None = None,
    ) -> None:
        """
        Initialize the executor.

        Args:
            threads: Number of worker threads (must be at least 1)
            console: Console used for progress output (default: stdout)
            attended: Force live (True) or line-based (False) progress; None detects a terminal

        Raises:
            ConfigurationError: If ``threads`` is not a positive integer
        """
        if not isinstance(threads, int) or isinstance(threads, bool) or threads < 1:
            raise ConfigurationError(
                "Error creating the thread pool",
                [f"thread count must be a positive integer, got {threads!r}"],
            )
        self.threads = threads
        self.console = console or Console()
        self.attended = attended

    def map(
        self,
        items: Sequence[T],
        operation: Callable[[T, ItemProgress], R],
        describe: Callable[[T], str] = _default_describe,
    ) -> BatchResult[T, R]:
        """
        Apply ``operation`` to every item.

        Args:
            items: Items to process; each is handled by exactly one worker
            operation: Called as ``operation(item, progress)`` on a worker thread
            describe: Label for an item in progress output and failure reports

        Returns:
            BatchResult holding the return value of each success and every failure
        """
        result: BatchResult[T, R] = BatchResult(total=len(items))
        if not items:
            return result

        context = ProgressContext(len(items), console=self.console, attended=self.attended)

        def run_one(item: T) -> tuple[T, R | None, Failure[T] | None]:
            try:
                label = describe(item)
            except Exception as e:
                label = str(item)
                progress = context.begin(label)
                context.end(progress)
                logger.info("Describing %s failed: %s", label, e)
                return item, None, Failure(item=item, label=label, error=e)

            progress = context.begin(label)
            try:
                return item, operation(item, progress), None
            except Exception as e:
                logger.info("%s failed: %s", label, e)
                return item, None, Failure(item=item, label=label, error=e)
            finally:
                context.end(progress)

        with context, ThreadPoolExecutor(
            max_workers=self.threads,
            thread_name_prefix="git_workspace",
        ) as pool:
            futures = [pool.submit(run_one, item) for item in items]
            for future in futures:
                item, value, failure = future.result()
                if failure is None:
                    result.results.append((item, value))  # type: ignore[arg-type]
                else:
                    result.failures.append(failure)

        return result


def report_failures(
    result: BatchResult[T, R],
    console: Console,
    noun: str = "repositories",
) -> None:
    """Print every failure of a batch with its full cause chain, innermost last."""
    if result.ok:
        return

    console.print(f"{len(result.failures)} {noun} failed:", style="red", highlight=False)
    for failure in result.failures:
        console.print(f"{failure.label}:", markup=False, highlight=False)
        for cause in failure.chain:
            console.print(f"because: {cause}", markup=False, highlight=False, soft_wrap=True)


__all__ = [
    "DEFAULT_THREADS",
    "Executor",
    "BatchResult",
    "Failure",
    "report_failures",
]
