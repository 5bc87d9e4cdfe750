"""Progress rendering shared by the workers of one batch.

Attended output (a terminal) gets a live rich display with one overall bar
and a spinner line per item in flight. Unattended output (pipes, CI logs)
gets plain ``[i/N] Starting name`` / ``[i/N] Finished name`` lines instead.
All mutable state lives in a ``ProgressContext`` guarded by a single lock.
"""

import threading
from typing import Protocol

from rich.console import Console, RenderableType
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.text import Text

from git_workspace.logging import get_logger

logger = get_logger("exec")


class ProgressSink(Protocol):
    """Anything that can show the latest line of output for one item."""

    def set_message(self, message: str) -> None: ...


class NullProgress:
    """A sink that discards messages."""

    def set_message(self, message: str) -> None:
        pass


class ItemProgress:
    """Progress handle for one item of a batch."""

    def __init__(
        self,
        context: "ProgressContext",
        name: str,
        index: int,
        task_id: TaskID | None,
    ) -> None:
        self.context = context
        self.name = name
        self.index = index
        self.task_id = task_id

    def set_message(self, message: str) -> None:
        message = message.strip()
        if not message:
            return
        self.context.update(self, message)


class OverallColumn(ProgressColumn):
    """Render ``column`` for the overall task only; item rows have no total."""

    def __init__(self, column: ProgressColumn) -> None:
        super().__init__()
        self.column = column

    def render(self, task: Task) -> RenderableType:
        if task.total is None:
            return Text("")
        return self.column(task)


class ProgressContext:
    """Shared, synchronized display state for one batch."""

    def __init__(
        self,
        total: int,
        console: Console | None = None,
        attended: bool | None = None,
    ) -> None:
        self.total = total
        self.console = console or Console()
        self.attended = self.console.is_terminal if attended is None else attended
        self._lock = threading.Lock()
        self._counter = 0
        self._progress: Progress | None = None
        self._total_task: TaskID | None = None

    def __enter__(self) -> "ProgressContext":
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    def start(self) -> None:
        """Start the live display when attended."""
        if not self.attended or self._progress is not None:
            return
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            OverallColumn(TimeElapsedColumn()),
            OverallColumn(TaskProgressColumn()),
            OverallColumn(BarColumn(complete_style="cyan", finished_style="blue")),
            OverallColumn(TextColumn("{task.completed}/{task.total}")),
            OverallColumn(TimeRemainingColumn()),
            console=self.console,
            transient=False,
        )
        self._total_task = self._progress.add_task("total", total=self.total)
        self._progress.start()

    def stop(self) -> None:
        with self._lock:
            if self._progress is not None:
                self._progress.stop()
                self._progress = None

    def begin(self, name: str) -> ItemProgress:
        """Register an item that is starting work and take the next counter value."""
        with self._lock:
            self._counter += 1
            index = self._counter
            task_id = None
            if self._progress is not None:
                task_id = self._progress.add_task(
                    f"  {escape(name)}: waiting...", total=None
                )
            else:
                # Emitted under the lock so start lines appear in counter order
                self.console.print(
                    f"[{index}/{self.total}] Starting {name}",
                    markup=False,
                    highlight=False,
                    soft_wrap=True,
                )
        return ItemProgress(self, name, index, task_id)

    def update(self, item: ItemProgress, message: str) -> None:
        with self._lock:
            if self._progress is not None and item.task_id is not None:
                self._progress.update(
                    item.task_id,
                    description=f"  {escape(item.name)}: {escape(message)}",
                )
        logger.debug("%s: %s", item.name, message)

    def end(self, item: ItemProgress) -> None:
        """Mark an item as finished, whether it succeeded or not."""
        with self._lock:
            if self._progress is not None:
                if item.task_id is not None:
                    self._progress.remove_task(item.task_id)
                if self._total_task is not None:
                    self._progress.advance(self._total_task)
            else:
                self.console.print(
                    f"[{item.index}/{self.total}] Finished {item.name}",
                    markup=False,
                    highlight=False,
                    soft_wrap=True,
                )


__all__ = [
    "ProgressSink",
    "NullProgress",
    "ItemProgress",
    "ProgressContext",
    "OverallColumn",
]
