"""
git-workspace commands.

Composes the lockfile, the execution engine and the archive detector into
the user-facing operations. Each method prints its own progress and
returns a result object; the CLI only decides the exit status.
"""

from collections.abc import Callable, Sequence
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from git_workspace.archive import execute_plan, find_archivable
from git_workspace.config import Config
from git_workspace.exceptions import (
    ConfigurationError,
    GitWorkspaceError,
    LockfileMissingError,
    ProviderFetchError,
)
from git_workspace.executor import DEFAULT_THREADS, BatchResult, Executor, report_failures
from git_workspace.git import FETCH_ARGS, GitHelper
from git_workspace.lockfile import Lockfile
from git_workspace.logging import get_logger
from git_workspace.progress import ItemProgress
from git_workspace.providers import ProviderSource
from git_workspace.types.archive import ArchivePlanEntry, ArchiveResult
from git_workspace.types.repository import Repository, dedupe_repositories

logger = get_logger()

RepositoryBatch = BatchResult[Repository, None]


class Workspace:
    """
    Operations over every repository declared for one workspace root.

    Example:
        ```python
        from pathlib import Path
        from git_workspace.commands import Workspace

        workspace = Workspace(Path("~/code").expanduser().resolve())
        workspace.update(threads=8)
        print(workspace.list())
        ```
    """

    def __init__(
        self,
        path: Path,
        git: GitHelper | None = None,
        console: Console | None = None,
        err_console: Console | None = None,
        attended: bool | None = None,
    ) -> None:
        """
        Initialize the workspace.

        Args:
            path: Canonical workspace root (see ``resolve_workspace``)
            git: Helper used for clone/fetch/pull (default: the ``git`` binary)
            console: Console for progress and informational output
            err_console: Console for failure reports (default: stderr)
            attended: Force live (True) or line-based (False) progress output
        """
        self.path = path
        self.git = git or GitHelper()
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)
        self.attended = attended
        self.lockfile = Lockfile.for_workspace(path)

    def _executor(self, threads: int) -> Executor:
        return Executor(threads=threads, console=self.console, attended=self.attended)

    def repositories(self) -> list[Repository]:
        """
        Declared repositories from the lockfile.

        Raises:
            LockfileMissingError: If no lockfile has been written yet
            FormatError: If the lockfile is malformed
        """
        if not self.lockfile.exists():
            raise LockfileMissingError(str(self.lockfile.path))
        try:
            return self.lockfile.read()
        except GitWorkspaceError as e:
            raise e.with_context("Error reading lockfile") from e

    def existing_repositories(self) -> list[Repository]:
        return [r for r in self.repositories() if r.exists(self.path)]

    def lock(self) -> list[Repository]:
        """
        Fetch every provider's repositories and rewrite the lockfile.

        Raises:
            ConfigurationError: If there is no configuration
            ProviderFetchError: If any provider fails
        """
        try:
            sources = Config.for_workspace(self.path).read()
        except ConfigurationError as e:
            raise e.with_context("Error loading config files") from e

        self.console.print("Fetching repositories...")

        def fetch(source: ProviderSource, progress: ItemProgress) -> list[Repository]:
            progress.set_message("listing repositories")
            return source.fetch_repositories()

        executor = self._executor(max(1, min(len(sources), DEFAULT_THREADS)))
        result = executor.map(sources, fetch, describe=str)

        if len(result.failures) == 1:
            failure = result.failures[0]
            raise ProviderFetchError(
                f"Error fetching repositories from {failure.label}", failure.chain
            ) from failure.error
        if result.failures:
            report_failures(result, self.err_console, noun="providers")
            raise ProviderFetchError(
                f"Error fetching repositories from {len(result.failures)} providers"
            )

        repositories = dedupe_repositories(
            repository for _, found in result.results for repository in found
        )
        self.lockfile.write(repositories)
        return repositories

    def update(self, threads: int = DEFAULT_THREADS) -> tuple[RepositoryBatch, list[ArchivePlanEntry]]:
        """
        Lock, clone every missing repository, and count what could be archived.

        Existing repositories are left untouched.

        Returns:
            The clone batch result and the archive plan (not executed)
        """
        self.lock()
        repositories = self.repositories()
        missing = [r for r in repositories if not r.exists(self.path)]

        self.console.print(
            f"Updating {len(repositories)} repositories ({len(missing)} to clone)"
        )

        def clone(repository: Repository, progress: ItemProgress) -> None:
            self.git.clone(repository, self.path, progress)
            self.git.set_upstream(repository, self.path)

        result = self._executor(threads).map(missing, clone)
        report_failures(result, self.err_console)

        plan = find_archivable(self.path, repositories)
        self.console.print(f"There are {len(plan)} repositories that can be archived")
        if plan:
            self.console.print("Run [yellow]`git-workspace archive`[/yellow] to archive them")
        return result, plan

    def run(
        self,
        program: str,
        args: Sequence[str] = (),
        threads: int = DEFAULT_THREADS,
    ) -> RepositoryBatch:
        """Run ``program args...`` inside every existing repository."""
        repositories = self.existing_repositories()
        command = " ".join([program, *args])
        self.console.print(
            f"Running {escape(command)} on {len(repositories)} repositories", highlight=False
        )

        def execute(repository: Repository, progress: ItemProgress) -> None:
            self.git.execute_cmd(repository, self.path, program, args, progress)

        result = self._executor(threads).map(repositories, execute)
        report_failures(result, self.err_console)
        return result

    def fetch(self, threads: int = DEFAULT_THREADS) -> RepositoryBatch:
        """``git fetch --all --prune`` (with submodules) in every existing repository."""
        return self.run(self.git.git_binary, FETCH_ARGS, threads)

    def switch_and_pull(self, threads: int = DEFAULT_THREADS) -> RepositoryBatch:
        """Switch every existing repository to its primary branch and pull."""
        repositories = self.existing_repositories()
        self.console.print(
            f"Switching to the primary branch and pulling {len(repositories)} repositories"
        )

        def switch_and_pull(repository: Repository, progress: ItemProgress) -> None:
            self.git.switch_to_primary_branch(repository, self.path, progress)
            self.git.pull(repository, self.path, progress)

        result = self._executor(threads).map(repositories, switch_and_pull)
        report_failures(result, self.err_console)
        return result

    def list(self, full: bool = False) -> list[str]:
        """Names (or absolute paths) of every existing repository."""
        return [
            str(r.resolve_path(self.path)) if full else r.name
            for r in self.existing_repositories()
        ]

    def archive(
        self,
        force: bool = False,
        confirm: Callable[[str], bool] | None = None,
    ) -> ArchiveResult | None:
        """
        Lock, then move every orphaned repository into the archive.

        Args:
            force: Skip the preview and confirmation
            confirm: Asked "Proceed?" unless ``force``; a missing callback declines

        Returns:
            The archive result, or None when nothing was moved because the plan was
            empty or the user declined
        """
        self.lock()
        plan = find_archivable(self.path, self.repositories())

        if not force:
            for entry in plan:
                self.console.print(
                    f"Move [yellow]{escape(str(entry.source.relative_to(self.path)))}[/yellow] "
                    f"to [green]{escape(str(entry.destination.relative_to(self.path)))}[/green]",
                    highlight=False,
                )
            self.console.print(f"Will archive [red]{len(plan)}[/red] projects", highlight=False)
            if not plan or confirm is None or not confirm("Proceed?"):
                return None

        if not plan:
            return None

        self.console.print(f"Archiving {len(plan)} repositories")
        result = execute_plan(plan)
        for entry in result.moved:
            self.console.print(
                f"Moved [yellow]{escape(str(entry.source))}[/yellow] "
                f"to [green]{escape(str(entry.destination))}[/green]",
                highlight=False,
            )
        for failure in result.failed:
            self.err_console.print(
                f"[red]Error moving directory![/red] {escape(failure.reason)}\n"
                f"  Target: [yellow]{escape(str(failure.entry.source))}[/yellow]\n"
                f"  Dest:   [green]{escape(str(failure.entry.destination))}[/green]\n"
                "Please remove existing directory before retrying",
                highlight=False,
            )
        return result

    def add_provider(self, source: ProviderSource, file: Path) -> bool:
        """
        Append a provider source to a config file unless it is already there.

        Returns:
            True if the source was added

        Raises:
            ConfigurationError: If the provider is not correctly configured
        """
        if not source.correctly_configured():
            raise ConfigurationError("Provider is not correctly configured")

        path = file if file.is_absolute() else self.path / file
        config = Config([path])
        try:
            sources = config.read()
        except GitWorkspaceError as e:
            raise e.with_context("Error reading config file") from e

        if source in sources:
            self.console.print("Entry already exists, skipping")
            return False

        self.console.print(
            f"Adding {escape(str(source))} to [green]{escape(str(path))}[/green]", highlight=False
        )
        config.write([*sources, source], path)
        return True
