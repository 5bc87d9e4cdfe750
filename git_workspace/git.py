"""
Git helper utilities for git-workspace.

Runs the external ``git`` binary (or any other program) inside repository
directories, streaming each line of output to a progress sink.
"""

import os
import subprocess
from collections import deque
from collections.abc import Sequence
from pathlib import Path

from git_workspace.exceptions import CloneError, CommandError
from git_workspace.logging import get_logger, log_command
from git_workspace.progress import NullProgress, ProgressSink
from git_workspace.types.repository import Repository

logger = get_logger("exec")

UPSTREAM_REMOTE = "upstream"

# Lines of output kept for error reports
_OUTPUT_TAIL = 20

FETCH_ARGS = (
    "fetch",
    "--all",
    "--prune",
    "--recurse-submodules=on-demand",
    "--progress",
)


def run_streaming(
    args: Sequence[str],
    cwd: Path | None,
    progress: ProgressSink,
) -> tuple[int, list[str]]:
    """
    Run a command, passing each output line to ``progress``.

    Stdout and stderr are merged; carriage-return progress updates from git
    arrive as separate lines.

    Returns:
        The exit status and the last lines of output

    Raises:
        CommandError: If the program cannot be started
    """
    log_command(args, str(cwd) if cwd else None)
    env = os.environ.copy()
    env.setdefault("GIT_TERMINAL_PROMPT", "0")
    try:
        process = subprocess.Popen(
            list(args),
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            env=env,
        )
    except OSError as e:
        raise CommandError(f"Error running {args[0]}", [str(e)]) from e

    tail: deque[str] = deque(maxlen=_OUTPUT_TAIL)
    assert process.stdout is not None
    with process.stdout:
        for line in process.stdout:
            line = line.rstrip()
            if not line:
                continue
            tail.append(line)
            progress.set_message(line)
    returncode = process.wait()
    log_command(args, str(cwd) if cwd else None, returncode)
    return returncode, list(tail)


class GitHelper:
    """
    Repository operations built on the ``git`` command line.

    Example:
        ```python
        from git_workspace.git import GitHelper

        git = GitHelper()
        if not repository.exists(workspace):
            git.clone(repository, workspace)
            git.set_upstream(repository, workspace)
        ```
    """

    def __init__(self, git_binary: str = "git") -> None:
        """
        Initialize GitHelper.

        Args:
            git_binary: Name or path of the git executable
        """
        self.git_binary = git_binary

    def clone(
        self,
        repository: Repository,
        workspace: Path,
        progress: ProgressSink | None = None,
    ) -> None:
        """
        Clone a repository to its path inside the workspace.

        Raises:
            PathError: If the repository path escapes the workspace
            CloneError: If git clone fails
        """
        path = repository.resolve_path(workspace)
        args = [
            self.git_binary,
            "clone",
            "--recurse-submodules",
            "--progress",
            repository.origin_url,
            str(path),
        ]
        returncode, output = run_streaming(args, workspace, progress or NullProgress())
        if returncode != 0:
            raise CloneError(
                f"Error cloning {repository.origin_url} into {repository.full_path}",
                [f"git exited with code {returncode}", *output[-3:]],
                returncode=returncode,
                output="\n".join(output),
            )
        logger.info("Cloned %s", repository.full_path)

    def set_upstream(self, repository: Repository, workspace: Path) -> None:
        """
        Register ``upstream_url`` as the ``upstream`` remote (replacing any existing one).

        Does nothing when the repository declares no upstream.
        """
        if repository.upstream_url is None:
            return

        path = repository.resolve_path(workspace)
        # Missing remote is fine here
        run_streaming(
            [self.git_binary, "remote", "rm", UPSTREAM_REMOTE], path, NullProgress()
        )
        self._run(
            repository,
            path,
            [self.git_binary, "remote", "add", UPSTREAM_REMOTE, repository.upstream_url],
            NullProgress(),
        )

    def primary_branch(self, repository: Repository, workspace: Path) -> str | None:
        """The declared branch, or the branch ``origin/HEAD`` points at."""
        if repository.branch:
            return repository.branch

        path = repository.resolve_path(workspace)
        result = subprocess.run(
            [self.git_binary, "symbolic-ref", "--short", "refs/remotes/origin/HEAD"],
            cwd=path,
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            return None
        ref = result.stdout.strip()
        return ref.split("/", 1)[1] if "/" in ref else ref or None

    def switch_to_primary_branch(
        self,
        repository: Repository,
        workspace: Path,
        progress: ProgressSink | None = None,
    ) -> None:
        """
        Check out the primary branch.

        Raises:
            CommandError: If git switch fails
        """
        branch = self.primary_branch(repository, workspace)
        if branch is None:
            logger.info("No primary branch known for %s, staying on the current branch", repository.full_path)
            return
        self.execute_cmd(
            repository, workspace, self.git_binary, ["switch", branch], progress
        )

    def pull(
        self,
        repository: Repository,
        workspace: Path,
        progress: ProgressSink | None = None,
    ) -> None:
        """Pull from ``upstream <branch>`` when both are declared, else a plain pull."""
        if repository.upstream_url is not None and repository.branch is not None:
            args = ["pull", UPSTREAM_REMOTE, repository.branch]
        else:
            args = ["pull"]
        self.execute_cmd(repository, workspace, self.git_binary, args, progress)

    def fetch(
        self,
        repository: Repository,
        workspace: Path,
        progress: ProgressSink | None = None,
    ) -> None:
        """Fetch all remotes, pruning deleted branches and updating submodules."""
        self.execute_cmd(repository, workspace, self.git_binary, FETCH_ARGS, progress)

    def execute_cmd(
        self,
        repository: Repository,
        workspace: Path,
        program: str,
        args: Sequence[str],
        progress: ProgressSink | None = None,
    ) -> None:
        """
        Run an arbitrary program inside the repository directory.

        Raises:
            PathError: If the repository path escapes the workspace
            CommandError: If the program cannot start or exits non-zero
        """
        path = repository.resolve_path(workspace)
        self._run(repository, path, [program, *args], progress or NullProgress())

    def _run(
        self,
        repository: Repository,
        path: Path,
        args: Sequence[str],
        progress: ProgressSink,
    ) -> None:
        returncode, output = run_streaming(args, path, progress)
        if returncode != 0:
            raise CommandError(
                f"{args[0]} exited with code {returncode} in {repository.full_path}",
                ["\n".join(output)] if output else [],
                returncode=returncode,
                output="\n".join(output),
            )
