"""
Pytest fixtures for git-workspace testing.

Provides throwaway workspaces, repository factories and a ``Workspace``
wired to ``MockGitHelper`` so tests never run git or touch the network.
"""

import io
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from rich.console import Console

from git_workspace.commands import Workspace
from git_workspace.config import Config
from git_workspace.testing.mock import MockGitHelper
from git_workspace.types.repository import VCS_METADATA_DIR, Repository


# ============================================================================
# Filesystem Fixtures
# ============================================================================


@pytest.fixture
def workspace_dir(tmp_path: Path) -> Path:
    """Provide an empty, canonical workspace root."""
    root = tmp_path / "workspace"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def make_git_dir() -> Callable[[Path, str], Path]:
    """
    Provide a factory that creates ``<root>/<relative>/.git``.

    Example:
        ```python
        def test_orphan(workspace_dir, make_git_dir):
            make_git_dir(workspace_dir, "old/proj")
        ```
    """

    def create(root: Path, relative: str) -> Path:
        path = root.joinpath(*relative.split("/"))
        (path / VCS_METADATA_DIR).mkdir(parents=True, exist_ok=True)
        return path

    return create


# ============================================================================
# Repository Fixtures
# ============================================================================


@pytest.fixture
def make_repository() -> Callable[..., Repository]:
    """Provide a factory for Repository values with sensible URLs."""

    def create(
        full_path: str,
        upstream_url: str | None = None,
        branch: str | None = None,
    ) -> Repository:
        return Repository(
            full_path=full_path,
            origin_url=f"git@example.com:{full_path}.git",
            upstream_url=upstream_url,
            branch=branch,
            metadata={"provider": "mock"},
        )

    return create


@pytest.fixture
def sample_repository() -> Repository:
    """Provide a sample forked repository."""
    return Repository(
        full_path="github/octo-org/hello-world",
        origin_url="git@github.com:octo-org/hello-world.git",
        upstream_url="git@github.com:octocat/hello-world.git",
        branch="main",
        metadata={"provider": "github", "fork": True},
    )


# ============================================================================
# Workspace Fixtures
# ============================================================================


@pytest.fixture
def output_console() -> Console:
    """Provide a non-terminal console that writes to a StringIO buffer."""
    return Console(file=io.StringIO(), force_terminal=False, width=200)


@pytest.fixture
def mock_git() -> Generator[MockGitHelper, None, None]:
    """Provide a MockGitHelper."""
    git = MockGitHelper()
    yield git
    git.reset()


@pytest.fixture
def workspace(workspace_dir: Path, mock_git: MockGitHelper, output_console: Console) -> Workspace:
    """Provide a Workspace using MockGitHelper and line-based progress output."""
    return Workspace(
        workspace_dir,
        git=mock_git,
        console=output_console,
        err_console=output_console,
        attended=False,
    )


@pytest.fixture
def mock_providers(monkeypatch: pytest.MonkeyPatch, workspace_dir: Path) -> list[object]:
    """
    Provide the list of provider sources ``lock`` will use.

    Writes an empty ``workspace.toml`` so the workspace counts as configured and
    makes ``Config.read`` return whatever the test appends to the list.
    """
    sources: list[object] = []
    (workspace_dir / "workspace.toml").write_text("")
    monkeypatch.setattr(Config, "read", lambda self: list(sources))
    return sources
