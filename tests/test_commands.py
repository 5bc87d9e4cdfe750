"""
Tests for the workspace commands.

Feature: commands
"""

from pathlib import Path

import pytest
from rich.console import Console

from git_workspace.archive import archive_directory
from git_workspace.commands import Workspace
from git_workspace.exceptions import (
    AuthenticationError,
    CloneError,
    ConfigurationError,
    FormatError,
    LockfileMissingError,
    ProviderFetchError,
)
from git_workspace.git import FETCH_ARGS
from git_workspace.lockfile import Lockfile
from git_workspace.providers import GithubProvider
from git_workspace.testing import MockGitHelper, MockProvider


def _output(console: Console) -> str:
    return console.file.getvalue()  # type: ignore[attr-defined]


@pytest.fixture
def locked_workspace(workspace: Workspace, workspace_dir: Path, make_git_dir, make_repository) -> Workspace:
    """Lockfile declares a/b and a/c; only a/b has been cloned."""
    Lockfile.for_workspace(workspace_dir).write(
        [make_repository("a/b", branch="main"), make_repository("a/c")]
    )
    make_git_dir(workspace_dir, "a/b")
    return workspace


# ============================================================================
# Queries
# ============================================================================


def test_list_only_existing(locked_workspace: Workspace, workspace_dir: Path) -> None:
    assert locked_workspace.list() == ["b"]
    assert locked_workspace.list(full=True) == [str(workspace_dir / "a" / "b")]


def test_missing_lockfile(workspace: Workspace) -> None:
    with pytest.raises(LockfileMissingError) as excinfo:
        workspace.list()

    assert excinfo.value.causes == ["Run `git-workspace lock` or `git-workspace update` first"]


def test_malformed_lockfile_has_context(workspace: Workspace, workspace_dir: Path) -> None:
    Lockfile.for_workspace(workspace_dir).path.write_text("[[repo]]\n")

    with pytest.raises(FormatError) as excinfo:
        workspace.fetch()

    assert excinfo.value.message == "Error reading lockfile"
    assert excinfo.value.causes[0].startswith("Error parsing lockfile")


# ============================================================================
# lock / update
# ============================================================================


def test_lock_dedupes_and_sorts(
    workspace: Workspace, workspace_dir: Path, mock_providers: list, make_repository
) -> None:
    mock_providers.extend([
        MockProvider("one", (make_repository("z/last"), make_repository("a/first"))),
        MockProvider("two", (make_repository("a/first"), make_repository("m/middle"))),
    ])

    locked = workspace.lock()

    assert [r.full_path for r in locked] == ["a/first", "m/middle", "z/last"]
    assert Lockfile.for_workspace(workspace_dir).read() == locked


def test_lock_single_provider_failure(
    workspace: Workspace, workspace_dir: Path, mock_providers: list, make_repository
) -> None:
    mock_providers.extend([
        MockProvider("good", (make_repository("a/b"),)),
        MockProvider("bad", error=AuthenticationError("HTTP_401", "Bad credentials")),
    ])

    with pytest.raises(ProviderFetchError) as excinfo:
        workspace.lock()

    assert excinfo.value.message == "Error fetching repositories from mock provider bad"
    assert excinfo.value.causes == ["Bad credentials"]
    assert not Lockfile.for_workspace(workspace_dir).exists()


def test_lock_reports_every_provider_failure(
    workspace: Workspace, mock_providers: list, output_console: Console
) -> None:
    mock_providers.extend([
        MockProvider("first", error=ConfigurationError("Environment variable A is not set")),
        MockProvider("second", error=ConfigurationError("Environment variable B is not set")),
    ])

    with pytest.raises(ProviderFetchError) as excinfo:
        workspace.lock()

    assert excinfo.value.message == "Error fetching repositories from 2 providers"
    output = _output(output_console)
    assert "2 providers failed:" in output
    assert "because: Environment variable A is not set" in output
    assert "because: Environment variable B is not set" in output


def test_lock_without_config(workspace: Workspace) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        workspace.lock()

    assert excinfo.value.message == "Error loading config files"


def test_update_clones_only_missing(
    locked_workspace: Workspace,
    mock_providers: list,
    mock_git: MockGitHelper,
    output_console: Console,
    make_repository,
) -> None:
    mock_providers.append(MockProvider("p", (make_repository("a/b"), make_repository("a/c"))))

    result, plan = locked_workspace.update(threads=2)

    assert result.ok
    assert mock_git.called_paths("clone") == ["a/c"]
    assert mock_git.called_paths("set_upstream") == ["a/c"]
    assert plan == []
    assert "There are 0 repositories that can be archived" in _output(output_console)
    assert sorted(locked_workspace.list()) == ["b", "c"]


def test_update_counts_archivable(
    workspace: Workspace,
    workspace_dir: Path,
    mock_providers: list,
    make_git_dir,
    make_repository,
    output_console: Console,
) -> None:
    mock_providers.append(MockProvider("p", (make_repository("a/b"),)))
    make_git_dir(workspace_dir, "old/proj")

    _, plan = workspace.update()

    assert len(plan) == 1
    output = _output(output_console)
    assert "There are 1 repositories that can be archived" in output
    assert "git-workspace archive" in output
    assert (workspace_dir / "old" / "proj").is_dir()


def test_update_continues_after_clone_failure(
    workspace: Workspace,
    mock_providers: list,
    mock_git: MockGitHelper,
    make_repository,
    output_console: Console,
) -> None:
    mock_providers.append(
        MockProvider("p", tuple(make_repository(f"org/repo{i}") for i in range(5)))
    )
    mock_git.fail_on("org/repo2", CloneError("Error cloning org/repo2", ["git exited with code 128"]))

    result, _ = workspace.update(threads=3)

    assert len(result.failures) == 1
    assert result.failures[0].label == "repo2"
    assert len(mock_git.called_paths("clone")) == 5
    assert sorted(workspace.list()) == ["repo0", "repo1", "repo3", "repo4"]
    assert "because: git exited with code 128" in _output(output_console)


# ============================================================================
# Batches over existing repositories
# ============================================================================


def test_fetch_runs_in_existing_repositories(
    locked_workspace: Workspace, mock_git: MockGitHelper
) -> None:
    result = locked_workspace.fetch(threads=4)

    assert result.total == 1
    calls = mock_git.get_calls("execute_cmd")
    assert [call.args for call in calls] == [("a/b", "git", *FETCH_ARGS)]


def test_run_reports_failures_without_aborting(
    workspace: Workspace,
    workspace_dir: Path,
    mock_git: MockGitHelper,
    make_git_dir,
    make_repository,
    output_console: Console,
) -> None:
    Lockfile.for_workspace(workspace_dir).write(
        [make_repository(p) for p in ("x/one", "x/three", "x/two")]
    )
    for path in ("x/one", "x/three", "x/two"):
        make_git_dir(workspace_dir, path)
    mock_git.fail_on("x/two")

    result = workspace.run("make", ["test"], threads=2)

    assert mock_git.called_paths("execute_cmd") == ["x/one", "x/three", "x/two"]
    assert [f.label for f in result.failures] == ["two"]
    output = _output(output_console)
    assert "Running make test on 3 repositories" in output
    assert "1 repositories failed:" in output
    assert "because: mock failure for x/two" in output


def test_switch_and_pull(
    workspace: Workspace,
    workspace_dir: Path,
    mock_git: MockGitHelper,
    make_git_dir,
    make_repository,
) -> None:
    Lockfile.for_workspace(workspace_dir).write([
        make_repository("f/fork", upstream_url="git@example.com:up/fork.git", branch="main"),
        make_repository("f/plain", branch="trunk"),
        make_repository("f/unknown"),
    ])
    for path in ("f/fork", "f/plain", "f/unknown"):
        make_git_dir(workspace_dir, path)

    result = workspace.switch_and_pull(threads=1)

    assert result.ok
    calls = sorted(call.args for call in mock_git.get_calls("execute_cmd"))
    assert calls == [
        ("f/fork", "git", "pull", "upstream", "main"),
        ("f/fork", "git", "switch", "main"),
        ("f/plain", "git", "pull"),
        ("f/plain", "git", "switch", "trunk"),
        ("f/unknown", "git", "pull"),
    ]


# ============================================================================
# archive
# ============================================================================


def test_archive_force_moves_orphans(
    workspace: Workspace,
    workspace_dir: Path,
    mock_providers: list,
    make_git_dir,
    make_repository,
) -> None:
    mock_providers.append(MockProvider("p", (make_repository("keep/me"),)))
    make_git_dir(workspace_dir, "keep/me")
    make_git_dir(workspace_dir, "old/proj")

    result = workspace.archive(force=True)

    assert result is not None
    assert len(result.moved) == 1
    assert (archive_directory(workspace_dir) / "old" / "proj" / ".git").is_dir()
    assert (workspace_dir / "keep" / "me" / ".git").is_dir()

    assert workspace.archive(force=True) is None


def test_archive_preview_and_decline(
    workspace: Workspace,
    workspace_dir: Path,
    mock_providers: list,
    make_git_dir,
    output_console: Console,
) -> None:
    make_git_dir(workspace_dir, "old/proj")
    prompts = []

    def decline(prompt: str) -> bool:
        prompts.append(prompt)
        return False

    assert workspace.archive(confirm=decline) is None

    output = _output(output_console)
    assert "Move old/proj to .archive/old/proj" in output or "Move old/proj to _archive/old/proj" in output
    assert "Will archive 1 projects" in output
    assert prompts == ["Proceed?"]
    assert (workspace_dir / "old" / "proj" / ".git").is_dir()


def test_archive_reports_collisions(
    workspace: Workspace,
    workspace_dir: Path,
    mock_providers: list,
    make_git_dir,
    output_console: Console,
) -> None:
    make_git_dir(workspace_dir, "old/proj")
    (archive_directory(workspace_dir) / "old" / "proj").mkdir(parents=True)

    result = workspace.archive(force=True)

    assert result is not None
    assert len(result.failed) == 1
    assert "Please remove existing directory before retrying" in _output(output_console)


# ============================================================================
# add
# ============================================================================


def test_add_provider(
    workspace: Workspace, workspace_dir: Path, monkeypatch: pytest.MonkeyPatch, output_console: Console
) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "token")
    source = GithubProvider(name="octo")

    assert workspace.add_provider(source, Path("workspace.toml"))
    assert not workspace.add_provider(source, Path("workspace.toml"))

    assert "Entry already exists, skipping" in _output(output_console)
    text = (workspace_dir / "workspace.toml").read_text()
    assert text.count("[[provider]]") == 1
    assert 'name = "octo"' in text


def test_add_provider_requires_token(
    workspace: Workspace, workspace_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)

    with pytest.raises(ConfigurationError):
        workspace.add_provider(GithubProvider(name="octo"), Path("workspace.toml"))

    assert not (workspace_dir / "workspace.toml").exists()
