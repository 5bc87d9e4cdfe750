"""
Pytest plugin for git-workspace testing fixtures.

This module re-exports all fixtures from fixtures.py so they can be
automatically discovered by pytest.

To use these fixtures in your tests, add this to your conftest.py:

    pytest_plugins = ["git_workspace.testing.conftest"]
"""

# Re-export all fixtures for pytest auto-discovery
from git_workspace.testing.fixtures import (
    make_git_dir,
    make_repository,
    mock_git,
    mock_providers,
    output_console,
    sample_repository,
    workspace,
    workspace_dir,
)

__all__ = [
    "workspace_dir",
    "make_git_dir",
    "make_repository",
    "sample_repository",
    "output_console",
    "mock_git",
    "workspace",
    "mock_providers",
]
