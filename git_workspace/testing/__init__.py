"""git-workspace testing utilities.

Provides a mock git helper, a mock provider source and pytest fixtures for
testing code that drives a workspace.
"""

from git_workspace.testing.mock import MockCall, MockGitHelper, MockProvider

__all__ = [
    "MockGitHelper",
    "MockProvider",
    "MockCall",
]
