"""git-workspace type definitions.

This module exports the data model types shared across the package.
"""

from git_workspace.types.archive import ArchiveFailure, ArchivePlanEntry, ArchiveResult
from git_workspace.types.repository import (
    VCS_METADATA_DIR,
    Repository,
    dedupe_repositories,
)

__all__ = [
    # Repository model
    "Repository",
    "dedupe_repositories",
    "VCS_METADATA_DIR",
    # Archive plan
    "ArchivePlanEntry",
    "ArchiveFailure",
    "ArchiveResult",
]
