"""
Archive detection.

Finds version-controlled directories under the workspace that are no longer
declared in the lockfile and moves them into an archive tree that mirrors
their original location, e.g. ``github/old/repo`` ->
``.archive/github/old/repo``.

The walk never descends into a declared repository, into the archive
itself, or into an orphan once it has been found, so nested repositories
inside an orphan move with it and are not reported separately.
"""

import os
import sys
from collections.abc import Iterable
from pathlib import Path

from git_workspace.exceptions import PathError, TraversalError
from git_workspace.logging import get_logger
from git_workspace.types.archive import ArchiveFailure, ArchivePlanEntry, ArchiveResult
from git_workspace.types.repository import VCS_METADATA_DIR, Repository

logger = get_logger()


def archive_directory(workspace: Path) -> Path:
    """The archive root (``_archive`` on Windows, which dislikes leading dots)."""
    name = "_archive" if sys.platform == "win32" else ".archive"
    return workspace / name


def protected_paths(workspace: Path, repositories: Iterable[Repository]) -> set[Path]:
    """Canonical paths of every declared repository that exists on disk."""
    paths = set()
    for repository in repositories:
        if not repository.exists(workspace):
            continue
        try:
            paths.add(repository.resolve_path(workspace).resolve())
        except (PathError, OSError) as e:
            logger.debug("Skipping %s: %s", repository.full_path, e)
    return paths


def find_archivable(
    workspace: Path, repositories: Iterable[Repository]
) -> list[ArchivePlanEntry]:
    """
    Plan the relocation of every orphaned repository.

    Args:
        workspace: Canonical workspace root
        repositories: Declared repositories (from the lockfile)

    Returns:
        One entry per orphan, in walk order

    Raises:
        TraversalError: If the archive root cannot be created or a directory cannot be read
    """
    archive_root = archive_directory(workspace)
    try:
        archive_root.mkdir(exist_ok=True)
        archive_root = archive_root.resolve(strict=True)
    except OSError as e:
        raise TraversalError(f"Error creating archive directory {archive_root}", [str(e)]) from e

    protected = protected_paths(workspace, repositories)
    protected.add(archive_root)

    def on_error(error: OSError) -> None:
        raise TraversalError(
            "Error iterating through directory", [f"{error.filename}: {error.strerror}"]
        ) from error

    plan: list[ArchivePlanEntry] = []
    for dirpath, dirnames, _ in os.walk(workspace, onerror=on_error):
        parent = Path(dirpath)
        keep = []
        for dirname in sorted(dirnames):
            path = parent / dirname
            if path in protected or path.is_symlink():
                continue
            if dirname == VCS_METADATA_DIR:
                continue
            if (path / VCS_METADATA_DIR).is_dir():
                plan.append(
                    ArchivePlanEntry(
                        source=path,
                        destination=archive_root / path.relative_to(workspace),
                    )
                )
                continue
            keep.append(dirname)
        # Prune: os.walk only descends into what is left in dirnames
        dirnames[:] = keep

    logger.info("Found %d repositories to archive", len(plan))
    return plan


def execute_plan(plan: Iterable[ArchivePlanEntry]) -> ArchiveResult:
    """
    Move each orphan into the archive.

    Every move is independent: a failure (for example an existing
    destination) is recorded and the remaining entries are still moved.
    """
    result = ArchiveResult()
    for entry in plan:
        if entry.destination.exists():
            result.failed.append(
                ArchiveFailure(entry, f"destination {entry.destination} already exists")
            )
            continue
        try:
            entry.destination.parent.mkdir(parents=True, exist_ok=True)
            os.rename(entry.source, entry.destination)
        except OSError as e:
            result.failed.append(ArchiveFailure(entry, str(e)))
            continue
        logger.info("Moved %s to %s", entry.source, entry.destination)
        result.moved.append(entry)
    return result
