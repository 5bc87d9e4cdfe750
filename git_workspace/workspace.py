"""Workspace root resolution."""

import os
from pathlib import Path

from git_workspace.exceptions import PathError
from git_workspace.logging import get_logger

WORKSPACE_ENV_VAR = "GIT_WORKSPACE"

logger = get_logger()


def resolve_workspace(path: str | os.PathLike[str]) -> tuple[Path, bool]:
    """
    Expand, create and canonicalize the workspace root.

    Args:
        path: Workspace path as given by the user (may start with ``~``)

    Returns:
        The canonical workspace path and whether it had to be created

    Raises:
        PathError: If the directory cannot be created or canonicalized
    """
    expanded = Path(path).expanduser()
    created = False
    if not expanded.exists():
        try:
            expanded.mkdir(parents=True)
        except OSError as e:
            raise PathError(f"Error creating workspace directory {expanded}", [str(e)]) from e
        created = True
        logger.info("Created workspace %s", expanded)

    try:
        workspace = expanded.resolve(strict=True)
    except OSError as e:
        raise PathError(f"Error canonicalizing workspace path {expanded}", [str(e)]) from e

    if not workspace.is_dir():
        raise PathError(f"Workspace path {workspace} is not a directory")
    return workspace, created
