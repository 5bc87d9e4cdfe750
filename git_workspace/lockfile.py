"""
Lockfile store.

The lockfile is a TOML snapshot of every declared repository, sorted and
deduplicated by path. It is written deterministically so that it can be
kept under version control, and replaced atomically so that a crash never
leaves a truncated file behind.
"""

import os
import tempfile
import tomllib
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import tomli_w

from git_workspace.exceptions import FormatError, StorageError
from git_workspace.logging import get_logger
from git_workspace.types.repository import Repository

LOCKFILE_NAME = "workspace-lock.toml"

_KNOWN_KEYS = {"path", "url", "upstream", "branch", "metadata"}

logger = get_logger()


def _parse_entry(index: int, entry: Any) -> Repository:
    """Parse one ``[[repo]]`` table."""
    if not isinstance(entry, dict):
        raise FormatError(f"Entry {index} in the lockfile is not a table")

    unknown = set(entry) - _KNOWN_KEYS
    if unknown:
        raise FormatError(
            f"Entry {index} in the lockfile has unknown keys: {', '.join(sorted(unknown))}"
        )

    for key in ("path", "url"):
        if not isinstance(entry.get(key), str) or not entry[key]:
            raise FormatError(f"Entry {index} in the lockfile is missing {key!r}")

    for key in ("upstream", "branch"):
        if key in entry and not isinstance(entry[key], str):
            raise FormatError(f"Entry {index} in the lockfile has a non-string {key!r}")

    metadata = entry.get("metadata", {})
    if not isinstance(metadata, dict) or not all(
        isinstance(value, (str, bool)) for value in metadata.values()
    ):
        raise FormatError(f"Entry {index} in the lockfile has invalid metadata")

    return Repository(
        full_path=entry["path"],
        origin_url=entry["url"],
        upstream_url=entry.get("upstream"),
        branch=entry.get("branch"),
        metadata=dict(metadata),
    )


def _serialize_entry(repository: Repository) -> dict[str, Any]:
    """Build the ``[[repo]]`` table for a repository, keys in a fixed order."""
    entry: dict[str, Any] = {
        "path": repository.full_path,
        "url": repository.origin_url,
    }
    if repository.upstream_url is not None:
        entry["upstream"] = repository.upstream_url
    if repository.branch is not None:
        entry["branch"] = repository.branch
    if repository.metadata:
        entry["metadata"] = {key: repository.metadata[key] for key in sorted(repository.metadata)}
    return entry


def atomic_write(path: Path, data: bytes) -> None:
    """Write ``data`` to a temporary file beside ``path`` and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class Lockfile:
    """Read and write the workspace lockfile."""

    def __init__(self, path: Path) -> None:
        """
        Initialize the lockfile store.

        Args:
            path: Location of the lockfile (usually ``<workspace>/workspace-lock.toml``)
        """
        self.path = path

    @classmethod
    def for_workspace(cls, workspace: Path) -> "Lockfile":
        """The lockfile that belongs to a workspace root."""
        return cls(workspace / LOCKFILE_NAME)

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> list[Repository]:
        """
        Read the declared repositories.

        Returns:
            Repositories in file order, or an empty list if the file does not exist

        Raises:
            FormatError: If the file is not valid TOML, an entry is malformed or a path repeats
            StorageError: If the file exists but cannot be read
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            logger.debug("Lockfile %s does not exist", self.path)
            return []
        except OSError as e:
            raise StorageError(f"Error reading lockfile {self.path}", [str(e)]) from e

        try:
            document = tomllib.loads(raw.decode("utf-8"))
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
            raise FormatError(f"Error parsing lockfile {self.path}", [str(e)]) from e

        entries = document.get("repo", [])
        if not isinstance(entries, list):
            raise FormatError(f"Error parsing lockfile {self.path}", ["'repo' must be an array of tables"])

        try:
            repositories = [_parse_entry(index, entry) for index, entry in enumerate(entries)]
        except FormatError as e:
            raise e.with_context(f"Error parsing lockfile {self.path}") from e

        seen: set[str] = set()
        for repository in repositories:
            if repository.full_path in seen:
                raise FormatError(
                    f"Error parsing lockfile {self.path}",
                    [f"duplicate path {repository.full_path!r}"],
                )
            seen.add(repository.full_path)
        return repositories

    def dumps(self, repositories: Sequence[Repository]) -> str:
        """Serialize repositories; callers pass them sorted and deduplicated."""
        document = {"repo": [_serialize_entry(repository) for repository in repositories]}
        return tomli_w.dumps(document)

    def write(self, repositories: Sequence[Repository]) -> None:
        """
        Replace the lockfile with ``repositories``.

        The store does not re-sort; pass the output of ``dedupe_repositories``.

        Raises:
            StorageError: If the file cannot be written
        """
        try:
            atomic_write(self.path, self.dumps(repositories).encode("utf-8"))
        except OSError as e:
            raise StorageError(f"Error writing lockfile {self.path}", [str(e)]) from e
        logger.info("Wrote %d repositories to %s", len(repositories), self.path)
