"""Repository data model."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from git_workspace.exceptions import PathError

VCS_METADATA_DIR = ".git"


@dataclass(frozen=True, order=True)
class Repository:
    """A declared repository.

    Identity, equality, ordering and hashing use ``full_path`` only, so two
    providers declaring the same path collapse to a single entry.
    """

    full_path: str  # relative to the workspace root, e.g. "github/org/project"
    origin_url: str = field(compare=False)
    upstream_url: str | None = field(default=None, compare=False)
    branch: str | None = field(default=None, compare=False)
    metadata: Mapping[str, str | bool] = field(default_factory=dict, compare=False)

    @property
    def name(self) -> str:
        """Last segment of the repository path."""
        return PurePosixPath(self.full_path).name or self.full_path

    def resolve_path(self, workspace: Path) -> Path:
        """
        Join ``full_path`` onto the workspace root.

        Raises:
            PathError: If the path is empty, absolute or escapes the workspace
        """
        normalized = self.full_path.replace("\\", "/")
        relative = PurePosixPath(normalized)
        if not self.full_path.strip() or not relative.parts:
            raise PathError(f"Repository path for {self.origin_url!r} is empty")
        if relative.is_absolute() or Path(self.full_path).is_absolute():
            raise PathError(
                f"Repository path {self.full_path!r} must be relative to the workspace"
            )
        # PurePosixPath drops "." segments, so check the raw ones
        if any(part in ("..", ".") for part in normalized.split("/")):
            raise PathError(
                f"Repository path {self.full_path!r} escapes the workspace {workspace}"
            )
        return workspace.joinpath(*relative.parts)

    def exists(self, workspace: Path) -> bool:
        """True when the repository directory holds version-control metadata."""
        try:
            path = self.resolve_path(workspace)
        except PathError:
            return False
        return (path / VCS_METADATA_DIR).is_dir()


def dedupe_repositories(repositories: Iterable[Repository]) -> list[Repository]:
    """Sort by identity and drop adjacent duplicates, keeping the first seen."""
    ordered = sorted(repositories)
    unique: list[Repository] = []
    for repository in ordered:
        if unique and unique[-1] == repository:
            continue
        unique.append(repository)
    return unique
