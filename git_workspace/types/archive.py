"""Archive plan data models."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class ArchivePlanEntry:
    """One orphaned repository and where it will be moved to."""

    source: Path
    destination: Path


@dataclass
class ArchiveFailure:
    """A relocation that could not be carried out."""

    entry: ArchivePlanEntry
    reason: str


@dataclass
class ArchiveResult:
    """Outcome of executing an archive plan."""

    moved: list[ArchivePlanEntry] = field(default_factory=list)
    failed: list[ArchiveFailure] = field(default_factory=list)
