"""
Workspace configuration files.

Provider sources are declared in ``workspace.toml`` (and any
``workspace-*.toml``) in the workspace root as an array of
``[[provider]]`` tables, each tagged with its provider kind:

    [[provider]]
    provider = "github"
    name = "my-org"
    path = "github"
"""

import tomllib
from collections.abc import Sequence
from pathlib import Path

import tomli_w

from git_workspace.exceptions import ConfigurationError, FormatError, StorageError
from git_workspace.lockfile import LOCKFILE_NAME, atomic_write
from git_workspace.logging import get_logger
from git_workspace.providers import ProviderSource, provider_from_dict

DEFAULT_CONFIG_NAME = "workspace.toml"

logger = get_logger()


def all_config_files(workspace: Path) -> list[Path]:
    """
    Config files in the workspace root, sorted by name (the lockfile excluded).

    Raises:
        StorageError: If the workspace directory cannot be listed
    """
    try:
        files = [
            path
            for path in workspace.iterdir()
            if path.is_file()
            and path.suffix == ".toml"
            and path.name != LOCKFILE_NAME
            and (path.name == DEFAULT_CONFIG_NAME or path.name.startswith("workspace-"))
        ]
    except OSError as e:
        raise StorageError(f"Error listing config files in {workspace}", [str(e)]) from e
    return sorted(files)


class Config:
    """Read and write provider sources across one or more config files."""

    def __init__(self, files: Sequence[Path]) -> None:
        self.files = list(files)

    @classmethod
    def for_workspace(cls, workspace: Path) -> "Config":
        """
        Config built from every config file in the workspace.

        Raises:
            ConfigurationError: If the workspace has no config files
        """
        files = all_config_files(workspace)
        if not files:
            raise ConfigurationError(
                "No configuration files found: Are you in the right workspace?",
                [f"expected {DEFAULT_CONFIG_NAME} in {workspace}"],
            )
        return cls(files)

    @staticmethod
    def read_file(path: Path) -> list[ProviderSource]:
        """
        Read the sources declared in one file. A missing file declares nothing.

        Raises:
            FormatError: If the file is not valid TOML
            ConfigurationError: If an entry is invalid
            StorageError: If the file exists but cannot be read
        """
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageError(f"Error reading config file {path}", [str(e)]) from e

        try:
            document = tomllib.loads(raw.decode("utf-8"))
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
            raise FormatError(f"Error parsing config file {path}", [str(e)]) from e

        entries = document.get("provider", [])
        if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
            raise FormatError(
                f"Error parsing config file {path}", ["'provider' must be an array of tables"]
            )

        sources = []
        for index, entry in enumerate(entries):
            try:
                sources.append(provider_from_dict(entry))
            except ConfigurationError as e:
                raise e.with_context(f"Invalid provider entry {index} in {path}") from e
        return sources

    def read(self) -> list[ProviderSource]:
        """
        All sources from every file, in file order.

        Raises:
            ConfigurationError: If the same provider entry is declared twice
        """
        sources: list[ProviderSource] = []
        for path in self.files:
            for source in self.read_file(path):
                if source in sources:
                    raise ConfigurationError(
                        f"Duplicate provider entry in {path}",
                        [f"{source} is already configured"],
                    )
                sources.append(source)
        logger.debug("Read %d provider sources from %d files", len(sources), len(self.files))
        return sources

    @staticmethod
    def dumps(sources: Sequence[ProviderSource]) -> str:
        return tomli_w.dumps({"provider": [source.to_dict() for source in sources]})

    def write(self, sources: Sequence[ProviderSource], path: Path) -> None:
        """Replace ``path`` with ``sources``."""
        try:
            atomic_write(path, self.dumps(sources).encode("utf-8"))
        except OSError as e:
            raise StorageError(f"Error writing config file {path}", [str(e)]) from e
