"""Shared behaviour for provider sources."""

import dataclasses
import os
import re
from collections.abc import Iterable
from typing import Any, ClassVar, TypeVar

import httpx

from git_workspace.exceptions import ConfigurationError
from git_workspace.logging import get_logger
from git_workspace.types.repository import Repository

logger = get_logger()

P = TypeVar("P", bound="ProviderBase")


def join_path(*parts: str) -> str:
    """Join non-empty path segments with ``/``."""
    return "/".join(part.strip("/") for part in parts if part and part.strip("/"))


def split_endpoint(url: str) -> tuple[str, str]:
    """Split an API endpoint into a base URL and a path, e.g. for GraphQL endpoints."""
    parsed = httpx.URL(url)
    base = f"{parsed.scheme}://{parsed.netloc.decode('ascii')}"
    return base, parsed.path.rstrip("/")


def apply_filters(
    repositories: Iterable[Repository],
    include: tuple[str, ...],
    exclude: tuple[str, ...],
) -> list[Repository]:
    """Keep repositories matching any ``include`` pattern, then drop ``exclude`` matches."""
    included = [re.compile(pattern) for pattern in include]
    excluded = [re.compile(pattern) for pattern in exclude]
    kept = []
    for repository in repositories:
        if included and not any(p.search(repository.full_path) for p in included):
            continue
        if any(p.search(repository.full_path) for p in excluded):
            continue
        kept.append(repository)
    return kept


class ProviderBase:
    """Mixin for the frozen provider dataclasses."""

    kind: ClassVar[str] = ""

    # Declared by every subclass
    name: str
    env_var: str
    include: tuple[str, ...]
    exclude: tuple[str, ...]

    def token(self) -> str:
        """
        Read the API token from the configured environment variable.

        Raises:
            ConfigurationError: If the variable is unset or empty
        """
        value = os.environ.get(self.env_var, "").strip()
        if not value:
            raise ConfigurationError(
                f"Environment variable {self.env_var} is not set",
                [f"{self} needs an API token in ${self.env_var}"],
            )
        return value

    def correctly_configured(self) -> bool:
        """True when the token variable is set and every filter pattern compiles."""
        if not os.environ.get(self.env_var, "").strip():
            logger.warning(
                "Environment variable %s is not set; %s cannot authenticate",
                self.env_var,
                self,
            )
            return False
        for pattern in (*self.include, *self.exclude):
            try:
                re.compile(pattern)
            except re.error as e:
                logger.warning("Invalid filter pattern %r: %s", pattern, e)
                return False
        return True

    def to_dict(self) -> dict[str, Any]:
        """Config-file representation, tagged with ``provider``."""
        data: dict[str, Any] = {"provider": self.kind}
        for f in dataclasses.fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if value is None or value == ():
                continue
            data[f.name] = list(value) if isinstance(value, tuple) else value
        return data

    @classmethod
    def from_dict(cls: type[P], data: dict[str, Any]) -> P:
        """
        Build a provider from a config-file table (without the ``provider`` tag).

        Raises:
            ConfigurationError: On unknown keys, missing keys or wrong value types
        """
        fields = {f.name: f for f in dataclasses.fields(cls)}  # type: ignore[arg-type]
        unknown = set(data) - set(fields)
        if unknown:
            raise ConfigurationError(
                f"Unknown keys for {cls.kind} provider: {', '.join(sorted(unknown))}"
            )

        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            default = fields[key].default
            if key in ("include", "exclude"):
                if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                    raise ConfigurationError(f"{cls.kind} provider key {key!r} must be a list of strings")
                value = tuple(value)
            elif isinstance(default, bool):
                if not isinstance(value, bool):
                    raise ConfigurationError(f"{cls.kind} provider key {key!r} must be true or false")
            elif not isinstance(value, str):
                raise ConfigurationError(f"{cls.kind} provider key {key!r} must be a string")
            kwargs[key] = value

        try:
            return cls(**kwargs)
        except TypeError as e:
            raise ConfigurationError(f"Invalid {cls.kind} provider entry", [str(e)]) from e
