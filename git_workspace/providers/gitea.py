"""Gitea provider.

Gitea has no GraphQL API, so repositories are listed page by page through
the REST API, first as an organisation and then as a user.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar

from git_workspace.exceptions import NotFoundError
from git_workspace.logging import get_logger
from git_workspace.providers.base import ProviderBase, apply_filters, join_path
from git_workspace.transport import HTTPTransport
from git_workspace.types.repository import Repository

logger = get_logger()

PAGE_SIZE = 50


@dataclass(frozen=True)
class GiteaProvider(ProviderBase):
    """A Gitea user or organisation."""

    kind: ClassVar[str] = "gitea"

    name: str
    url: str
    path: str = "gitea"
    env_var: str = "GITEA_TOKEN"
    skip_forks: bool = False
    auth_http: bool = False
    include: tuple[str, ...] = field(default_factory=tuple)
    exclude: tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"Gitea user/org {self.name} at {self.url} in directory {self.path}"

    def correctly_configured(self) -> bool:
        if not self.url.startswith(("http://", "https://")):
            logger.warning("Gitea url %r must start with http:// or https://", self.url)
            return False
        return super().correctly_configured()

    def parse_repository(self, data: dict[str, Any]) -> Repository:
        """Turn one REST repository object into a Repository."""
        url_key = "clone_url" if self.auth_http else "ssh_url"
        parent = data.get("parent")
        metadata: dict[str, str | bool] = {"provider": self.kind}
        if data.get("fork"):
            metadata["fork"] = True
        if data.get("archived"):
            metadata["archived"] = True
        return Repository(
            full_path=join_path(self.path, data["full_name"]),
            origin_url=data[url_key],
            upstream_url=parent[url_key] if parent else None,
            branch=(parent or data).get("default_branch") or None,
            metadata=metadata,
        )

    def _pages(self, transport: HTTPTransport, path: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            batch = transport.request(
                "GET", path, params={"page": page, "limit": PAGE_SIZE}
            )
            if not batch:
                return items
            items.extend(batch)
            if len(batch) < PAGE_SIZE:
                return items
            page += 1

    def fetch_repositories(self, transport: HTTPTransport | None = None) -> list[Repository]:
        """
        List the repositories of ``name``.

        Raises:
            ConfigurationError: If the token variable is not set
            NotFoundError: If neither an organisation nor a user called ``name`` exists
            ProviderError: On API errors
        """
        if transport is None:
            with HTTPTransport(
                self.url, headers={"Authorization": f"token {self.token()}"}
            ) as owned:
                return self.fetch_repositories(owned)

        try:
            items = self._pages(transport, f"/api/v1/orgs/{self.name}/repos")
        except NotFoundError:
            logger.debug("%s is not a Gitea organisation, trying as a user", self.name)
            items = self._pages(transport, f"/api/v1/users/{self.name}/repos")

        repositories = [
            self.parse_repository(item)
            for item in items
            if not (self.skip_forks and item.get("fork"))
        ]
        logger.info("Found %d repositories for %s", len(repositories), self)
        return apply_filters(repositories, self.include, self.exclude)
