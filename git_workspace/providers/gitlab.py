"""GitLab provider.

Lists every project in a group (including subgroups) or user namespace via
the GraphQL API.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar

from git_workspace.exceptions import NotFoundError
from git_workspace.logging import get_logger
from git_workspace.providers.base import ProviderBase, apply_filters, join_path
from git_workspace.transport import HTTPTransport
from git_workspace.types.repository import Repository

logger = get_logger()

PROJECTS_QUERY = """
query Projects($fullPath: ID!, $after: String) {
  namespace(fullPath: $fullPath) {
    projects(includeSubgroups: true, first: 100, after: $after) {
      nodes {
        fullPath
        sshUrlToRepo
        httpUrlToRepo
        archived
        repository { rootRef }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""


@dataclass(frozen=True)
class GitlabProvider(ProviderBase):
    """A GitLab group or user namespace."""

    kind: ClassVar[str] = "gitlab"

    name: str
    url: str = "https://gitlab.com"
    path: str = "gitlab"
    env_var: str = "GITLAB_COM_TOKEN"
    auth_http: bool = False
    include: tuple[str, ...] = field(default_factory=tuple)
    exclude: tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"GitLab group/user {self.name} at {self.url} in directory {self.path}"

    def parse_repository(self, node: dict[str, Any]) -> Repository:
        """Turn one GraphQL project node into a Repository."""
        repository = node.get("repository") or {}
        metadata: dict[str, str | bool] = {"provider": self.kind}
        if node.get("archived"):
            metadata["archived"] = True
        return Repository(
            full_path=join_path(self.path, node["fullPath"]),
            origin_url=node["httpUrlToRepo"] if self.auth_http else node["sshUrlToRepo"],
            branch=repository.get("rootRef"),
            metadata=metadata,
        )

    def fetch_repositories(self, transport: HTTPTransport | None = None) -> list[Repository]:
        """
        List the projects under ``name``.

        Raises:
            ConfigurationError: If the token variable is not set
            NotFoundError: If the namespace does not exist
            ProviderError: On API errors
        """
        if transport is None:
            with HTTPTransport(
                self.url, headers={"Authorization": f"Bearer {self.token()}"}
            ) as owned:
                return self.fetch_repositories(owned)

        repositories: list[Repository] = []
        after: str | None = None
        while True:
            data = transport.graphql(
                PROJECTS_QUERY, {"fullPath": self.name, "after": after}, path="/api/graphql"
            )
            namespace = data.get("namespace")
            if namespace is None:
                raise NotFoundError("NOT_FOUND", f"GitLab namespace {self.name} not found")

            connection = namespace["projects"]
            repositories.extend(self.parse_repository(node) for node in connection["nodes"])

            page_info = connection["pageInfo"]
            if not page_info["hasNextPage"]:
                break
            after = page_info["endCursor"]

        logger.info("Found %d repositories for %s", len(repositories), self)
        return apply_filters(repositories, self.include, self.exclude)
