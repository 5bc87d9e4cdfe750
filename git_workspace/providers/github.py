"""GitHub provider.

Lists every repository owned by a user or organisation through the GraphQL
API, following cursors 100 repositories at a time.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar

from git_workspace.exceptions import NotFoundError
from git_workspace.logging import get_logger
from git_workspace.providers.base import ProviderBase, apply_filters, join_path, split_endpoint
from git_workspace.transport import HTTPTransport
from git_workspace.types.repository import Repository

logger = get_logger()

REPOSITORIES_QUERY = """
query Repositories($login: String!, $after: String) {
  repositoryOwner(login: $login) {
    repositories(first: 100, after: $after, ownerAffiliations: [OWNER]) {
      nodes {
        nameWithOwner
        sshUrl
        url
        isFork
        isArchived
        defaultBranchRef { name }
        parent {
          sshUrl
          url
          defaultBranchRef { name }
        }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""


def _branch(node: dict[str, Any] | None) -> str | None:
    ref = (node or {}).get("defaultBranchRef")
    return ref.get("name") if isinstance(ref, dict) else None


@dataclass(frozen=True)
class GithubProvider(ProviderBase):
    """A GitHub user or organisation."""

    kind: ClassVar[str] = "github"

    name: str
    path: str = "github"
    env_var: str = "GITHUB_TOKEN"
    skip_forks: bool = False
    auth_http: bool = False
    url: str = "https://api.github.com/graphql"
    include: tuple[str, ...] = field(default_factory=tuple)
    exclude: tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"GitHub user/org {self.name} in directory {self.path}"

    def _clone_url(self, node: dict[str, Any]) -> str:
        if self.auth_http:
            return f"{node['url']}.git"
        return node["sshUrl"]

    def parse_repository(self, node: dict[str, Any]) -> Repository:
        """Turn one GraphQL repository node into a Repository."""
        parent = node.get("parent")
        if parent:
            upstream_url: str | None = self._clone_url(parent)
            branch = _branch(parent)
        else:
            upstream_url = None
            branch = _branch(node)

        metadata: dict[str, str | bool] = {"provider": self.kind}
        if node.get("isFork"):
            metadata["fork"] = True
        if node.get("isArchived"):
            metadata["archived"] = True

        return Repository(
            full_path=join_path(self.path, node["nameWithOwner"]),
            origin_url=self._clone_url(node),
            upstream_url=upstream_url,
            branch=branch,
            metadata=metadata,
        )

    def fetch_repositories(self, transport: HTTPTransport | None = None) -> list[Repository]:
        """
        List the repositories owned by ``name``.

        Args:
            transport: Transport to use; one authenticated with the token is created if omitted

        Raises:
            ConfigurationError: If the token variable is not set
            NotFoundError: If the user or organisation does not exist
            ProviderError: On API errors
        """
        base_url, endpoint = split_endpoint(self.url)
        if transport is None:
            with HTTPTransport(
                base_url, headers={"Authorization": f"Bearer {self.token()}"}
            ) as owned:
                return self.fetch_repositories(owned)

        repositories: list[Repository] = []
        after: str | None = None
        while True:
            data = transport.graphql(
                REPOSITORIES_QUERY, {"login": self.name, "after": after}, path=endpoint
            )
            owner = data.get("repositoryOwner")
            if owner is None:
                raise NotFoundError("NOT_FOUND", f"GitHub user or organisation {self.name} not found")

            connection = owner["repositories"]
            for node in connection["nodes"]:
                if self.skip_forks and node.get("isFork"):
                    continue
                repositories.append(self.parse_repository(node))

            page_info = connection["pageInfo"]
            if not page_info["hasNextPage"]:
                break
            after = page_info["endCursor"]

        logger.info("Found %d repositories for %s", len(repositories), self)
        return apply_filters(repositories, self.include, self.exclude)
