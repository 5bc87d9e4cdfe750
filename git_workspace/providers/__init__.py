"""git-workspace provider sources.

A provider source is one configured hosting account. The set of variants is
closed; callers only rely on ``fetch_repositories()``.
"""

from typing import Any

from git_workspace.exceptions import ConfigurationError
from git_workspace.providers.gitea import GiteaProvider
from git_workspace.providers.github import GithubProvider
from git_workspace.providers.gitlab import GitlabProvider

ProviderSource = GithubProvider | GitlabProvider | GiteaProvider

PROVIDERS: dict[str, type[ProviderSource]] = {
    GithubProvider.kind: GithubProvider,
    GitlabProvider.kind: GitlabProvider,
    GiteaProvider.kind: GiteaProvider,
}


def provider_from_dict(data: dict[str, Any]) -> ProviderSource:
    """
    Build a provider source from a ``[[provider]]`` table.

    Raises:
        ConfigurationError: If the ``provider`` tag is missing or unknown, or the entry is invalid
    """
    fields = dict(data)
    kind = fields.pop("provider", None)
    if kind not in PROVIDERS:
        raise ConfigurationError(
            f"Unknown provider {kind!r}",
            [f"expected one of: {', '.join(sorted(PROVIDERS))}"],
        )
    return PROVIDERS[kind].from_dict(fields)


__all__ = [
    "ProviderSource",
    "PROVIDERS",
    "provider_from_dict",
    "GithubProvider",
    "GitlabProvider",
    "GiteaProvider",
]
