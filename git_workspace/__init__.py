"""git-workspace - keep a directory tree in sync with your GitHub, GitLab and Gitea repositories."""

__version__ = "0.1.0"

from git_workspace.archive import archive_directory, execute_plan, find_archivable
from git_workspace.commands import Workspace
from git_workspace.config import Config, all_config_files
from git_workspace.exceptions import (
    AuthenticationError,
    AuthorizationError,
    CloneError,
    CommandError,
    ConfigurationError,
    FormatError,
    GitWorkspaceError,
    GraphQLError,
    LockfileMissingError,
    NotFoundError,
    PathError,
    ProviderError,
    ProviderFetchError,
    RateLimitedError,
    ServerError,
    StorageError,
    TraversalError,
    ValidationError,
    error_chain,
)
from git_workspace.executor import BatchResult, Executor, Failure, report_failures
from git_workspace.git import GitHelper
from git_workspace.lockfile import Lockfile
from git_workspace.logging import configure_logging, get_logger
from git_workspace.providers import (
    GiteaProvider,
    GithubProvider,
    GitlabProvider,
    ProviderSource,
    provider_from_dict,
)
from git_workspace.transport import HTTPTransport, RetryConfig
from git_workspace.types import ArchivePlanEntry, ArchiveResult, Repository, dedupe_repositories
from git_workspace.workspace import resolve_workspace

__all__ = [
    "__version__",
    # Commands
    "Workspace",
    "resolve_workspace",
    # Repository model
    "Repository",
    "dedupe_repositories",
    "Lockfile",
    # Execution engine
    "Executor",
    "BatchResult",
    "Failure",
    "report_failures",
    "GitHelper",
    # Archive
    "find_archivable",
    "execute_plan",
    "archive_directory",
    "ArchivePlanEntry",
    "ArchiveResult",
    # Configuration and providers
    "Config",
    "all_config_files",
    "ProviderSource",
    "provider_from_dict",
    "GithubProvider",
    "GitlabProvider",
    "GiteaProvider",
    # Exceptions
    "GitWorkspaceError",
    "ConfigurationError",
    "LockfileMissingError",
    "PathError",
    "FormatError",
    "CommandError",
    "CloneError",
    "StorageError",
    "TraversalError",
    "ProviderFetchError",
    "ProviderError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "RateLimitedError",
    "ValidationError",
    "ServerError",
    "GraphQLError",
    "error_chain",
    # Transport
    "HTTPTransport",
    "RetryConfig",
    # Logging
    "configure_logging",
    "get_logger",
]
