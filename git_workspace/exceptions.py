"""git-workspace exception classes.

Every error carries an explicit, ordered list of causes (outer to inner) so
that reports can print the whole chain without relying on traceback state.
"""

import copy
from collections.abc import Sequence


class GitWorkspaceError(Exception):
    """Base exception for all git-workspace errors."""

    def __init__(
        self, code: str, message: str, causes: Sequence[str] = ()
    ) -> None:
        self.code = code
        self.message = message
        self.causes = list(causes)
        super().__init__(f"[{code}] {message}")

    @property
    def chain(self) -> list[str]:
        """The message followed by every cause, innermost last."""
        return [self.message, *self.causes]

    def with_context(self, message: str) -> "GitWorkspaceError":
        """Return a copy of this error wrapped in an outer context message."""
        wrapped = copy.copy(self)
        wrapped.causes = self.chain
        wrapped.message = message
        wrapped.args = (f"[{self.code}] {message}",)
        wrapped.__cause__ = self
        return wrapped


class ConfigurationError(GitWorkspaceError):
    """Raised when workspace configuration is invalid or missing."""

    def __init__(self, message: str, causes: Sequence[str] = ()) -> None:
        super().__init__("CONFIGURATION_ERROR", message, causes)


class LockfileMissingError(ConfigurationError):
    """Raised when a command needs the lockfile and none has been written."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Lockfile {path} does not exist",
            ["Run `git-workspace lock` or `git-workspace update` first"],
        )
        self.path = path


class PathError(GitWorkspaceError):
    """Raised when a repository path cannot be resolved inside the workspace."""

    def __init__(self, message: str, causes: Sequence[str] = ()) -> None:
        super().__init__("PATH_ERROR", message, causes)


class FormatError(GitWorkspaceError):
    """Raised when a lockfile or config file cannot be parsed."""

    def __init__(self, message: str, causes: Sequence[str] = ()) -> None:
        super().__init__("FORMAT_ERROR", message, causes)


class StorageError(GitWorkspaceError):
    """Raised when a lockfile or config file cannot be read or written."""

    def __init__(self, message: str, causes: Sequence[str] = ()) -> None:
        super().__init__("STORAGE_ERROR", message, causes)


class CommandError(GitWorkspaceError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(
        self,
        message: str,
        causes: Sequence[str] = (),
        returncode: int | None = None,
        output: str = "",
        code: str = "COMMAND_ERROR",
    ) -> None:
        super().__init__(code, message, causes)
        self.returncode = returncode
        self.output = output


class CloneError(CommandError):
    """Raised when cloning a repository fails."""

    def __init__(
        self,
        message: str,
        causes: Sequence[str] = (),
        returncode: int | None = None,
        output: str = "",
    ) -> None:
        super().__init__(message, causes, returncode, output, code="CLONE_ERROR")


class TraversalError(GitWorkspaceError):
    """Raised when walking the workspace tree fails."""

    def __init__(self, message: str, causes: Sequence[str] = ()) -> None:
        super().__init__("TRAVERSAL_ERROR", message, causes)


class ProviderFetchError(GitWorkspaceError):
    """Raised when a provider cannot list its repositories."""

    def __init__(
        self, message: str, causes: Sequence[str] = (), code: str = "PROVIDER_FETCH_ERROR"
    ) -> None:
        super().__init__(code, message, causes)


class ProviderError(ProviderFetchError):
    """Base class for errors returned by a provider API."""

    def __init__(
        self, code: str, message: str, request_id: str | None = None
    ) -> None:
        super().__init__(message, code=code)
        self.request_id = request_id


class AuthenticationError(ProviderError):
    """Raised when the provider rejects the token."""

    pass


class AuthorizationError(ProviderError):
    """Raised when access is denied."""

    pass


class NotFoundError(ProviderError):
    """Raised when a user, organisation or group is not found."""

    pass


class RateLimitedError(ProviderError):
    """Raised when rate limited."""

    def __init__(
        self,
        code: str,
        message: str,
        retry_after: int,
        request_id: str | None = None,
    ) -> None:
        super().__init__(code, message, request_id)
        self.retry_after = retry_after


class ValidationError(ProviderError):
    """Raised on other client errors (4xx)."""

    pass


class ServerError(ProviderError):
    """Raised on server errors (5xx) and connection failures."""

    pass


class GraphQLError(ProviderError):
    """Raised when a GraphQL response carries an errors array."""

    pass


def error_chain(error: BaseException) -> list[str]:
    """Render an exception and everything it wraps as a list of messages."""
    messages: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, GitWorkspaceError):
            # with_context() folds the wrapped chain into causes already
            messages.extend(m for m in current.chain if m not in messages)
        else:
            text = str(current) or type(current).__name__
            if text not in messages:
                messages.append(text)
        current = current.__cause__
    return messages
