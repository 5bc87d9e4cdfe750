"""
HTTP transport for provider APIs.

Handles HTTP communication with automatic retry logic, token authentication
and error handling for the GitHub, GitLab and Gitea providers.
"""

import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from git_workspace.exceptions import (
    AuthenticationError,
    AuthorizationError,
    GitWorkspaceError,
    GraphQLError,
    NotFoundError,
    ProviderError,
    RateLimitedError,
    ServerError,
    ValidationError,
)
from git_workspace.logging import log_http_request, log_http_response


@dataclass
class RetryConfig:
    """Configuration for automatic retry behavior."""

    max_retries: int = 3
    backoff_factor: float = 2.0
    retry_on: list[int] = field(default_factory=lambda: [429, 500, 502, 503])
    respect_retry_after: bool = True
    max_backoff: float = 60.0  # Maximum backoff time in seconds
    jitter: float = 0.1  # Jitter factor (0.1 = ±10%)


class HTTPTransport:
    """
    HTTP transport layer with token authentication and retry logic.

    Handles:
    - Authorization headers for provider tokens
    - Exponential backoff with jitter for retries
    - Retry-After header respect for rate limiting
    - Error response parsing into typed exceptions
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        retry_config: RetryConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize HTTP transport.

        Args:
            base_url: Base URL for API requests (e.g., "https://api.github.com")
            headers: Extra headers sent with every request (authorization, accept, ...)
            timeout: Request timeout in seconds
            retry_config: Configuration for retry behavior
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()
        self.sleep: Callable[[float], None] = time.sleep

        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Accept": "application/json",
                "User-Agent": "git-workspace",
                **(headers or {}),
            },
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "HTTPTransport":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make a request with automatic retry.

        Args:
            method: HTTP method
            path: API path, relative to the base URL
            params: Query parameters
            body: JSON request body (for POST/PUT)

        Returns:
            Parsed JSON response

        Raises:
            ProviderError: On API errors
        """
        def make_request() -> httpx.Response:
            log_http_request(method, f"{self.base_url}{path}", dict(self._client.headers), body)
            return self._client.request(method, path, params=params, json=body)

        return self._execute_with_retry(make_request)

    def graphql(self, query: str, variables: dict[str, Any] | None = None, path: str = "") -> dict[str, Any]:
        """
        Run a GraphQL query.

        Returns:
            The ``data`` member of the response

        Raises:
            GraphQLError: If the response carries GraphQL errors
            ProviderError: On HTTP errors
        """
        response = self.request(
            "POST", path, body={"query": query, "variables": variables or {}}
        )
        if not isinstance(response, dict):
            raise GraphQLError("INVALID_RESPONSE", "GraphQL response is not an object")

        errors = response.get("errors")
        if errors:
            messages = [
                str(error.get("message", error)) if isinstance(error, dict) else str(error)
                for error in errors
            ]
            if any(
                isinstance(error, dict) and error.get("type") == "NOT_FOUND"
                for error in errors
            ):
                raise NotFoundError("NOT_FOUND", "; ".join(messages))
            raise GraphQLError("GRAPHQL_ERROR", "; ".join(messages))

        data = response.get("data")
        if not isinstance(data, dict):
            raise GraphQLError("INVALID_RESPONSE", "GraphQL response has no data")
        return data

    def _execute_with_retry(
        self, request_fn: Callable[[], httpx.Response]
    ) -> Any:
        """
        Execute a request with automatic retry on retryable errors.

        Args:
            request_fn: Function that makes the HTTP request

        Returns:
            Parsed JSON response

        Raises:
            ProviderError: On non-retryable errors or after max retries
        """
        last_error: Exception | None = None

        for attempt in range(self.retry_config.max_retries + 1):
            try:
                started = time.monotonic()
                response = request_fn()
                log_http_response(
                    response.status_code,
                    str(response.request.url),
                    (time.monotonic() - started) * 1000,
                )

                if response.status_code < 400:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise ServerError("INVALID_RESPONSE", f"Response is not JSON: {e}") from e

                # Parse error response
                error = self._parse_error_response(response)

                # Check if we should retry
                if not self._should_retry(response.status_code, attempt):
                    raise error

                last_error = error

                # Calculate backoff time
                retry_after = response.headers.get("Retry-After")
                wait_time = self._get_backoff_time(attempt, retry_after)
                self.sleep(wait_time)

            except httpx.RequestError as e:
                # Network errors are retryable
                if attempt >= self.retry_config.max_retries:
                    raise ServerError("CONNECTION_ERROR", str(e)) from e

                last_error = e
                wait_time = self._get_backoff_time(attempt, None)
                self.sleep(wait_time)

        # Should not reach here, but just in case
        if last_error:
            if isinstance(last_error, GitWorkspaceError):
                raise last_error
            raise ServerError("MAX_RETRIES_EXCEEDED", str(last_error))

        raise ServerError("UNKNOWN_ERROR", "Request failed with no error details")

    def _should_retry(self, status_code: int, attempt: int) -> bool:
        """
        Determine if a request should be retried.

        Args:
            status_code: HTTP status code
            attempt: Current attempt number (0-indexed)

        Returns:
            True if the request should be retried
        """
        if attempt >= self.retry_config.max_retries:
            return False

        return status_code in self.retry_config.retry_on

    def _get_backoff_time(
        self, attempt: int, retry_after: str | None
    ) -> float:
        """
        Calculate backoff time for retry.

        Uses exponential backoff with jitter, respecting the Retry-After header
        if present. Both are capped at max_backoff.

        Args:
            attempt: Current attempt number (0-indexed)
            retry_after: Value of Retry-After header (if present)

        Returns:
            Time to wait in seconds
        """
        # If Retry-After header is present and we should respect it
        if retry_after and self.retry_config.respect_retry_after:
            try:
                return min(float(retry_after), self.retry_config.max_backoff)
            except ValueError:
                pass  # Fall through to exponential backoff

        # Exponential backoff: backoff_factor ^ attempt
        base_wait = self.retry_config.backoff_factor ** attempt

        # Apply jitter (±jitter%)
        jitter_range = base_wait * self.retry_config.jitter
        jitter = random.uniform(-jitter_range, jitter_range)
        wait_time = base_wait + jitter

        # Cap at max_backoff
        return min(wait_time, self.retry_config.max_backoff)

    def _parse_error_response(self, response: httpx.Response) -> ProviderError:
        """
        Parse an error response into a typed exception.

        GitHub, GitLab and Gitea all put a human readable ``message`` at the
        top level of error bodies (GitLab sometimes uses ``error``).

        Args:
            response: HTTP response with error status

        Returns:
            Appropriate ProviderError subclass
        """
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        message = data.get("message") or data.get("error") or f"HTTP {response.status_code}"
        if not isinstance(message, str):
            message = str(message)
        request_id = response.headers.get("X-GitHub-Request-Id") or response.headers.get("X-Request-Id")

        status_code = response.status_code
        code = f"HTTP_{status_code}"

        if status_code == 401:
            return AuthenticationError(code, message, request_id)
        elif status_code == 403:
            return AuthorizationError(code, message, request_id)
        elif status_code == 404:
            return NotFoundError(code, message, request_id)
        elif status_code == 429:
            retry_after_str = response.headers.get("Retry-After", "60")
            try:
                retry_after = int(retry_after_str)
            except ValueError:
                retry_after = 60
            return RateLimitedError(code, message, retry_after, request_id)
        elif status_code >= 500:
            return ServerError(code, message, request_id)
        else:
            return ValidationError(code, message, request_id)
