"""
Property-based tests for the provider HTTP transport.

Feature: provider-transport
"""

import json
from unittest.mock import MagicMock

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from git_workspace.exceptions import (
    AuthenticationError,
    GraphQLError,
    NotFoundError,
    RateLimitedError,
    ServerError,
)
from git_workspace.transport import HTTPTransport, RetryConfig

# Test strategies
backoff_factor_strategy = st.floats(min_value=1.1, max_value=5.0)
attempt_strategy = st.integers(min_value=0, max_value=5)
retry_after_strategy = st.integers(min_value=1, max_value=120)


def _transport(
    handler=None, retry_config: RetryConfig | None = None
) -> HTTPTransport:
    transport = HTTPTransport(
        base_url="https://api.example.com",
        headers={"Authorization": "Bearer test-token"},
        retry_config=retry_config,
        transport=httpx.MockTransport(handler) if handler else None,
    )
    transport.sleep = lambda seconds: None
    return transport


@given(
    backoff_factor=backoff_factor_strategy,
    attempt=attempt_strategy,
)
@settings(max_examples=100)
def test_exponential_backoff_timing(backoff_factor: float, attempt: int) -> None:
    """
    Property 1: Exponential backoff timing

    For any retry configuration with backoff_factor B and attempt number N,
    the wait time before attempt N SHALL be approximately B^N seconds (with jitter).
    """
    config = RetryConfig(
        backoff_factor=backoff_factor,
        jitter=0.1,  # ±10% jitter
        max_backoff=1000.0,  # High max to not interfere with test
    )
    transport = _transport(retry_config=config)

    expected_base = backoff_factor ** attempt
    actual = transport._get_backoff_time(attempt, None)

    min_expected = min(expected_base * 0.9, config.max_backoff)
    max_expected = min(expected_base * 1.1, config.max_backoff)

    assert min_expected <= actual <= max_expected, (
        f"Backoff time {actual} not in expected range [{min_expected}, {max_expected}] "
        f"for attempt {attempt} with factor {backoff_factor}"
    )


@given(retry_after=retry_after_strategy)
@settings(max_examples=100)
def test_retry_after_header_respected(retry_after: int) -> None:
    """
    Property 2: Retry-After header respected

    For any 429 response with a Retry-After header value of T seconds,
    the transport SHALL wait T seconds before retrying, capped at max_backoff.
    """
    config = RetryConfig(respect_retry_after=True)
    transport = _transport(retry_config=config)

    actual = transport._get_backoff_time(0, str(retry_after))

    assert actual == min(float(retry_after), config.max_backoff)


def test_retry_after_capped_at_max_backoff() -> None:
    transport = _transport(retry_config=RetryConfig(max_backoff=30.0))

    assert transport._get_backoff_time(0, "3600") == 30.0
    assert transport._get_backoff_time(0, "12") == 12.0


@given(
    status_code=st.sampled_from([400, 401, 403, 404, 422]),
    attempt=st.integers(min_value=0, max_value=2),
)
@settings(max_examples=100)
def test_no_retry_on_non_retryable_errors(status_code: int, attempt: int) -> None:
    """
    Property 3: No retry on non-retryable errors

    For any client error other than 429 the transport SHALL NOT retry.
    """
    transport = _transport(retry_config=RetryConfig(max_retries=3))

    assert not transport._should_retry(status_code, attempt)


@given(
    status_code=st.sampled_from([429, 500, 502, 503]),
    attempt=st.integers(min_value=0, max_value=2),
)
@settings(max_examples=100)
def test_retry_on_retryable_errors(status_code: int, attempt: int) -> None:
    """Retryable status codes trigger a retry while under max_retries."""
    transport = _transport(retry_config=RetryConfig(max_retries=3))

    assert transport._should_retry(status_code, attempt)


def test_max_retries_exceeded() -> None:
    """Retries stop after max_retries is reached."""
    transport = _transport(retry_config=RetryConfig(max_retries=2))

    assert not transport._should_retry(500, 2)
    assert not transport._should_retry(500, 3)
    assert transport._should_retry(500, 0)
    assert transport._should_retry(500, 1)


def test_backoff_respects_max_backoff() -> None:
    """Backoff time is capped at max_backoff."""
    config = RetryConfig(backoff_factor=10.0, max_backoff=5.0, jitter=0.0)
    transport = _transport(retry_config=config)

    assert transport._get_backoff_time(3, None) == 5.0


STATUS_CODE_TO_EXCEPTION = {
    401: "AuthenticationError",
    403: "AuthorizationError",
    404: "NotFoundError",
    429: "RateLimitedError",
    500: "ServerError",
    502: "ServerError",
    503: "ServerError",
    400: "ValidationError",
    409: "ValidationError",
    422: "ValidationError",
}


@given(
    status_code=st.sampled_from(sorted(STATUS_CODE_TO_EXCEPTION)),
    error_message=st.text(min_size=1, max_size=200),
    request_id=st.text(min_size=1, max_size=50, alphabet=st.characters(
        whitelist_categories=("Lu", "Ll", "Nd"),
        whitelist_characters="-"
    )),
    retry_after=st.integers(min_value=1, max_value=3600),
)
@settings(max_examples=100)
def test_property_error_response_parsing(
    status_code: int,
    error_message: str,
    request_id: str,
    retry_after: int,
) -> None:
    """
    Property 4: Error response parsing

    For any error response from a provider, the transport SHALL parse it into
    a typed exception carrying the status-derived code, the message and the
    request id, plus retry_after for rate limit errors.
    """
    transport = _transport()

    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.json.return_value = {"message": error_message}
    mock_response.headers = {
        "Retry-After": str(retry_after),
        "X-GitHub-Request-Id": request_id,
    }

    error = transport._parse_error_response(mock_response)

    assert type(error).__name__ == STATUS_CODE_TO_EXCEPTION[status_code]
    assert error.code == f"HTTP_{status_code}"
    assert error.message == error_message
    assert error.request_id == request_id

    if status_code == 429:
        assert isinstance(error, RateLimitedError)
        assert error.retry_after == retry_after


def test_request_retries_then_succeeds() -> None:
    """A 502 followed by a 200 returns the second response's JSON."""
    responses = iter([httpx.Response(502, json={"message": "bad gateway"}), httpx.Response(200, json=[1, 2])])
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["Authorization"])
        return next(responses)

    transport = _transport(handler)

    assert transport.request("GET", "/things") == [1, 2]
    assert seen == ["Bearer test-token", "Bearer test-token"]


def test_request_raises_typed_error_without_retry() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(401, json={"message": "Bad credentials"})

    transport = _transport(handler)

    with pytest.raises(AuthenticationError) as excinfo:
        transport.request("GET", "/user")

    assert excinfo.value.message == "Bad credentials"
    assert len(calls) == 1


def test_connection_errors_become_server_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = _transport(handler, retry_config=RetryConfig(max_retries=1))

    with pytest.raises(ServerError) as excinfo:
        transport.request("GET", "/")

    assert excinfo.value.code == "CONNECTION_ERROR"


def test_graphql_returns_data() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        assert request.url.path == "/graphql"
        assert payload["variables"] == {"login": "octocat"}
        return httpx.Response(200, json={"data": {"viewer": {"login": "octocat"}}})

    transport = _transport(handler)

    data = transport.graphql("query { viewer { login } }", {"login": "octocat"}, path="/graphql")

    assert data == {"viewer": {"login": "octocat"}}


def test_graphql_errors_are_raised() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"data": None, "errors": [{"message": "Field 'nope' doesn't exist"}]},
        )

    transport = _transport(handler)

    with pytest.raises(GraphQLError) as excinfo:
        transport.graphql("query { nope }", path="/graphql")

    assert "nope" in excinfo.value.message


def test_graphql_not_found_type() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"data": {"repositoryOwner": None}, "errors": [{"type": "NOT_FOUND", "message": "Could not resolve"}]},
        )

    transport = _transport(handler)

    with pytest.raises(NotFoundError):
        transport.graphql("query { x }", path="/graphql")
