"""Tests for WebhookDispatcher."""

import json

import httpx

from task_notifier.config import RetryPolicy
from task_notifier.dispatch.dispatcher import WebhookDispatcher

ENDPOINT = "https://chat.example.com/hook"
PAYLOAD = {"cardsV2": [{"cardId": "TASK-001-status-change", "card": {}}]}


def _dispatcher(
    statuses: list[int], sleeps: list[float], requests: list[httpx.Request]
) -> WebhookDispatcher:
    """Dispatcher whose endpoint answers with the given status codes in turn."""
    responses = iter(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        status = next(responses)
        return httpx.Response(status, text="ok" if status < 300 else "server unhappy")

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return WebhookDispatcher(RetryPolicy(), client=client, sleep=sleeps.append)


def test_success_first_attempt(sleeps: list[float]) -> None:
    """Test a single successful POST with a JSON body."""
    requests: list[httpx.Request] = []
    result = _dispatcher([200], sleeps, requests).send(ENDPOINT, PAYLOAD)

    assert result.ok
    assert result.error is None
    assert result.attempts == 1
    assert sleeps == []

    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == ENDPOINT
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content) == PAYLOAD


def test_retries_until_success(sleeps: list[float]) -> None:
    """Test 500, 500, 200 succeeds on the third attempt."""
    requests: list[httpx.Request] = []
    result = _dispatcher([500, 500, 200], sleeps, requests).send(ENDPOINT, PAYLOAD)

    assert result.ok
    assert result.attempts == 3
    assert len(requests) == 3
    assert sleeps == [0.5, 1.0]


def test_gives_up_after_three_attempts(sleeps: list[float]) -> None:
    """Test an endpoint that always answers 503."""
    requests: list[httpx.Request] = []
    result = _dispatcher([503, 503, 503, 503], sleeps, requests).send(ENDPOINT, PAYLOAD)

    assert not result.ok
    assert result.attempts == 3
    assert len(requests) == 3
    assert sleeps == [0.5, 1.0]
    assert result.error == "HTTP 503: server unhappy"


def test_redirect_status_is_failure(sleeps: list[float]) -> None:
    """Test that a 3xx response counts as a failed attempt."""
    requests: list[httpx.Request] = []
    result = _dispatcher([302, 204], sleeps, requests).send(ENDPOINT, PAYLOAD)

    assert result.ok
    assert result.attempts == 2
    assert sleeps == [0.5]


def test_transport_error_is_retried(sleeps: list[float]) -> None:
    """Test that transport exceptions are retried and reported, not raised."""
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    dispatcher = WebhookDispatcher(RetryPolicy(), client=client, sleep=sleeps.append)

    result = dispatcher.send(ENDPOINT, PAYLOAD)

    assert not result.ok
    assert calls == 3
    assert result.error is not None
    assert "connection refused" in result.error
    assert sleeps == [0.5, 1.0]


def test_custom_retry_policy(sleeps: list[float]) -> None:
    """Test that the retry policy from config is honored."""
    requests: list[httpx.Request] = []
    responses = iter([500, 500])

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(next(responses))

    client = httpx.Client(transport=httpx.MockTransport(handler))
    dispatcher = WebhookDispatcher(
        RetryPolicy(max_attempts=2, base_delay_ms=100), client=client, sleep=sleeps.append
    )

    result = dispatcher.send(ENDPOINT, PAYLOAD)

    assert not result.ok
    assert result.attempts == 2
    assert sleeps == [0.1]
