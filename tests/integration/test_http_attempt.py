"""Integration tests for the httpx attempt adapter."""

import json

import httpx
import pytest
from pydantic import BaseModel

from fetchguard.config import FetchGuardConfig
from fetchguard.errors import AttemptError, ExecutionError, FailureKind
from fetchguard.resilience import OrchestratedExecutor, RetryPolicy
from fetchguard.transport import HttpAttempt, RotatingIdentity, StaticIdentity
from fetchguard.types import FetchResponse, RequestDescriptor

URL = "https://upstream.example/api/search"


class SearchPage(BaseModel):
    items: list[str]
    cursor: str | None = None


@pytest.fixture
def request_descriptor() -> RequestDescriptor:
    return RequestDescriptor(url=URL, timeout_seconds=2.0)


class TestHttpAttempt:
    """Tests for single HTTP exchanges."""

    @pytest.mark.asyncio
    async def test_success(self, httpx_mock, request_descriptor) -> None:
        """Test a JSON response is decoded."""
        httpx_mock.add_response(json={"items": ["a", "b"]})

        async with HttpAttempt() as fetch:
            response = await fetch(request_descriptor, 0)

        assert isinstance(response, FetchResponse)
        assert response.status_code == 200
        assert response.data == {"items": ["a", "b"]}
        assert response.url == URL

    @pytest.mark.asyncio
    async def test_query_params_and_headers(self, httpx_mock) -> None:
        """Test params and caller headers are sent."""
        httpx_mock.add_response(json={})
        request = RequestDescriptor(
            url=URL, params={"query": "iphone", "cursor": "1"}, headers={"X-Trace": "t1"}
        )

        async with HttpAttempt() as fetch:
            await fetch(request, 0)

        sent = httpx_mock.get_requests()[0]
        assert sent.url.params["query"] == "iphone"
        assert sent.url.params["cursor"] == "1"
        assert sent.headers["X-Trace"] == "t1"
        assert "application/json" in sent.headers["Accept"]

    @pytest.mark.asyncio
    async def test_json_body(self, httpx_mock) -> None:
        """Test a JSON payload is sent for POST requests."""
        httpx_mock.add_response(json={"ok": True})
        request = RequestDescriptor(url=URL, method="POST", json_body={"query": "tv"})

        async with HttpAttempt() as fetch:
            await fetch(request, 0)

        sent = httpx_mock.get_requests()[0]
        assert sent.method == "POST"
        assert json.loads(sent.content) == {"query": "tv"}

    @pytest.mark.asyncio
    async def test_empty_body(self, httpx_mock, request_descriptor) -> None:
        """Test an empty body decodes to None."""
        httpx_mock.add_response(status_code=204)

        async with HttpAttempt() as fetch:
            response = await fetch(request_descriptor, 0)

        assert response.data is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status_code", "kind", "retryable"),
        [
            (403, FailureKind.ANTI_AUTOMATION, True),
            (404, FailureKind.FATAL, False),
            (500, FailureKind.SERVER_ERROR, True),
            (503, FailureKind.SERVER_ERROR, True),
            (521, FailureKind.SERVER_ERROR, True),
        ],
    )
    async def test_error_status(
        self, httpx_mock, request_descriptor, status_code, kind, retryable
    ) -> None:
        """Test error statuses are classified."""
        httpx_mock.add_response(status_code=status_code)

        async with HttpAttempt() as fetch:
            with pytest.raises(AttemptError) as exc_info:
                await fetch(request_descriptor, 0)

        assert exc_info.value.kind == kind
        assert exc_info.value.status_code == status_code
        assert exc_info.value.retryable is retryable

    @pytest.mark.asyncio
    async def test_rate_limited_retry_after(self, httpx_mock, request_descriptor) -> None:
        """Test Retry-After is carried on the error."""
        httpx_mock.add_response(status_code=429, headers={"Retry-After": "7"})

        async with HttpAttempt() as fetch:
            with pytest.raises(AttemptError) as exc_info:
                await fetch(request_descriptor, 0)

        assert exc_info.value.kind == FailureKind.RATE_LIMITED
        assert exc_info.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_timeout_is_transport(self, httpx_mock, request_descriptor) -> None:
        """Test timeouts are transport failures."""
        httpx_mock.add_exception(httpx.ConnectTimeout("connect timed out"))

        async with HttpAttempt() as fetch:
            with pytest.raises(AttemptError) as exc_info:
                await fetch(request_descriptor, 0)

        assert exc_info.value.kind == FailureKind.TRANSPORT
        assert isinstance(exc_info.value.__cause__, httpx.ConnectTimeout)

    @pytest.mark.asyncio
    async def test_connection_error_is_transport(self, httpx_mock, request_descriptor) -> None:
        """Test connection failures are transport failures."""
        httpx_mock.add_exception(httpx.ConnectError("proxy refused"))

        async with HttpAttempt() as fetch:
            with pytest.raises(AttemptError) as exc_info:
                await fetch(request_descriptor, 0)

        assert exc_info.value.kind == FailureKind.TRANSPORT
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_malformed_json_is_fatal(self, httpx_mock, request_descriptor) -> None:
        """Test an undecodable body is fatal."""
        httpx_mock.add_response(text="<html>captcha</html>")

        async with HttpAttempt() as fetch:
            with pytest.raises(AttemptError) as exc_info:
                await fetch(request_descriptor, 0)

        assert exc_info.value.kind == FailureKind.FATAL
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_response_model(self, httpx_mock, request_descriptor) -> None:
        """Test the body is validated against a model."""
        httpx_mock.add_response(json={"items": ["a"], "cursor": "2"})

        async with HttpAttempt(response_model=SearchPage) as fetch:
            response = await fetch(request_descriptor, 0)

        assert isinstance(response.data, SearchPage)
        assert response.data.cursor == "2"

    @pytest.mark.asyncio
    async def test_response_model_mismatch_is_fatal(
        self, httpx_mock, request_descriptor
    ) -> None:
        """Test a schema mismatch is fatal."""
        httpx_mock.add_response(json={"results": []})

        async with HttpAttempt(response_model=SearchPage) as fetch:
            with pytest.raises(AttemptError) as exc_info:
                await fetch(request_descriptor, 0)

        assert exc_info.value.kind == FailureKind.FATAL

    @pytest.mark.asyncio
    async def test_static_identity(self, httpx_mock, request_descriptor) -> None:
        """Test identity headers override defaults."""
        httpx_mock.add_response(json={})
        identity = StaticIdentity({"User-Agent": "probe/1.0", "Accept": "application/json"})

        async with HttpAttempt(identity=identity) as fetch:
            await fetch(request_descriptor, 0)

        sent = httpx_mock.get_requests()[0]
        assert sent.headers["User-Agent"] == "probe/1.0"
        assert sent.headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_external_client_not_closed(self, httpx_mock, request_descriptor) -> None:
        """Test a caller-owned client stays open."""
        httpx_mock.add_response(json={})
        client = httpx.AsyncClient()

        async with HttpAttempt(client) as fetch:
            await fetch(request_descriptor, 0)

        assert not client.is_closed
        await client.aclose()


class TestHttpThroughExecutor:
    """End-to-end tests through the orchestrated executor."""

    @pytest.mark.asyncio
    async def test_retries_with_rotating_identity(
        self, httpx_mock, request_descriptor, no_sleep
    ) -> None:
        """Test each retry presents the next identity profile."""
        httpx_mock.add_response(status_code=403)
        httpx_mock.add_response(status_code=503)
        httpx_mock.add_response(json={"items": ["x"]})
        identity = RotatingIdentity(
            [{"User-Agent": "agent-a"}, {"User-Agent": "agent-b"}, {"User-Agent": "agent-c"}]
        )
        executor = OrchestratedExecutor(
            FetchGuardConfig(retry=RetryPolicy(max_attempts=3, base_delay_ms=10.0))
        )

        async with HttpAttempt(identity=identity) as fetch:
            result = await executor.execute(request_descriptor, fetch)

        assert result.value.data == {"items": ["x"]}
        assert result.attempts == 3
        agents = [r.headers["User-Agent"] for r in httpx_mock.get_requests()]
        assert agents == ["agent-a", "agent-b", "agent-c"]

        metrics = executor.metrics()
        assert metrics.errors_by_kind == {"anti_automation": 1, "server_error": 1}
        assert metrics.errors_by_status == {403: 1, 503: 1}
        assert metrics.successful_requests == 1

    @pytest.mark.asyncio
    async def test_fatal_status_stops(self, httpx_mock, request_descriptor, no_sleep) -> None:
        """Test a 404 ends the logical request after one attempt."""
        httpx_mock.add_response(status_code=404)
        executor = OrchestratedExecutor()

        async with HttpAttempt() as fetch:
            with pytest.raises(ExecutionError) as exc_info:
                await executor.execute(request_descriptor, fetch)

        assert exc_info.value.attempts == 1
        assert exc_info.value.kind == FailureKind.FATAL
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_throttle_floor_applied(
        self, httpx_mock, request_descriptor, no_sleep
    ) -> None:
        """Test throttling responses back off at least the floor."""
        httpx_mock.add_response(status_code=429)
        httpx_mock.add_response(json={"items": []})
        executor = OrchestratedExecutor(
            FetchGuardConfig(
                retry=RetryPolicy(base_delay_ms=10.0, throttle_floor_ms=2000.0)
            )
        )

        async with HttpAttempt() as fetch:
            result = await executor.execute(request_descriptor, fetch)

        assert result.attempts == 2
        assert no_sleep.delays == [2.0]
