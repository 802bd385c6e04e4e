"""
HTTP attempt adapter using httpx.

Turns a RequestDescriptor into exactly one HTTP exchange and classifies the
result, so it can be handed to the executor as the single-attempt operation.

Provides:
- Per-attempt identity headers
- Per-attempt timeouts taken from the request descriptor
- Proxy support
- Optional pydantic validation of the decoded body
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ValidationError

from fetchguard.errors import AttemptError, FailureKind
from fetchguard.telemetry.logger import get_logger
from fetchguard.types import FetchResponse

if TYPE_CHECKING:
    from fetchguard.transport.identity import IdentityProvider
    from fetchguard.types import RequestDescriptor

_DEFAULT_TIMEOUT = 8.0
_DEFAULT_CONNECT_TIMEOUT = 5.0

_DEFAULT_HEADERS = {
    "Accept": "application/json, text/plain, */*",
}

logger = get_logger("fetchguard.transport")


class HttpAttempt:
    """Single-attempt HTTP operation.

    Non-2xx responses and transport failures are raised as AttemptError with
    a FailureKind, which the retry orchestrator and metrics act on.

    Example:
        >>> async with HttpAttempt(identity=StaticIdentity({"User-Agent": "probe"})) as fetch:
        ...     result = await executor.execute(request, fetch)
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        identity: IdentityProvider | None = None,
        response_model: type[BaseModel] | None = None,
        timeout: float | None = None,
        proxy: str | None = None,
    ) -> None:
        """Initialize adapter.

        Args:
            client: Client to send with (created lazily and owned if None)
            identity: Hook contributing identity headers per attempt
            response_model: Model the decoded JSON body must validate against
            timeout: Timeout used when the descriptor carries none
            proxy: Proxy URL for the owned client
        """
        self._client = client
        self._owns_client = client is None
        self._identity = identity
        self._response_model = response_model
        self._timeout = timeout if timeout is not None else _DEFAULT_TIMEOUT
        self._proxy = proxy

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=_DEFAULT_CONNECT_TIMEOUT),
                proxy=self._proxy,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpAttempt:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _build_headers(self, request: RequestDescriptor, attempt: int) -> dict[str, str]:
        headers = dict(_DEFAULT_HEADERS)
        headers.update(request.headers)
        if self._identity is not None:
            headers.update(self._identity.build_headers(request, attempt))
        return headers

    def _decode(self, request: RequestDescriptor, response: httpx.Response) -> Any:
        if not response.content:
            data: Any = None
        else:
            try:
                data = response.json()
            except json.JSONDecodeError as e:
                raise AttemptError(
                    f"Malformed JSON response: {e}",
                    kind=FailureKind.FATAL,
                    status_code=response.status_code,
                    url=request.url,
                ) from e

        if self._response_model is None:
            return data

        try:
            return self._response_model.model_validate(data)
        except ValidationError as e:
            raise AttemptError(
                f"Response failed schema validation: {e.error_count()} error(s)",
                kind=FailureKind.FATAL,
                status_code=response.status_code,
                url=request.url,
            ) from e

    async def __call__(self, request: RequestDescriptor, attempt: int) -> FetchResponse:
        """Perform one HTTP exchange.

        Args:
            request: Request descriptor
            attempt: Zero-based attempt index

        Returns:
            FetchResponse with the decoded body

        Raises:
            AttemptError: On transport failure, error status or bad body
        """
        client = self._get_client()
        timeout = request.timeout_seconds or self._timeout

        logger.debug("Sending attempt", method=request.method, url=request.url, attempt=attempt)

        try:
            response = await client.request(
                request.method,
                request.url,
                params=request.params or None,
                json=request.json_body,
                headers=self._build_headers(request, attempt),
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise AttemptError(
                f"Request timed out: {e}",
                kind=FailureKind.TRANSPORT,
                url=request.url,
            ) from e
        except httpx.HTTPError as e:
            raise AttemptError(
                f"HTTP error: {e}",
                kind=FailureKind.TRANSPORT,
                url=request.url,
            ) from e

        if response.status_code >= 400:
            raise AttemptError.from_status(
                response.status_code,
                url=request.url,
                headers=dict(response.headers),
            )

        return FetchResponse(
            status_code=response.status_code,
            url=str(response.url),
            headers=dict(response.headers),
            data=self._decode(request, response),
        )
