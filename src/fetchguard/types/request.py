"""
Request and response types exchanged with single-attempt operations.
"""

from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RequestDescriptor(BaseModel):
    """Description of one logical request against the upstream.

    The executor never interprets these fields; they are handed to the
    single-attempt operation, which decides how to turn them into a network
    call.

    Example:
        >>> request = RequestDescriptor(
        ...     url="https://upstream.example/api/search",
        ...     params={"query": "iphone", "cursor": "1"},
        ...     timeout_seconds=8.0,
        ... )
    """

    model_config = ConfigDict(extra="allow")

    url: str = Field(description="Target URL")
    method: str = Field(default="GET", description="HTTP method")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Caller-supplied headers"
    )
    params: dict[str, Any] = Field(
        default_factory=dict, description="Query parameters"
    )
    json_body: dict[str, Any] | None = Field(
        default=None, description="JSON payload for non-GET requests"
    )
    timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Per-attempt timeout, enforced by the attempt operation",
    )
    request_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex[:16],
        description="Identifier used in logs",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Free-form caller metadata"
    )


class FetchResponse(BaseModel):
    """Successful upstream response produced by the HTTP attempt adapter."""

    status_code: int = Field(description="HTTP status code")
    url: str = Field(description="Final request URL")
    headers: dict[str, str] = Field(default_factory=dict)
    data: Any = Field(default=None, description="Decoded (and validated) body")
