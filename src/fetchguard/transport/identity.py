"""
Request identity hooks.

An identity provider contributes headers to each attempt. The executor
passes the attempt index through, so providers may present a different
identity on every retry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from fetchguard.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from fetchguard.types import RequestDescriptor


@runtime_checkable
class IdentityProvider(Protocol):
    """Builds identity headers for one attempt."""

    def build_headers(
        self, request: RequestDescriptor, attempt: int
    ) -> dict[str, str]: ...


class StaticIdentity:
    """Sends the same headers on every attempt."""

    def __init__(self, headers: Mapping[str, str] | None = None) -> None:
        self._headers = dict(headers or {})

    def build_headers(self, request: RequestDescriptor, attempt: int) -> dict[str, str]:
        return dict(self._headers)


class RotatingIdentity:
    """Cycles through header profiles, one per attempt.

    Attempt ``i`` uses ``profiles[i % len(profiles)]``, so the first attempt
    of every logical request starts from the first profile.
    """

    def __init__(self, profiles: Sequence[Mapping[str, str]]) -> None:
        if not profiles:
            raise ConfigError("At least one identity profile is required", field="profiles")
        self._profiles = [dict(p) for p in profiles]

    def build_headers(self, request: RequestDescriptor, attempt: int) -> dict[str, str]:
        return dict(self._profiles[attempt % len(self._profiles)])

    def __len__(self) -> int:
        return len(self._profiles)
