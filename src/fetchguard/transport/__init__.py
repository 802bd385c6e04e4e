"""
Transport layer - single-attempt HTTP operations.

Provides httpx-based attempts with:
- Failure classification of responses and transport errors
- Per-attempt identity headers
- Per-attempt timeouts
- Proxy configuration
"""

from fetchguard.transport.http import HttpAttempt
from fetchguard.transport.identity import (
    IdentityProvider,
    RotatingIdentity,
    StaticIdentity,
)

__all__ = [
    "HttpAttempt",
    "IdentityProvider",
    "RotatingIdentity",
    "StaticIdentity",
]
