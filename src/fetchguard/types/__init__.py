"""
Types layer - data exchanged between the executor and its collaborators.

- RequestDescriptor / FetchResponse: what a single attempt receives and returns
- AttemptOutcome: per-attempt record forwarded to metrics
- ExecutionResult: value of a logical request plus execution metadata
"""

from fetchguard.types.outcome import AttemptOutcome, ExecutionResult
from fetchguard.types.request import FetchResponse, RequestDescriptor

__all__ = [
    "AttemptOutcome",
    "ExecutionResult",
    "FetchResponse",
    "RequestDescriptor",
]
