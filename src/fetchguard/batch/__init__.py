"""
Batch module for fetchguard.

Provides a load runner that drives many logical requests through an
executor and summarises the run.
"""

from fetchguard.batch.load import LoadRunner, LoadTestResult, LoadTestSummary

__all__ = [
    "LoadRunner",
    "LoadTestResult",
    "LoadTestSummary",
]
