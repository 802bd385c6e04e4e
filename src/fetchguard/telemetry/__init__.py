"""
Telemetry module for fetchguard.

Provides structured logging, metrics collection with SLA evaluation,
and health reporting.
"""

from fetchguard.telemetry.health import HealthReport, HealthStatus, evaluate_health
from fetchguard.telemetry.logger import (
    FetchGuardLogger,
    JsonFormatter,
    LogContext,
    LogLevel,
    SensitiveDataMasker,
    TextFormatter,
    clear_log_context,
    get_log_context,
    get_logger,
    set_log_context,
)
from fetchguard.telemetry.metrics import (
    DEFAULT_SAMPLE_SIZE,
    MetricsCollector,
    MetricsSnapshot,
    SLAConfig,
    SLAReport,
    percentile,
)

__all__ = [
    "DEFAULT_SAMPLE_SIZE",
    # Logger
    "FetchGuardLogger",
    # Health
    "HealthReport",
    "HealthStatus",
    "JsonFormatter",
    "LogContext",
    "LogLevel",
    # Metrics
    "MetricsCollector",
    "MetricsSnapshot",
    "SLAConfig",
    "SLAReport",
    "SensitiveDataMasker",
    "TextFormatter",
    "clear_log_context",
    "evaluate_health",
    "get_log_context",
    "get_logger",
    "percentile",
    "set_log_context",
]
