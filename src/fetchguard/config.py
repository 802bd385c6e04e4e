"""
Configuration for fetchguard executors.

One FetchGuardConfig groups every tunable of an executor. It can be built
in code, from environment variables, from a mapping or from a YAML/JSON
file, and is validated eagerly on construction.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from fetchguard.errors import ConfigError
from fetchguard.resilience.circuit_breaker import CircuitBreakerConfig
from fetchguard.resilience.limiter import LimiterConfig
from fetchguard.resilience.retry import RetryPolicy
from fetchguard.telemetry.metrics import SLAConfig

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

DEFAULT_ENV_PREFIX = "FETCHGUARD_"

# env suffix -> (section, field, parser)
_ENV_FIELDS: dict[str, tuple[str | None, str, Callable[[str], Any]]] = {
    "MAX_CONCURRENT_REQUESTS": ("limiter", "max_concurrent", int),
    "MAX_ATTEMPTS": ("retry", "max_attempts", int),
    "BASE_DELAY_MS": ("retry", "base_delay_ms", float),
    "MAX_DELAY_MS": ("retry", "max_delay_ms", float),
    "JITTER_FRACTION": ("retry", "jitter_fraction", float),
    "THROTTLE_FLOOR_MS": ("retry", "throttle_floor_ms", float),
    "CIRCUIT_BREAKER_THRESHOLD": ("circuit_breaker", "error_rate_threshold", float),
    "CIRCUIT_BREAKER_MIN_SAMPLES": ("circuit_breaker", "minimum_sample_size", int),
    "CIRCUIT_BREAKER_RESET_SECS": ("circuit_breaker", "reset_timeout_seconds", float),
    "LATENCY_BUDGET_MS": ("sla", "latency_budget_ms", float),
    "MIN_SUCCESS_RATE": ("sla", "min_success_rate", float),
    "REQUEST_TIMEOUT_MS": (None, "request_timeout_ms", float),
}

_SECTIONS: dict[str, type] = {
    "limiter": LimiterConfig,
    "retry": RetryPolicy,
    "circuit_breaker": CircuitBreakerConfig,
    "sla": SLAConfig,
}

_MAPPING_SKIP = {"classifier", "ignored_exceptions"}


def _build_section(name: str, values: Mapping[str, Any]) -> Any:
    cls = _SECTIONS[name]
    allowed = {f.name for f in fields(cls)} - _MAPPING_SKIP
    unknown = set(values) - allowed
    if unknown:
        raise ConfigError(
            f"Unknown {name} option(s): {', '.join(sorted(unknown))}",
            field=f"{name}.{sorted(unknown)[0]}",
        )
    try:
        return cls(**values)
    except TypeError as e:
        raise ConfigError(f"Invalid {name} options: {e}", field=name) from e


@dataclass
class FetchGuardConfig:
    """Configuration for one orchestrated executor.

    Attributes:
        limiter: Concurrency limiter settings
        retry: Retry policy
        circuit_breaker: Circuit breaker settings
        sla: SLA thresholds
        request_timeout_seconds: Default per-attempt timeout
    """

    limiter: LimiterConfig = field(default_factory=LimiterConfig)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    sla: SLAConfig = field(default_factory=SLAConfig)
    request_timeout_seconds: float = 8.0

    def __post_init__(self) -> None:
        if self.request_timeout_seconds <= 0:
            raise ConfigError(
                "request_timeout_seconds must be positive",
                field="request_timeout_seconds",
            )

    @classmethod
    def default(cls) -> FetchGuardConfig:
        """Create the default configuration."""
        return cls()

    @classmethod
    def production(cls) -> FetchGuardConfig:
        """Create a configuration for a heavily defended upstream."""
        return cls(
            limiter=LimiterConfig(max_concurrent=10),
            retry=RetryPolicy(
                max_attempts=3,
                base_delay_ms=1000.0,
                max_delay_ms=30000.0,
                jitter_fraction=0.3,
                throttle_floor_ms=2000.0,
            ),
            circuit_breaker=CircuitBreakerConfig(
                error_rate_threshold=50.0,
                minimum_sample_size=10,
                reset_timeout_seconds=60.0,
            ),
            sla=SLAConfig(latency_budget_ms=6000.0, min_success_rate=95.0),
            request_timeout_seconds=8.0,
        )

    @classmethod
    def from_env(
        cls,
        prefix: str = DEFAULT_ENV_PREFIX,
        environ: Mapping[str, str] | None = None,
    ) -> FetchGuardConfig:
        """Create configuration from environment variables.

        Unset variables keep their defaults.

        Args:
            prefix: Prefix of every variable name
            environ: Variables to read (os.environ if None)

        Raises:
            ConfigError: If a value cannot be parsed or is out of range
        """
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}

        for suffix, (section, name, parse) in _ENV_FIELDS.items():
            raw = env.get(prefix + suffix)
            if raw is None or raw.strip() == "":
                continue
            try:
                value = parse(raw.strip())
            except ValueError as e:
                raise ConfigError(
                    f"{prefix}{suffix} is not a valid number: {raw!r}",
                    field=name,
                ) from e

            if section is None:
                data["request_timeout_seconds"] = value / 1000
            else:
                data.setdefault(section, {})[name] = value

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FetchGuardConfig:
        """Create configuration from a nested mapping.

        Example:
            >>> FetchGuardConfig.from_dict({
            ...     "limiter": {"max_concurrent": 5},
            ...     "retry": {"max_attempts": 4},
            ...     "request_timeout_seconds": 10,
            ... })

        Raises:
            ConfigError: On unknown keys or invalid values
        """
        unknown = set(data) - set(_SECTIONS) - {"request_timeout_seconds"}
        if unknown:
            raise ConfigError(
                f"Unknown config section(s): {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )

        kwargs: dict[str, Any] = {}
        for section in _SECTIONS:
            values = data.get(section)
            if values is None:
                continue
            if not isinstance(values, dict):
                raise ConfigError(f"{section} must be a mapping", field=section)
            kwargs[section] = _build_section(section, values)

        if "request_timeout_seconds" in data:
            try:
                kwargs["request_timeout_seconds"] = float(data["request_timeout_seconds"])
            except (TypeError, ValueError) as e:
                raise ConfigError(
                    "request_timeout_seconds must be a number",
                    field="request_timeout_seconds",
                ) from e

        return cls(**kwargs)

    @classmethod
    def from_file(cls, path: str | Path) -> FetchGuardConfig:
        """Load configuration from a YAML or JSON file.

        Raises:
            ConfigError: If the file is missing, unparsable or invalid
        """
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e

        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid config file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return cls.from_dict(data)

    def with_overrides(self, **kwargs: Any) -> FetchGuardConfig:
        """Create a copy with top-level fields replaced."""
        return replace(self, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a mapping accepted by ``from_dict``."""
        return {
            "limiter": {"max_concurrent": self.limiter.max_concurrent},
            "retry": {
                "max_attempts": self.retry.max_attempts,
                "base_delay_ms": self.retry.base_delay_ms,
                "max_delay_ms": self.retry.max_delay_ms,
                "jitter_fraction": self.retry.jitter_fraction,
                "throttle_floor_ms": self.retry.throttle_floor_ms,
            },
            "circuit_breaker": {
                "error_rate_threshold": self.circuit_breaker.error_rate_threshold,
                "minimum_sample_size": self.circuit_breaker.minimum_sample_size,
                "reset_timeout_seconds": self.circuit_breaker.reset_timeout_seconds,
            },
            "sla": {
                "latency_budget_ms": self.sla.latency_budget_ms,
                "min_success_rate": self.sla.min_success_rate,
            },
            "request_timeout_seconds": self.request_timeout_seconds,
        }
