"""Tests for configuration loading."""

import json

import pytest

from fetchguard.config import FetchGuardConfig
from fetchguard.errors import ConfigError


class TestFetchGuardConfig:
    """Tests for FetchGuardConfig."""

    def test_defaults(self) -> None:
        """Test default configuration."""
        config = FetchGuardConfig.default()
        assert config.limiter.max_concurrent == 10
        assert config.retry.max_attempts == 3
        assert config.circuit_breaker.error_rate_threshold == 50.0
        assert config.sla.latency_budget_ms == 6000.0
        assert config.request_timeout_seconds == 8.0

    def test_production(self) -> None:
        """Test production preset."""
        config = FetchGuardConfig.production()
        assert config.retry.throttle_floor_ms == 2000.0
        assert config.circuit_breaker.minimum_sample_size == 10

    def test_invalid_timeout(self) -> None:
        """Test non-positive timeouts are rejected."""
        with pytest.raises(ConfigError):
            FetchGuardConfig(request_timeout_seconds=0)

    def test_with_overrides(self) -> None:
        """Test copying with overrides."""
        config = FetchGuardConfig().with_overrides(request_timeout_seconds=3.0)
        assert config.request_timeout_seconds == 3.0


class TestFromEnv:
    """Tests for environment loading."""

    def test_reads_prefixed_variables(self) -> None:
        """Test every supported variable is applied."""
        env = {
            "FETCHGUARD_MAX_CONCURRENT_REQUESTS": "4",
            "FETCHGUARD_MAX_ATTEMPTS": "5",
            "FETCHGUARD_BASE_DELAY_MS": "250",
            "FETCHGUARD_MAX_DELAY_MS": "4000",
            "FETCHGUARD_JITTER_FRACTION": "0.1",
            "FETCHGUARD_CIRCUIT_BREAKER_THRESHOLD": "40",
            "FETCHGUARD_CIRCUIT_BREAKER_MIN_SAMPLES": "20",
            "FETCHGUARD_CIRCUIT_BREAKER_RESET_SECS": "30",
            "FETCHGUARD_LATENCY_BUDGET_MS": "3000",
            "FETCHGUARD_MIN_SUCCESS_RATE": "99",
            "FETCHGUARD_REQUEST_TIMEOUT_MS": "2500",
        }
        config = FetchGuardConfig.from_env(environ=env)

        assert config.limiter.max_concurrent == 4
        assert config.retry.max_attempts == 5
        assert config.retry.base_delay_ms == 250.0
        assert config.retry.max_delay_ms == 4000.0
        assert config.retry.jitter_fraction == 0.1
        assert config.circuit_breaker.error_rate_threshold == 40.0
        assert config.circuit_breaker.minimum_sample_size == 20
        assert config.circuit_breaker.reset_timeout_seconds == 30.0
        assert config.sla.latency_budget_ms == 3000.0
        assert config.sla.min_success_rate == 99.0
        assert config.request_timeout_seconds == 2.5

    def test_custom_prefix(self) -> None:
        """Test a custom prefix."""
        config = FetchGuardConfig.from_env("SCRAPER_", {"SCRAPER_MAX_ATTEMPTS": "2"})
        assert config.retry.max_attempts == 2

    def test_unset_keeps_defaults(self) -> None:
        """Test missing and blank variables keep defaults."""
        config = FetchGuardConfig.from_env(environ={"FETCHGUARD_MAX_ATTEMPTS": " "})
        assert config.retry.max_attempts == 3

    def test_unparsable(self) -> None:
        """Test garbage values raise ConfigError naming the field."""
        with pytest.raises(ConfigError) as exc_info:
            FetchGuardConfig.from_env(environ={"FETCHGUARD_MAX_CONCURRENT_REQUESTS": "many"})
        assert exc_info.value.field == "max_concurrent"

    def test_out_of_range(self) -> None:
        """Test zero capacity fails fast."""
        with pytest.raises(ConfigError):
            FetchGuardConfig.from_env(environ={"FETCHGUARD_MAX_CONCURRENT_REQUESTS": "0"})

    def test_reads_os_environ(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test os.environ is the default source."""
        monkeypatch.setenv("FETCHGUARD_MAX_ATTEMPTS", "6")
        assert FetchGuardConfig.from_env().retry.max_attempts == 6


class TestFromDictAndFile:
    """Tests for mapping and file loading."""

    def test_from_dict(self) -> None:
        """Test nested sections."""
        config = FetchGuardConfig.from_dict(
            {
                "limiter": {"max_concurrent": 3},
                "retry": {"max_attempts": 4, "throttle_floor_ms": 1500},
                "request_timeout_seconds": 12,
            }
        )
        assert config.limiter.max_concurrent == 3
        assert config.retry.max_attempts == 4
        assert config.retry.throttle_floor_ms == 1500
        assert config.request_timeout_seconds == 12.0

    def test_unknown_section(self) -> None:
        """Test unknown top-level keys are rejected."""
        with pytest.raises(ConfigError):
            FetchGuardConfig.from_dict({"proxy": {}})

    def test_unknown_option(self) -> None:
        """Test unknown section keys are rejected."""
        with pytest.raises(ConfigError) as exc_info:
            FetchGuardConfig.from_dict({"retry": {"max_retries": 3}})
        assert exc_info.value.field == "retry.max_retries"

    def test_round_trip(self) -> None:
        """Test to_dict output is accepted by from_dict."""
        original = FetchGuardConfig.production()
        assert FetchGuardConfig.from_dict(original.to_dict()) == original

    def test_from_yaml_file(self, tmp_path) -> None:
        """Test loading YAML."""
        path = tmp_path / "fetchguard.yaml"
        path.write_text(
            "limiter:\n"
            "  max_concurrent: 7\n"
            "circuit_breaker:\n"
            "  error_rate_threshold: 25\n"
            "  reset_timeout_seconds: 10\n"
        )
        config = FetchGuardConfig.from_file(path)
        assert config.limiter.max_concurrent == 7
        assert config.circuit_breaker.error_rate_threshold == 25
        assert config.circuit_breaker.reset_timeout_seconds == 10

    def test_from_json_file(self, tmp_path) -> None:
        """Test loading JSON."""
        path = tmp_path / "fetchguard.json"
        path.write_text(json.dumps({"sla": {"min_success_rate": 90}}))
        assert FetchGuardConfig.from_file(path).sla.min_success_rate == 90

    def test_missing_file(self, tmp_path) -> None:
        """Test a missing file raises ConfigError."""
        with pytest.raises(ConfigError):
            FetchGuardConfig.from_file(tmp_path / "absent.yaml")

    def test_non_mapping_file(self, tmp_path) -> None:
        """Test a non-mapping document is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError):
            FetchGuardConfig.from_file(path)
