"""Tests for configuration models and YAML loading."""
from pathlib import Path

import pytest
from pydantic import ValidationError

from greenhouse_alerts.config import (
    AppConfig,
    ConfigLoadError,
    ConfigLoader,
    LogFormat,
    LogLevel,
    LookupFailurePolicy,
    RoutingConfig,
    ThresholdsConfig,
    load_config,
)
from greenhouse_alerts.models.alerts import AlertSeverity
from greenhouse_alerts.models.thresholds import ThresholdConfig

REPO_CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"

ALERTS_YAML = """
engine:
  store_timeout_seconds: 2.5
  lookup_failure_policy: assume_none
  config_refresh_seconds: 30

thresholds:
  defaults:
    light_low: 150
  greenhouses:
    1:
      temperature_high: 32

channels:
  console:
    enabled: true
    format: simple
  pubsub:
    enabled: false
    channel_prefix: greenhouse

routing:
  low: [console]
  critical: [console, pubsub]

logging:
  format: text
  level: DEBUG
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("REDIS_URL", "DATABASE_URL", "LOG_LEVEL", "CONFIG_PATH"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_dir(tmp_path):
    (tmp_path / "alerts.yaml").write_text(ALERTS_YAML, encoding="utf-8")
    return tmp_path


class TestThresholdConfig:
    def test_defaults(self):
        config = ThresholdConfig()
        assert (config.temperature_low, config.temperature_high) == (15.0, 35.0)
        assert config.temperature_critical_delta == 5.0
        assert (config.humidity_low, config.humidity_high) == (40.0, 80.0)
        assert config.soil_moisture_low == 300.0
        assert config.light_low == 200.0

    def test_high_must_exceed_low(self):
        with pytest.raises(ValidationError):
            ThresholdConfig(temperature_low=30.0, temperature_high=30.0)
        with pytest.raises(ValidationError):
            ThresholdConfig(humidity_low=90.0)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            ThresholdConfig(co2_high=1000)


class TestThresholdsConfig:
    def test_partial_override_merges_with_defaults(self):
        thresholds = ThresholdsConfig(greenhouses={"gh-2": {"humidity_high": 90}})

        resolved = thresholds.get_thresholds("gh-2")

        assert resolved.humidity_high == 90.0
        assert resolved.humidity_low == 40.0
        assert thresholds.has_override("gh-2")
        assert thresholds.get_thresholds("gh-1") == ThresholdConfig()

    def test_invalid_override_rejected(self):
        with pytest.raises(ValidationError):
            ThresholdsConfig(greenhouses={"gh-2": {"temperature_high": 10}})


class TestAppConfig:
    def test_routing_must_reference_known_channels(self):
        with pytest.raises(ValidationError):
            AppConfig(routing=RoutingConfig(low=["slack"]))

    def test_default_routing(self):
        config = AppConfig()
        assert config.routing.channels_for(AlertSeverity.CRITICAL) == ["console", "pubsub"]
        assert config.get_enabled_channels() == ["console", "pubsub"]

    def test_store_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            AppConfig(engine={"store_timeout_seconds": 0})


class TestConfigLoader:
    def test_load(self, config_dir):
        config = ConfigLoader(config_dir).load()

        assert config.engine.store_timeout_seconds == 2.5
        assert config.engine.lookup_failure_policy == LookupFailurePolicy.ASSUME_NONE
        assert config.engine.config_refresh_seconds == 30
        assert config.thresholds.get_thresholds("1").temperature_high == 32.0
        assert config.thresholds.get_thresholds("1").light_low == 150.0
        assert config.get_channel("console").format == "simple"
        assert config.get_enabled_channels() == ["console"]
        assert config.routing.channels_for(AlertSeverity.LOW) == ["console"]
        assert config.logging.format == LogFormat.TEXT
        assert config.logging.level == LogLevel.DEBUG

    def test_environment_overrides(self, config_dir, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379")
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/gh")
        monkeypatch.setenv("LOG_LEVEL", "warning")

        config = ConfigLoader(config_dir).load()

        assert config.redis.url == "redis://cache:6379"
        assert config.postgres.url == "postgresql://u:p@db:5432/gh"
        assert config.logging.level == LogLevel.WARNING

    def test_load_config_reads_config_path(self, config_dir, monkeypatch):
        monkeypatch.setenv("CONFIG_PATH", str(config_dir))
        assert load_config().engine.store_timeout_seconds == 2.5

    def test_repository_config_is_valid(self):
        config = load_config(REPO_CONFIG_DIR)
        assert config.engine.lookup_failure_policy == LookupFailurePolicy.FAIL_CANDIDATE

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigLoadError):
            ConfigLoader(tmp_path / "absent")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigLoadError) as exc_info:
            ConfigLoader(tmp_path).load()
        assert exc_info.value.file_path == tmp_path / "alerts.yaml"

    @pytest.mark.parametrize(
        "content",
        [
            "",
            "- just\n- a list\n",
            "engine: [unclosed\n",
            "engine:\n  lookup_failure_policy: retry_forever\n",
            "thresholds:\n  defaults:\n    humidity_low: 95\n",
            "routing:\n  low: [pager]\n",
        ],
    )
    def test_invalid_files(self, tmp_path, content):
        (tmp_path / "alerts.yaml").write_text(content, encoding="utf-8")
        with pytest.raises(ConfigLoadError):
            ConfigLoader(tmp_path).load()
