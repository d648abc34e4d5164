"""Tests for environment-based configuration."""

from pathlib import Path

import pytest

from mailersend_relay.relay_config import (
    DEFAULT_API_URL,
    DEFAULT_ATTACHMENT_DIR,
    DEFAULT_DATA_SIZE_LIMIT,
    LOOPBACK_HOST,
    DeliveryConfig,
    RelayConfig,
    load_config,
)


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self):
        config = load_config({})

        assert config.smtp.host == LOOPBACK_HOST
        assert config.smtp.port == 2525
        assert config.smtp.data_size_limit == DEFAULT_DATA_SIZE_LIMIT
        assert config.delivery.api_key is None
        assert config.delivery.configured is False
        assert config.delivery.api_url == DEFAULT_API_URL
        assert config.delivery.timeout == 30.0
        assert config.attachments.directory == DEFAULT_ATTACHMENT_DIR
        assert config.metrics.enabled is False
        assert config.drain_timeout is None
        assert config.log_level == "INFO"

    def test_environment_values(self, tmp_path):
        config = load_config(
            {
                "SMTP_PORT": "2600",
                "SMTP_DATA_SIZE_LIMIT": "1024",
                "MAILERSEND_API_KEY": "mlsn.secret",
                "MAILERSEND_API_URL": "http://localhost:8080/v1/",
                "MAILERSEND_TIMEOUT": "2.5",
                "ATTACHMENT_DIR": str(tmp_path / "att"),
                "RELAY_DRAIN_TIMEOUT": "10",
                "RELAY_METRICS_PORT": "9100",
                "RELAY_LOG_LEVEL": "debug",
            }
        )

        assert config.smtp.port == 2600
        assert config.smtp.data_size_limit == 1024
        assert config.delivery.api_key == "mlsn.secret"
        assert config.delivery.configured is True
        assert config.delivery.api_url == "http://localhost:8080/v1"
        assert config.delivery.timeout == 2.5
        assert config.attachments.directory == tmp_path / "att"
        assert config.drain_timeout == 10.0
        assert config.metrics.port == 9100
        assert config.metrics.enabled is True
        assert config.log_level == "DEBUG"

    def test_blank_values_use_defaults(self):
        config = load_config({"SMTP_PORT": "  ", "MAILERSEND_API_KEY": ""})

        assert config.smtp.port == 2525
        assert config.delivery.api_key is None

    def test_attachment_dir_expands_user(self):
        config = load_config({"ATTACHMENT_DIR": "~/relay-attachments"})

        assert config.attachments.directory == Path("~/relay-attachments").expanduser()

    def test_invalid_port_names_variable(self):
        with pytest.raises(ValueError, match="SMTP_PORT"):
            load_config({"SMTP_PORT": "smtp"})

    def test_port_out_of_range(self):
        with pytest.raises(ValueError, match="out of range"):
            load_config({"SMTP_PORT": "70000"})

    def test_invalid_timeout(self):
        with pytest.raises(ValueError, match="MAILERSEND_TIMEOUT"):
            load_config({"MAILERSEND_TIMEOUT": "soon"})

    def test_reads_os_environ_by_default(self, monkeypatch):
        monkeypatch.setenv("SMTP_PORT", "2727")
        monkeypatch.setenv("MAILERSEND_API_KEY", "from-env")

        config = load_config()

        assert config.smtp.port == 2727
        assert config.delivery.api_key == "from-env"


class TestRelayConfig:
    """Tests for the configuration dataclasses."""

    def test_nested_defaults_are_independent(self):
        first = RelayConfig()
        second = RelayConfig()
        first.smtp.port = 3000

        assert second.smtp.port == 2525

    def test_delivery_configured(self):
        assert DeliveryConfig().configured is False
        assert DeliveryConfig(api_key="k").configured is True
