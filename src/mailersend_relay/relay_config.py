# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration dataclasses for the relay.

The configuration is read once, at process entry, from environment
variables and handed to each component's constructor:

- config.smtp.port
- config.delivery.api_key
- config.attachments.directory

Environment variables:
    SMTP_PORT: Listener port (default: 2525).
    SMTP_DATA_SIZE_LIMIT: Maximum accepted message size in bytes
        (default: 33554432).
    MAILERSEND_API_KEY: API token for the delivery provider.
    MAILERSEND_API_URL: Base URL of the delivery API
        (default: https://api.mailersend.com/v1).
    MAILERSEND_TIMEOUT: Request timeout in seconds (default: 30).
    ATTACHMENT_DIR: Directory for persisted attachments
        (default: ``attachments/`` next to this package).
    RELAY_DRAIN_TIMEOUT: Seconds to wait for in-flight sessions on
        shutdown (default: wait until they finish).
    RELAY_METRICS_PORT: Port of the Prometheus endpoint (default: disabled).
    RELAY_LOG_LEVEL: Logging level (default: INFO).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

LOOPBACK_HOST = "127.0.0.1"
DEFAULT_SMTP_PORT = 2525
DEFAULT_DATA_SIZE_LIMIT = 32 * 1024 * 1024
DEFAULT_API_URL = "https://api.mailersend.com/v1"
DEFAULT_TIMEOUT = 30.0
DEFAULT_ATTACHMENT_DIR = Path(__file__).resolve().parent / "attachments"


@dataclass
class SmtpConfig:
    """Listener settings."""

    host: str = LOOPBACK_HOST
    """Bind address. Always the loopback interface."""

    port: int = DEFAULT_SMTP_PORT
    """TCP port of the listener."""

    data_size_limit: int = DEFAULT_DATA_SIZE_LIMIT
    """Maximum message size accepted in a DATA transaction."""


@dataclass
class DeliveryConfig:
    """Delivery provider settings."""

    api_key: str | None = None
    """Bearer token for the MailerSend API."""

    api_url: str = DEFAULT_API_URL
    """Base URL; the email endpoint is ``<api_url>/email``."""

    timeout: float = DEFAULT_TIMEOUT
    """Total timeout in seconds for one delivery request."""

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


@dataclass
class AttachmentConfig:
    """Attachment persistence settings."""

    directory: Path = DEFAULT_ATTACHMENT_DIR
    """Directory where attachments are written."""


@dataclass
class MetricsConfig:
    """Prometheus endpoint settings."""

    port: int | None = None
    """Port of the metrics endpoint on the loopback interface. None disables it."""

    @property
    def enabled(self) -> bool:
        return self.port is not None


@dataclass
class RelayConfig:
    """Main configuration container.

    Example:
        config = RelayConfig(
            smtp=SmtpConfig(port=2526),
            delivery=DeliveryConfig(api_key="mlsn.xxx"),
        )
        server = RelayServer(config)
    """

    smtp: SmtpConfig = field(default_factory=SmtpConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    attachments: AttachmentConfig = field(default_factory=AttachmentConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)

    drain_timeout: float | None = None
    """Seconds to wait for in-flight sessions on shutdown. None waits indefinitely."""

    log_level: str = "INFO"
    """Logging level name."""


def _get(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _get_int(environ: Mapping[str, str], name: str, default: int | None) -> int | None:
    value = _get(environ, name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _get_float(environ: Mapping[str, str], name: str, default: float | None) -> float | None:
    value = _get(environ, name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def load_config(environ: Mapping[str, str] | None = None) -> RelayConfig:
    """Build a RelayConfig from environment variables.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``.

    Returns:
        The populated configuration.

    Raises:
        ValueError: If a numeric variable cannot be parsed or a port is out
            of range.
    """
    if environ is None:
        environ = os.environ

    port = _get_int(environ, "SMTP_PORT", DEFAULT_SMTP_PORT)
    if not 0 < port < 65536:
        raise ValueError(f"SMTP_PORT out of range: {port}")

    metrics_port = _get_int(environ, "RELAY_METRICS_PORT", None)
    if metrics_port is not None and not 0 < metrics_port < 65536:
        raise ValueError(f"RELAY_METRICS_PORT out of range: {metrics_port}")

    attachment_dir = _get(environ, "ATTACHMENT_DIR")

    return RelayConfig(
        smtp=SmtpConfig(
            port=port,
            data_size_limit=_get_int(environ, "SMTP_DATA_SIZE_LIMIT", DEFAULT_DATA_SIZE_LIMIT),
        ),
        delivery=DeliveryConfig(
            api_key=_get(environ, "MAILERSEND_API_KEY"),
            api_url=(_get(environ, "MAILERSEND_API_URL") or DEFAULT_API_URL).rstrip("/"),
            timeout=_get_float(environ, "MAILERSEND_TIMEOUT", DEFAULT_TIMEOUT),
        ),
        attachments=AttachmentConfig(
            directory=Path(attachment_dir).expanduser() if attachment_dir else DEFAULT_ATTACHMENT_DIR,
        ),
        metrics=MetricsConfig(port=metrics_port),
        drain_timeout=_get_float(environ, "RELAY_DRAIN_TIMEOUT", None),
        log_level=(_get(environ, "RELAY_LOG_LEVEL") or "INFO").upper(),
    )


__all__ = [
    "AttachmentConfig",
    "DeliveryConfig",
    "MetricsConfig",
    "RelayConfig",
    "SmtpConfig",
    "load_config",
]
