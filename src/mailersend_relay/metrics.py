# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for monitoring the relay.

All metrics use the ``msr_`` prefix (mailersend relay).

Metrics exposed:
    - ``msr_received_total``: Counter of DATA transactions received.
    - ``msr_relayed_total``: Counter of messages accepted by the provider.
    - ``msr_rejected_total``: Counter of rejected sessions, by pipeline stage.
    - ``msr_attachments_total``: Counter of attachments persisted.

When ``RELAY_METRICS_PORT`` is set the registry is served in Prometheus text
format on the loopback interface.
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, generate_latest, start_http_server

from .relay_config import LOOPBACK_HOST


class RelayMetrics:
    """Prometheus metrics collector for the relay.

    Attributes:
        registry: The Prometheus CollectorRegistry holding all metrics.
        received: Counter of DATA transactions.
        relayed: Counter of messages accepted by the provider.
        rejected: Counter of rejected sessions labeled by ``stage``.
        attachments: Counter of persisted attachments.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize metrics with an optional custom registry.

        Args:
            registry: Optional Prometheus CollectorRegistry. If not provided,
                a new registry is created.
        """
        self.registry = registry or CollectorRegistry()
        self.received = Counter(
            "msr_received_total",
            "Total messages received",
            registry=self.registry,
        )
        self.relayed = Counter(
            "msr_relayed_total",
            "Total messages accepted by the delivery provider",
            registry=self.registry,
        )
        self.rejected = Counter(
            "msr_rejected_total",
            "Total sessions rejected",
            ["stage"],
            registry=self.registry,
        )
        self.attachments = Counter(
            "msr_attachments_total",
            "Total attachments persisted",
            registry=self.registry,
        )

    def inc_received(self) -> None:
        self.received.inc()

    def inc_relayed(self) -> None:
        self.relayed.inc()

    def inc_attachments(self, count: int) -> None:
        if count:
            self.attachments.inc(count)

    def inc_rejected(self, stage: str) -> None:
        """Increment the rejection counter.

        Args:
            stage: Pipeline stage that failed. Falls back to "unknown".
        """
        self.rejected.labels(stage=stage or "unknown").inc()

    def serve(self, port: int, host: str = LOOPBACK_HOST) -> None:
        """Expose the registry over HTTP in a background thread."""
        start_http_server(port, addr=host, registry=self.registry)

    def generate_latest(self) -> bytes:
        """Return metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)
