# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Process lifecycle: start the loopback listener, shut down gracefully.

Usage:
    mailersend-relay serve

or programmatically::

    config = load_config()
    exit_code = run(config)

On SIGINT/SIGTERM the listener stops accepting connections, sessions
already in the pipeline run to completion, then the process exits 0.
"""

from __future__ import annotations

import asyncio
import signal

from aiosmtpd.smtp import SMTP, syntax

from .attachments import AttachmentStore
from .delivery import MailerSendGateway
from .logger import get_logger
from .mapper import MessageMapper
from .metrics import RelayMetrics
from .relay_config import LOOPBACK_HOST, RelayConfig
from .session import REPLY_SHUTTING_DOWN, RelayHandler, SessionCoordinator

SERVER_IDENT = "SMTP to MailerSend Relay"
SERVER_HOSTNAME = "localhost"


def build_coordinator(
    config: RelayConfig, metrics: RelayMetrics | None = None
) -> tuple[SessionCoordinator, AttachmentStore]:
    """Wire store, mapper and gateway into a coordinator for ``config``."""
    store = AttachmentStore(config.attachments.directory)
    mapper = MessageMapper(store)
    gateway = MailerSendGateway(config.delivery)
    return SessionCoordinator(mapper, gateway, metrics=metrics), store


class RelaySMTP(SMTP):
    """aiosmtpd protocol reporting its connection and DATA transactions to the relay.

    Once shutdown has begun a new DATA command is answered with 421 and the
    connection is closed; a transaction already past DATA runs to its reply.
    """

    def __init__(self, handler, *, coordinator: SessionCoordinator, connections: set, **kwargs):
        super().__init__(handler, **kwargs)
        self.coordinator = coordinator
        self.connections = connections

    def connection_made(self, transport) -> None:
        super().connection_made(transport)
        self.connections.add(self)

    def connection_lost(self, error) -> None:
        self.connections.discard(self)
        super().connection_lost(error)

    @syntax("DATA")
    async def smtp_DATA(self, arg: str) -> None:
        if self.coordinator.closing:
            await self.push(REPLY_SHUTTING_DOWN)
            if self.transport is not None:
                self.transport.close()
            return
        with self.coordinator.transaction():
            await super().smtp_DATA(arg)


class RelayServer:
    """Owns the SMTP listener and the session coordinator.

    Attributes:
        config: Relay configuration.
        coordinator: Session coordinator shared by all connections.
        store: Attachment store.
        metrics: Prometheus metrics collector.
    """

    def __init__(self, config: RelayConfig, metrics: RelayMetrics | None = None, logger=None):
        self.config = config
        self.logger = logger or get_logger("RelayServer")
        self.metrics = metrics or RelayMetrics()
        self.coordinator, self.store = build_coordinator(config, self.metrics)
        self.handler = RelayHandler(self.coordinator)
        self._server: asyncio.AbstractServer | None = None
        self._connections: set[RelaySMTP] = set()
        self._stop = asyncio.Event()

    @property
    def host(self) -> str:
        return LOOPBACK_HOST

    @property
    def port(self) -> int:
        """Bound port (resolves port 0 to the ephemeral port once started)."""
        if self._server and self._server.sockets:
            return self._server.sockets[0].getsockname()[1]
        return self.config.smtp.port

    @property
    def running(self) -> bool:
        return self._server is not None and self._server.is_serving()

    def _protocol_factory(self) -> RelaySMTP:
        return RelaySMTP(
            self.handler,
            coordinator=self.coordinator,
            connections=self._connections,
            data_size_limit=self.config.smtp.data_size_limit,
            enable_SMTPUTF8=True,
            decode_data=False,
            hostname=SERVER_HOSTNAME,
            ident=SERVER_IDENT,
            # No TLS context: STARTTLS is never advertised on the loopback bind.
            tls_context=None,
            auth_required=False,
        )

    async def start(self) -> None:
        """Prepare the attachment directory and start listening."""
        self.store.ensure_directory()

        loop = asyncio.get_running_loop()
        self._server = await loop.create_server(
            self._protocol_factory,
            host=LOOPBACK_HOST,
            port=self.config.smtp.port,
        )

        if self.config.metrics.enabled:
            self.metrics.serve(self.config.metrics.port)
            self.logger.info(f"Metrics available at http://{LOOPBACK_HOST}:{self.config.metrics.port}/metrics")

        self._log_banner()

    async def stop(self) -> None:
        """Stop accepting sessions and wait for in-flight ones to finish.

        Transactions that already sent DATA, including those still
        receiving, get their reply before the remaining connections are
        closed. The wait is bounded by ``config.drain_timeout``.
        """
        self.logger.info("Shutting down server...")
        self.coordinator.close()
        if self._server is not None:
            self._server.close()

        await self.coordinator.drain(self.config.drain_timeout)

        for connection in list(self._connections):
            if connection.transport is not None:
                connection.transport.close()
        if self._server is not None:
            await self._server.wait_closed()
            self._server = None
        self.logger.info("SMTP server closed")

    def request_stop(self) -> None:
        """Ask :meth:`serve_forever` to shut down; safe to call from a signal handler."""
        if not self._stop.is_set():
            self.logger.info("Shutdown signal received")
            self._stop.set()

    async def serve_forever(self) -> None:
        """Run until SIGINT/SIGTERM, then shut down gracefully."""
        loop = asyncio.get_running_loop()
        signals = (signal.SIGINT, signal.SIGTERM)
        for sig in signals:
            loop.add_signal_handler(sig, self.request_stop)

        try:
            await self.start()
            await self._stop.wait()
        finally:
            for sig in signals:
                loop.remove_signal_handler(sig)
            await self.stop()

    def _log_banner(self) -> None:
        self.logger.info("SMTP to MailerSend Relay Service")
        self.logger.info(f"SMTP server running on {self.host}:{self.port} (localhost only)")
        self.logger.info("Authentication: Disabled (localhost only)")
        self.logger.info(f"MailerSend API key configured: {self.config.delivery.configured}")
        self.logger.info(f"Attachments directory: {self.store.directory}")


async def _serve(config: RelayConfig) -> None:
    server = RelayServer(config)
    await server.serve_forever()


def run(config: RelayConfig) -> int:
    """Run the relay until signalled. Returns the process exit code."""
    asyncio.run(_serve(config))
    return 0


__all__ = ["RelayServer", "build_coordinator", "run"]
