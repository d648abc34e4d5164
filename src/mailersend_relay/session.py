# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Per-transaction pipeline: receive, parse, map, deliver, reply.

Each SMTP DATA transaction becomes one :class:`RelaySession` driven through
the states::

    RECEIVING -> PARSING -> MAPPING -> DELIVERING -> ACKNOWLEDGED
                    |          |            |
                    +----------+------------+-----> REJECTED

by :class:`SessionCoordinator`. Any failure rejects that session only,
with a temporary SMTP error so the submitting client retries on its own;
the relay keeps no queue.

:class:`RelayHandler` is the aiosmtpd handler that feeds the coordinator.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING

from .errors import RelayError
from .logger import get_logger
from .models import DeliveryOutcome, ParsedMessage, SendRequest
from .parsing import parse_message

if TYPE_CHECKING:
    from aiosmtpd.smtp import SMTP, Envelope, Session

    from .delivery import MailerSendGateway
    from .mapper import MessageMapper
    from .metrics import RelayMetrics

REPLY_ACCEPTED = "250 OK: message accepted for delivery"
REPLY_REJECTED = "451 4.3.0 Error processing mail"
REPLY_SHUTTING_DOWN = "421 4.3.2 Service shutting down"


class SessionState(str, Enum):
    """Lifecycle states of one relay session."""

    RECEIVING = "receiving"
    PARSING = "parsing"
    MAPPING = "mapping"
    DELIVERING = "delivering"
    ACKNOWLEDGED = "acknowledged"
    REJECTED = "rejected"

    @property
    def terminal(self) -> bool:
        return self in (SessionState.ACKNOWLEDGED, SessionState.REJECTED)


class RelaySession:
    """One protocol transaction carrying exactly one message.

    Attributes:
        buffer: Raw message bytes accumulated while receiving.
        complete: True once end-of-data was signalled.
        state: Current pipeline state.
        error: Error that rejected the session, if any.
        outcome: Provider acceptance, once delivered.
        peer: Address of the submitting client, for log lines.
    """

    def __init__(self, peer: str | None = None):
        self.buffer = bytearray()
        self.complete = False
        self.state = SessionState.RECEIVING
        self.error: Exception | None = None
        self.message: ParsedMessage | None = None
        self.outcome: DeliveryOutcome | None = None
        self.peer = peer

    def feed(self, chunk: bytes) -> None:
        """Append a chunk of message data."""
        if self.complete:
            raise RuntimeError("Cannot feed a session after end-of-data")
        self.buffer.extend(chunk)

    def finish(self) -> None:
        """Signal end-of-data."""
        self.complete = True

    @property
    def acknowledged(self) -> bool:
        return self.state is SessionState.ACKNOWLEDGED

    @property
    def reply(self) -> str:
        """SMTP reply for a session that reached a terminal state."""
        if self.state is SessionState.ACKNOWLEDGED:
            return REPLY_ACCEPTED
        return REPLY_REJECTED

    def __repr__(self) -> str:
        return f"RelaySession(state={self.state.value}, size={len(self.buffer)}, peer={self.peer})"


class SessionCoordinator:
    """Drives sessions through the pipeline.

    Only the attachment store's directory and the gateway's credentials are
    shared between sessions; both are read-only here, so sessions run
    concurrently without locks.
    """

    def __init__(
        self,
        mapper: MessageMapper,
        gateway: MailerSendGateway,
        metrics: RelayMetrics | None = None,
        logger=None,
    ):
        self.mapper = mapper
        self.gateway = gateway
        self.metrics = metrics
        self.logger = logger or get_logger("SessionCoordinator")
        self._inflight: set[asyncio.Task[RelaySession]] = set()
        self._transactions = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._closing = False

    @property
    def closing(self) -> bool:
        return self._closing

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    @property
    def transactions(self) -> int:
        """DATA transactions between their DATA command and their reply."""
        return self._transactions

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Track one protocol transaction so :meth:`drain` waits for it.

        Wraps the whole DATA exchange, receiving included, so a client that
        is still sending when shutdown starts gets its reply.
        """
        self._transactions += 1
        self._idle.clear()
        try:
            yield
        finally:
            self._transactions -= 1
            if not self._transactions:
                self._idle.set()

    async def process(self, session: RelaySession) -> RelaySession:
        """Run a received session to a terminal state.

        Never raises for pipeline failures: they end in REJECTED with the
        error recorded on the session.
        """
        if not session.complete:
            session.finish()
        if self.metrics:
            self.metrics.inc_received()

        try:
            session.state = SessionState.PARSING
            msg = parse_message(bytes(session.buffer))
            session.message = msg
            self._log_received(msg)

            session.state = SessionState.MAPPING
            request = await self.mapper.map(msg)
            if self.metrics and request.attachments:
                self.metrics.inc_attachments(len(request.attachments))

            session.state = SessionState.DELIVERING
            session.outcome = await self._deliver(request)
        except RelayError as e:
            self._reject(session, e, e.stage)
        except Exception as e:
            self.logger.exception(f"Unexpected error processing email during {session.state.value}")
            self._reject(session, e, session.state.value)
        else:
            session.state = SessionState.ACKNOWLEDGED
            if self.metrics:
                self.metrics.inc_relayed()

        return session

    async def _deliver(self, request: SendRequest) -> DeliveryOutcome:
        return await self.gateway.deliver(request)

    async def submit(self, raw: bytes, peer: str | None = None) -> RelaySession:
        """Process ``raw`` as one session, tracked so shutdown can drain it.

        The pipeline runs in its own task: if the submitting client goes away
        mid-transaction, the session still runs to completion.
        """
        session = RelaySession(peer=peer)
        session.feed(raw)
        session.finish()

        task = asyncio.create_task(self.process(session))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return await asyncio.shield(task)

    def close(self) -> None:
        """Stop accepting new transactions."""
        self._closing = True

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for open transactions and in-flight sessions to finish.

        Args:
            timeout: Maximum seconds to wait. None waits indefinitely.

        Returns:
            True if everything finished.
        """
        if not self._inflight and not self._transactions:
            return True
        self.logger.info(
            f"Waiting for {self._transactions} open transaction(s) and "
            f"{len(self._inflight)} in-flight session(s) to finish"
        )
        try:
            await asyncio.wait_for(self._wait_idle(), timeout)
        except asyncio.TimeoutError:
            self.logger.warning(
                f"{self._transactions} transaction(s) and {len(self._inflight)} session(s) "
                f"still running after {timeout}s drain timeout"
            )
            return False
        return True

    async def _wait_idle(self) -> None:
        while self._inflight or self._transactions:
            if self._inflight:
                await asyncio.wait(set(self._inflight))
            if self._transactions:
                await self._idle.wait()

    def _log_received(self, msg: ParsedMessage) -> None:
        self.logger.info(
            "Received email: From: %s | To: %s | Subject: %s",
            msg.sender or "-",
            ", ".join(str(a) for a in msg.to) or "-",
            msg.subject if msg.subject is not None else "-",
        )

    def _reject(self, session: RelaySession, error: Exception, stage: str) -> None:
        session.state = SessionState.REJECTED
        session.error = error
        if self.metrics:
            self.metrics.inc_rejected(stage)

        payload = getattr(error, "payload", None)
        if payload is not None:
            self.logger.error(f"Error processing email (stage={stage}): {error}; provider response: {payload}")
        else:
            self.logger.error(f"Error processing email (stage={stage}): {error}")


class RelayHandler:
    """aiosmtpd handler relaying each DATA transaction through the coordinator.

    Authentication is disabled by the listener; every envelope from a
    loopback client is accepted up to DATA.
    """

    def __init__(self, coordinator: SessionCoordinator):
        self.coordinator = coordinator

    async def handle_DATA(self, server: SMTP, session: Session, envelope: Envelope) -> str:
        peer = None
        if session.peer:
            peer = session.peer[0] if isinstance(session.peer, tuple) else str(session.peer)

        content = envelope.original_content or envelope.content or b""
        if isinstance(content, str):
            content = content.encode("utf-8", errors="surrogateescape")

        relay_session = await self.coordinator.submit(content, peer=peer)
        return relay_session.reply
