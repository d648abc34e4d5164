# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Delivery of send requests through the MailerSend email API.

One ``deliver()`` call performs exactly one HTTP POST to
``<api_url>/email``; there is no retry at this layer. A rejected or
failed request surfaces as :class:`DeliveryError` carrying the provider's
diagnostic payload, so the submitting SMTP client can retry later.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import aiohttp

from .errors import DeliveryError
from .logger import get_logger
from .models import DeliveryOutcome, SendRequest
from .relay_config import DeliveryConfig

USER_AGENT = "smtp-mailersend-relay/0.1"


class MailerSendGateway:
    """Client for the MailerSend ``/email`` endpoint.

    The API key is read-only after construction and safe to share between
    concurrent sessions.

    Attributes:
        config: Delivery provider settings.
    """

    def __init__(self, config: DeliveryConfig, logger=None):
        self.config = config
        self.logger = logger or get_logger("MailerSendGateway")

    @property
    def endpoint(self) -> str:
        return f"{self.config.api_url.rstrip('/')}/email"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Requested-With": "XMLHttpRequest",
            "User-Agent": USER_AGENT,
        }

    async def deliver(self, request: SendRequest) -> DeliveryOutcome:
        """Submit ``request`` to the provider once.

        Returns:
            The provider's acceptance, with its response kept opaque.

        Raises:
            DeliveryError: If no API key is configured, the provider answers
                with a non-2xx status, or the provider is unreachable.
        """
        if not self.config.configured:
            raise DeliveryError("MailerSend API key is not configured")

        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session, session.post(
                self.endpoint,
                json=request.to_payload(),
                headers=self._headers(),
            ) as resp:
                payload = await self._read_payload(resp)
                if resp.status >= 400:
                    self.logger.error(f"Error from MailerSend API (status {resp.status}): {payload}")
                    raise DeliveryError(
                        "MailerSend API rejected the message",
                        status=resp.status,
                        payload=payload,
                    )
                outcome = DeliveryOutcome(
                    accepted=True,
                    status=resp.status,
                    message_id=resp.headers.get("X-Message-Id"),
                    payload=payload,
                    headers=dict(resp.headers),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            self.logger.error(f"MailerSend API unreachable at {self.endpoint}: {exc!r}")
            raise DeliveryError(
                "MailerSend API unreachable", status=None, payload=repr(exc)
            ) from exc

        self.logger.info(
            f"Email sent successfully via MailerSend: status={outcome.status} "
            f"message_id={outcome.message_id or '-'} response={outcome.payload or '-'}"
        )
        return outcome

    @staticmethod
    async def _read_payload(resp: aiohttp.ClientResponse) -> Any:
        body = await resp.text()
        if not body:
            return None
        try:
            return json.loads(body)
        except json.JSONDecodeError:
            return body
