# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SMTP to MailerSend relay.

A loopback-only SMTP listener for local processes that can only "send
mail". Each submitted message is parsed, its attachments are written to a
local directory, and the message is forwarded through the MailerSend
transactional email API. Failures are reported back to the submitting
client as temporary SMTP errors; the relay itself keeps no queue.

Components:
    AttachmentStore: Persists attachment bytes under unique names.
    MessageMapper: Turns a ParsedMessage into a provider SendRequest.
    MailerSendGateway: Submits a SendRequest to the MailerSend API.
    SessionCoordinator: Drives one SMTP transaction through the pipeline.
    RelayServer: Listener lifecycle and graceful shutdown.

Example:
    Run the relay programmatically::

        from mailersend_relay.relay_config import load_config
        from mailersend_relay.server import run

        run(load_config())

    Or via CLI::

        mailersend-relay serve --port 2525
"""

__version__ = "0.1.0"
