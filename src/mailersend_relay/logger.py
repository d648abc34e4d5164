# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Logging utilities for the relay.

Modules obtain their logger through :func:`get_logger`; handlers, level and
format are set once by :func:`configure_logging`, called from the process
entry point only, to avoid duplicate handlers.

Example:
    Typical usage in a module::

        from mailersend_relay.logger import get_logger

        logger = get_logger("AttachmentStore")
        logger.info("Attachment stored")
"""

import logging

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str = "MailerSendRelay") -> logging.Logger:
    """Retrieve a logger instance.

    Args:
        name: The logger name. Defaults to "MailerSendRelay".

    Returns:
        A ``logging.Logger`` bound to the given name.
    """
    return logging.getLogger(name)


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger for the process.

    Args:
        level: Level name such as "DEBUG" or "info". Unknown names fall
            back to INFO.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        force=True,
    )
