# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for the SMTP to MailerSend relay.

Usage:
    # Run the relay on 127.0.0.1:2525 until SIGINT/SIGTERM
    mailersend-relay serve

    # Override settings for this run
    mailersend-relay serve --port 2526 --attachment-dir /var/lib/relay/attachments

    # Push a single .eml file through the pipeline once
    mailersend-relay send message.eml

    # Show the effective configuration
    mailersend-relay config

Settings come from environment variables (see ``relay_config``); a
``.env`` file in the working directory is loaded first without overriding
variables that are already set.
"""

from __future__ import annotations

import asyncio
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

import click
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.table import Table

from .errors import StorageError
from .logger import configure_logging
from .relay_config import RelayConfig, load_config
from .server import build_coordinator, run
from .session import RelaySession

console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Print an error message in red."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message in green."""
    console.print(f"[green]✓[/green] {message}")


def _mask(secret: Optional[str]) -> str:
    if not secret:
        return "(not set)"
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:4]}…{secret[-4:]}"


def _load(ctx: click.Context) -> RelayConfig:
    try:
        return load_config()
    except ValueError as e:
        print_error(str(e))
        ctx.exit(1)


@click.group()
@click.version_option(package_name="smtp-mailersend-relay")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Environment file to load (default: .env in the working directory).",
)
def main(env_file: Optional[Path]) -> None:
    """Relay locally submitted mail to the MailerSend API."""
    load_dotenv(dotenv_path=env_file or find_dotenv(usecwd=True), override=False)


@main.command("serve")
@click.option("--port", "-p", type=click.IntRange(1, 65535), default=None, help="Port to listen on (default: SMTP_PORT or 2525).")
@click.option(
    "--attachment-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for persisted attachments (default: ATTACHMENT_DIR).",
)
@click.option("--log-level", default=None, help="Logging level (default: RELAY_LOG_LEVEL or INFO).")
@click.pass_context
def serve(ctx: click.Context, port: Optional[int], attachment_dir: Optional[Path], log_level: Optional[str]) -> None:
    """Run the relay on the loopback interface until signalled."""
    config = _load(ctx)
    if port is not None:
        config.smtp = replace(config.smtp, port=port)
    if attachment_dir is not None:
        config.attachments = replace(config.attachments, directory=attachment_dir)
    if log_level:
        config.log_level = log_level.upper()

    configure_logging(config.log_level)
    ctx.exit(run(config))


@main.command("send")
@click.argument("eml_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--log-level", default=None, help="Logging level (default: RELAY_LOG_LEVEL or INFO).")
@click.pass_context
def send(ctx: click.Context, eml_file: Path, log_level: Optional[str]) -> None:
    """Relay a single RFC 5322 message file through the pipeline."""
    config = _load(ctx)
    configure_logging((log_level or config.log_level).upper())

    coordinator, store = build_coordinator(config)
    try:
        store.ensure_directory()
    except StorageError as e:
        print_error(str(e))
        ctx.exit(1)

    session = RelaySession(peer="cli")
    session.feed(eml_file.read_bytes())
    session.finish()
    session = asyncio.run(coordinator.process(session))

    if session.acknowledged:
        message_id = session.outcome.message_id if session.outcome else None
        print_success(f"Message accepted (message id: {message_id or '-'})")
        return

    stage = getattr(session.error, "stage", "unknown")
    print_error(f"Message rejected ({stage}): {session.error}")
    ctx.exit(1)


@main.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Show the effective configuration (API key masked)."""
    config = _load(ctx)

    table = Table(title="Relay configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Listen address", f"{config.smtp.host}:{config.smtp.port}")
    table.add_row("Max message size", f"{config.smtp.data_size_limit:,} bytes")
    table.add_row("MailerSend API URL", config.delivery.api_url)
    table.add_row("MailerSend API key", _mask(config.delivery.api_key))
    table.add_row("Request timeout", f"{config.delivery.timeout:g}s")
    table.add_row("Attachments directory", str(config.attachments.directory))
    table.add_row(
        "Drain timeout",
        "unbounded" if config.drain_timeout is None else f"{config.drain_timeout:g}s",
    )
    table.add_row(
        "Metrics endpoint",
        f"{config.smtp.host}:{config.metrics.port}" if config.metrics.enabled else "disabled",
    )
    table.add_row("Log level", config.log_level)
    console.print(table)


if __name__ == "__main__":
    sys.exit(main())
