#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Mailbox pipe daemon.
Monitors an IMAP mailbox using IDLE, renders every arriving message through
a template to stdout, then deletes it from the server.
"""

import imaplib
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

import config_data
import imap_utils
import settings as settings_module
from errors import PipeError

logger = logging.getLogger("imappipe")

app = typer.Typer(
    name="imappipe",
    help="Render new IMAP messages through a template and delete them.",
    add_completion=False,
)


def setup_logging(verbose):
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=config_data.log_format, stream=sys.stderr)


def version_callback(value: bool):
    if value:
        typer.echo(f"imappipe v{config_data.version}")
        raise typer.Exit()


@app.command()
def pipe(
    server: Annotated[str, typer.Argument(help="IMAP server as <host>[:<port>]")],
    mailbox: Annotated[str, typer.Option(help="IMAP mailbox")] = config_data.inbox,
    username: Annotated[
        str, typer.Option(envvar=config_data.username_env, help="IMAP username")
    ] = "",
    password: Annotated[
        str,
        typer.Option(
            envvar=config_data.password_env, help="IMAP password", show_default=False
        ),
    ] = "",
    template: Annotated[
        Optional[Path],
        typer.Option(help="Message template", exists=True, dir_okay=False),
    ] = None,
    poll_timeout: Annotated[
        float,
        typer.Option(help="Poll interval in seconds if IDLE not supported", min=0),
    ] = 0.0,
    no_tls: Annotated[bool, typer.Option("--no-tls", help="Disable TLS IMAP")] = False,
    verbose: Annotated[int, typer.Option(help="Enable debug messages")] = 0,
    once: Annotated[
        bool, typer.Option("--once", help="Process the mailbox once and exit")
    ] = False,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version", callback=version_callback, is_eager=True, help="Show version"
        ),
    ] = None,
):
    """Render every new message in MAILBOX to stdout, then delete it."""
    setup_logging(verbose)

    host, port = settings_module.split_server(server, no_tls=no_tls)
    try:
        settings = settings_module.Settings(
            host=host,
            port=port,
            mailbox=mailbox,
            username=username,
            password=settings_module.get_credential(password, username),
            template=settings_module.load_template(template),
            poll_timeout=poll_timeout,
            no_tls=no_tls,
            verbose=verbose,
            once=once,
        )
        imap_utils.run(settings)
    except KeyboardInterrupt:
        raise typer.Exit(130)
    except (PipeError, imaplib.IMAP4.error, OSError) as e:
        logger.error("%s", e)
        raise typer.Exit(1)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
