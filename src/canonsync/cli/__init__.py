"""
canonsync CLI - Main application entry point.

This module sets up the Typer CLI application with all commands.
"""

import logging

import typer

from canonsync import __version__
from canonsync.cli import content
from canonsync.core.config.env import load_layered_env

app = typer.Typer(
    name="canonsync",
    help="Canonicalize course content and plan incremental syncs",
    no_args_is_help=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"canonsync {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """
    canonsync - canonical content fingerprints and sync planning.

    Quick Start:
        canonsync check              # Validate the content tree
        canonsync format             # Rewrite files in canonical form
        canonsync plan               # What changed since the last sync

    Configuration:
        .canonsync.json              # Project settings
        CANONSYNC_* variables        # Override any layer (also read from .env)
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env()

    if debug:
        logging.basicConfig(level=logging.DEBUG)

    ctx.obj = {"debug": debug}


app.command(name="check")(content.check)
app.command(name="format")(content.format_content)
app.command(name="plan")(content.plan)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
