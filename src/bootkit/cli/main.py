"""bootkit CLI entry point.

This module provides the main Typer application and entry point for the `bk` CLI.

Usage:
    bk plugins list [options]     - List discovered plugins
    bk plugins add NAME           - Install a plugin
    bk plugins remove NAME        - Remove a plugin
    bk manifest [options]         - Show the composed manifest
    bk cache clear                - Flush cached state
    bk version [options]          - Show version information
"""

import logging
import sys
from typing import Annotated, Any

import structlog
import typer

from bootkit.cli.commands import cache, manifest, plugins, version

app = typer.Typer(
    name="bk",
    help="bootkit CLI - Inspect and manage plugin-assembled applications",
    no_args_is_help=True,
)

app.add_typer(plugins.app, name="plugins")
app.add_typer(cache.app, name="cache")
app.command(name="manifest")(manifest.manifest_command)
app.command(name="version")(version.version_command)


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Resolved per logger so redirected streams are honored
    return structlog.PrintLogger(sys.stderr)


def configure_logging(debug: bool = False) -> None:
    """Send structlog output to stderr, keeping stdout for command output."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.WARNING
        ),
        logger_factory=_stderr_logger,
    )


@app.callback()
def callback(
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Show debug logs on stderr",
        ),
    ] = False,
) -> None:
    """bootkit CLI - Inspect and manage plugin-assembled applications."""
    configure_logging(debug)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
