"""Version command for bootkit CLI.

This module provides the `bk version` command that displays version information.
"""

import sys
from importlib.metadata import PackageNotFoundError, version
from typing import Annotated

import typer

DEPENDENCIES = ["pydantic", "pyyaml", "structlog", "typer"]


def get_version(distribution: str = "bootkit") -> str:
    """Return the installed version of ``distribution``, or 'unknown'."""
    try:
        return version(distribution)
    except PackageNotFoundError:
        return "unknown"


def version_command(
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show detailed version information",
        ),
    ] = False,
) -> None:
    """Show bootkit version information."""
    bootkit_version = get_version()

    if not verbose:
        typer.echo(f"bootkit {bootkit_version}")
        return

    typer.echo(f"bootkit version: {bootkit_version}")
    typer.echo(f"Python version: {sys.version}")
    typer.echo(f"Python executable: {sys.executable}")

    typer.echo("\nDependencies:")
    for dep in DEPENDENCIES:
        typer.echo(f"  {dep}: {get_version(dep)}")
