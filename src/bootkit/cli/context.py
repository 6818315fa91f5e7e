"""Shared CLI helpers.

Every command builds its Bootstrap the same way, from an optional config
file and a product id, and maps bootstrap errors onto exit codes.

Exit codes:
    0: Success
    1: Plugin or component not found, or plugin protected
    2: Configuration error
"""

from pathlib import Path
from typing import Annotated

import typer

from bootkit.bootstrap import Bootstrap
from bootkit.config import Config
from bootkit.errors import BootstrapError, ConfigError

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to a YAML config file",
    ),
]

IdOption = Annotated[
    str,
    typer.Option(
        "--id",
        help="Product id",
    ),
]


def build_bootstrap(config: Path | None, id: str) -> Bootstrap:
    """Create the Bootstrap for a CLI invocation.

    Raises:
        typer.Exit: With code 2 if the configuration cannot be loaded.
    """
    try:
        files = [config] if config is not None else []
        return Bootstrap(Config(id=id, files=files))
    except ConfigError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(2) from e


def fail(error: BootstrapError) -> typer.Exit:
    """Report ``error`` and return the matching exit."""
    typer.echo(f"Error: {error.message}", err=True)
    return typer.Exit(2 if isinstance(error, ConfigError) else 1)
