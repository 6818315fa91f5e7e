"""Manifest command for bootkit CLI.

This module provides the `bk manifest` command that prints the composed
manifest as YAML.
"""

from typing import Annotated

import typer
import yaml

from bootkit.cli.context import ConfigOption, IdOption, build_bootstrap


def manifest_command(
    config: ConfigOption = None,
    id: IdOption = "bootkit",
    registry: Annotated[
        bool,
        typer.Option(
            "--registry",
            "-r",
            help="Only show the component registry",
        ),
    ] = False,
) -> None:
    """Show the manifest composed from all enabled plugins."""
    bootstrap = build_bootstrap(config, id)

    data = bootstrap.get_registry() if registry else bootstrap.manifest.get()
    typer.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip())
