"""Plugin commands for bootkit CLI.

This module provides the `bk plugins` commands:
    bk plugins list [--all] [--json]
    bk plugins add NAME [--dest DIR]
    bk plugins remove NAME
"""

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any

import typer

from bootkit.cli.context import ConfigOption, IdOption, build_bootstrap, fail
from bootkit.errors import BootstrapError

app = typer.Typer(
    name="plugins",
    help="List, add and remove plugins",
    no_args_is_help=True,
)


@app.command(name="list")
def list_command(
    config: ConfigOption = None,
    id: IdOption = "bootkit",
    show_all: Annotated[
        bool,
        typer.Option(
            "--all",
            "-a",
            help="Also show disabled and invalid plugins",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON",
        ),
    ] = False,
) -> None:
    """List discovered plugins."""
    bootstrap = build_bootstrap(config, id)

    data: dict[str, Any] = {
        "enabled": [
            _plugin_info(plugin) for plugin in bootstrap.plugins.values()
        ],
    }
    if show_all:
        data["disabled"] = [
            _plugin_info(plugin)
            for plugin in bootstrap.get_disabled_plugins().values()
        ]
        data["invalid"] = [
            invalid.model_dump(mode="json")
            for invalid in bootstrap.get_invalid_plugins().values()
        ]

    if json_output:
        typer.echo(json.dumps(data, indent=2))
        return

    _display_plugins(data)


def _plugin_info(plugin: Any) -> dict[str, Any]:
    return {
        "name": plugin.name,
        "type": plugin.type.value,
        "version": plugin.version,
        "location": plugin.location,
    }


def _display_plugins(data: dict[str, Any]) -> None:
    """Display plugins in human-readable format."""
    for section in ("enabled", "disabled", "invalid"):
        if section not in data:
            continue

        typer.echo(f"{section.capitalize()} ({len(data[section])})")
        for item in data[section]:
            if section == "invalid":
                typer.echo(f"  {item['name']}: {item['error']}")
                continue
            version = f" {item['version']}" if item["version"] else ""
            typer.echo(f"  {item['name']}{version} [{item['type']}]")
        typer.echo()


@app.command(name="add")
def add_command(
    name: Annotated[str, typer.Argument(help="Plugin name or path")],
    config: ConfigOption = None,
    id: IdOption = "bootkit",
    dest: Annotated[
        Path | None,
        typer.Option(
            "--dest",
            "-d",
            help="Install directory",
        ),
    ] = None,
) -> None:
    """Install a plugin."""
    bootstrap = build_bootstrap(config, id)

    try:
        plugin = asyncio.run(bootstrap.add_plugin(name, dest))
    except BootstrapError as e:
        raise fail(e) from e

    typer.echo(f"Added {plugin.name} to {plugin.location}")


@app.command(name="remove")
def remove_command(
    name: Annotated[str, typer.Argument(help="Plugin name")],
    config: ConfigOption = None,
    id: IdOption = "bootkit",
) -> None:
    """Remove a plugin."""
    bootstrap = build_bootstrap(config, id)

    try:
        plugin = asyncio.run(bootstrap.remove_plugin(name))
    except BootstrapError as e:
        raise fail(e) from e

    typer.echo(f"Removed {plugin.name}")
