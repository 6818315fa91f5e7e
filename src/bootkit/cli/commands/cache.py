"""Cache commands for bootkit CLI.

This module provides the `bk cache clear` command.
"""

import typer

from bootkit.cli.context import ConfigOption, IdOption, build_bootstrap

app = typer.Typer(
    name="cache",
    help="Manage cached plugin and manifest state",
    no_args_is_help=True,
)


@app.command(name="clear")
def clear_command(
    config: ConfigOption = None,
    id: IdOption = "bootkit",
) -> None:
    """Flush the cache and rediscover plugins."""
    bootstrap = build_bootstrap(config, id)
    bootstrap.reinit()

    typer.echo(
        f"Cache cleared: {len(bootstrap.plugins)} plugins, "
        f"{len(bootstrap.manifest)} manifest entries"
    )
