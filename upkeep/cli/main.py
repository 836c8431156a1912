"""upkeep CLI: Typer application."""

import logging

import typer
from rich.console import Console

from upkeep.version import __version__

app = typer.Typer(
    name="upkeep",
    help="upkeep: update checks and rollback for self-hosted plugins.",
    no_args_is_help=True,
    invoke_without_command=True,
)
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", is_eager=True, help="Show version"),
):
    """upkeep CLI."""
    if version:
        console.print(f"upkeep v{__version__}")
        raise typer.Exit()

    from upkeep.config import config
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


# ── Plugin commands ────────────────────────────────────────────────────────────
from upkeep.cli.commands import plugin as plugin_cmd  # noqa: E402

app.command(name="check", help="Check the update server for a newer version")(plugin_cmd.plugin_check)
app.command(name="info", help="Show the plugin details view")(plugin_cmd.plugin_info)
app.command(name="versions", help="List versions available for rollback")(plugin_cmd.plugin_versions)
app.command(name="rollback", help="Roll a plugin back to an earlier version")(plugin_cmd.plugin_rollback)
app.command(name="recheck", help="Drop the cached update decision and check again")(plugin_cmd.plugin_recheck)

# ── Operations ─────────────────────────────────────────────────────────────────
from upkeep.cli.commands import config, serve  # noqa: E402

app.command(name="config", help="Show resolved configuration")(config.config_show)
app.command(name="serve", help="Run the HTTP API")(serve.serve)


if __name__ == "__main__":
    app()
