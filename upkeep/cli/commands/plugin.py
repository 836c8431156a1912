"""CLI commands for update checks and rollback.

The CLI runs as the local operator: it holds the update capability and mints
its own nonces, so ``rollback`` and ``recheck`` go through the same checks as
the HTTP API.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

console = Console()

CLI_ACTOR = "cli"


def _open_updater(slug: str, profiles: Optional[Path]):
    from upkeep.exceptions import UpkeepError
    from upkeep.updater.engine import Updater
    try:
        return Updater.for_plugin(slug, profiles_file=profiles)
    except (UpkeepError, FileNotFoundError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)


# ─── check ───────────────────────────────────────────────────────────────────


def plugin_check(
    slug: str = typer.Argument(..., help="Plugin slug, e.g. 'my-plugin'."),
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Ignore the cached decision."),
    profiles: Optional[Path] = typer.Option(None, "--profiles", "-p", help="Path to plugins.yaml."),
):
    """Check whether an update is available.

    Examples:

        upkeep check my-plugin

        upkeep check my-plugin --refresh
    """
    updater = _open_updater(slug, profiles)
    decision = updater.update_check(use_cache=not refresh)

    if decision.available:
        console.print(
            f"[green]Update available:[/green] [bold]{decision.plugin}[/bold] "
            f"{decision.version} -> [bold]{decision.new_version}[/bold]"
        )
        message = updater.update_message(decision)
        if message:
            console.print(f"[dim]{message.strip()}[/dim]")
        return

    if decision.reason.value == "transport_failure":
        console.print(f"[yellow]Update server unavailable[/yellow] for {decision.plugin}; no update offered.")
    elif decision.reason.value == "not_configured":
        console.print(
            f"[yellow]Update checks disabled[/yellow] for {decision.plugin}: "
            "the plugin header needs 'Update URI' and 'Tested up to'."
        )
    else:
        console.print(f"[green]✓[/green] {decision.plugin} {decision.version} is up to date.")


# ─── info ────────────────────────────────────────────────────────────────────


def plugin_info(
    slug: str = typer.Argument(..., help="Plugin slug."),
    as_json: bool = typer.Option(False, "--json", help="Print the full record as JSON."),
    profiles: Optional[Path] = typer.Option(None, "--profiles", "-p", help="Path to plugins.yaml."),
):
    """Show the plugin details view."""
    updater = _open_updater(slug, profiles)
    info = updater.plugin_information()

    if as_json:
        console.print_json(json.dumps(info.model_dump(mode="json")))
        return

    table = Table("Field", "Value", show_header=False)
    table.add_row("Name", info.name)
    table.add_row("Installed", info.version)
    table.add_row("Latest", info.new_version or "-")
    table.add_row("Tested up to", info.tested or "-")
    table.add_row("Requires PHP", info.requires_php or "-")
    table.add_row("Last updated", info.last_updated or "-")
    table.add_row("Rollback", "allowed" if info.allow_rollback else "not available")
    console.print(table)


# ─── versions ────────────────────────────────────────────────────────────────


def plugin_versions(
    slug: str = typer.Argument(..., help="Plugin slug."),
    profiles: Optional[Path] = typer.Option(None, "--profiles", "-p", help="Path to plugins.yaml."),
):
    """List the versions the update server offers for rollback."""
    from upkeep.exceptions import RollbackUnavailable

    updater = _open_updater(slug, profiles)
    try:
        page = updater.rollback_page(CLI_ACTOR)
    except RollbackUnavailable as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    if not page.versions:
        console.print(f"[dim]No earlier versions published for {page.plugin_name}.[/dim]")
        return

    table = Table("Version", "Package", show_header=True, title=f"{page.plugin_name} ({page.current_version})")
    for entry in page.versions:
        label = f"{entry.version} [dim](current)[/dim]" if entry.is_current else entry.version
        table.add_row(label, entry.package)
    console.print(table)


# ─── rollback ────────────────────────────────────────────────────────────────


def plugin_rollback(
    slug: str = typer.Argument(..., help="Plugin slug."),
    version: str = typer.Argument(..., help="Version to roll back to."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
    profiles: Optional[Path] = typer.Option(None, "--profiles", "-p", help="Path to plugins.yaml."),
):
    """Roll a plugin back to an earlier published version.

    Example:

        upkeep rollback my-plugin 1.9.0 --yes
    """
    from upkeep.auth.nonce import rollback_action
    from upkeep.types import RollbackRequest

    updater = _open_updater(slug, profiles)
    if not yes:
        typer.confirm(
            f"Roll {updater.session.descriptor.name} back from "
            f"{updater.session.descriptor.version} to {version}?",
            abort=True,
        )

    nonce = updater.nonces.create(rollback_action(updater.plugin_id), CLI_ACTOR)
    result = updater.rollback(RollbackRequest(
        plugin_id=updater.plugin_id,
        target_version=version,
        nonce=nonce,
        actor_capability_ok=True,
        actor=CLI_ACTOR,
    ))

    for line in result.debug_trace or []:
        console.print(f"[dim]  {line}[/dim]")

    if not result.success:
        console.print(f"[red]Error:[/red] {result.message} [dim]({result.error_code.value})[/dim]")
        raise typer.Exit(1)
    if result.error_code is not None:
        console.print(f"[yellow]Warning:[/yellow] {result.message}")
        return
    console.print(f"[green]✓[/green] {result.message}")


# ─── recheck ─────────────────────────────────────────────────────────────────


def plugin_recheck(
    slug: str = typer.Argument(..., help="Plugin slug."),
    profiles: Optional[Path] = typer.Option(None, "--profiles", "-p", help="Path to plugins.yaml."),
):
    """Drop the cached update decision, then check the server again."""
    from upkeep.auth.nonce import recheck_action

    updater = _open_updater(slug, profiles)
    nonce = updater.nonces.create(recheck_action(updater.plugin_id), CLI_ACTOR)
    if not updater.force_update_check(nonce, CLI_ACTOR, capability_ok=True):
        console.print("[red]Error:[/red] recheck refused.")
        raise typer.Exit(1)

    decision = updater.update_check(use_cache=False)
    if decision.available:
        console.print(f"[green]Update available:[/green] {decision.version} -> [bold]{decision.new_version}[/bold]")
    else:
        console.print(f"[green]✓[/green] Cache cleared; no update ({decision.reason.value}).")
