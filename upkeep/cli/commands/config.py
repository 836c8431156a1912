"""upkeep config: show resolved configuration."""

import json

import typer
from rich.console import Console
from rich.table import Table

console = Console()

SECRET_FIELDS = {"secret_key"}


def _display(name: str, value) -> str:
    if name in SECRET_FIELDS:
        size = len(str(value).encode())
        return f"<hidden, {size} bytes>" if value else ""
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return str(value)


def config_show(
    as_json: bool = typer.Option(False, "--json", help="Print settings as JSON."),
):
    """Show the resolved upkeep configuration.

    Settings come from UPKEEP_* environment variables and .env. The secret
    key is never printed, only its length.

    Example:
        upkeep config --json
    """
    from upkeep.config import UpkeepConfig
    cfg = UpkeepConfig()
    values = {name: _display(name, getattr(cfg, name)) for name in UpkeepConfig.model_fields}

    if as_json:
        console.print_json(json.dumps(values))
        return

    prefix = UpkeepConfig.model_config.get("env_prefix", "")
    table = Table(title="upkeep Configuration", title_justify="left", show_edge=False)
    table.add_column("Env var", style="cyan", no_wrap=True)
    table.add_column("Value")
    for name, display in values.items():
        table.add_row(f"{prefix}{name.upper()}", display or "[dim]-[/dim]")
    console.print(table)

    if len(cfg.secret_key.encode()) < 32:
        console.print("[yellow]UPKEEP_SECRET_KEY is shorter than 32 bytes.[/yellow]")
