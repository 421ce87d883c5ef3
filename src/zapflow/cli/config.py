"""CLI: zapflow config show|set"""

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from zapflow.config import CONFIG_FILE, ApiConfig, load_config, load_config_file, save_config_file

console = Console()

SECRET_FIELDS = {"api_key", "backend_token"}


@click.group()
def config():
    """Gateway / backend configuration."""


@config.command("show")
def config_show():
    """Show the effective configuration (file + environment)."""
    cfg = load_config()
    table = Table(title=str(CONFIG_FILE))
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in cfg.model_dump().items():
        if key in SECRET_FIELDS and value:
            value = "********"
        table.add_row(key, str(value))
    console.print(table)


@config.command("set")
@click.argument("key", type=click.Choice(sorted(ApiConfig.model_fields)))
@click.argument("value")
def config_set(key: str, value: str):
    """Store KEY=VALUE in the config file."""
    cfg = {**load_config_file(), key: value}
    try:
        ApiConfig.model_validate(cfg)
    except ValidationError as e:
        console.print(f"[red]Invalid value for {key}: {e.errors()[0]['msg']}[/red]")
        raise SystemExit(1)
    save_config_file(cfg)
    console.print(f"[green]{key} saved.[/green]")
