"""Config management commands."""

import os

import typer
from rich.table import Table

from extipam.cli import config as cli_config
from extipam.cli.output import console, print_error, print_json, print_success
from extipam.config import ENV_PREFIX, load_config
from extipam.exceptions import ConfigError

app = typer.Typer(help="Configuration commands")


@app.command("show")
def show_config():
    """Show the effective configuration (password masked)."""
    try:
        config = load_config(cli_config.CONFIG_PATH)
    except ConfigError as e:
        print_error(e.message)
        raise typer.Exit(1)

    values = config.redacted()
    if cli_config.OUTPUT_FORMAT == "json":
        print_json(values)
        return

    table = Table(title="Current Configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Source")

    for name, value in values.items():
        source = "env" if os.environ.get(ENV_PREFIX + name) is not None else "file/default"
        shown = value.value if hasattr(value, "value") else value
        table.add_row(name, str(shown), source)

    console.print(table)


@app.command("check")
def check_config():
    """Validate the configuration file."""
    try:
        load_config(cli_config.CONFIG_PATH)
    except ConfigError as e:
        print_error(e.message)
        raise typer.Exit(1)
    print_success("Configuration is valid")
