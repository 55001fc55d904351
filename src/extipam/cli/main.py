"""
extipam CLI entry point.

Usage:
    extipam [OPTIONS] COMMAND [ARGS]...

Commands:
    serve     Run the HTTP API
    ipam      Group, subnet and address commands
    config    Configuration
"""

from typing import Annotated

import typer

from extipam.cli import config as cli_config
from extipam.cli.commands import config_cmd, ipam
from extipam.cli.output import print_error
from extipam.config import load_config
from extipam.exceptions import IpamError
from extipam.models.enums import LogLevel
from extipam.utils.logger import configure_logging

app = typer.Typer(
    name="extipam",
    help="External IPAM adapter",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register command groups
app.add_typer(ipam.app, name="ipam", help="Group, subnet and address commands")
app.add_typer(config_cmd.app, name="config", help="Configuration")


@app.callback()
def main(
    config_path: Annotated[
        str | None,
        typer.Option(
            "--config", "-c", help="YAML settings file", envvar="EXTIPAM_CONFIG"
        ),
    ] = None,
    output_format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: table|json"),
    ] = "table",
    log_level: Annotated[
        LogLevel,
        typer.Option("--log-level", "-l", help="Logging verbosity"),
    ] = LogLevel.WARNING,
):
    """
    External IPAM adapter.

    Allocate and track IPv4 addresses in an external IPAM product.
    """
    if config_path:
        cli_config.CONFIG_PATH = config_path
    cli_config.OUTPUT_FORMAT = output_format
    configure_logging(log_level)


@app.command("serve")
def serve():
    """Run the HTTP API for the provisioning host."""
    from extipam.api.app import run

    try:
        config = load_config(cli_config.CONFIG_PATH)
        run(config)
    except IpamError as e:
        print_error(e.message)
        raise typer.Exit(1)


def run_cli():
    """Entry point for the console script."""
    app()


if __name__ == "__main__":
    run_cli()
