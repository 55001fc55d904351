"""IPAM commands run directly against the provider."""

from contextlib import contextmanager
from dataclasses import asdict
from typing import Annotated

import typer
from rich.table import Table

from extipam.adapter import IpamAdapter
from extipam.cli import config as cli_config
from extipam.cli.output import console, print_error, print_json, print_success
from extipam.config import load_config
from extipam.exceptions import IpamError

app = typer.Typer(help="IPAM commands")

GroupOption = Annotated[
    str | None,
    typer.Option("--group", "-g", help="Group name (default group if omitted)"),
]


@contextmanager
def open_adapter():
    """Build an adapter from the CLI config and map errors to exit codes."""
    adapter = None
    try:
        adapter = IpamAdapter(load_config(cli_config.CONFIG_PATH))
        yield adapter
    except IpamError as e:
        stage = f" (stage: {e.stage.value})" if e.stage else ""
        print_error(f"{e.message}{stage}")
        raise typer.Exit(1)
    finally:
        if adapter is not None:
            adapter.close()


def _as_json() -> bool:
    return cli_config.OUTPUT_FORMAT == "json"


@app.command("groups")
def list_groups():
    """List all groups."""
    with open_adapter() as adapter:
        groups = adapter.get_groups()

    if _as_json():
        print_json([asdict(g) for g in groups])
        return

    if not groups:
        console.print("[yellow]No groups found.[/yellow]")
        return

    table = Table(title="Groups", show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Description")
    for g in groups:
        table.add_row(g.id, g.name, g.description)
    console.print(table)


@app.command("group")
def show_group(
    name: Annotated[str, typer.Argument(help="Exact group name")],
):
    """Show a single group."""
    with open_adapter() as adapter:
        group = adapter.get_group(name)

    if _as_json():
        print_json(asdict(group))
    else:
        console.print(f"[cyan]{group.name}[/cyan] (id {group.id}) {group.description}")


@app.command("subnet")
def show_subnet(
    cidr: Annotated[str, typer.Argument(help="Subnet in CIDR notation")],
    group: GroupOption = None,
):
    """Resolve a subnet by CIDR."""
    with open_adapter() as adapter:
        subnet = adapter.resolve_subnet(cidr, group)

    if _as_json():
        print_json(subnet.to_dict())
    else:
        console.print(
            f"[cyan]{subnet.cidr}[/cyan] id={subnet.id} "
            f"description={subnet.description or '-'}"
        )


@app.command("next-ip")
def next_ip(
    cidr: Annotated[str, typer.Argument(help="Subnet in CIDR notation")],
    mac: Annotated[str, typer.Option("--mac", "-m", help="Requesting MAC address")],
    group: GroupOption = None,
):
    """
    Show the next free address for a MAC.

    Reservations only live as long as the process, so this is a preview;
    use the API server for coordinated allocation.
    """
    with open_adapter() as adapter:
        address = adapter.allocate_next_address(mac, cidr, group)

    if _as_json():
        print_json({"data": address})
    else:
        console.print(address)


@app.command("exists")
def exists(
    cidr: Annotated[str, typer.Argument(help="Subnet in CIDR notation")],
    ip: Annotated[str, typer.Argument(help="Address to check")],
    group: GroupOption = None,
):
    """Check whether the provider holds a record for an address."""
    with open_adapter() as adapter:
        found = adapter.ip_exists(ip, cidr, group)

    if _as_json():
        print_json({"ip": ip, "exists": found})
    elif found:
        console.print(f"[green]{ip} exists[/green]")
    else:
        console.print(f"[yellow]{ip} not found[/yellow]")


@app.command("assign")
def assign(
    cidr: Annotated[str, typer.Argument(help="Subnet in CIDR notation")],
    ip: Annotated[str, typer.Argument(help="Address to assign")],
    mac: Annotated[str | None, typer.Option("--mac", "-m", help="MAC to record")] = None,
    group: GroupOption = None,
):
    """Record an address as assigned in the provider."""
    with open_adapter() as adapter:
        adapter.add_address(ip, cidr, group, mac)
    print_success(f"Assigned {ip} in {cidr}")


@app.command("delete")
def delete(
    cidr: Annotated[str, typer.Argument(help="Subnet in CIDR notation")],
    ip: Annotated[str, typer.Argument(help="Address to delete")],
    group: GroupOption = None,
):
    """Delete an address record from the provider."""
    with open_adapter() as adapter:
        deleted = adapter.delete_address(ip, cidr, group)

    if deleted:
        print_success(f"Deleted {ip} from {cidr}")
    else:
        console.print(f"[yellow]{ip} was not present in {cidr}[/yellow]")
