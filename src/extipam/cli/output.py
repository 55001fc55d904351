"""Console output helpers shared by CLI commands."""

import json

from rich.console import Console

console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]{message}[/green]")


def print_json(data) -> None:
    console.print_json(json.dumps(data, default=str))
