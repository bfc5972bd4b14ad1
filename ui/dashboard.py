"""
Rich-based terminal output for one-shot runs and server listings.

Formatting helpers live in ``ui.output`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import Any, Dict, List

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from provider.api import Server

from .output import humanize

console = Console(stderr=True)


def print_header(listen: str = "") -> None:
    subtitle = f"serving metrics on {listen}" if listen else "one-shot measurement"
    console.print(
        Panel.fit(
            "[bold cyan]Speedtest Exporter[/bold cyan]\n"
            f"[dim]{subtitle}[/dim]",
            border_style="cyan",
        )
    )


def print_samples(rows: List[Dict[str, Any]]) -> None:
    table = Table(title="Collected Samples", box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Labels", style="dim")
    table.add_column("Value", justify="right")
    table.add_column("", justify="right")

    for row in rows:
        labels = ", ".join(f"{k}={v}" for k, v in row["labels"].items())
        text = humanize(row["name"], row["value"])
        if row["name"].endswith("_up"):
            text = f"[green]{text}[/green]" if row["value"] == 1.0 else f"[red]{text}[/red]"
        table.add_row(row["name"], labels, f"{row['value']:g}", text)

    console.print(table)


def print_servers(servers: List[Server]) -> None:
    table = Table(title="Nearest speedtest.net Servers", box=box.ROUNDED)
    table.add_column("ID", justify="right", style="bold")
    table.add_column("Name")
    table.add_column("Sponsor")
    table.add_column("Country")
    table.add_column("Distance", justify="right")

    for s in servers:
        table.add_row(str(s.id), s.name, s.sponsor, s.country, f"{s.distance:.0f} km")

    console.print(table)
