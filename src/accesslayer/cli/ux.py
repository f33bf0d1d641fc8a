"""
Terminal rendering for accesslayer commands.

All output goes through one rich console. Colour follows the usual
NO_COLOR / FORCE_COLOR conventions.
"""

from __future__ import annotations

import os
from typing import Iterable, Mapping, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

ACCESSLAYER_THEME = Theme(
    {
        "success": "#A3BE8C",
        "warning": "#EBCB8B",
        "error": "#BF616A bold",
        "muted": "#D8DEE9",
        "key": "#88C0D0",
        "allow": "#A3BE8C bold",
        "deny": "#BF616A bold",
    }
)

console = Console(
    theme=ACCESSLAYER_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)

_MARKERS = {"success": "✓", "error": "✗", "warning": "⚠"}


def _status(kind: str, message: str) -> None:
    console.print(f"[{kind}]{_MARKERS[kind]} {message}[/{kind}]")


def success(message: str) -> None:
    _status("success", message)


def error(message: str) -> None:
    _status("error", message)


def warning(message: str) -> None:
    _status("warning", message)


def bullet(message: str, style: str = "muted", indent: int = 2) -> None:
    """Print one indented list item with a styled bullet."""
    console.print(f"{' ' * indent}[{style}]•[/{style}] {message}")


def decision_badge(result: str) -> str:
    """Markup for an ALLOW/DENY value."""
    style = "allow" if result == "ALLOW" else "deny"
    return f"[{style}]{result}[/{style}]"


def header(title: str) -> None:
    console.print()
    console.print(Panel.fit(f"[bold]{title}[/bold]", border_style="key"))


def print_table(
    title: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[str]],
    show_header: bool = True,
) -> None:
    table = Table(title=title, show_header=show_header, title_justify="left")
    for name in columns:
        table.add_column(name, overflow="fold")
    for row in rows:
        table.add_row(*(str(cell) for cell in row))
    console.print(table)


def print_key_value(items: Mapping[str, str], title: str | None = None) -> None:
    if title:
        console.print(f"\n[bold]{title}[/bold]")
    width = max((len(k) for k in items), default=0)
    for key, value in items.items():
        console.print(f"  [key]{key}:[/key] {' ' * (width - len(key))}{value}")
