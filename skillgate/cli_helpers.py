"""
SkillGate CLI Helpers

Shared formatting utilities for consistent CLI output across all commands.
"""

import json
from typing import Any, Dict

import click
from rich.console import Console

# Single shared Console instance for the entire CLI
console = Console()

LEVEL_STYLES = {
    "CRITICAL": "bold red",
    "HIGH": "red",
    "MEDIUM": "yellow",
    "LOW": "cyan",
    "SAFE": "green",
}

LEVEL_ORDER = {"CRITICAL": 0, "HIGH": 1, "MEDIUM": 2, "LOW": 3, "SAFE": 4}

STATUS_STYLES = {
    "quarantined": "bold red",
    "disabled": "yellow",
    "allowlisted": "cyan",
    "enabled": "green",
    "unmanaged": "white",
}


def print_success(message: str) -> None:
    """Print a success message with green checkmark."""
    console.print(f"[green]✓[/green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message with yellow triangle."""
    console.print(f"[yellow]⚠[/yellow]  {message}")


def print_error(message: str, fix_hint: str = "") -> None:
    """Print an error message with red X and optional fix hint."""
    console.print(f"[red]✗[/red] {message}")
    if fix_hint:
        console.print(f"  [white]Hint: {fix_hint}[/white]")


def styled_level(level: str) -> str:
    style = LEVEL_STYLES.get(level, "white")
    return f"[{style}]{level}[/{style}]"


def styled_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def print_json(data: Dict[str, Any]) -> None:
    """Print a JSON document as plain text so it stays machine-readable."""
    click.echo(json.dumps(data, indent=2))
