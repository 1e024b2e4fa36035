"""Shared CLI output formatters."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from helix_exec.sandbox.models import SandboxResult  # noqa: TC001

console = Console()


def print_sandbox_result(result: SandboxResult, *, as_json: bool = False) -> None:
    """Pretty-print a SandboxResult."""
    if as_json:
        console.print_json(result.model_dump_json())
        return

    status = (
        f"[red]killed[/red] ({escape(result.kill_reason or '')})"
        if result.killed_by_sandbox
        else f"exit code {result.exit_code}"
    )
    console.print(f"\n[bold]Sandbox:[/bold] {status} in {result.duration:.2f}s")

    if result.stdout:
        console.print("\n[bold]stdout:[/bold]")
        console.print(result.stdout, markup=False, highlight=False)
    if result.stderr:
        console.print("\n[bold]stderr:[/bold]")
        console.print(result.stderr, markup=False, highlight=False)


def print_plugin_table(tools: Mapping[str, Path], descriptions: Mapping[str, str]) -> None:
    """Pretty-print registered plugin tools as a table."""
    table = Table(title="Plugin Tools")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Executable", overflow="fold")
    table.add_column("Description")

    for name, path in tools.items():
        table.add_row(name, str(path), _truncate(descriptions.get(name, "")))

    console.print(table)


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
