"""``helix run`` — execute a shell command in the sandbox."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import click
from rich.markup import escape

from helix_exec.cli_commands._output import console, print_sandbox_result
from helix_exec.errors import SpawnError
from helix_exec.sandbox.process_sandbox import ProcessSandbox

if TYPE_CHECKING:
    from helix_exec.config import HelixSettings
    from helix_exec.sandbox.models import SandboxResult

KILLED_EXIT_STATUS = 124


@click.command()
@click.argument("command")
@click.option("--cwd", default=".", show_default=True, help="Working directory.")
@click.option("--timeout", type=float, default=None, help="Timeout in seconds.")
@click.option("--max-output", type=int, default=None, help="Max combined output bytes.")
@click.option("--max-memory", type=int, default=None, help="Max resident memory in MiB.")
@click.option("--json", "as_json", is_flag=True, help="Output result as JSON.")
@click.pass_obj
def run(
    settings: HelixSettings,
    command: str,
    cwd: str,
    timeout: float | None,
    max_output: int | None,
    max_memory: int | None,
    as_json: bool,
) -> None:
    """Run COMMAND through the shell under sandbox limits.

    Exits with the command's exit code, or 124 if the sandbox killed it.
    """
    overrides: dict[str, object] = {}
    if timeout is not None:
        overrides["timeout"] = timeout
    if max_output is not None:
        overrides["max_output_bytes"] = max_output
    if max_memory is not None:
        overrides["max_memory"] = max_memory * 1024 * 1024
    options = settings.sandbox.model_copy(update=overrides)

    sandbox = ProcessSandbox(options)

    async def _run() -> SandboxResult:
        try:
            return await sandbox.execute(command, cwd)
        finally:
            await sandbox.cleanup()

    try:
        result = asyncio.run(_run())
    except SpawnError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise SystemExit(1) from exc

    print_sandbox_result(result, as_json=as_json)

    if result.killed_by_sandbox:
        raise SystemExit(KILLED_EXIT_STATUS)
    if result.exit_code != 0:
        raise SystemExit(result.exit_code if result.exit_code > 0 else 1)
