"""``helix plugins`` — discover and call plugin tools."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import click
from rich.markup import escape

from helix_exec.cli_commands._output import console, print_plugin_table
from helix_exec.errors import ExecError, ToolNotFoundError
from helix_exec.plugins.invoker import PluginInvoker

if TYPE_CHECKING:
    from helix_exec.config import HelixSettings
    from helix_exec.plugins.models import ToolDefinition
    from helix_exec.plugins.registry import PluginRegistry


@click.group()
def plugins() -> None:
    """Discover and call plugin tools."""


@plugins.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def list_plugins(settings: HelixSettings, as_json: bool) -> None:
    """List tools provided by executables in the plugin directory."""
    from helix_exec.bootstrap import load_registry

    async def _list() -> tuple[PluginRegistry, list[ToolDefinition]]:
        registry = await load_registry(settings)
        return registry, await registry.merge([])

    registry, definitions = asyncio.run(_list())

    if as_json:
        console.print_json(
            json.dumps({name: str(path) for name, path in registry.tools.items()})
        )
        return

    if not len(registry):
        console.print(f"[yellow]No plugin tools found in {registry.plugin_dir}.[/yellow]")
        return

    descriptions = {d.name: d.function.description for d in definitions}
    print_plugin_table(registry.tools, descriptions)


@plugins.command("call")
@click.argument("tool")
@click.argument("arguments", default="{}")
@click.pass_obj
def call(settings: HelixSettings, tool: str, arguments: str) -> None:
    """Call plugin TOOL with ARGUMENTS (a JSON value, default ``{}``)."""
    from helix_exec.bootstrap import load_registry

    try:
        params: Any = json.loads(arguments)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="ARGUMENTS") from exc

    async def _call() -> str:
        registry = await load_registry(settings)
        path = registry.lookup(tool)
        if path is None:
            raise ToolNotFoundError(tool)
        invoker = PluginInvoker(timeout=settings.plugin_timeout)
        return await invoker.invoke(path, tool, params)

    try:
        text = asyncio.run(_call())
    except ExecError as exc:
        console.print(f"[red]{exc.kind.value}:[/red] {escape(str(exc))}", highlight=False)
        raise SystemExit(1) from exc

    console.print(text, markup=False, highlight=False)
