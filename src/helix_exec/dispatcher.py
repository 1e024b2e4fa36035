"""ToolDispatcher — routes a tool call to a native handler, the sandbox, or a plugin.

This is the boundary the agent loop talks to: a tool name plus JSON
arguments in, a :class:`ToolOutcome` out. Engine failures (any
:class:`~helix_exec.errors.ExecError`, from the sandbox, a plugin or a
native handler) never escape :meth:`ToolDispatcher.execute`; they come back
as short classified messages. Any other exception raised by a native
handler is a bug in that handler and propagates unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from helix_exec.errors import (
    ErrorKind,
    ExecError,
    ExecutionTimeoutError,
    ResourceLimitError,
    ToolNotFoundError,
)
from helix_exec.plugins.models import ToolDefinition, ToolFunctionDef
from helix_exec.sandbox.models import KillReason, SandboxOptions
from helix_exec.telemetry import ATTR_TOOL_NAME, ATTR_TOOL_ROUTE, get_tracer

if TYPE_CHECKING:
    from helix_exec.plugins.invoker import PluginInvoker
    from helix_exec.plugins.registry import PluginRegistry
    from helix_exec.sandbox.executor import SandboxExecutor
    from helix_exec.sandbox.models import SandboxResult

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

NativeHandler = Callable[[dict[str, Any]], Awaitable[str]]

SHELL_TOOL_NAME = "shell_exec"


class ToolOutcome(BaseModel):
    """What the agent loop gets back for one tool call."""

    content: str = Field(..., description="Result text, or the classified error message.")
    is_error: bool = False
    kind: ErrorKind | None = Field(default=None, description="Failure class when is_error.")

    @classmethod
    def ok(cls, content: str) -> ToolOutcome:
        return cls(content=content)

    @classmethod
    def from_error(cls, exc: ExecError, output: str = "") -> ToolOutcome:
        content = f"{exc}\n{output}" if output else str(exc)
        return cls(content=content, is_error=True, kind=exc.kind)


def shell_tool_definition(name: str = SHELL_TOOL_NAME) -> ToolDefinition:
    """Schema of the built-in tool that runs a shell command in the sandbox."""
    return ToolDefinition(
        function=ToolFunctionDef(
            name=name,
            description=(
                "Execute a shell command. Runs under a timeout with memory and "
                "output limits; the whole process tree is killed on violation."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "Shell command to run."},
                    "working_dir": {
                        "type": "string",
                        "description": "Working directory (defaults to the home directory).",
                    },
                    "timeout_secs": {
                        "type": "integer",
                        "description": "Timeout in seconds.",
                    },
                },
                "required": ["command"],
            },
        )
    )


class ToolDispatcher:
    """Maintains native handlers and routes tool calls.

    Routing order: native handlers, then the shell tool, then the plugin
    registry.

    Usage::

        dispatcher = ToolDispatcher(ProcessSandbox(), registry=registry)
        dispatcher.register_native(definition, handler)

        tools = await dispatcher.all_tools()
        outcome = await dispatcher.execute("shell_exec", {"command": "ls"})
    """

    def __init__(
        self,
        sandbox: SandboxExecutor,
        *,
        registry: PluginRegistry | None = None,
        invoker: PluginInvoker | None = None,
        native: Iterable[tuple[ToolDefinition, NativeHandler]] | None = None,
        shell_tool: str = SHELL_TOOL_NAME,
    ) -> None:
        self._sandbox = sandbox
        self._registry = registry
        self._invoker = invoker
        self._shell_tool = shell_tool
        self._native: dict[str, tuple[ToolDefinition, NativeHandler]] = {}
        for definition, handler in native or ():
            self.register_native(definition, handler)

    @property
    def registry(self) -> PluginRegistry | None:
        return self._registry

    def use_registry(self, registry: PluginRegistry) -> None:
        """Swap in a freshly loaded registry snapshot."""
        self._registry = registry

    def register_native(self, definition: ToolDefinition, handler: NativeHandler) -> None:
        """Add an in-process tool. A later registration replaces an earlier one."""
        self._native[definition.name] = (definition, handler)

    def definitions(self) -> list[ToolDefinition]:
        """Native tool definitions plus the shell tool, without touching plugins."""
        defs = [definition for definition, _ in self._native.values()]
        if self._shell_tool not in self._native:
            defs.append(shell_tool_definition(self._shell_tool))
        return defs

    async def all_tools(self) -> list[ToolDefinition]:
        """Every tool the agent may call.

        The plugin directory is rescanned on each call, so executables added
        or removed since the last listing are reflected.
        """
        if self._registry is None:
            return self.definitions()
        self._registry = await self._registry.reload()
        return await self._registry.merge(self.definitions())

    async def execute(self, name: str, arguments: dict[str, Any] | None = None) -> ToolOutcome:
        """Route one tool call; :class:`ExecError` comes back as a classified outcome."""
        args = arguments or {}
        with _tracer.start_as_current_span("helix.tool.dispatch") as span:
            span.set_attribute(ATTR_TOOL_NAME, name)
            try:
                outcome = await self._route(name, args, span)
            except ExecError as exc:
                logger.warning("Tool %s failed: %s", name, exc)
                return ToolOutcome.from_error(exc)
        return outcome

    async def execute_all(self, calls: list[tuple[str, dict[str, Any]]]) -> list[ToolOutcome]:
        """Execute several tool calls concurrently; results keep call order."""
        return list(await asyncio.gather(*[self.execute(name, args) for name, args in calls]))

    async def _route(self, name: str, args: dict[str, Any], span: Any) -> ToolOutcome:
        native = self._native.get(name)
        if native is not None:
            span.set_attribute(ATTR_TOOL_ROUTE, "native")
            return ToolOutcome.ok(await native[1](args))

        if name == self._shell_tool:
            span.set_attribute(ATTR_TOOL_ROUTE, "sandbox")
            return await self._run_shell(args)

        path = await self._plugin_path(name)
        if path is not None and self._invoker is not None:
            span.set_attribute(ATTR_TOOL_ROUTE, "plugin")
            return ToolOutcome.ok(await self._invoker.invoke(path, name, args))

        raise ToolNotFoundError(name)

    async def _plugin_path(self, name: str) -> Path | None:
        if self._registry is None:
            return None
        path = self._registry.lookup(name)
        if path is None:
            # Unknown to this snapshot; the plugin may have been installed since.
            self._registry = await self._registry.reload()
            path = self._registry.lookup(name)
        return path

    async def _run_shell(self, args: dict[str, Any]) -> ToolOutcome:
        command = args.get("command")
        if not isinstance(command, str) or not command:
            return ToolOutcome(
                content="Missing 'command'", is_error=True, kind=ErrorKind.INVALID_ARGUMENTS
            )

        working_dir = args.get("working_dir")
        cwd = str(Path(working_dir).expanduser()) if working_dir else str(Path.home())

        options: SandboxOptions | None = None
        timeout = args.get("timeout_secs")
        if isinstance(timeout, int | float) and not isinstance(timeout, bool) and timeout > 0:
            base = self._sandbox.defaults
            options = base.model_copy(update={"timeout": float(timeout)})

        result = await self._sandbox.execute(command, cwd, options)
        return _shell_outcome(result, (options or self._sandbox.defaults).timeout)


def _shell_outcome(result: SandboxResult, timeout: float) -> ToolOutcome:
    body = f"--- stdout ---\n{result.stdout}\n--- stderr ---\n{result.stderr}"
    if not result.killed_by_sandbox:
        return ToolOutcome.ok(f"Exit code: {result.exit_code}\n{body}")

    error: ExecError
    if result.kill_kind is KillReason.TIMEOUT:
        error = ExecutionTimeoutError(timeout, result.kill_reason or "")
    else:
        error = ResourceLimitError(result.kill_reason or "")
    return ToolOutcome.from_error(error, body)
