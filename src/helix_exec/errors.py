"""Shared error types for the execution engine.

Every error carries an :class:`ErrorKind` so that a caller consuming the
short message string can still decide whether to retry, escalate, or give up.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of an execution failure."""

    SPAWN_FAILURE = "spawn_failure"
    TIMEOUT = "timeout"
    RESOURCE_LIMIT = "resource_limit"
    MALFORMED_MANIFEST = "malformed_manifest"
    PLUGIN_ERROR = "plugin_error"
    IO_ERROR = "io_error"
    NOT_FOUND = "not_found"
    INVALID_ARGUMENTS = "invalid_arguments"


class ExecError(Exception):
    """Base error for all execution-engine failures."""

    kind: ErrorKind = ErrorKind.SPAWN_FAILURE

    def __init__(self, detail: str = "", *, message: str | None = None) -> None:
        self.detail = detail
        super().__init__(message if message is not None else detail)


def _with_detail(prefix: str, detail: str) -> str:
    return prefix + (f": {detail}" if detail else "")


class SpawnError(ExecError):
    """A process could not be started (missing interpreter, bad cwd, ...)."""

    kind = ErrorKind.SPAWN_FAILURE

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail, message=_with_detail("Could not start process", detail))


class ExecutionTimeoutError(ExecError):
    """A command exceeded its time bound and was reaped."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout: float, detail: str = "") -> None:
        self.timeout = timeout
        super().__init__(
            detail, message=_with_detail(f"Execution timed out after {timeout:g}s", detail)
        )


class ResourceLimitError(ExecError):
    """A command exceeded its memory or output ceiling and was reaped."""

    kind = ErrorKind.RESOURCE_LIMIT

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail, message=_with_detail("Exceeded resource limit", detail))


class ManifestError(ExecError):
    """A plugin's manifest could not be obtained or parsed."""

    kind = ErrorKind.MALFORMED_MANIFEST

    def __init__(self, path: str, detail: str = "") -> None:
        self.path = path
        super().__init__(detail, message=_with_detail(f"Malformed manifest from {path}", detail))


class PluginError(ExecError):
    """Base error for plugin invocation failures."""

    kind = ErrorKind.PLUGIN_ERROR

    def __init__(self, tool_name: str, detail: str = "", *, message: str | None = None) -> None:
        self.tool_name = tool_name
        super().__init__(detail, message=message)


class PluginToolError(PluginError):
    """The plugin answered with a JSON-RPC ``error`` object."""

    kind = ErrorKind.PLUGIN_ERROR

    def __init__(self, tool_name: str, detail: str = "") -> None:
        super().__init__(
            tool_name,
            detail,
            message=_with_detail(f"Plugin returned an error for {tool_name}", detail),
        )


class PluginTimeoutError(PluginError):
    """The plugin did not exit within the invocation timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, tool_name: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(
            tool_name,
            f"no exit after {timeout:g}s",
            message=f"Plugin execution timed out after {timeout:g}s: {tool_name}",
        )


class PluginIOError(PluginError):
    """Writing the request to the plugin's stdin failed."""

    kind = ErrorKind.IO_ERROR

    def __init__(self, tool_name: str, detail: str = "") -> None:
        super().__init__(
            tool_name,
            detail,
            message=_with_detail(f"Plugin I/O error for {tool_name}", detail),
        )


class ToolNotFoundError(ExecError):
    """Requested tool is neither native, the shell tool, nor a registered plugin."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name, message=f"Unknown tool: {name}")
