"""Plugin models — tool manifests and JSON-RPC 2.0 messages.

A plugin is any executable in the plugin directory. Asked with the manifest
flag, it prints::

    {"tools": [{"type": "function",
                "function": {"name": ..., "description": ..., "parameters": {...}}}]}

Invoked without it, it reads one JSON-RPC request line from stdin and prints
a response (or plain text) to stdout.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


class ToolFunctionDef(BaseModel):
    """The callable part of a tool definition; ``name`` is the RPC method."""

    name: str = Field(..., min_length=1)
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)


class ToolDefinition(BaseModel):
    """An OpenAI-style ``{"type": "function", "function": {...}}`` tool."""

    type: Literal["function"] = "function"
    function: ToolFunctionDef

    @property
    def name(self) -> str:
        return self.function.name


class PluginManifest(BaseModel):
    """Ordered tool definitions exposed by one plugin executable."""

    tools: list[ToolDefinition] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class JsonRpcRequest(BaseModel):
    """A JSON-RPC 2.0 request message."""

    jsonrpc: str = "2.0"
    method: str
    params: Any = Field(default_factory=dict)
    id: int | str = 1

    def to_line(self) -> bytes:
        """Serialize as a single newline-terminated JSON line."""
        return (self.model_dump_json() + "\n").encode()


class JsonRpcResponse(BaseModel):
    """A lenient view of a JSON-RPC 2.0 response.

    Plugins are not required to be strict: missing ``jsonrpc``/``id`` and
    extra keys are tolerated. Whether ``result`` or ``error`` was present
    is read from :attr:`model_fields_set`, so an explicit ``null`` counts.
    """

    model_config = ConfigDict(extra="allow")

    jsonrpc: Any = None
    id: Any = None
    result: Any = None
    error: Any = None

    @property
    def has_error(self) -> bool:
        return "error" in self.model_fields_set

    @property
    def has_result(self) -> bool:
        return "result" in self.model_fields_set
