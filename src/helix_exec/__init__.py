"""helix-exec — sandboxed process execution and stdio plugins for agent tool calls."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from helix_exec.dispatcher import ToolDispatcher as ToolDispatcher
    from helix_exec.dispatcher import ToolOutcome as ToolOutcome
    from helix_exec.plugins.invoker import PluginInvoker as PluginInvoker
    from helix_exec.plugins.registry import PluginRegistry as PluginRegistry
    from helix_exec.sandbox.process_sandbox import ProcessSandbox as ProcessSandbox

_LAZY_EXPORTS = {
    "ToolDispatcher": "helix_exec.dispatcher",
    "ToolOutcome": "helix_exec.dispatcher",
    "PluginInvoker": "helix_exec.plugins.invoker",
    "PluginRegistry": "helix_exec.plugins.registry",
    "ProcessSandbox": "helix_exec.sandbox.process_sandbox",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'helix_exec' has no attribute {name!r}")
