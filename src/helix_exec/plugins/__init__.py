"""Plugins — external tool executables spoken to over JSON-RPC on stdio."""

from helix_exec.plugins.discovery import MANIFEST_FLAG, ManifestDiscoverer
from helix_exec.plugins.invoker import PluginInvoker
from helix_exec.plugins.models import (
    JsonRpcRequest,
    JsonRpcResponse,
    PluginManifest,
    ToolDefinition,
    ToolFunctionDef,
)
from helix_exec.plugins.registry import PluginRegistry, is_executable

__all__ = [
    "MANIFEST_FLAG",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "ManifestDiscoverer",
    "PluginInvoker",
    "PluginManifest",
    "PluginRegistry",
    "ToolDefinition",
    "ToolFunctionDef",
    "is_executable",
]
