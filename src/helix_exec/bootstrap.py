"""Wire the engine's components from :class:`~helix_exec.config.HelixSettings`."""

from __future__ import annotations

from typing import TYPE_CHECKING

from helix_exec.dispatcher import ToolDispatcher
from helix_exec.plugins.discovery import ManifestDiscoverer
from helix_exec.plugins.invoker import PluginInvoker
from helix_exec.plugins.registry import PluginRegistry
from helix_exec.sandbox.process_sandbox import ProcessSandbox
from helix_exec.sandbox.reaper import ProcessTreeReaper

if TYPE_CHECKING:
    from helix_exec.config import HelixSettings


def make_discoverer(settings: HelixSettings, reaper: ProcessTreeReaper | None = None) -> ManifestDiscoverer:
    return ManifestDiscoverer(
        timeout=settings.discovery_timeout,
        flag=settings.manifest_flag,
        reaper=reaper,
    )


async def load_registry(settings: HelixSettings) -> PluginRegistry:
    """Scan the configured plugin directory."""
    return await PluginRegistry.load(settings.plugin_dir, discoverer=make_discoverer(settings))


async def build_dispatcher(settings: HelixSettings) -> ToolDispatcher:
    """Construct sandbox, registry and invoker and return a dispatcher over them.

    One reaper is shared; nothing else is shared between components.
    """
    reaper = ProcessTreeReaper()
    registry = await PluginRegistry.load(
        settings.plugin_dir, discoverer=make_discoverer(settings, reaper)
    )
    return ToolDispatcher(
        ProcessSandbox(settings.sandbox, reaper=reaper),
        registry=registry,
        invoker=PluginInvoker(timeout=settings.plugin_timeout, reaper=reaper),
    )
