"""PluginRegistry — tool name to plugin executable index.

Built by scanning one directory; the registry stores only paths, never
schemas. Callers that need full tool definitions go through :meth:`merge`,
which asks each executable again. A registry is cheap to throw away and is
usually rebuilt for every top-level tool listing.
"""

from __future__ import annotations

import asyncio
import logging
import os
import stat
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

from helix_exec.plugins.discovery import ManifestDiscoverer
from helix_exec.plugins.models import PluginManifest, ToolDefinition

logger = logging.getLogger(__name__)

WINDOWS_EXECUTABLE_SUFFIXES = frozenset({".exe", ".bat", ".cmd", ".ps1"})
_DISCOVERY_CONCURRENCY = 8


def is_executable(path: Path) -> bool:
    """Return whether *path* is a regular file the registry should query.

    POSIX: any execute bit set. Windows: a known executable suffix.
    """
    try:
        st = path.stat()
    except OSError:
        return False
    if not stat.S_ISREG(st.st_mode):
        return False
    if os.name == "nt":
        return path.suffix.lower() in WINDOWS_EXECUTABLE_SUFFIXES
    return bool(st.st_mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))


class PluginRegistry:
    """Maps tool names to the absolute path of the executable serving them.

    Usage::

        registry = await PluginRegistry.load(Path("~/.local/share/helix/plugins"))
        path = registry.lookup("echo_tool")
        tools = await registry.merge(native_tools)

    If two executables declare the same tool name, the one discovered later
    (in file-name order) wins.
    """

    def __init__(
        self,
        plugin_dir: Path,
        tools: Mapping[str, Path] | None = None,
        *,
        discoverer: ManifestDiscoverer | None = None,
    ) -> None:
        self._plugin_dir = Path(plugin_dir)
        self._tools: dict[str, Path] = dict(tools or {})
        self._discoverer = discoverer or ManifestDiscoverer()

    @classmethod
    async def load(
        cls,
        plugin_dir: Path,
        *,
        discoverer: ManifestDiscoverer | None = None,
    ) -> PluginRegistry:
        """Scan *plugin_dir* and return a populated registry.

        A missing directory is created and yields an empty registry.
        """
        registry = cls(plugin_dir, discoverer=discoverer)
        await registry._populate()
        logger.info("Loaded %d plugin tools from %s", len(registry), registry.plugin_dir)
        return registry

    async def reload(self) -> PluginRegistry:
        """Return a freshly scanned registry for the same directory."""
        return await type(self).load(self._plugin_dir, discoverer=self._discoverer)

    @property
    def plugin_dir(self) -> Path:
        return self._plugin_dir

    @property
    def tools(self) -> Mapping[str, Path]:
        return MappingProxyType(self._tools)

    def lookup(self, name: str) -> Path | None:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)

    def register(self, executable: Path, manifest: PluginManifest) -> None:
        """Index every tool in *manifest* under *executable* (last write wins)."""
        for tool in manifest.tools:
            previous = self._tools.get(tool.name)
            if previous is not None and previous != executable:
                logger.warning(
                    "Plugin tool %s from %s overrides the one from %s",
                    tool.name,
                    executable,
                    previous,
                )
            self._tools[tool.name] = executable
            logger.info("Registered plugin tool: %s from %s", tool.name, executable)

    async def merge(self, native_tools: Iterable[ToolDefinition]) -> list[ToolDefinition]:
        """Return *native_tools* followed by the full definition of every plugin tool.

        Each owning executable is asked for its manifest again (once per
        call). Tools whose executable no longer answers, or no longer lists
        them, are left out.
        """
        combined = list(native_tools)
        paths = list(dict.fromkeys(self._tools.values()))
        manifests = await self._discover_all(paths)
        fetched = dict(zip(paths, manifests, strict=True))

        for name, path in self._tools.items():
            manifest = fetched[path]
            if manifest is None:
                continue
            tool = next((t for t in manifest.tools if t.name == name), None)
            if tool is None:
                logger.warning("Plugin %s no longer declares tool %s", path, name)
                continue
            combined.append(tool)
        return combined

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _populate(self) -> None:
        if not self._plugin_dir.exists():
            try:
                self._plugin_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                logger.error("Failed to create plugins dir %s: %s", self._plugin_dir, exc)
            return

        candidates = self._candidates()
        manifests = await self._discover_all(candidates)
        for path, manifest in zip(candidates, manifests, strict=True):
            if manifest is not None:
                self.register(path, manifest)

    def _candidates(self) -> list[Path]:
        try:
            entries = sorted(self._plugin_dir.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            logger.error("Failed to read plugins dir %s: %s", self._plugin_dir, exc)
            return []
        return [entry.absolute() for entry in entries if is_executable(entry)]

    async def _discover_all(self, paths: list[Path]) -> list[PluginManifest | None]:
        semaphore = asyncio.Semaphore(_DISCOVERY_CONCURRENCY)

        async def _one(path: Path) -> PluginManifest | None:
            async with semaphore:
                return await self._discoverer.discover(path)

        return list(await asyncio.gather(*(_one(p) for p in paths)))
