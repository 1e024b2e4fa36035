"""ManifestDiscoverer — asks a plugin executable which tools it provides."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from pydantic import ValidationError

from helix_exec.errors import ManifestError
from helix_exec.plugins.models import PluginManifest
from helix_exec.plugins.process import collect_output, spawn_plugin, terminate
from helix_exec.sandbox.reaper import ProcessTreeReaper
from helix_exec.telemetry import ATTR_PLUGIN_PATH, ATTR_PLUGIN_TOOL_COUNT, get_tracer

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

MANIFEST_FLAG = "--manifest"


class ManifestDiscoverer:
    """Runs ``<executable> --manifest`` and parses the JSON it prints.

    A misbehaving plugin never raises out of :meth:`discover`; it yields
    ``None`` and a warning so that a directory scan can carry on.
    """

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        flag: str = MANIFEST_FLAG,
        reaper: ProcessTreeReaper | None = None,
    ) -> None:
        self._timeout = timeout
        self._flag = flag
        self._reaper = reaper or ProcessTreeReaper()

    @property
    def timeout(self) -> float:
        return self._timeout

    async def discover(self, executable: Path) -> PluginManifest | None:
        """Return the manifest of *executable*, or ``None`` if it has none."""
        with _tracer.start_as_current_span("helix.plugin.discover") as span:
            span.set_attribute(ATTR_PLUGIN_PATH, str(executable))
            try:
                manifest = await self.fetch(executable)
            except ManifestError as exc:
                logger.warning("%s", exc)
                return None
            span.set_attribute(ATTR_PLUGIN_TOOL_COUNT, len(manifest.tools))
            return manifest

    async def fetch(self, executable: Path) -> PluginManifest:
        """Like :meth:`discover` but raises :class:`ManifestError` on failure."""
        try:
            proc = await spawn_plugin(executable, self._flag)
        except (OSError, ValueError) as exc:
            raise ManifestError(str(executable), f"failed to execute: {exc}") from exc

        try:
            stdout, stderr, returncode = await asyncio.wait_for(
                collect_output(proc), timeout=self._timeout
            )
        except TimeoutError as exc:
            raise ManifestError(
                str(executable), f"no manifest within {self._timeout:g}s"
            ) from exc
        finally:
            if proc.returncode is None:
                await terminate(proc, self._reaper)

        if returncode != 0:
            detail = stderr.decode(errors="replace").strip()
            raise ManifestError(
                str(executable),
                f"exit status {returncode} for {self._flag}" + (f" ({detail})" if detail else ""),
            )

        try:
            return PluginManifest.model_validate_json(stdout.decode(errors="replace"))
        except ValidationError as exc:
            raise ManifestError(str(executable), f"invalid JSON manifest: {exc}") from exc
