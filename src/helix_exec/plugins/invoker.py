"""PluginInvoker — one JSON-RPC call against a plugin executable over stdio."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from helix_exec.errors import PluginIOError, PluginTimeoutError, PluginToolError, SpawnError
from helix_exec.plugins.models import JsonRpcRequest, JsonRpcResponse
from helix_exec.plugins.process import collect_output, spawn_plugin, terminate
from helix_exec.sandbox.reaper import ProcessTreeReaper
from helix_exec.telemetry import ATTR_EXIT_CODE, ATTR_PLUGIN_PATH, ATTR_TOOL_NAME, get_tracer

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class PluginInvoker:
    """Executes a tool call against a registered plugin executable.

    The exchange is single-shot: write one request line, close stdin, read
    stdout until the plugin exits. Responses are interpreted in order:

    1. a JSON object with ``error`` raises :class:`PluginToolError`;
    2. a JSON object with ``result`` returns it (strings as-is, anything
       else as compact JSON);
    3. anything else returns the raw stdout, stripped.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        reaper: ProcessTreeReaper | None = None,
    ) -> None:
        self._timeout = timeout
        self._reaper = reaper or ProcessTreeReaper()

    @property
    def timeout(self) -> float:
        return self._timeout

    async def invoke(self, executable: Path, tool_name: str, arguments: Any) -> str:
        """Call *tool_name* on *executable* with *arguments* as JSON-RPC params.

        Raises:
            SpawnError: The executable could not be started.
            PluginTimeoutError: It did not exit within the timeout.
            PluginIOError: The request could not be written to its stdin.
            PluginToolError: It answered with a JSON-RPC error.
        """
        request = JsonRpcRequest(method=tool_name, params=arguments, id=1)

        with _tracer.start_as_current_span("helix.plugin.invoke") as span:
            span.set_attribute(ATTR_TOOL_NAME, tool_name)
            span.set_attribute(ATTR_PLUGIN_PATH, str(executable))

            try:
                proc = await spawn_plugin(executable, stdin=asyncio.subprocess.PIPE)
            except (OSError, ValueError) as exc:
                raise SpawnError(f"plugin {executable}: {exc}") from exc

            try:
                stdout, stderr, returncode = await asyncio.wait_for(
                    self._exchange(proc, tool_name, request),
                    timeout=self._timeout,
                )
            except TimeoutError as exc:
                logger.warning("Plugin %s timed out after %gs", executable, self._timeout)
                raise PluginTimeoutError(tool_name, self._timeout) from exc
            finally:
                if proc.returncode is None:
                    await terminate(proc, self._reaper)

            span.set_attribute(ATTR_EXIT_CODE, returncode)

        if returncode != 0:
            logger.warning("Plugin %s exited with status %d for %s", executable, returncode, tool_name)
        if stderr:
            logger.debug("Plugin %s stderr: %s", executable, stderr.decode(errors="replace").strip())

        return self.parse_response(tool_name, stdout.decode(errors="replace"))

    @staticmethod
    def parse_response(tool_name: str, raw: str) -> str:
        """Interpret a plugin's stdout; see the class docstring for the rules."""
        try:
            response = JsonRpcResponse.model_validate_json(raw)
        except ValidationError:
            return raw.strip()

        if response.has_error:
            raise PluginToolError(tool_name, _compact_json(response.error))
        if response.has_result:
            if isinstance(response.result, str):
                return response.result
            return _compact_json(response.result)
        return raw.strip()

    @staticmethod
    async def _exchange(
        proc: asyncio.subprocess.Process,
        tool_name: str,
        request: JsonRpcRequest,
    ) -> tuple[bytes, bytes, int]:
        assert proc.stdin is not None
        try:
            proc.stdin.write(request.to_line())
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise PluginIOError(tool_name, str(exc) or type(exc).__name__) from exc
        finally:
            proc.stdin.close()
        return await collect_output(proc)


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
