"""Shared fixtures: throwaway plugin executables written into a temp directory."""

from __future__ import annotations

import json
import stat
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

ECHO_BODY = """
request = json.loads(sys.stdin.readline())
print(json.dumps({"jsonrpc": "2.0", "result": request["params"], "id": request["id"]}))
"""

PluginFactory = Callable[..., Path]


def _tool(name: str) -> dict[str, object]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": f"{name} tool",
            "parameters": {"type": "object", "properties": {}},
        },
    }


@pytest.fixture
def make_plugin() -> PluginFactory:
    """Return a factory that writes an executable Python plugin script.

    ``make_plugin(directory, filename, tools=[...], body=..., manifest=..., manifest_exit=0)``

    * ``tools``: tool names declared by ``--manifest``.
    * ``manifest``: raw text printed for ``--manifest`` instead of the tools JSON.
    * ``manifest_exit``: exit status for ``--manifest``.
    * ``body``: Python run for an invocation (``json`` and ``sys`` are imported).
    """

    def _make(
        directory: Path,
        filename: str,
        *,
        tools: list[str] | None = None,
        body: str = ECHO_BODY,
        manifest: str | None = None,
        manifest_exit: int = 0,
        executable: bool = True,
    ) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        manifest_text = (
            manifest
            if manifest is not None
            else json.dumps({"tools": [_tool(n) for n in (tools or [])]})
        )
        script = (
            f"#!{sys.executable}\n"
            "import json\n"
            "import sys\n"
            "\n"
            "if len(sys.argv) > 1 and sys.argv[1] == '--manifest':\n"
            f"    sys.stdout.write({manifest_text!r})\n"
            f"    sys.exit({manifest_exit})\n"
            f"{body}\n"
        )
        path = directory / filename
        path.write_text(script, encoding="utf-8")
        if executable:
            path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make
