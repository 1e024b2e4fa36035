"""Subprocess helpers shared by manifest discovery and plugin invocation."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from helix_exec.sandbox.reaper import ProcessTreeReaper

_POSIX = os.name == "posix"
_KILL_WAIT = 2.0


async def spawn_plugin(
    executable: Path,
    *args: str,
    stdin: int = asyncio.subprocess.DEVNULL,
) -> asyncio.subprocess.Process:
    """Start *executable* directly (no shell) with piped stdout and stderr.

    Raises :class:`OSError` (or :class:`ValueError` for unusable paths) when
    the process cannot be started; callers classify the failure.
    """
    return await asyncio.create_subprocess_exec(
        str(executable),
        *args,
        stdin=stdin,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=_POSIX,
    )


async def collect_output(proc: asyncio.subprocess.Process) -> tuple[bytes, bytes, int]:
    """Read stdout and stderr to EOF and wait for exit."""
    assert proc.stdout is not None and proc.stderr is not None
    stdout, stderr, returncode = await asyncio.gather(
        proc.stdout.read(),
        proc.stderr.read(),
        proc.wait(),
    )
    return stdout, stderr, returncode


async def terminate(proc: asyncio.subprocess.Process, reaper: ProcessTreeReaper) -> None:
    """Kill *proc* and its descendants, then wait briefly for the exit."""
    if proc.returncode is None:
        reaper.reap(proc.pid, kill_group=_POSIX)
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    try:
        await asyncio.wait_for(proc.wait(), timeout=_KILL_WAIT)
    except TimeoutError:
        return
