"""ProcessSandbox — supervised shell execution on the host.

Runs one shell command per ``execute()`` call and watches it from a single
polling loop:

1. exit check (non-blocking),
2. wall-clock timeout,
3. resident memory of the child and its descendants (``psutil``),
4. short bounded reads from stdout and stderr,
5. combined output size,
6. sleep ``poll_interval`` and repeat.

Any violated limit kills the whole process tree via
:class:`~helix_exec.sandbox.reaper.ProcessTreeReaper`. Termination latency is
therefore the poll interval plus signal delivery, not instantaneous.

This is not an OS-level sandbox: there are no namespaces or cgroups, only
timeouts, memory sampling and tree termination.
"""

from __future__ import annotations

import asyncio
import logging
import os

import psutil

from helix_exec.errors import SpawnError
from helix_exec.sandbox.models import (
    KILLED_EXIT_CODE,
    TRUNCATION_MARKER,
    KillReason,
    SandboxOptions,
    SandboxResult,
)
from helix_exec.sandbox.reaper import ProcessTreeReaper
from helix_exec.telemetry import (
    ATTR_COMMAND,
    ATTR_EXIT_CODE,
    ATTR_KILL_KIND,
    ATTR_KILLED,
    ATTR_PID,
    ATTR_WORKING_DIR,
    get_tracer,
)

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

_POSIX = os.name == "posix"
_READ_CHUNK = 64 * 1024
_MIB = 1024 * 1024
_KILL_WAIT = 2.0


class ProcessSandbox:
    """Host process executor with timeout, memory and output ceilings.

    Satisfies the :class:`~helix_exec.sandbox.executor.SandboxExecutor`
    protocol. Separate ``execute()`` calls share nothing but the reaper, so
    any number may run concurrently on one instance.
    """

    def __init__(
        self,
        defaults: SandboxOptions | None = None,
        *,
        reaper: ProcessTreeReaper | None = None,
    ) -> None:
        self._defaults = defaults or SandboxOptions()
        self._reaper = reaper or ProcessTreeReaper()
        self._active: dict[int, asyncio.subprocess.Process] = {}

    @property
    def defaults(self) -> SandboxOptions:
        return self._defaults

    @property
    def active_pids(self) -> list[int]:
        return list(self._active)

    async def execute(
        self,
        command: str,
        working_dir: str = ".",
        options: SandboxOptions | None = None,
    ) -> SandboxResult:
        """Run *command* via the shell in *working_dir* under *options*.

        A non-zero exit is a normal result. Raises :class:`SpawnError` only
        if the process cannot be started at all.
        """
        opts = options or self._defaults
        logger.info("Sandbox executing: %s (dir: %s)", command[:50], working_dir)

        with _tracer.start_as_current_span("helix.sandbox.execute") as span:
            span.set_attribute(ATTR_COMMAND, command[:200])
            span.set_attribute(ATTR_WORKING_DIR, working_dir)

            proc = await self._spawn(command, working_dir)
            span.set_attribute(ATTR_PID, proc.pid)
            self._active[proc.pid] = proc
            try:
                result = await self._supervise(proc, opts)
            finally:
                self._active.pop(proc.pid, None)
                if proc.returncode is None:
                    # Cancelled or failed mid-run; the child must not outlive us.
                    self._kill(proc)

            span.set_attribute(ATTR_EXIT_CODE, result.exit_code)
            span.set_attribute(ATTR_KILLED, result.killed_by_sandbox)
            if result.kill_kind is not None:
                span.set_attribute(ATTR_KILL_KIND, result.kill_kind.value)

        logger.info(
            "Sandbox finished pid %d: exit=%d killed=%s in %.2fs",
            proc.pid,
            result.exit_code,
            result.killed_by_sandbox,
            result.duration,
        )
        return result

    async def cleanup(self) -> None:
        """Kill every process tree still owned by this sandbox."""
        for proc in list(self._active.values()):
            if proc.returncode is None:
                self._kill(proc)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    async def _spawn(command: str, working_dir: str) -> asyncio.subprocess.Process:
        argv = ["sh", "-c", command] if _POSIX else ["cmd", "/C", command]
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=working_dir,
                start_new_session=_POSIX,
            )
        except (OSError, ValueError) as exc:
            raise SpawnError(f"{argv[0]} in {working_dir}: {exc}") from exc

        if proc.stdout is None or proc.stderr is None:
            proc.kill()
            raise SpawnError("standard streams could not be attached")
        return proc

    async def _supervise(
        self,
        proc: asyncio.subprocess.Process,
        opts: SandboxOptions,
    ) -> SandboxResult:
        assert proc.stdout is not None and proc.stderr is not None
        loop = asyncio.get_running_loop()
        start = loop.time()
        stdout = bytearray()
        stderr = bytearray()
        kill_kind: KillReason | None = None
        kill_reason: str | None = None

        while proc.returncode is None:
            if loop.time() - start > opts.timeout:
                kill_kind = KillReason.TIMEOUT
                kill_reason = f"Timeout of {opts.timeout:g}s exceeded"
                break

            if opts.max_memory is not None:
                rss = _resident_memory(proc.pid)
                if rss is not None and rss > opts.max_memory:
                    kill_kind = KillReason.MEMORY
                    kill_reason = (
                        f"Memory limit exceeded ({rss // _MIB}MB > {opts.max_memory // _MIB}MB)"
                    )
                    break

            await _read_some(proc.stdout, stdout, opts.read_timeout)
            await _read_some(proc.stderr, stderr, opts.read_timeout)

            if len(stdout) + len(stderr) > opts.max_output_bytes:
                kill_kind = KillReason.OUTPUT
                kill_reason = f"Output exceeded max {opts.max_output_bytes} bytes"
                break

            await asyncio.sleep(opts.poll_interval)

        if kill_kind is not None:
            logger.warning("Sandbox kill triggered for pid %d: %s", proc.pid, kill_reason)
            self._kill(proc)
            await self._wait_killed(proc)
            exit_code = KILLED_EXIT_CODE
        else:
            remaining = max(opts.timeout - (loop.time() - start), opts.poll_interval)
            await self._drain(proc, stdout, stderr, opts.max_output_bytes, remaining)
            exit_code = proc.returncode if proc.returncode is not None else -1

        return SandboxResult(
            exit_code=exit_code,
            stdout=_finalize(stdout, opts.max_output_bytes),
            stderr=_finalize(stderr, opts.max_output_bytes),
            killed_by_sandbox=kill_kind is not None,
            kill_reason=kill_reason,
            kill_kind=kill_kind,
            duration=loop.time() - start,
        )

    def _kill(self, proc: asyncio.subprocess.Process) -> None:
        self._reaper.reap(proc.pid, kill_group=_POSIX)
        try:
            proc.kill()
        except ProcessLookupError:
            pass

    @staticmethod
    async def _wait_killed(proc: asyncio.subprocess.Process) -> None:
        try:
            await asyncio.wait_for(proc.wait(), timeout=_KILL_WAIT)
        except TimeoutError:
            logger.warning("Sandbox: pid %d did not exit %.1fs after kill", proc.pid, _KILL_WAIT)

    async def _drain(
        self,
        proc: asyncio.subprocess.Process,
        stdout: bytearray,
        stderr: bytearray,
        cap: int,
        budget: float,
    ) -> None:
        """Read both pipes to EOF after a clean exit, within *budget* seconds.

        A background grandchild can hold a pipe open after the shell exits.
        If EOF is not reached in time (or a stream passes *cap*), the
        leftover process group is killed and whatever was read is kept.
        """
        assert proc.stdout is not None and proc.stderr is not None
        try:
            await asyncio.wait_for(
                asyncio.gather(
                    _read_to_eof(proc.stdout, stdout, cap),
                    _read_to_eof(proc.stderr, stderr, cap),
                ),
                timeout=budget,
            )
        except TimeoutError:
            logger.warning("Sandbox: output of pid %d still open %.1fs after exit", proc.pid, budget)

        if not (proc.stdout.at_eof() and proc.stderr.at_eof()):
            # The shell itself is gone; only its process group can be signalled safely.
            self._reaper.kill_group(proc.pid)


async def _read_some(stream: asyncio.StreamReader, buf: bytearray, timeout: float) -> None:
    try:
        chunk = await asyncio.wait_for(stream.read(_READ_CHUNK), timeout=timeout)
    except TimeoutError:
        return
    buf.extend(chunk)


async def _read_to_eof(stream: asyncio.StreamReader, buf: bytearray, cap: int) -> None:
    while len(buf) <= cap:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        buf.extend(chunk)


def _resident_memory(pid: int) -> int | None:
    """Total RSS of *pid* and all of its descendants.

    ``sh -c`` usually forks the command instead of exec'ing it, so the
    shell's own RSS is not the command's.
    """
    try:
        root = psutil.Process(pid)
        tree = [root, *root.children(recursive=True)]
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None

    total = 0
    for proc in tree:
        try:
            total += proc.memory_info().rss
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return total


def _finalize(buf: bytearray, limit: int) -> str:
    """Cut *buf* to *limit* bytes, decode lossily, and mark truncation."""
    if len(buf) > limit:
        return bytes(buf[:limit]).decode("utf-8", errors="replace") + TRUNCATION_MARKER
    return buf.decode("utf-8", errors="replace")
