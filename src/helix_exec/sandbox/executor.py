"""SandboxExecutor protocol — the common interface for sandbox implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from helix_exec.sandbox.models import SandboxOptions, SandboxResult


@runtime_checkable
class SandboxExecutor(Protocol):
    """Runs shell commands under timeout, memory and output limits.

    ``execute()`` returns a result for every command that could be started,
    whatever its exit status. ``cleanup()`` reaps anything still running.
    """

    @property
    def defaults(self) -> SandboxOptions:
        """Options applied when ``execute()`` is called without any."""
        ...

    async def execute(
        self,
        command: str,
        working_dir: str = ".",
        options: SandboxOptions | None = None,
    ) -> SandboxResult:
        """Run *command* through the shell and return the result."""
        ...

    async def cleanup(self) -> None:
        """Kill any child process trees this executor still owns."""
        ...
