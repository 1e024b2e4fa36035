"""Sandbox subsystem — supervised shell command execution."""

from helix_exec.sandbox.executor import SandboxExecutor
from helix_exec.sandbox.models import (
    KILLED_EXIT_CODE,
    TRUNCATION_MARKER,
    KillReason,
    SandboxOptions,
    SandboxResult,
)
from helix_exec.sandbox.process_sandbox import ProcessSandbox
from helix_exec.sandbox.reaper import ProcessTreeReaper

__all__ = [
    "KILLED_EXIT_CODE",
    "TRUNCATION_MARKER",
    "KillReason",
    "ProcessSandbox",
    "ProcessTreeReaper",
    "SandboxExecutor",
    "SandboxOptions",
    "SandboxResult",
]
