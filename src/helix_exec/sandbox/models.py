"""Data models for the sandbox subsystem."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

KILLED_EXIT_CODE = -9
"""Exit code reported when the sandbox, not the command, ended the run."""

TRUNCATION_MARKER = "\n...[truncated by sandbox]"

_KIB = 1024
_MIB = 1024 * 1024


class KillReason(str, Enum):
    """Which limit made the sandbox kill a run."""

    TIMEOUT = "timeout"
    MEMORY = "memory"
    OUTPUT = "output"


class SandboxOptions(BaseModel):
    """Limits for one sandboxed run. Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=30.0, gt=0, description="Max wall-clock seconds.")
    max_output_bytes: int = Field(
        default=512 * _KIB,
        gt=0,
        description="Ceiling on combined stdout+stderr bytes; also the per-stream truncation size.",
    )
    max_memory: int | None = Field(
        default=512 * _MIB,
        gt=0,
        description="Resident memory ceiling in bytes. None disables sampling.",
    )
    poll_interval: float = Field(default=0.1, gt=0, description="Sleep between supervision ticks.")
    read_timeout: float = Field(default=0.01, gt=0, description="Bound on each pipe read attempt.")


class SandboxResult(BaseModel):
    """Result of a sandboxed execution."""

    exit_code: int = Field(..., description="Process exit code, or -9 when killed by the sandbox.")
    stdout: str = Field(default="", description="Captured stdout, truncated if over the limit.")
    stderr: str = Field(default="", description="Captured stderr, truncated if over the limit.")
    killed_by_sandbox: bool = Field(default=False)
    kill_reason: str | None = Field(default=None, description="Human-readable kill reason.")
    kill_kind: KillReason | None = Field(default=None)
    duration: float = Field(default=0.0, description="Wall-clock seconds from spawn to result.")

    @model_validator(mode="after")
    def _kill_fields_agree(self) -> SandboxResult:
        if self.killed_by_sandbox != (self.kill_reason is not None):
            msg = "kill_reason must be set if and only if killed_by_sandbox"
            raise ValueError(msg)
        if self.killed_by_sandbox != (self.kill_kind is not None):
            msg = "kill_kind must be set if and only if killed_by_sandbox"
            raise ValueError(msg)
        return self

    @property
    def succeeded(self) -> bool:
        return not self.killed_by_sandbox and self.exit_code == 0
