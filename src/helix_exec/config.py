"""Settings — data directory, plugin directory and execution limits.

Settings are plain objects: load them once at startup and hand them to the
components that need them.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from helix_exec.plugins.discovery import MANIFEST_FLAG
from helix_exec.sandbox.models import SandboxOptions
from helix_exec.telemetry import TelemetrySettings

HOME_ENV_VAR = "HELIX_HOME"
CONFIG_FILENAME = "config.yaml"


class SettingsError(Exception):
    """Raised when a settings file fails parsing or validation."""


def default_data_dir() -> Path:
    """``$HELIX_HOME`` if set, else the platform data directory plus ``helix``."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    elif os.name == "nt":
        base = Path(os.environ.get("APPDATA") or Path.home() / "AppData" / "Roaming")
    else:
        base = Path(os.environ.get("XDG_DATA_HOME") or Path.home() / ".local" / "share")
    return base / "helix"


class HelixSettings(BaseModel):
    """Top-level configuration for the execution engine."""

    data_dir: Path = Field(default_factory=default_data_dir)
    plugin_dir_override: Path | None = Field(
        default=None,
        alias="plugin_dir",
        description="Plugin directory; defaults to <data_dir>/plugins.",
    )
    sandbox: SandboxOptions = Field(default_factory=SandboxOptions)
    plugin_timeout: float = Field(default=30.0, gt=0, description="Seconds per plugin call.")
    discovery_timeout: float = Field(default=10.0, gt=0, description="Seconds per manifest query.")
    manifest_flag: str = MANIFEST_FLAG
    log_level: str = "INFO"
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)

    model_config = {"populate_by_name": True}

    @property
    def plugin_dir(self) -> Path:
        if self.plugin_dir_override is not None:
            return self.plugin_dir_override.expanduser()
        return self.data_dir.expanduser() / "plugins"


class SettingsLoader:
    """Load and validate a settings YAML file into :class:`HelixSettings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._explicit = path is not None
        self._path = path if path is not None else default_data_dir() / CONFIG_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> HelixSettings:
        """Read YAML, interpolate env vars, and validate.

        A missing file is an error only when the path was given explicitly;
        otherwise defaults are returned.

        Raises:
            SettingsError: On unreadable files, YAML errors or schema failures.
        """
        if not self._path.exists() and not self._explicit:
            return HelixSettings()

        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SettingsError(f"Cannot read {self._path}: {exc}") from exc

        expanded = os.path.expandvars(raw)

        try:
            data: Any = yaml.safe_load(expanded)
        except yaml.YAMLError as exc:
            raise SettingsError(f"YAML parse error: {exc}") from exc

        if data is None:
            return HelixSettings()
        if not isinstance(data, dict):
            raise SettingsError("Settings YAML must be a mapping")

        try:
            return HelixSettings.model_validate(data)
        except ValidationError as exc:
            raise SettingsError(str(exc)) from exc
