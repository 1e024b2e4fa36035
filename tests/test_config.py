"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from helix_exec.config import (
    CONFIG_FILENAME,
    HOME_ENV_VAR,
    HelixSettings,
    SettingsError,
    SettingsLoader,
    default_data_dir,
)
from helix_exec.plugins.discovery import MANIFEST_FLAG


class TestDefaults:
    def test_home_env_var_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(HOME_ENV_VAR, str(tmp_path))
        assert default_data_dir() == tmp_path

    def test_xdg_data_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(HOME_ENV_VAR, raising=False)
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        monkeypatch.setattr("helix_exec.config.sys.platform", "linux")
        monkeypatch.setattr("helix_exec.config.os.name", "posix")
        assert default_data_dir() == tmp_path / "helix"

    def test_plugin_dir_under_data_dir(self, tmp_path: Path) -> None:
        settings = HelixSettings(data_dir=tmp_path)
        assert settings.plugin_dir == tmp_path / "plugins"

    def test_plugin_dir_override(self, tmp_path: Path) -> None:
        settings = HelixSettings(data_dir=tmp_path, plugin_dir=tmp_path / "elsewhere")
        assert settings.plugin_dir == tmp_path / "elsewhere"

    def test_limits(self) -> None:
        settings = HelixSettings()
        assert settings.plugin_timeout == 30.0
        assert settings.discovery_timeout == 10.0
        assert settings.manifest_flag == MANIFEST_FLAG
        assert settings.sandbox.timeout == 30.0


class TestLoader:
    def test_missing_default_file_gives_defaults(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv(HOME_ENV_VAR, str(tmp_path))
        loader = SettingsLoader()

        assert loader.path == tmp_path / CONFIG_FILENAME
        assert loader.load().data_dir == tmp_path

    def test_missing_explicit_file_is_error(self, tmp_path: Path) -> None:
        with pytest.raises(SettingsError, match="Cannot read"):
            SettingsLoader(tmp_path / "nope.yaml").load()

    def test_full_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "data_dir: /srv/helix\n"
            "plugin_dir: /opt/helix-plugins\n"
            "plugin_timeout: 5\n"
            "discovery_timeout: 2.5\n"
            "manifest_flag: --describe\n"
            "log_level: DEBUG\n"
            "sandbox:\n"
            "  timeout: 12\n"
            "  max_output_bytes: 4096\n"
            "  max_memory: null\n"
        )
        settings = SettingsLoader(path).load()

        assert settings.data_dir == Path("/srv/helix")
        assert settings.plugin_dir == Path("/opt/helix-plugins")
        assert settings.plugin_timeout == 5.0
        assert settings.discovery_timeout == 2.5
        assert settings.manifest_flag == "--describe"
        assert settings.log_level == "DEBUG"
        assert settings.sandbox.timeout == 12.0
        assert settings.sandbox.max_output_bytes == 4096
        assert settings.sandbox.max_memory is None
        assert settings.sandbox.poll_interval == 0.1

    def test_telemetry_block(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "telemetry:\n  enabled: true\n  otlp_endpoint: http://collector:4317\n"
        )
        telemetry = SettingsLoader(path).load().telemetry

        assert telemetry.enabled is True
        assert telemetry.otlp_endpoint == "http://collector:4317"
        assert telemetry.console is False
        assert telemetry.service_name == "helix-exec"

    def test_telemetry_disabled_by_default(self) -> None:
        assert HelixSettings().telemetry.enabled is False

    def test_env_interpolation(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HELIX_TEST_ROOT", str(tmp_path))
        path = tmp_path / "config.yaml"
        path.write_text("data_dir: ${HELIX_TEST_ROOT}/data\n")

        assert SettingsLoader(path).load().data_dir == tmp_path / "data"

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert SettingsLoader(path).load() == HelixSettings()

    def test_yaml_error(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("sandbox: [unclosed\n")
        with pytest.raises(SettingsError, match="YAML parse error"):
            SettingsLoader(path).load()

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(SettingsError, match="mapping"):
            SettingsLoader(path).load()

    def test_validation_error(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("sandbox:\n  timeout: -1\n")
        with pytest.raises(SettingsError, match="timeout"):
            SettingsLoader(path).load()
