"""Tests for PluginRegistry."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from helix_exec.plugins.discovery import ManifestDiscoverer
from helix_exec.plugins.models import ToolDefinition, ToolFunctionDef
from helix_exec.plugins.registry import PluginRegistry, is_executable

pytestmark = pytest.mark.skipif(os.name != "posix", reason="plugins are shebang scripts")


def _native(name: str) -> ToolDefinition:
    return ToolDefinition(function=ToolFunctionDef(name=name, description="native"))


class TestLoad:
    async def test_missing_dir_is_created(self, tmp_path: Path) -> None:
        plugin_dir = tmp_path / "plugins" / "nested"
        registry = await PluginRegistry.load(plugin_dir)

        assert plugin_dir.is_dir()
        assert len(registry) == 0
        assert registry.plugin_dir == plugin_dir

    async def test_maps_tool_to_absolute_path(self, tmp_path: Path, make_plugin) -> None:
        plugin = make_plugin(tmp_path, "echo.py", tools=["echo_tool"])
        registry = await PluginRegistry.load(tmp_path)

        assert registry.lookup("echo_tool") == plugin.absolute()
        assert registry.lookup("echo_tool").is_absolute()
        assert "echo_tool" in registry
        assert list(registry) == ["echo_tool"]

    async def test_multi_tool_plugin(self, tmp_path: Path, make_plugin) -> None:
        plugin = make_plugin(tmp_path, "multi.py", tools=["a", "b", "c"])
        registry = await PluginRegistry.load(tmp_path)
        assert dict(registry.tools) == {n: plugin.absolute() for n in ("a", "b", "c")}

    async def test_ignores_non_executables_and_dirs(self, tmp_path: Path, make_plugin) -> None:
        make_plugin(tmp_path, "readme.py", tools=["hidden"], executable=False)
        (tmp_path / "subdir").mkdir()
        make_plugin(tmp_path / "subdir", "nested.py", tools=["nested"])
        make_plugin(tmp_path, "real.py", tools=["visible"])

        registry = await PluginRegistry.load(tmp_path)
        assert list(registry) == ["visible"]

    async def test_later_file_wins_on_duplicate(self, tmp_path: Path, make_plugin) -> None:
        make_plugin(tmp_path, "a_first.py", tools=["dup", "only_a"])
        second = make_plugin(tmp_path, "b_second.py", tools=["dup"])

        registry = await PluginRegistry.load(tmp_path)

        assert registry.lookup("dup") == second.absolute()
        assert registry.lookup("only_a") is not None

    async def test_broken_plugins_are_isolated(self, tmp_path: Path, make_plugin) -> None:
        make_plugin(tmp_path, "bad_json.py", manifest="nope")
        make_plugin(tmp_path, "bad_exit.py", tools=["x"], manifest_exit=1)
        make_plugin(tmp_path, "good.py", tools=["good_tool"])

        registry = await PluginRegistry.load(tmp_path)
        assert list(registry) == ["good_tool"]

    async def test_reload_is_idempotent(self, tmp_path: Path, make_plugin) -> None:
        make_plugin(tmp_path, "one.py", tools=["one"])
        make_plugin(tmp_path, "two.py", tools=["two"])

        first = await PluginRegistry.load(tmp_path)
        second = await first.reload()

        assert dict(first.tools) == dict(second.tools)

    async def test_reload_picks_up_new_files(self, tmp_path: Path, make_plugin) -> None:
        registry = await PluginRegistry.load(tmp_path)
        make_plugin(tmp_path, "late.py", tools=["late"])

        assert "late" not in registry
        assert "late" in await registry.reload()

    async def test_uses_given_discoverer(self, tmp_path: Path, make_plugin) -> None:
        make_plugin(tmp_path, "slow.py", tools=["slow"], body="")
        discoverer = ManifestDiscoverer(timeout=5.0)
        registry = await PluginRegistry.load(tmp_path, discoverer=discoverer)
        assert (await registry.reload()).lookup("slow") is not None


class TestRegistryMapping:
    def test_tools_view_is_read_only(self, tmp_path: Path) -> None:
        registry = PluginRegistry(tmp_path, {"t": tmp_path / "p"})
        with pytest.raises(TypeError):
            registry.tools["u"] = tmp_path  # type: ignore[index]

    def test_lookup_unknown(self, tmp_path: Path) -> None:
        registry = PluginRegistry(tmp_path)
        assert registry.lookup("nope") is None
        assert "nope" not in registry


class TestMerge:
    async def test_native_first_then_plugins(self, tmp_path: Path, make_plugin) -> None:
        make_plugin(tmp_path, "p.py", tools=["plug_a", "plug_b"])
        registry = await PluginRegistry.load(tmp_path)

        merged = await registry.merge([_native("native_one")])

        assert [t.name for t in merged] == ["native_one", "plug_a", "plug_b"]
        assert merged[1].function.description == "plug_a tool"
        assert merged[1].function.parameters == {"type": "object", "properties": {}}

    async def test_empty_registry_returns_native(self, tmp_path: Path) -> None:
        registry = await PluginRegistry.load(tmp_path)
        merged = await registry.merge([_native("n")])
        assert [t.name for t in merged] == ["n"]

    async def test_overridden_tool_uses_winning_definition(
        self, tmp_path: Path, make_plugin
    ) -> None:
        make_plugin(tmp_path, "a.py", tools=["dup"])
        make_plugin(tmp_path, "b.py", tools=["dup"])
        registry = await PluginRegistry.load(tmp_path)

        merged = await registry.merge([])
        assert [t.name for t in merged] == ["dup"]

    async def test_removed_plugin_is_skipped(self, tmp_path: Path, make_plugin) -> None:
        gone = make_plugin(tmp_path, "gone.py", tools=["gone_tool"])
        make_plugin(tmp_path, "stays.py", tools=["stays_tool"])
        registry = await PluginRegistry.load(tmp_path)

        gone.unlink()
        merged = await registry.merge([])

        assert [t.name for t in merged] == ["stays_tool"]

    async def test_undeclared_tool_is_skipped(self, tmp_path: Path, make_plugin) -> None:
        make_plugin(tmp_path, "fickle.py", tools=["old", "kept"])
        registry = await PluginRegistry.load(tmp_path)

        make_plugin(tmp_path, "fickle.py", tools=["kept"])
        merged = await registry.merge([])

        assert [t.name for t in merged] == ["kept"]


class TestIsExecutable:
    def test_executable_file(self, tmp_path: Path) -> None:
        path = tmp_path / "run"
        path.write_text("#!/bin/sh\n")
        path.chmod(0o755)
        assert is_executable(path)

    def test_plain_file(self, tmp_path: Path) -> None:
        path = tmp_path / "data"
        path.write_text("x")
        path.chmod(0o644)
        assert not is_executable(path)

    def test_directory(self, tmp_path: Path) -> None:
        assert not is_executable(tmp_path)

    def test_missing(self, tmp_path: Path) -> None:
        assert not is_executable(tmp_path / "missing")
