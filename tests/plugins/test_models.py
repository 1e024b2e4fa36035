"""Tests for plugin manifest and JSON-RPC models."""

import json

import pytest
from pydantic import ValidationError

from helix_exec.plugins.models import (
    JsonRpcRequest,
    JsonRpcResponse,
    PluginManifest,
    ToolDefinition,
)


class TestManifest:
    def test_parses_openai_style_tools(self) -> None:
        manifest = PluginManifest.model_validate_json(
            '{"tools": [{"type": "function", "function": {"name": "echo_tool",'
            ' "description": "Echo", "parameters": {"type": "object"}}}]}'
        )
        assert [t.name for t in manifest.tools] == ["echo_tool"]
        assert manifest.tools[0].function.description == "Echo"
        assert manifest.tools[0].function.parameters == {"type": "object"}

    def test_description_and_parameters_are_optional(self) -> None:
        tool = ToolDefinition.model_validate({"type": "function", "function": {"name": "t"}})
        assert tool.function.description == ""
        assert tool.function.parameters == {}

    def test_empty_tool_list(self) -> None:
        assert PluginManifest.model_validate_json('{"tools": []}').tools == []

    def test_missing_tools_key_means_no_tools(self) -> None:
        assert PluginManifest.model_validate_json("{}").tools == []

    def test_rejects_empty_name(self) -> None:
        with pytest.raises(ValidationError):
            ToolDefinition.model_validate({"type": "function", "function": {"name": ""}})

    def test_rejects_non_function_type(self) -> None:
        with pytest.raises(ValidationError):
            ToolDefinition.model_validate({"type": "retrieval", "function": {"name": "t"}})

    def test_rejects_tools_not_a_list(self) -> None:
        with pytest.raises(ValidationError):
            PluginManifest.model_validate_json('{"tools": "echo"}')


class TestJsonRpcRequest:
    def test_to_line(self) -> None:
        line = JsonRpcRequest(method="echo_tool", params={"x": 1}).to_line()
        assert line.endswith(b"\n")
        assert line.count(b"\n") == 1
        assert json.loads(line) == {
            "jsonrpc": "2.0",
            "method": "echo_tool",
            "params": {"x": 1},
            "id": 1,
        }

    def test_params_default_to_empty_object(self) -> None:
        assert json.loads(JsonRpcRequest(method="m").to_line())["params"] == {}


class TestJsonRpcResponse:
    def test_result_present(self) -> None:
        response = JsonRpcResponse.model_validate_json('{"jsonrpc": "2.0", "result": 5, "id": 1}')
        assert response.has_result
        assert not response.has_error
        assert response.result == 5

    def test_null_error_still_counts(self) -> None:
        response = JsonRpcResponse.model_validate_json('{"error": null, "result": 1}')
        assert response.has_error

    def test_lenient_about_envelope(self) -> None:
        response = JsonRpcResponse.model_validate_json('{"result": "ok", "extra": true}')
        assert response.has_result
        assert response.jsonrpc is None

    def test_neither_field(self) -> None:
        response = JsonRpcResponse.model_validate_json('{"status": "ok"}')
        assert not response.has_result
        assert not response.has_error
