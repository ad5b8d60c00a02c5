"""Tests for the JSON-RPC codec."""

from __future__ import annotations

import json

import pytest

from tandem.protocol.codec import decode, encode
from tandem.protocol.errors import INVALID_REQUEST, PARSE_ERROR, MalformedEnvelopeError
from tandem.protocol.models import (
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
)


class TestEncode:
    def test_request_is_single_line(self) -> None:
        text = encode(JsonRpcRequest(id=1, method="tools/list", params={"note": "a\nb"}))
        assert "\n" not in text
        assert json.loads(text) == {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "tools/list",
            "params": {"note": "a\nb"},
        }

    def test_notification_has_no_id(self) -> None:
        data = json.loads(encode(JsonRpcNotification(method="notifications/initialized")))
        assert "id" not in data
        assert data["method"] == "notifications/initialized"

    def test_error_response_keeps_null_id(self) -> None:
        response = JsonRpcResponse(id=None, error=JsonRpcError(code=-32700, message="bad"))
        data = json.loads(encode(response))
        assert data["id"] is None
        assert data["error"] == {"code": -32700, "message": "bad"}
        assert "result" not in data

    def test_empty_result_is_kept(self) -> None:
        data = json.loads(encode(JsonRpcResponse(id=3, result={})))
        assert data == {"jsonrpc": "2.0", "id": 3, "result": {}}


class TestDecode:
    def test_request(self) -> None:
        message = decode('{"jsonrpc":"2.0","id":7,"method":"ping"}')
        assert isinstance(message, JsonRpcRequest)
        assert message.id == 7
        assert message.params == {}

    def test_string_id(self) -> None:
        message = decode('{"jsonrpc":"2.0","id":"abc","method":"ping"}')
        assert isinstance(message, JsonRpcRequest)
        assert message.id == "abc"

    def test_notification(self) -> None:
        message = decode('{"jsonrpc":"2.0","method":"notifications/initialized"}')
        assert isinstance(message, JsonRpcNotification)

    def test_result_response(self) -> None:
        message = decode('{"jsonrpc":"2.0","id":2,"result":{"tools":[]}}')
        assert isinstance(message, JsonRpcResponse)
        assert message.result == {"tools": []}

    def test_error_response(self) -> None:
        message = decode('{"jsonrpc":"2.0","id":2,"error":{"code":-32601,"message":"nope"}}')
        assert isinstance(message, JsonRpcResponse)
        assert message.error is not None
        assert message.error.code == -32601

    def test_invalid_json_is_parse_error(self) -> None:
        with pytest.raises(MalformedEnvelopeError) as exc_info:
            decode("{not json")
        assert exc_info.value.code == PARSE_ERROR
        assert exc_info.value.request_id is None

    def test_non_object(self) -> None:
        with pytest.raises(MalformedEnvelopeError) as exc_info:
            decode("[1, 2]")
        assert exc_info.value.code == INVALID_REQUEST

    def test_wrong_version_keeps_id(self) -> None:
        with pytest.raises(MalformedEnvelopeError) as exc_info:
            decode('{"jsonrpc":"1.0","id":4,"method":"ping"}')
        assert exc_info.value.request_id == 4

    def test_method_with_result(self) -> None:
        with pytest.raises(MalformedEnvelopeError, match="cannot be combined"):
            decode('{"jsonrpc":"2.0","id":1,"method":"ping","result":{}}')

    def test_result_and_error(self) -> None:
        with pytest.raises(MalformedEnvelopeError, match="mutually exclusive"):
            decode('{"jsonrpc":"2.0","id":1,"result":{},"error":{"code":1,"message":"x"}}')

    def test_empty_envelope(self) -> None:
        with pytest.raises(MalformedEnvelopeError, match="needs"):
            decode('{"jsonrpc":"2.0","id":1}')

    def test_null_request_id(self) -> None:
        with pytest.raises(MalformedEnvelopeError, match="unusable"):
            decode('{"jsonrpc":"2.0","id":null,"method":"ping"}')

    def test_params_must_be_object(self) -> None:
        with pytest.raises(MalformedEnvelopeError, match="params"):
            decode('{"jsonrpc":"2.0","id":1,"method":"ping","params":[1]}')

    def test_response_without_id(self) -> None:
        with pytest.raises(MalformedEnvelopeError, match="missing 'id'"):
            decode('{"jsonrpc":"2.0","result":{}}')

    def test_non_object_result_is_marked_as_response(self) -> None:
        with pytest.raises(MalformedEnvelopeError) as exc_info:
            decode('{"jsonrpc":"2.0","id":3,"result":"ok"}')
        assert exc_info.value.response is True
        assert exc_info.value.request_id == 3

    def test_null_result_is_malformed(self) -> None:
        with pytest.raises(MalformedEnvelopeError) as exc_info:
            decode('{"jsonrpc":"2.0","id":3,"result":null}')
        assert exc_info.value.response is True

    def test_bad_request_is_not_marked_as_response(self) -> None:
        with pytest.raises(MalformedEnvelopeError) as exc_info:
            decode('{"jsonrpc":"2.0","id":1,"method":"ping","params":[1]}')
        assert exc_info.value.response is False

    def test_encode_then_decode_preserves_request(self) -> None:
        original = JsonRpcRequest(id=9, method="tools/call", params={"name": "x", "arguments": {}})
        assert decode(encode(original)) == original
