"""Message codec — JSON-RPC envelopes to and from single-line JSON text."""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from tandem.protocol.errors import PARSE_ERROR, MalformedEnvelopeError
from tandem.protocol.models import (
    JsonRpcMessage,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
)


def encode(message: JsonRpcMessage) -> str:
    """Serialise *message* as compact single-line JSON."""
    data = message.model_dump(mode="json", exclude_none=True)
    if isinstance(message, JsonRpcResponse):
        # JSON-RPC requires the id on every response, null when unknown.
        data["id"] = message.id
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def decode(raw: str | bytes) -> JsonRpcMessage:
    """Parse one framed message into a request, notification, or response.

    Raises:
        MalformedEnvelopeError: If the text is not JSON or does not form a
            valid envelope.
    """
    try:
        data: Any = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedEnvelopeError(f"invalid JSON ({exc})", code=PARSE_ERROR) from exc

    if not isinstance(data, dict):
        raise MalformedEnvelopeError("envelope must be a JSON object")

    request_id = _readable_id(data)
    has_method = "method" in data
    has_result = "result" in data
    has_error = "error" in data
    is_response = not has_method and (has_result or has_error)

    if data.get("jsonrpc") != "2.0":
        raise MalformedEnvelopeError(
            "'jsonrpc' must be \"2.0\"", request_id=request_id, response=is_response
        )

    if has_method and (has_result or has_error):
        raise MalformedEnvelopeError(
            "'method' cannot be combined with 'result' or 'error'", request_id=request_id
        )
    if not has_method and not (has_result or has_error):
        raise MalformedEnvelopeError(
            "envelope needs 'method', 'result', or 'error'", request_id=request_id
        )
    if has_result and has_error:
        raise MalformedEnvelopeError(
            "'result' and 'error' are mutually exclusive",
            request_id=request_id,
            response=True,
        )

    if has_method:
        if "id" in data and (data["id"] is None or isinstance(data["id"], bool)):
            raise MalformedEnvelopeError("request carries an unusable 'id'")
        if "params" in data and not isinstance(data["params"], dict):
            raise MalformedEnvelopeError("'params' must be an object", request_id=request_id)
        model: type[JsonRpcMessage] = JsonRpcRequest if "id" in data else JsonRpcNotification
    else:
        if "id" not in data:
            raise MalformedEnvelopeError("response is missing 'id'", response=True)
        model = JsonRpcResponse

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        detail = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'envelope'}: {err['msg']}"
            for err in exc.errors()
        )
        raise MalformedEnvelopeError(
            detail, request_id=request_id, response=is_response
        ) from exc


def _readable_id(data: dict[str, Any]) -> int | str | None:
    """Return the envelope id if it is usable for an error reply."""
    value = data.get("id")
    if isinstance(value, bool):
        return None
    if isinstance(value, int | str):
        return value
    return None

