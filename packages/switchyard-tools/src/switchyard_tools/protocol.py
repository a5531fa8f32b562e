"""Newline-delimited JSON-RPC 2.0 framing for child-process tool servers."""
from __future__ import annotations

import json
from typing import Any

from switchyard_core.errors import ProtocolError

JSONRPC_VERSION = "2.0"
DEFAULT_PROTOCOL_VERSION = "2024-11-05"

METHOD_NOT_FOUND = -32601


def build_request(
    request_id: int, method: str, params: dict[str, Any] | None = None
) -> dict[str, Any]:
    message: dict[str, Any] = {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": method,
    }
    if params is not None:
        message["params"] = params
    return message


def build_notification(
    method: str, params: dict[str, Any] | None = None
) -> dict[str, Any]:
    message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        message["params"] = params
    return message


def build_response(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def build_error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": {"code": code, "message": message},
    }


def encode(message: dict[str, Any]) -> bytes:
    """Serialise one message as a single newline-terminated line."""
    return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")


def parse_message(line: str) -> dict[str, Any]:
    """Decode one line into a JSON-RPC message object.

    Raises:
        ProtocolError: If the line is not a JSON object.
    """
    try:
        message = json.loads(line)
    except json.JSONDecodeError as exc:
        msg = f"Invalid JSON-RPC line: {exc}"
        raise ProtocolError(msg) from exc
    if not isinstance(message, dict):
        msg = f"JSON-RPC message must be an object, got {type(message).__name__}"
        raise ProtocolError(msg)
    return message


def is_response(message: dict[str, Any]) -> bool:
    return "id" in message and "method" not in message


def error_from_response(message: dict[str, Any]) -> ProtocolError:
    error = message.get("error")
    if not isinstance(error, dict):
        return ProtocolError(f"Malformed error object: {error!r}")
    code = error.get("code")
    return ProtocolError(
        str(error.get("message", "Unknown server error")),
        code=code if isinstance(code, int) else None,
    )


def extract_text(result: Any) -> str:
    """Join every ``text`` content item of a ``tools/call`` result."""
    if not isinstance(result, dict):
        return ""
    content = result.get("content")
    if not isinstance(content, list):
        return ""
    parts = [
        str(item.get("text", ""))
        for item in content
        if isinstance(item, dict) and item.get("type") == "text"
    ]
    return "\n".join(parts)
