from __future__ import annotations

from switchyard_core.types import ErrorKind


class SwitchyardError(Exception):
    """Base exception for all Switchyard errors."""

    kind: ErrorKind = ErrorKind.EXECUTION_ERROR


# ── Config Errors ────────────────────────────────────────────────────

class ConfigError(SwitchyardError):
    """Invalid or missing configuration."""

    kind = ErrorKind.VALIDATION


# ── Validation Errors ────────────────────────────────────────────────

class ValidationError(SwitchyardError):
    """A plugin or skill contribution is malformed."""

    kind = ErrorKind.VALIDATION


class PluginValidationError(ValidationError):
    """Plugin exports do not match the contribution schema."""


class SkillValidationError(ValidationError):
    """Skill definition is invalid."""


# ── Tool Server Errors ───────────────────────────────────────────────

class ToolServerError(SwitchyardError):
    """Base for errors talking to a child-process tool server."""

    kind = ErrorKind.PROTOCOL_ERROR


class SpawnFailedError(ToolServerError):
    """The tool server process could not be started."""

    kind = ErrorKind.SPAWN_FAILED


class HandshakeFailedError(ToolServerError):
    """The ``initialize`` exchange did not complete."""

    kind = ErrorKind.HANDSHAKE_FAILED


class ToolTimeoutError(ToolServerError):
    """No response arrived within the configured timeout."""

    kind = ErrorKind.TIMEOUT


class EmptyResponseError(ToolServerError):
    """The server answered with an empty line or closed its output."""

    kind = ErrorKind.EMPTY_RESPONSE


class NotConnectedError(ToolServerError):
    """No ready connection exists for the requested server."""

    kind = ErrorKind.NOT_CONNECTED


class ProtocolError(ToolServerError):
    """The server returned a JSON-RPC error object."""

    kind = ErrorKind.PROTOCOL_ERROR

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code
