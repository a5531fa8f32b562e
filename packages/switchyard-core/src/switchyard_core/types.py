from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from switchyard_core.errors import SwitchyardError


class ErrorKind(enum.Enum):
    DUPLICATE_NAME = "duplicate_name"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    SPAWN_FAILED = "spawn_failed"
    HANDSHAKE_FAILED = "handshake_failed"
    TIMEOUT = "timeout"
    EMPTY_RESPONSE = "empty_response"
    PROTOCOL_ERROR = "protocol_error"
    STEP_FAILED = "step_failed"
    NOT_CONNECTED = "not_connected"
    EXECUTION_ERROR = "execution_error"
    TOOL_ERROR = "tool_error"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class Result:
    """Outcome of an intent, skill, workflow step, or tool call.

    Every invocation seam returns one of these. Failures are values:
    ``kind`` classifies the failure and ``error_code`` carries a
    server-reported JSON-RPC code when there is one. Composite
    invocations (skills, workflows) keep their per-step results in
    ``steps``.
    """

    success: bool
    output: str = ""
    error: str | None = None
    error_code: int | None = None
    kind: ErrorKind | None = None
    steps: tuple[Result, ...] = ()

    @classmethod
    def ok(cls, output: str = "", *, steps: tuple[Result, ...] = ()) -> Result:
        return cls(success=True, output=output, steps=steps)

    @classmethod
    def fail(
        cls,
        error: str,
        kind: ErrorKind,
        *,
        output: str = "",
        error_code: int | None = None,
        steps: tuple[Result, ...] = (),
    ) -> Result:
        return cls(
            success=False,
            output=output,
            error=error,
            error_code=error_code,
            kind=kind,
            steps=steps,
        )

    @classmethod
    def from_error(cls, exc: SwitchyardError) -> Result:
        """Convert a raised framework error into a failure value."""
        return cls.fail(
            str(exc),
            exc.kind,
            error_code=getattr(exc, "code", None),
        )

    @classmethod
    def coerce(cls, value: Any) -> Result:
        """Normalise a handler's return value.

        Accepts a ``Result``, a mapping with ``success``/``output``/
        ``error``/``error_code`` keys, a plain string (success output),
        or ``None`` (empty success).
        """
        if isinstance(value, Result):
            return value
        if value is None:
            return cls.ok()
        if isinstance(value, str):
            return cls.ok(value)
        if isinstance(value, Mapping):
            success = bool(value.get("success", False))
            output = value.get("output")
            error = value.get("error")
            code = value.get("error_code")
            if success:
                return cls.ok("" if output is None else str(output))
            return cls.fail(
                "" if error is None else str(error),
                ErrorKind.EXECUTION_ERROR,
                output="" if output is None else str(output),
                error_code=_as_code(code),
            )
        return cls.fail(
            f"Handler returned unsupported value of type {type(value).__name__}",
            ErrorKind.VALIDATION,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, "output": self.output}
        if self.error is not None:
            data["error"] = self.error
        if self.error_code is not None:
            data["error_code"] = self.error_code
        if self.kind is not None:
            data["kind"] = self.kind.value
        if self.steps:
            data["steps"] = [step.to_dict() for step in self.steps]
        return data


def _as_code(value: Any) -> int | None:
    """A handler-supplied error code, or None when it is not an integer."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None
