from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class ConnectionState(enum.Enum):
    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    INITIALIZING = "initializing"
    READY = "ready"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True, slots=True)
class ToolInfo:
    """One entry of a server's ``tools/list`` catalog."""
    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: dict[str, Any]) -> ToolInfo:
        schema = raw.get("inputSchema")
        return cls(
            name=str(raw["name"]),
            description=str(raw.get("description") or ""),
            input_schema=schema if isinstance(schema, dict) else {},
        )

    @property
    def required(self) -> tuple[str, ...]:
        required = self.input_schema.get("required", [])
        return tuple(str(r) for r in required) if isinstance(required, list) else ()

    @property
    def properties(self) -> dict[str, Any]:
        props = self.input_schema.get("properties", {})
        return props if isinstance(props, dict) else {}
