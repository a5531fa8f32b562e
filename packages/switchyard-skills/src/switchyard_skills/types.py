"""Skill types for the switchyard-skills package."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from switchyard_runtime.registry import ParameterSpec


@dataclass(frozen=True, slots=True)
class IntentStep:
    """Call a registered intent with templated parameters."""

    intent: str
    params: Mapping[str, str] = field(default_factory=dict)

    def describe(self) -> str:
        return self.intent

    def to_mapping(self) -> dict[str, Any]:
        data: dict[str, Any] = {"intent": self.intent}
        if self.params:
            data["params"] = dict(self.params)
        return data


@dataclass(frozen=True, slots=True)
class CommandStep:
    """Run a shell command built from a template."""

    template: str

    def describe(self) -> str:
        return f"command: {self.template}"

    def to_mapping(self) -> dict[str, Any]:
        return {"command": self.template}


Step = IntentStep | CommandStep


@dataclass(frozen=True, slots=True)
class SkillDefinition:
    """A user-authored skill as written in the skills document.

    Holds the declarative recipe only; see
    :class:`switchyard_skills.compiler.CompiledSkill` for the bound,
    executable form.
    """

    name: str
    description: str = ""
    category: str | None = None
    parameters: tuple[ParameterSpec, ...] = ()
    steps: tuple[Step, ...] = ()
    triggers: tuple[str, ...] = ()
    confirm: bool = False

    def to_mapping(self) -> dict[str, Any]:
        """Serialisable form, matching the skills document layout."""
        data: dict[str, Any] = {"description": self.description}
        if self.category:
            data["category"] = self.category
        if self.confirm:
            data["confirm"] = True
        if self.parameters:
            params: list[dict[str, Any]] = []
            for p in self.parameters:
                entry: dict[str, Any] = {"name": p.name}
                if p.required:
                    entry["required"] = True
                if p.description:
                    entry["description"] = p.description
                if p.default is not None:
                    entry["default"] = p.default
                params.append(entry)
            data["parameters"] = params
        if self.triggers:
            data["triggers"] = list(self.triggers)
        data["steps"] = [step.to_mapping() for step in self.steps]
        return data


@dataclass(slots=True)
class SkillLoadReport:
    """Which skills were registered from a document, and what went wrong."""

    registered: list[str] = field(default_factory=list)
    rejected: dict[str, str] = field(default_factory=dict)
    diagnostics: list[str] = field(default_factory=list)
