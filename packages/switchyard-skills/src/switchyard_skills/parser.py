"""Skills document parser: YAML ``skills:`` mapping into SkillDefinitions."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from switchyard_core.errors import SkillValidationError
from switchyard_runtime.registry import ParameterSpec

from switchyard_skills.types import CommandStep, IntentStep, SkillDefinition, Step


def load_skills_document(path: Path) -> dict[str, Any]:
    """Read and YAML-parse a skills document.

    A missing file is an empty document.

    Raises:
        SkillValidationError: If the file is not UTF-8, the YAML is
            malformed, or the top level is not a mapping with a ``skills``
            mapping.
    """
    if not path.exists():
        return {"skills": {}}
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        msg = f"Skills document {path} is not valid UTF-8: {exc}"
        raise SkillValidationError(msg) from exc
    return parse_skills_text(text, source=str(path))


def parse_skills_text(text: str, source: str = "<string>") -> dict[str, Any]:
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in skills document {source}: {exc}"
        raise SkillValidationError(msg) from exc

    if document is None:
        return {"skills": {}}
    if not isinstance(document, dict):
        msg = f"Skills document must be a mapping, got {type(document).__name__}: {source}"
        raise SkillValidationError(msg)
    skills = document.get("skills", {})
    if skills is None:
        skills = {}
    if not isinstance(skills, dict):
        msg = f"'skills' must be a mapping of skill name to definition: {source}"
        raise SkillValidationError(msg)
    return {**document, "skills": skills}


def parse_skills(
    document: dict[str, Any],
) -> tuple[list[SkillDefinition], dict[str, str]]:
    """Parse every entry of ``document["skills"]`` independently.

    Returns:
        The successfully parsed definitions and a mapping of rejected
        skill names to the reason each was rejected.
    """
    definitions: list[SkillDefinition] = []
    rejected: dict[str, str] = {}
    for name, raw in document.get("skills", {}).items():
        try:
            definitions.append(parse_skill(str(name), raw))
        except SkillValidationError as exc:
            rejected[str(name)] = str(exc)
    return definitions, rejected


def parse_skill(name: str, raw: Any) -> SkillDefinition:
    """Parse one skill entry.

    Raises:
        SkillValidationError: If the entry is malformed or has no steps.
    """
    if not isinstance(raw, dict):
        msg = f"Skill '{name}' must be a mapping"
        raise SkillValidationError(msg)

    steps_raw = raw.get("steps")
    if not isinstance(steps_raw, list) or not steps_raw:
        msg = f"Skill '{name}' has no steps"
        raise SkillValidationError(msg)

    return SkillDefinition(
        name=name,
        description=str(raw.get("description", "")),
        category=str(raw["category"]) if raw.get("category") else None,
        parameters=tuple(
            _parse_parameter(name, p) for p in _as_list(raw.get("parameters"))
        ),
        steps=tuple(_parse_step(name, idx, s) for idx, s in enumerate(steps_raw, start=1)),
        triggers=tuple(str(t) for t in _as_list(raw.get("triggers"))),
        confirm=bool(raw.get("confirm", False)),
    )


def _parse_parameter(skill: str, raw: Any) -> ParameterSpec:
    if isinstance(raw, str):
        return ParameterSpec(name=raw)
    if not isinstance(raw, dict) or not raw.get("name"):
        msg = f"Skill '{skill}': each parameter needs a 'name'"
        raise SkillValidationError(msg)
    default = raw.get("default")
    return ParameterSpec(
        name=str(raw["name"]),
        required=bool(raw.get("required", False)),
        description=str(raw.get("description", "")),
        default=None if default is None else str(default),
    )


def _parse_step(skill: str, idx: int, raw: Any) -> Step:
    if not isinstance(raw, dict):
        msg = f"Skill '{skill}' step {idx} must be a mapping"
        raise SkillValidationError(msg)
    has_intent = "intent" in raw
    has_command = "command" in raw
    if has_intent == has_command:
        msg = f"Skill '{skill}' step {idx} needs exactly one of 'intent' or 'command'"
        raise SkillValidationError(msg)

    if has_command:
        command = raw["command"]
        if not isinstance(command, str) or not command.strip():
            msg = f"Skill '{skill}' step {idx}: 'command' must be a non-empty string"
            raise SkillValidationError(msg)
        return CommandStep(template=command)

    intent = raw["intent"]
    if not isinstance(intent, str) or not intent:
        msg = f"Skill '{skill}' step {idx}: 'intent' must be a non-empty string"
        raise SkillValidationError(msg)
    params = raw.get("params") or {}
    if not isinstance(params, dict):
        msg = f"Skill '{skill}' step {idx}: 'params' must be a mapping"
        raise SkillValidationError(msg)
    return IntentStep(
        intent=intent,
        params={str(k): "" if v is None else str(v) for k, v in params.items()},
    )


def _as_list(value: Any) -> list[Any]:
    """Coerce a value to a list, or return empty list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def dump_skills(definitions: list[SkillDefinition]) -> str:
    """Render definitions as a skills document."""
    document = {"skills": {d.name: d.to_mapping() for d in definitions}}
    return yaml.safe_dump(document, sort_keys=False, allow_unicode=True)


def save_skills(path: Path, definitions: list[SkillDefinition]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_skills(definitions), encoding="utf-8")
