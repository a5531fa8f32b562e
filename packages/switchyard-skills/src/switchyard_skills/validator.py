"""Skill validation: structural checks beyond what the parser enforces."""
from __future__ import annotations

import re
from typing import TYPE_CHECKING

from switchyard_skills.types import CommandStep, IntentStep

if TYPE_CHECKING:
    from switchyard_skills.types import SkillDefinition

_NAME_PATTERN = re.compile(r"^[^\s{}]+$")
_NAME_MAX_LENGTH = 64
_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_-]*)\}")


def placeholders(template: str) -> set[str]:
    """Names of every ``{name}`` placeholder in *template*."""
    return set(_PLACEHOLDER.findall(template))


class SkillValidator:
    """Checks a SkillDefinition for errors and suspicious templates."""

    def validate(self, skill: SkillDefinition) -> list[str]:
        """Return a list of validation error messages.

        An empty list means the skill is valid.
        """
        errors: list[str] = []

        errors.extend(self._check_name("Skill name", skill.name))
        for trigger in skill.triggers:
            errors.extend(self._check_name("Trigger", trigger))
        if skill.name in skill.triggers:
            errors.append(f"Trigger '{skill.name}' repeats the skill name.")

        seen: set[str] = set()
        for param in skill.parameters:
            if param.name in seen:
                errors.append(f"Duplicate parameter name: '{param.name}'.")
            seen.add(param.name)

        if not skill.steps:
            errors.append("Skill has no steps.")

        return errors

    def warnings(self, skill: SkillDefinition) -> list[str]:
        """Non-fatal findings: placeholders that no parameter will fill."""
        declared = {p.name for p in skill.parameters}
        found: list[str] = []
        for idx, step in enumerate(skill.steps, start=1):
            if isinstance(step, IntentStep):
                templates = list(step.params.values())
            elif isinstance(step, CommandStep):
                templates = [step.template]
            else:
                continue
            unknown: set[str] = set()
            for template in templates:
                unknown |= placeholders(template) - declared
            for name in sorted(unknown):
                found.append(
                    f"Step {idx} ({step.describe()}) references undeclared "
                    f"parameter '{{{name}}}'."
                )
        return found

    @staticmethod
    def _check_name(label: str, name: str) -> list[str]:
        if not name:
            return [f"{label} is required."]
        errors: list[str] = []
        if len(name) > _NAME_MAX_LENGTH:
            errors.append(
                f"{label} exceeds {_NAME_MAX_LENGTH} characters: "
                f"'{name}' ({len(name)} chars)."
            )
        if not _NAME_PATTERN.match(name):
            errors.append(
                f"{label} must not contain whitespace or braces: '{name}'."
            )
        return errors
