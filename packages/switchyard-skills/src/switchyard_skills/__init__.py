"""Switchyard Skills: declarative multi-step recipes compiled into intents."""
from __future__ import annotations

from switchyard_skills.commands import CommandOutput, CommandRunner, ShellCommandRunner
from switchyard_skills.compiler import (
    CompiledSkill,
    SkillHandler,
    bind_arguments,
    compile_skill,
    run_skill,
    substitute,
)
from switchyard_skills.manager import SkillManager
from switchyard_skills.parser import (
    dump_skills,
    load_skills_document,
    parse_skill,
    parse_skills,
    parse_skills_text,
    save_skills,
)
from switchyard_skills.types import (
    CommandStep,
    IntentStep,
    SkillDefinition,
    SkillLoadReport,
    Step,
)
from switchyard_skills.validator import SkillValidator, placeholders

__all__ = [
    "CommandOutput",
    "CommandRunner",
    "CommandStep",
    "CompiledSkill",
    "IntentStep",
    "ShellCommandRunner",
    "SkillDefinition",
    "SkillHandler",
    "SkillLoadReport",
    "SkillManager",
    "SkillValidator",
    "Step",
    "bind_arguments",
    "compile_skill",
    "dump_skills",
    "load_skills_document",
    "parse_skill",
    "parse_skills",
    "parse_skills_text",
    "placeholders",
    "run_skill",
    "save_skills",
    "substitute",
]
