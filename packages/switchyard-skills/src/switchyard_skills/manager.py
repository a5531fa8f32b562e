"""Registry bridge: compiles skill definitions into registry intents."""
from __future__ import annotations

from typing import TYPE_CHECKING

from switchyard_core.errors import SkillValidationError
from switchyard_core.logging import get_logger
from switchyard_core.types import ErrorKind, Result

from switchyard_skills.commands import CommandRunner, ShellCommandRunner
from switchyard_skills.compiler import CompiledSkill, SkillHandler, compile_skill
from switchyard_skills.parser import load_skills_document, parse_skills
from switchyard_skills.types import SkillLoadReport
from switchyard_skills.validator import SkillValidator

if TYPE_CHECKING:
    from pathlib import Path

    from switchyard_runtime.registry import Registry

    from switchyard_skills.types import SkillDefinition

logger = get_logger("skills.manager")

WRAPPER_PREFIX = "skill:"


class SkillManager:
    """Registers skills as intents and tracks what each one added.

    Every name a skill puts into the registry (primary name, the
    ``skill:<name>`` wrapper, trigger aliases) is recorded so that
    :meth:`unregister` removes exactly those entries.
    """

    def __init__(
        self,
        registry: Registry,
        runner: CommandRunner | None = None,
        *,
        default_category: str = "skills",
    ) -> None:
        self._registry = registry
        self._runner = runner or ShellCommandRunner()
        self._default_category = default_category
        self._validator = SkillValidator()
        self._skills: dict[str, CompiledSkill] = {}
        self._footprints: dict[str, list[str]] = {}

    @property
    def skills(self) -> dict[str, CompiledSkill]:
        return dict(self._skills)

    def get(self, name: str) -> CompiledSkill | None:
        return self._skills.get(name)

    def footprint(self, name: str) -> list[str]:
        return list(self._footprints.get(name, ()))

    def register(
        self,
        definition: SkillDefinition,
        *,
        rebuild: bool = True,
        diagnostics: list[str] | None = None,
    ) -> Result:
        """Compile *definition* and register it under all its names.

        The primary name must be free. Wrapper and trigger names that
        collide with existing intents are skipped with a warning.
        Warnings go to *diagnostics* when given, otherwise to the log.
        """
        errors = self._validator.validate(definition)
        if errors:
            return Result.fail(
                f"Skill '{definition.name}' is invalid: {'; '.join(errors)}",
                ErrorKind.VALIDATION,
            )
        for warning in self._validator.warnings(definition):
            _note(diagnostics, f"Skill '{definition.name}': {warning}")

        if definition.name in self._skills:
            return Result.fail(
                f"Skill '{definition.name}' is already registered",
                ErrorKind.DUPLICATE_NAME,
            )

        try:
            compiled = compile_skill(definition, self._default_category)
        except SkillValidationError as exc:
            return Result.from_error(exc)

        handler = SkillHandler(compiled, self._registry, self._runner)
        metadata = compiled.metadata
        source = f"{WRAPPER_PREFIX}{compiled.name}"

        with self._registry.lock:
            primary = self._registry.register(
                compiled.name, handler, metadata, source=source
            )
            if not primary.success:
                return primary

            added = [compiled.name]
            aliases = [f"{WRAPPER_PREFIX}{compiled.name}", *compiled.triggers]
            for alias in aliases:
                result = self._registry.register(
                    alias, handler, metadata, source=source
                )
                if result.success:
                    added.append(alias)
                else:
                    _note(
                        diagnostics,
                        f"Skill '{compiled.name}': alias '{alias}' skipped: "
                        f"{result.error}",
                    )

            self._skills[compiled.name] = compiled
            self._footprints[compiled.name] = added
            if rebuild:
                self._registry.rebuild_category_index()

        logger.info("Registered skill %s (%d names)", compiled.name, len(added))
        return Result.ok(f"Registered skill '{compiled.name}'")

    def register_all(
        self, definitions: list[SkillDefinition], *, quiet: bool = False
    ) -> SkillLoadReport:
        """Register a batch, rebuilding the index once.

        Warnings are collected in the report and logged together at the
        end unless *quiet* is set.
        """
        report = SkillLoadReport()
        with self._registry.lock:
            for definition in definitions:
                result = self.register(
                    definition, rebuild=False, diagnostics=report.diagnostics
                )
                if result.success:
                    report.registered.append(definition.name)
                else:
                    report.rejected[definition.name] = result.error or ""
            self._registry.rebuild_category_index()
        if not quiet:
            for line in report.diagnostics:
                logger.warning(line)
        return report

    def unregister(self, name: str) -> Result:
        """Remove the skill and every name it registered."""
        if name not in self._skills:
            return Result.fail(f"Unknown skill '{name}'", ErrorKind.NOT_FOUND)
        with self._registry.lock:
            for registered in self._footprints.pop(name, []):
                self._registry.unregister(registered)
            del self._skills[name]
            self._registry.rebuild_category_index()
        logger.info("Unregistered skill %s", name)
        return Result.ok(f"Unregistered skill '{name}'")

    def unregister_all(self) -> None:
        for name in list(self._skills):
            self.unregister(name)

    def load_file(self, path: Path, *, quiet: bool = False) -> SkillLoadReport:
        """Parse a skills document and register every valid skill.

        Problems with individual skills never abort the batch; they are
        collected in the report and logged together at the end.
        """
        try:
            document = load_skills_document(path)
        except (SkillValidationError, OSError) as exc:
            report = SkillLoadReport(diagnostics=[str(exc)])
            if not quiet:
                logger.warning("Could not load skills from %s: %s", path, exc)
            return report

        definitions, rejected = parse_skills(document)
        report = self.register_all(definitions, quiet=True)
        report.rejected.update(rejected)
        report.diagnostics.extend(
            f"{name}: {reason}" for name, reason in sorted(report.rejected.items())
        )

        if not quiet:
            for line in report.diagnostics:
                logger.warning(line)
            logger.info(
                "Loaded %d skill(s) from %s", len(report.registered), path
            )
        return report


def _note(diagnostics: list[str] | None, message: str) -> None:
    if diagnostics is None:
        logger.warning(message)
    else:
        diagnostics.append(message)
