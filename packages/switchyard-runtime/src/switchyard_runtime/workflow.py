from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from switchyard_core.errors import ValidationError
from switchyard_core.logging import get_logger
from switchyard_core.types import ErrorKind, Result

if TYPE_CHECKING:
    from switchyard_runtime.registry import Registry

logger = get_logger("runtime.workflow")

Transform = Callable[[Any], Any]


@dataclass(frozen=True, slots=True)
class WorkflowStep:
    """One intent call; ``param_map`` maps target payload key -> source param."""
    intent: str
    param_map: Mapping[str, str] = field(default_factory=dict)
    transform: Transform | None = None


@dataclass(frozen=True, slots=True)
class Workflow:
    name: str
    steps: tuple[WorkflowStep, ...]
    display_name: str = ""
    description: str = ""

    @property
    def title(self) -> str:
        return self.display_name or self.name

    @classmethod
    def from_mapping(cls, name: str, raw: Mapping[str, Any]) -> Workflow:
        """Build a workflow from a plugin's plain-dict definition.

        Raises:
            ValidationError: If the definition has no usable steps.
        """
        steps_raw = raw.get("steps")
        if not isinstance(steps_raw, (list, tuple)) or not steps_raw:
            msg = f"Workflow '{name}' must declare a non-empty 'steps' list"
            raise ValidationError(msg)

        steps: list[WorkflowStep] = []
        for idx, step in enumerate(steps_raw, start=1):
            if isinstance(step, WorkflowStep):
                steps.append(step)
                continue
            if not isinstance(step, Mapping) or not isinstance(step.get("intent"), str):
                msg = f"Workflow '{name}' step {idx} must name an 'intent'"
                raise ValidationError(msg)
            params = step.get("params", {}) or {}
            if not isinstance(params, Mapping):
                msg = f"Workflow '{name}' step {idx}: 'params' must be a mapping"
                raise ValidationError(msg)
            transform = step.get("transform")
            if transform is not None and not callable(transform):
                msg = f"Workflow '{name}' step {idx}: 'transform' must be callable"
                raise ValidationError(msg)
            steps.append(WorkflowStep(
                intent=step["intent"],
                param_map={str(k): str(v) for k, v in params.items()},
                transform=transform,
            ))

        return cls(
            name=name,
            steps=tuple(steps),
            display_name=str(raw.get("display_name", "")),
            description=str(raw.get("description", "")),
        )


def build_step_payload(
    step: WorkflowStep, params: Mapping[str, Any]
) -> dict[str, Any]:
    """Seed a payload with the step's intent and its mapped parameters.

    Sources missing from *params* are left out entirely.
    """
    payload: dict[str, Any] = {"intent": step.intent}
    for target, source in step.param_map.items():
        if source not in params:
            continue
        value = params[source]
        if step.transform is not None:
            value = step.transform(value)
        payload[target] = value
    return payload


class WorkflowOrchestrator:
    """Runs a named workflow's steps in order against a registry.

    Steps are invoked with auto-confirm. The first unsuccessful step
    ends the run; later steps never execute.
    """

    def __init__(self, registry: Registry) -> None:
        self._registry = registry

    async def invoke(
        self,
        name: str,
        params: Mapping[str, Any] | None = None,
    ) -> Result:
        workflow = self._registry.get_workflow(name)
        if workflow is None:
            return Result.fail(f"Unknown workflow '{name}'", ErrorKind.NOT_FOUND)

        params = params or {}
        logger.info("Running workflow %s (%d steps)", name, len(workflow.steps))
        results: list[Result] = []

        for idx, step in enumerate(workflow.steps, start=1):
            try:
                payload = build_step_payload(step, params)
            except Exception as exc:
                logger.exception(
                    "Workflow %s step %d transform failed", name, idx
                )
                result = Result.fail(
                    f"Transform failed: {type(exc).__name__}: {exc}",
                    ErrorKind.EXECUTION_ERROR,
                )
            else:
                result = await self._registry.invoke(
                    step.intent, payload, auto_confirm=True
                )
            results.append(result)

            if not result.success:
                logger.error(
                    "Workflow %s step %d (%s) failed: %s",
                    name,
                    idx,
                    step.intent,
                    result.error,
                )
                return Result.fail(
                    f"Workflow '{name}' failed at step {idx} "
                    f"({step.intent}): {result.error}",
                    ErrorKind.STEP_FAILED,
                    output=_join_outputs(results),
                    steps=tuple(results),
                )

        return Result.ok(_join_outputs(results), steps=tuple(results))


def _join_outputs(results: list[Result]) -> str:
    return "\n".join(r.output for r in results if r.output)
