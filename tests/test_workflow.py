"""Tests for workflow definitions and the orchestrator."""
from __future__ import annotations

import pytest
from switchyard_core.errors import ValidationError
from switchyard_core.types import ErrorKind
from switchyard_runtime.registry import IntentMetadata, Registry, Safety
from switchyard_runtime.workflow import (
    Workflow,
    WorkflowOrchestrator,
    WorkflowStep,
    build_step_payload,
)


def _recorder(registry: Registry, name: str, calls: list[dict], output: str = ""):
    def handler(payload):
        calls.append(dict(payload))
        return output or name

    registry.register(name, handler)


class TestWorkflowDefinition:
    def test_from_mapping(self):
        wf = Workflow.from_mapping(
            "research",
            {
                "display_name": "Research",
                "steps": [
                    {"intent": "search", "params": {"query": "topic"}},
                    {"intent": "summarize"},
                ],
            },
        )
        assert wf.title == "Research"
        assert [s.intent for s in wf.steps] == ["search", "summarize"]
        assert wf.steps[0].param_map == {"query": "topic"}

    def test_title_defaults_to_name(self):
        wf = Workflow("plain", (WorkflowStep("a"),))
        assert wf.title == "plain"

    def test_empty_steps_rejected(self):
        with pytest.raises(ValidationError, match="non-empty"):
            Workflow.from_mapping("empty", {"steps": []})

    def test_step_without_intent_rejected(self):
        with pytest.raises(ValidationError, match="step 1"):
            Workflow.from_mapping("bad", {"steps": [{"params": {}}]})

    def test_non_callable_transform_rejected(self):
        with pytest.raises(ValidationError, match="transform"):
            Workflow.from_mapping(
                "bad", {"steps": [{"intent": "a", "transform": "upper"}]}
            )


class TestBuildStepPayload:
    def test_maps_present_sources(self):
        step = WorkflowStep("search", {"query": "topic", "limit": "count"})
        payload = build_step_payload(step, {"topic": "rust"})
        assert payload == {"intent": "search", "query": "rust"}

    def test_transform_applied(self):
        step = WorkflowStep("search", {"query": "topic"}, transform=str.upper)
        payload = build_step_payload(step, {"topic": "rust"})
        assert payload["query"] == "RUST"


class TestOrchestrator:
    async def test_param_mapping_reaches_intent(self, registry):
        calls: list[dict] = []
        _recorder(registry, "search", calls)
        registry.add_workflow(
            Workflow("find", (WorkflowStep("search", {"query": "topic"}),))
        )

        result = await WorkflowOrchestrator(registry).invoke("find", {"topic": "rust"})

        assert result.success
        assert calls[0]["query"] == "rust"
        assert calls[0]["intent"] == "search"

    async def test_steps_run_in_order(self, registry):
        calls: list[dict] = []
        for name in ("one", "two", "three"):
            _recorder(registry, name, calls)
        registry.add_workflow(
            Workflow("seq", tuple(WorkflowStep(n) for n in ("one", "two", "three")))
        )

        result = await WorkflowOrchestrator(registry).invoke("seq")

        assert [c["intent"] for c in calls] == ["one", "two", "three"]
        assert result.output == "one\ntwo\nthree"
        assert len(result.steps) == 3
        assert all(step.success for step in result.steps)

    async def test_stops_at_first_failure(self, registry):
        calls: list[dict] = []
        _recorder(registry, "one", calls)
        registry.register("two", lambda: {"success": False, "error": "disk full"})
        _recorder(registry, "three", calls)
        registry.add_workflow(
            Workflow("seq", tuple(WorkflowStep(n) for n in ("one", "two", "three")))
        )

        result = await WorkflowOrchestrator(registry).invoke("seq")

        assert not result.success
        assert result.kind is ErrorKind.STEP_FAILED
        assert "step 2 (two)" in result.error
        assert "disk full" in result.error
        assert [c["intent"] for c in calls] == ["one"]
        assert len(result.steps) == 2
        assert result.steps[0].success and not result.steps[1].success

    async def test_missing_intent_fails_step(self, registry):
        registry.add_workflow(Workflow("ghost", (WorkflowStep("nowhere"),)))
        result = await WorkflowOrchestrator(registry).invoke("ghost")
        assert result.kind is ErrorKind.STEP_FAILED
        assert result.steps[0].kind is ErrorKind.NOT_FOUND

    async def test_transform_error_fails_step(self, registry):
        calls: list[dict] = []
        _recorder(registry, "use", calls)

        def broken(value):
            raise KeyError(value)

        registry.add_workflow(
            Workflow("wf", (WorkflowStep("use", {"x": "y"}, transform=broken),))
        )
        result = await WorkflowOrchestrator(registry).invoke("wf", {"y": 1})

        assert result.kind is ErrorKind.STEP_FAILED
        assert "Transform failed" in result.error
        assert calls == []

    async def test_steps_are_auto_confirmed(self):
        registry = Registry(confirm=lambda intent, payload: False)
        registry.register(
            "wipe",
            lambda: "wiped",
            IntentMetadata(safety=Safety.REQUIRES_CONFIRMATION),
        )
        registry.add_workflow(Workflow("clean", (WorkflowStep("wipe"),)))

        result = await WorkflowOrchestrator(registry).invoke("clean")
        assert result.success
        assert result.output == "wiped"

    async def test_unknown_workflow(self, registry):
        result = await WorkflowOrchestrator(registry).invoke("nope")
        assert result.kind is ErrorKind.NOT_FOUND

    def test_duplicate_workflow_rejected(self, registry):
        wf = Workflow("w", (WorkflowStep("a"),))
        assert registry.add_workflow(wf).success
        assert registry.add_workflow(wf).kind is ErrorKind.DUPLICATE_NAME
