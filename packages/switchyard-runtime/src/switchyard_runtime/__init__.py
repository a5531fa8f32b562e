"""Switchyard Runtime: intent registry, plugins, workflows, and builder."""
from __future__ import annotations

from switchyard_runtime.builder import RuntimeBuilder
from switchyard_runtime.context import RuntimeContext
from switchyard_runtime.plugins import (
    LoadReport,
    Plugin,
    PluginContribution,
    PluginLoader,
    PluginStateStore,
    parse_metadata,
)
from switchyard_runtime.registry import (
    DEFAULT_CATEGORY,
    Category,
    CategoryIndex,
    Intent,
    IntentMetadata,
    ParameterSpec,
    Registry,
    Safety,
)
from switchyard_runtime.workflow import (
    Workflow,
    WorkflowOrchestrator,
    WorkflowStep,
    build_step_payload,
)

__all__ = [
    "DEFAULT_CATEGORY",
    "Category",
    "CategoryIndex",
    "Intent",
    "IntentMetadata",
    "LoadReport",
    "ParameterSpec",
    "Plugin",
    "PluginContribution",
    "PluginLoader",
    "PluginStateStore",
    "Registry",
    "RuntimeBuilder",
    "RuntimeContext",
    "Safety",
    "Workflow",
    "WorkflowOrchestrator",
    "WorkflowStep",
    "build_step_payload",
]
