"""Plugin discovery, validation, merge, and lifecycle.

A plugin is a ``*.py`` file (or a package directory) in the plugins
directory exporting an ``INTENTS`` mapping and, optionally,
``METADATA``, ``WORKFLOWS``, and ``CATEGORIES``. Each plugin's
registrations are recorded as its footprint, and unloading removes
exactly that footprint.
"""
from __future__ import annotations

import importlib.util
import json
import sys
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from switchyard_core.errors import PluginValidationError, ValidationError
from switchyard_core.logging import get_logger
from switchyard_core.types import ErrorKind, Result

from switchyard_runtime.registry import (
    DEFAULT_CATEGORY,
    Category,
    IntentMetadata,
    ParameterSpec,
    Safety,
)
from switchyard_runtime.workflow import Workflow

if TYPE_CHECKING:
    from types import ModuleType

    from switchyard_runtime.registry import Registry

logger = get_logger("runtime.plugins")

_MODULE_NAMESPACE = "switchyard_plugins"


# ── Contribution schema ─────────────────────────────────────────────


def _parse_parameter(intent: str, raw: Any) -> ParameterSpec:
    if isinstance(raw, ParameterSpec):
        return raw
    if isinstance(raw, str):
        return ParameterSpec(name=raw)
    if isinstance(raw, Mapping) and isinstance(raw.get("name"), str):
        default = raw.get("default")
        return ParameterSpec(
            name=raw["name"],
            required=bool(raw.get("required", False)),
            description=str(raw.get("description", "")),
            default=None if default is None else str(default),
        )
    msg = f"Metadata for '{intent}': malformed parameter entry {raw!r}"
    raise PluginValidationError(msg)


def _parse_safety(intent: str, raw: Any) -> Safety:
    if raw is None or raw is False:
        return Safety.NONE
    if raw is True:
        return Safety.REQUIRES_CONFIRMATION
    if isinstance(raw, Safety):
        return raw
    try:
        return Safety(str(raw).lower())
    except ValueError:
        msg = f"Metadata for '{intent}': unknown safety level {raw!r}"
        raise PluginValidationError(msg) from None


def parse_metadata(
    intent: str, raw: Any, default_category: str = DEFAULT_CATEGORY
) -> IntentMetadata:
    """Turn one ``METADATA`` entry into :class:`IntentMetadata`."""
    if isinstance(raw, IntentMetadata):
        return raw
    if not isinstance(raw, Mapping):
        msg = f"Metadata for '{intent}' must be a mapping"
        raise PluginValidationError(msg)
    params_raw = raw.get("parameters", []) or []
    if not isinstance(params_raw, (list, tuple)):
        msg = f"Metadata for '{intent}': 'parameters' must be a list"
        raise PluginValidationError(msg)
    return IntentMetadata(
        category=str(raw.get("category") or default_category),
        description=str(raw.get("description", "")),
        parameters=tuple(_parse_parameter(intent, p) for p in params_raw),
        safety=_parse_safety(intent, raw.get("safety")),
    )


def _parse_category(key: str, raw: Any) -> Category:
    if isinstance(raw, Category):
        return raw
    if isinstance(raw, str):
        return Category(key=key, name=raw)
    if isinstance(raw, Mapping):
        return Category(
            key=key,
            name=str(raw.get("name") or key),
            description=str(raw.get("description", "")),
        )
    msg = f"Category '{key}' must be a mapping"
    raise PluginValidationError(msg)


def _require_mapping(module: ModuleType, attr: str) -> Mapping[str, Any]:
    value = getattr(module, attr, None)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        msg = f"{attr} must be a mapping, got {type(value).__name__}"
        raise PluginValidationError(msg)
    return value


@dataclass(frozen=True, slots=True)
class PluginContribution:
    """Validated view of a plugin module's exports."""

    intents: dict[str, Callable[..., Any]]
    metadata: dict[str, IntentMetadata] = field(default_factory=dict)
    workflows: dict[str, Workflow] = field(default_factory=dict)
    categories: dict[str, Category] = field(default_factory=dict)
    version: str | None = None
    author: str | None = None
    description: str | None = None

    @classmethod
    def from_module(
        cls, module: ModuleType, default_category: str = DEFAULT_CATEGORY
    ) -> PluginContribution:
        """Validate *module* exports eagerly.

        Raises:
            PluginValidationError: If ``INTENTS`` is missing, empty, or
                holds non-callables, or any optional export is malformed.
        """
        intents = getattr(module, "INTENTS", None)
        if intents is None:
            msg = "no INTENTS mapping exported"
            raise PluginValidationError(msg)
        if not isinstance(intents, Mapping):
            msg = f"INTENTS must be a mapping, got {type(intents).__name__}"
            raise PluginValidationError(msg)
        if not intents:
            msg = "INTENTS is empty"
            raise PluginValidationError(msg)
        bad = sorted(str(name) for name, fn in intents.items() if not callable(fn))
        if bad:
            msg = f"non-callable INTENTS entries: {', '.join(bad)}"
            raise PluginValidationError(msg)

        metadata = {
            str(name): parse_metadata(str(name), raw, default_category)
            for name, raw in _require_mapping(module, "METADATA").items()
        }
        categories = {
            str(key): _parse_category(str(key), raw)
            for key, raw in _require_mapping(module, "CATEGORIES").items()
        }
        workflows: dict[str, Workflow] = {}
        for name, raw in _require_mapping(module, "WORKFLOWS").items():
            if isinstance(raw, Workflow):
                workflows[raw.name] = raw
                continue
            if not isinstance(raw, Mapping):
                msg = f"Workflow '{name}' must be a mapping"
                raise PluginValidationError(msg)
            try:
                workflows[str(name)] = Workflow.from_mapping(str(name), raw)
            except ValidationError as exc:
                raise PluginValidationError(str(exc)) from exc

        doc = (module.__doc__ or "").strip()
        version = getattr(module, "__version__", None)
        author = getattr(module, "__author__", None)
        return cls(
            intents={str(k): v for k, v in intents.items()},
            metadata=metadata,
            workflows=workflows,
            categories=categories,
            version=str(version) if version is not None else None,
            author=str(author) if author is not None else None,
            description=doc.splitlines()[0] if doc else None,
        )


# ── Records ─────────────────────────────────────────────────────────


@dataclass(slots=True)
class Plugin:
    """A loaded plugin and the exact footprint it left in the registry."""
    name: str
    path: Path
    intents: set[str] = field(default_factory=set)
    workflows: set[str] = field(default_factory=set)
    categories: set[str] = field(default_factory=set)
    load_duration_ms: float = 0.0
    version: str | None = None
    author: str | None = None
    description: str | None = None
    loaded_at: float = field(default_factory=time.time)


@dataclass(slots=True)
class LoadReport:
    """Outcome of a batch load, with diagnostics held until the end."""
    loaded: list[str] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)
    diagnostics: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.skipped


class PluginStateStore:
    """Persisted ``enabled`` flag per plugin, kept in a small JSON file."""

    def __init__(self, path: Path | None) -> None:
        self._path = path
        self._states: dict[str, dict[str, Any]] = self._read()

    def _read(self) -> dict[str, dict[str, Any]]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Failed to read plugin state %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(self._states, indent=2, sort_keys=True), encoding="utf-8"
        )

    def is_enabled(self, name: str) -> bool:
        return bool(self._states.get(name, {}).get("enabled", True))

    def set_enabled(self, name: str, enabled: bool) -> None:
        self._states.setdefault(name, {})["enabled"] = enabled
        self._write()


# ── Loader ──────────────────────────────────────────────────────────


class PluginLoader:
    """Discovers plugin sources and merges them into a :class:`Registry`.

    One malformed plugin never stops the others from loading. Problems
    are collected as diagnostics and logged once per batch.
    """

    def __init__(
        self,
        registry: Registry,
        directory: Path,
        *,
        state: PluginStateStore | None = None,
        inactive_prefix: str = "_",
        default_category: str = DEFAULT_CATEGORY,
    ) -> None:
        self._registry = registry
        self._directory = directory
        self._state = state or PluginStateStore(None)
        self._inactive_prefix = inactive_prefix
        self._default_category = default_category
        self._plugins: dict[str, Plugin] = {}

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def plugins(self) -> dict[str, Plugin]:
        return dict(self._plugins)

    def get(self, name: str) -> Plugin | None:
        return self._plugins.get(name)

    def is_enabled(self, name: str) -> bool:
        return self._state.is_enabled(name)

    # ── Discovery ───────────────────────────────────────────────────

    def _source_name(self, path: Path) -> str:
        return path.stem if path.is_file() else path.name

    def _candidates(self) -> list[Path]:
        if not self._directory.is_dir():
            logger.debug("Plugin directory %s does not exist", self._directory)
            return []
        found: list[Path] = []
        for entry in sorted(self._directory.iterdir()):
            if entry.name.startswith(self._inactive_prefix) or entry.name == "__pycache__":
                continue
            if entry.is_file() and entry.suffix == ".py":
                found.append(entry)
            elif entry.is_dir() and (entry / "__init__.py").is_file():
                found.append(entry)
        return found

    def find_source(self, name: str) -> Path | None:
        for path in self._candidates():
            if self._source_name(path) == name:
                return path
        return None

    def available(self) -> list[str]:
        """Names of every discoverable source, enabled or not."""
        return [self._source_name(p) for p in self._candidates()]

    def discover(self) -> list[Path]:
        """Sources eligible for loading: discoverable and enabled."""
        return [
            p for p in self._candidates()
            if self._state.is_enabled(self._source_name(p))
        ]

    # ── Loading ─────────────────────────────────────────────────────

    def load_all(self, *, quiet: bool = False) -> LoadReport:
        """Load every enabled plugin not already loaded.

        The category index is rebuilt once at the end. Diagnostics are
        logged after the whole batch unless *quiet* is set.
        """
        report = LoadReport()
        with self._registry.lock:
            for path in self.discover():
                name = self._source_name(path)
                if name in self._plugins:
                    continue
                plugin = self._load_source(name, path, report)
                if plugin is not None:
                    report.loaded.append(name)
            self._registry.rebuild_category_index()

        if not quiet:
            for message in report.diagnostics:
                logger.warning(message)
            logger.info(
                "Loaded %d plugin(s), skipped %d",
                len(report.loaded),
                len(report.skipped),
            )
        return report

    def load(self, name: str, *, quiet: bool = False) -> Result:
        """Load a single enabled plugin by name."""
        if name in self._plugins:
            return Result.fail(
                f"Plugin '{name}' is already loaded", ErrorKind.DUPLICATE_NAME
            )
        path = self.find_source(name)
        if path is None:
            return Result.fail(f"No plugin source named '{name}'", ErrorKind.NOT_FOUND)
        if not self._state.is_enabled(name):
            return Result.fail(
                f"Plugin '{name}' is disabled; enable it first",
                ErrorKind.VALIDATION,
            )

        report = LoadReport()
        with self._registry.lock:
            plugin = self._load_source(name, path, report)
            self._registry.rebuild_category_index()
        if not quiet:
            for message in report.diagnostics:
                logger.warning(message)

        if plugin is None:
            return Result.fail(
                report.skipped.get(name, f"Plugin '{name}' failed to load"),
                ErrorKind.VALIDATION,
            )
        summary = (
            f"Loaded plugin '{name}': {len(plugin.intents)} intent(s), "
            f"{len(plugin.workflows)} workflow(s)"
        )
        if report.diagnostics:
            summary += f" ({len(report.diagnostics)} warning(s))"
        return Result.ok(summary)

    def _execute(self, name: str, path: Path) -> ModuleType:
        module_name = f"{_MODULE_NAMESPACE}.{name}"
        target = path / "__init__.py" if path.is_dir() else path
        spec = importlib.util.spec_from_file_location(
            module_name,
            target,
            submodule_search_locations=[str(path)] if path.is_dir() else None,
        )
        if spec is None or spec.loader is None:
            msg = f"Cannot load plugin source: {path}"
            raise ImportError(msg)
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise
        return module

    def _load_source(
        self, name: str, path: Path, report: LoadReport
    ) -> Plugin | None:
        start = time.monotonic()
        try:
            module = self._execute(name, path)
        except (Exception, SystemExit) as exc:
            reason = f"failed to execute: {type(exc).__name__}: {exc}"
            report.skipped[name] = reason
            report.diagnostics.append(f"Skipping plugin '{name}': {reason}")
            logger.debug("Plugin %s raised during load", name, exc_info=True)
            return None

        try:
            contribution = PluginContribution.from_module(
                module, self._default_category
            )
        except PluginValidationError as exc:
            sys.modules.pop(f"{_MODULE_NAMESPACE}.{name}", None)
            report.skipped[name] = str(exc)
            report.diagnostics.append(f"Skipping plugin '{name}': {exc}")
            return None

        plugin = self._merge(name, path, contribution, report.diagnostics)
        plugin.load_duration_ms = (time.monotonic() - start) * 1000.0
        self._plugins[name] = plugin
        logger.debug(
            "Plugin %s loaded in %.1fms", name, plugin.load_duration_ms
        )
        return plugin

    def _merge(
        self,
        name: str,
        path: Path,
        contribution: PluginContribution,
        diagnostics: list[str],
    ) -> Plugin:
        registry = self._registry
        plugin = Plugin(
            name=name,
            path=path,
            version=contribution.version,
            author=contribution.author,
            description=contribution.description,
        )

        # Categories first so metadata can be checked against them.
        for key, category in contribution.categories.items():
            if registry.define_category(category):
                plugin.categories.add(key)
            else:
                diagnostics.append(
                    f"Plugin '{name}': category '{key}' already defined, keeping existing"
                )

        accepted_metadata: dict[str, IntentMetadata] = {}
        for intent_name, meta in contribution.metadata.items():
            if intent_name in registry:
                diagnostics.append(
                    f"Plugin '{name}': metadata for '{intent_name}' collides "
                    "with a registered intent, skipping"
                )
                continue
            if intent_name not in contribution.intents:
                diagnostics.append(
                    f"Plugin '{name}': metadata for unknown intent '{intent_name}' ignored"
                )
                continue
            if meta.category not in registry.categories:
                diagnostics.append(
                    f"Plugin '{name}': intent '{intent_name}' declares unknown "
                    f"category '{meta.category}'"
                )
            accepted_metadata[intent_name] = meta

        for intent_name, handler in contribution.intents.items():
            meta = accepted_metadata.get(
                intent_name, IntentMetadata(category=self._default_category)
            )
            result = registry.register(intent_name, handler, meta, source=name)
            if result.success:
                plugin.intents.add(intent_name)
            else:
                diagnostics.append(f"Plugin '{name}': {result.error}, skipping")

        for wf_name, workflow in contribution.workflows.items():
            result = registry.add_workflow(workflow)
            if result.success:
                plugin.workflows.add(wf_name)
            else:
                diagnostics.append(f"Plugin '{name}': {result.error}, skipping")

        return plugin

    # ── Unloading ───────────────────────────────────────────────────

    def unload(self, name: str) -> Result:
        """Remove exactly the footprint recorded when *name* was loaded."""
        plugin = self._plugins.pop(name, None)
        if plugin is None:
            return Result.fail(f"Plugin '{name}' is not loaded", ErrorKind.NOT_FOUND)

        registry = self._registry
        with registry.lock:
            for intent_name in plugin.intents:
                registry.unregister(intent_name)
            for wf_name in plugin.workflows:
                registry.remove_workflow(wf_name)
            kept: list[str] = []
            for key in plugin.categories:
                if registry.category_in_use(key):
                    kept.append(key)
                    continue
                registry.remove_category(key)
            registry.rebuild_category_index()

        sys.modules.pop(f"{_MODULE_NAMESPACE}.{name}", None)
        if kept:
            logger.info(
                "Plugin %s unloaded; categories still in use kept: %s",
                name,
                ", ".join(sorted(kept)),
            )
        else:
            logger.info("Plugin %s unloaded", name)
        return Result.ok(
            f"Unloaded plugin '{name}': {len(plugin.intents)} intent(s), "
            f"{len(plugin.workflows)} workflow(s)"
        )

    def reload(self, name: str) -> Result:
        if name in self._plugins:
            self.unload(name)
        return self.load(name)

    # ── Enable / disable ────────────────────────────────────────────

    def enable(self, name: str) -> Result:
        if self.find_source(name) is None:
            return Result.fail(f"No plugin source named '{name}'", ErrorKind.NOT_FOUND)
        if self._state.is_enabled(name):
            return Result.fail(
                f"Plugin '{name}' is already enabled", ErrorKind.VALIDATION
            )
        self._state.set_enabled(name, True)
        logger.info("Enabled plugin %s", name)
        return self.load(name)

    def disable(self, name: str) -> Result:
        if self.find_source(name) is None:
            return Result.fail(f"No plugin source named '{name}'", ErrorKind.NOT_FOUND)
        if not self._state.is_enabled(name):
            return Result.fail(
                f"Plugin '{name}' is already disabled", ErrorKind.VALIDATION
            )
        self._state.set_enabled(name, False)
        logger.info("Disabled plugin %s", name)
        if name in self._plugins:
            return self.unload(name)
        return Result.ok(f"Disabled plugin '{name}'")
