"""Intent registry, category index, and workflow store.

A :class:`Registry` is the explicit context object that plugins, skills,
and the workflow orchestrator share. Construct one per application (or
per test) rather than relying on module-level state.
"""
from __future__ import annotations

import enum
import inspect
import threading
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from switchyard_core.logging import get_logger
from switchyard_core.types import ErrorKind, Result

if TYPE_CHECKING:
    from switchyard_runtime.workflow import Workflow

logger = get_logger("runtime.registry")

Handler = Callable[..., Any]
ConfirmCallback = Callable[["Intent", dict[str, Any]], "bool | Awaitable[bool]"]

DEFAULT_CATEGORY = "general"


class Safety(enum.Enum):
    NONE = "none"
    REQUIRES_CONFIRMATION = "requires_confirmation"


@dataclass(frozen=True, slots=True)
class ParameterSpec:
    name: str
    required: bool = False
    description: str = ""
    default: str | None = None


@dataclass(frozen=True, slots=True)
class IntentMetadata:
    """Descriptive data attached to a registered intent."""
    category: str = DEFAULT_CATEGORY
    description: str = ""
    parameters: tuple[ParameterSpec, ...] = ()
    safety: Safety = Safety.NONE


@dataclass(frozen=True, slots=True)
class Intent:
    name: str
    handler: Handler
    metadata: IntentMetadata
    source: str | None = None
    takes_payload: bool = True


@dataclass(frozen=True, slots=True)
class Category:
    key: str
    name: str
    description: str = ""
    implicit: bool = False


def _accepts_payload(handler: Handler) -> bool:
    """Whether *handler* takes the payload argument or no arguments at all."""
    try:
        sig = inspect.signature(handler)
    except (TypeError, ValueError):
        return True
    for param in sig.parameters.values():
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
            inspect.Parameter.VAR_POSITIONAL,
        ):
            return True
    return False


class CategoryIndex:
    """Categories plus a derived, sorted member list per category.

    Membership is only ever recomputed wholesale by :meth:`rebuild`;
    callers batch their registry mutations and rebuild once.
    """

    def __init__(self) -> None:
        self._categories: dict[str, Category] = {}
        self._members: dict[str, tuple[str, ...]] = {}

    def define(self, category: Category) -> bool:
        """Add *category*; returns False if the key is already taken."""
        existing = self._categories.get(category.key)
        if existing is not None and not existing.implicit:
            return False
        self._categories[category.key] = category
        self._members.setdefault(category.key, ())
        return True

    def remove(self, key: str) -> None:
        self._categories.pop(key, None)
        self._members.pop(key, None)

    def get(self, key: str) -> Category | None:
        return self._categories.get(key)

    def members(self, key: str) -> tuple[str, ...]:
        return self._members.get(key, ())

    def keys(self) -> list[str]:
        return sorted(self._categories)

    def __contains__(self, key: object) -> bool:
        return key in self._categories

    def __len__(self) -> int:
        return len(self._categories)

    def snapshot(self) -> dict[str, tuple[str, ...]]:
        return {key: self._members.get(key, ()) for key in sorted(self._categories)}

    def rebuild(self, intents: Mapping[str, Intent]) -> None:
        grouped: dict[str, list[str]] = {}
        for name, intent in intents.items():
            grouped.setdefault(intent.metadata.category, []).append(name)

        # Drop implicit categories nothing references any more.
        for key in [
            k for k, c in self._categories.items()
            if c.implicit and k not in grouped
        ]:
            del self._categories[key]

        for key in grouped:
            if key not in self._categories:
                self._categories[key] = Category(
                    key=key,
                    name=key.replace("_", " ").title(),
                    implicit=True,
                )

        self._members = {
            key: tuple(sorted(grouped.get(key, ())))
            for key in self._categories
        }


@dataclass(slots=True)
class Registry:
    """Process-wide store of intents, categories, and workflows.

    Mutations are expected on a single logical thread of control.
    Hosts that share one registry across threads hold :attr:`lock`
    around each mutate-then-rebuild sequence.
    """

    intents: dict[str, Intent] = field(default_factory=dict)
    categories: CategoryIndex = field(default_factory=CategoryIndex)
    workflows: dict[str, Workflow] = field(default_factory=dict)
    confirm: ConfirmCallback | None = None
    lock: threading.RLock = field(default_factory=threading.RLock)

    # ── Intents ─────────────────────────────────────────────────────

    def register(
        self,
        name: str,
        handler: Handler,
        metadata: IntentMetadata | None = None,
        *,
        source: str | None = None,
    ) -> Result:
        """Bind *name* to *handler*. Never overwrites an existing entry."""
        if not name:
            return Result.fail("Intent name must not be empty", ErrorKind.VALIDATION)
        if not callable(handler):
            return Result.fail(
                f"Handler for intent '{name}' is not callable",
                ErrorKind.VALIDATION,
            )
        if name in self.intents:
            return Result.fail(
                f"Intent '{name}' is already registered",
                ErrorKind.DUPLICATE_NAME,
            )
        self.intents[name] = Intent(
            name=name,
            handler=handler,
            metadata=metadata or IntentMetadata(),
            source=source,
            takes_payload=_accepts_payload(handler),
        )
        logger.debug("Registered intent %s (source=%s)", name, source)
        return Result.ok(f"Registered intent '{name}'")

    def unregister(self, name: str) -> None:
        if self.intents.pop(name, None) is not None:
            logger.debug("Unregistered intent %s", name)

    def lookup(self, name: str) -> Handler | None:
        intent = self.intents.get(name)
        return intent.handler if intent is not None else None

    def get(self, name: str) -> Intent | None:
        return self.intents.get(name)

    def names(self) -> list[str]:
        return sorted(self.intents)

    def __contains__(self, name: object) -> bool:
        return name in self.intents

    def __len__(self) -> int:
        return len(self.intents)

    # ── Categories ──────────────────────────────────────────────────

    def define_category(self, category: Category) -> bool:
        return self.categories.define(category)

    def remove_category(self, key: str) -> None:
        self.categories.remove(key)

    def category_in_use(self, key: str) -> bool:
        return any(i.metadata.category == key for i in self.intents.values())

    def rebuild_category_index(self) -> None:
        with self.lock:
            self.categories.rebuild(self.intents)

    # ── Workflows ───────────────────────────────────────────────────

    def add_workflow(self, workflow: Workflow) -> Result:
        if workflow.name in self.workflows:
            return Result.fail(
                f"Workflow '{workflow.name}' is already defined",
                ErrorKind.DUPLICATE_NAME,
            )
        self.workflows[workflow.name] = workflow
        return Result.ok(f"Added workflow '{workflow.name}'")

    def remove_workflow(self, name: str) -> None:
        self.workflows.pop(name, None)

    def get_workflow(self, name: str) -> Workflow | None:
        return self.workflows.get(name)

    # ── Invocation ──────────────────────────────────────────────────

    async def invoke(
        self,
        name: str,
        payload: Mapping[str, Any] | None = None,
        *,
        auto_confirm: bool = False,
    ) -> Result:
        """Run the intent bound to *name* and normalise its return value.

        ``auto_confirm`` skips the confirmation callback for intents
        marked :attr:`Safety.REQUIRES_CONFIRMATION`.
        """
        intent = self.intents.get(name)
        if intent is None:
            return Result.fail(f"Unknown intent '{name}'", ErrorKind.NOT_FOUND)

        call_payload: dict[str, Any] = {**(payload or {}), "intent": name}

        if (
            intent.metadata.safety is Safety.REQUIRES_CONFIRMATION
            and not auto_confirm
            and self.confirm is not None
        ):
            approved = self.confirm(intent, call_payload)
            if inspect.isawaitable(approved):
                approved = await approved
            if not approved:
                return Result.fail(
                    f"Intent '{name}' was not confirmed",
                    ErrorKind.CANCELLED,
                )

        try:
            value = (
                intent.handler(call_payload)
                if intent.takes_payload
                else intent.handler()
            )
            if inspect.isawaitable(value):
                value = await value
        except Exception as exc:
            logger.exception("Intent %s raised", name)
            return Result.fail(
                f"{type(exc).__name__}: {exc}",
                ErrorKind.EXECUTION_ERROR,
            )
        return Result.coerce(value)
