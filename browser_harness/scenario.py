"""Scenario registration and the per-scenario context.

Scenarios are async functions taking a :class:`ScenarioContext`::

    from browser_harness import actions
    from browser_harness.assertions import expect, is_checked
    from browser_harness.scenario import scenario

    @scenario("checkboxes", tags=("forms",))
    async def checkboxes(ctx):
        page = await ctx.open("/checkboxes")
        box = page.locate('input[type="checkbox"]', index=0)
        await actions.check(box)
        await expect(box, is_checked())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .config import HarnessConfig
from .errors import HarnessError
from .reporting import StructuredLogger
from .session import Session, SessionController

log = logging.getLogger(__name__)

ScenarioFunc = Callable[["ScenarioContext"], Awaitable[None]]


@dataclass(slots=True)
class ScenarioSpec:
    name: str
    func: ScenarioFunc
    tags: Tuple[str, ...] = ()
    timeout_ms: Optional[int] = None
    description: str = ""
    source: str = ""

    def to_metadata(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "tags": list(self.tags),
            "timeout_ms": self.timeout_ms,
            "description": self.description,
            "source": self.source,
        }


class ScenarioRegistry:
    """Ordered collection of named scenarios."""

    def __init__(self) -> None:
        self._scenarios: Dict[str, ScenarioSpec] = {}

    def add(self, spec: ScenarioSpec) -> ScenarioSpec:
        existing = self._scenarios.get(spec.name)
        if existing is not None and existing.func is not spec.func:
            raise ValueError(f"Scenario '{spec.name}' is already registered from {existing.source or '<unknown>'}")
        self._scenarios[spec.name] = spec
        return spec

    def register(
        self,
        func: ScenarioFunc,
        *,
        name: Optional[str] = None,
        tags: Iterable[str] = (),
        timeout_ms: Optional[int] = None,
        description: Optional[str] = None,
        source: Optional[str] = None,
    ) -> ScenarioSpec:
        doc = (func.__doc__ or "").strip().splitlines()
        spec = ScenarioSpec(
            name=name or func.__name__,
            func=func,
            tags=tuple(tags),
            timeout_ms=timeout_ms,
            description=description if description is not None else (doc[0] if doc else ""),
            source=source if source is not None else getattr(func, "__module__", ""),
        )
        return self.add(spec)

    def get(self, name: str) -> ScenarioSpec:
        try:
            return self._scenarios[name]
        except KeyError as exc:
            raise KeyError(f"Unknown scenario '{name}'") from exc

    def __contains__(self, name: str) -> bool:  # pragma: no cover - trivial
        return name in self._scenarios

    def __iter__(self) -> Iterator[ScenarioSpec]:
        return iter(self._scenarios.values())

    def __len__(self) -> int:
        return len(self._scenarios)

    def select(
        self,
        names: Optional[Sequence[str]] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> List[ScenarioSpec]:
        """Scenarios matching any of ``names`` or ``tags``; everything when both are empty."""

        if not names and not tags:
            return list(self._scenarios.values())
        wanted = set(names or ())
        for name in wanted:
            self.get(name)
        tag_set = set(tags or ())
        return [
            spec
            for spec in self._scenarios.values()
            if spec.name in wanted or tag_set.intersection(spec.tags)
        ]


registry = ScenarioRegistry()


def scenario(
    name: Optional[str] = None,
    *,
    tags: Iterable[str] = (),
    timeout_ms: Optional[int] = None,
    target: Optional[ScenarioRegistry] = None,
) -> Callable[[ScenarioFunc], ScenarioFunc]:
    def decorator(func: ScenarioFunc) -> ScenarioFunc:
        # An empty registry is falsy.
        (target if target is not None else registry).register(func, name=name, tags=tags, timeout_ms=timeout_ms)
        return func

    return decorator


class ScenarioContext:
    """Everything one scenario run owns: its controller, sessions and step log."""

    def __init__(
        self,
        name: str,
        controller: SessionController,
        *,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.name = name
        self.controller = controller
        self.config: HarnessConfig = controller.config
        self.logger = logger
        self.sessions: List[Session] = []
        self.step_count = 0
        self.warnings: List[str] = []

    @property
    def current(self) -> Optional[Session]:
        """Most recently opened session that is still open, popups included."""

        open_sessions = self.controller.open_sessions
        return open_sessions[-1] if open_sessions else None

    async def open(self, url: str) -> Session:
        session = await self.controller.open(url)
        self.sessions.append(session)
        self.event("session_opened", session=session.id, url=session.target_url)
        return session

    def step(self, description: str, **data: Any) -> int:
        self.step_count += 1
        log.debug("[%s] step %d: %s", self.name, self.step_count, description)
        self.event("step", step=self.step_count, description=description, **data)
        return self.step_count

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        log.warning("[%s] %s", self.name, message)

    def event(self, event: str, *, step: Optional[int] = None, **data: Any) -> None:
        if self.logger is not None:
            self.logger.log_event(scenario=self.name, event=event, step=step, data=data)

    async def teardown(self) -> Tuple[List[Dict[str, Any]], List[HarnessError]]:
        """Close every session; return unconsumed registrations and late dialog errors."""

        unconsumed: List[Dict[str, Any]] = []
        errors: List[HarnessError] = []
        for session in list(self.controller.open_sessions):
            try:
                session.dialogs.raise_errors()
            except HarnessError as exc:
                errors.append(exc)
        for session in self.sessions:
            unconsumed.extend(session.unconsumed_registrations())
        await self.controller.close_all()
        self.event("teardown", unconsumed=unconsumed, errors=[e.as_dict() for e in errors])
        return unconsumed, errors
