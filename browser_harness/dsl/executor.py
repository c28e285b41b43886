"""Executes a :class:`ScenarioPlan` against a scenario context."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .. import actions
from ..assertions import Predicate, contains_text, equals, expect, has_attribute, is_checked, is_visible
from ..errors import PlanValidationError
from ..events import PendingPopup
from ..locator import Locator
from ..scenario import ScenarioContext, ScenarioRegistry, ScenarioSpec
from ..session import Session
from .models import (
    AssertStep,
    CheckDialogsStep,
    CheckStep,
    ClickStep,
    CloseSessionStep,
    DragDropStep,
    ExpectDialogStep,
    ExpectPopupStep,
    FillStep,
    HoverStep,
    NavigateStep,
    SetInputFilesStep,
    StepBase,
    SwitchSessionStep,
    Target,
    UncheckStep,
    WaitForPopupStep,
)
from .registry import PlanFile, ScenarioPlan

log = logging.getLogger(__name__)

MAIN_SESSION = "main"


class PlanExecutor:
    def __init__(self, ctx: ScenarioContext, plan: ScenarioPlan, *, base_dir: Optional[Path] = None) -> None:
        self.ctx = ctx
        self.plan = plan
        self.base_dir = base_dir or Path.cwd()
        self.sessions: Dict[str, Session] = {}
        self.popups: Dict[str, PendingPopup] = {}
        self.current = MAIN_SESSION
        self._uploads: Dict[int, List[Path]] = {}

    def validate(self) -> None:
        """Reject the plan before any navigation happens."""

        steps = self.plan.steps
        if not steps:
            raise PlanValidationError(f"Scenario '{self.plan.name}' has no steps")
        if not isinstance(steps[0], NavigateStep):
            raise PlanValidationError(
                f"Scenario '{self.plan.name}' must start with a navigate step, got {steps[0].step_name}"
            )
        expected_popups = set()
        for idx, step in enumerate(steps):
            if isinstance(step, SetInputFilesStep):
                self._uploads[idx] = actions.validate_upload_paths(
                    step.files,
                    self.ctx.config.upload_allow_list,
                    base_dir=self.base_dir,
                )
            elif isinstance(step, ExpectPopupStep):
                expected_popups.add(step.name)
            elif isinstance(step, WaitForPopupStep) and step.name not in expected_popups:
                raise PlanValidationError(
                    f"Step {idx} waits for popup '{step.name}' that was never expected",
                    details={"step": idx},
                )

    async def run(self) -> None:
        self.validate()
        for idx, step in enumerate(self.plan.steps):
            self.ctx.step(step.step_name, index=idx, payload=step.payload())
            await self._dispatch(idx, step)

    async def _dispatch(self, idx: int, step: StepBase) -> None:
        if isinstance(step, NavigateStep):
            await self._navigate(step)
        elif isinstance(step, ClickStep):
            await actions.click(self._locator(step.target))
        elif isinstance(step, HoverStep):
            await actions.hover(self._locator(step.target))
        elif isinstance(step, FillStep):
            await actions.fill(self._locator(step.target), step.text)
        elif isinstance(step, CheckStep):
            await actions.check(self._locator(step.target))
        elif isinstance(step, UncheckStep):
            await actions.uncheck(self._locator(step.target))
        elif isinstance(step, SetInputFilesStep):
            await actions.set_input_files(self._locator(step.target), self._uploads[idx])
        elif isinstance(step, DragDropStep):
            await actions.simulate_drag_drop(self._locator(step.source), self._locator(step.target))
        elif isinstance(step, ExpectDialogStep):
            self._session(step.session).expect_dialog(
                step.response,
                step.text,
                expected_type=step.dialog_type,
                expected_message=step.message,
            )
        elif isinstance(step, CheckDialogsStep):
            self._session(step.session).dialogs.check()
        elif isinstance(step, ExpectPopupStep):
            self.popups[step.name] = self._session(step.session).expect_popup()
        elif isinstance(step, WaitForPopupStep):
            await self._wait_for_popup(step)
        elif isinstance(step, SwitchSessionStep):
            session = self._session(step.session)
            await session.bring_to_front()
            self.current = step.session
        elif isinstance(step, CloseSessionStep):
            await self._close_session(step)
        elif isinstance(step, AssertStep):
            await self._assert(step)
        else:
            raise PlanValidationError(f"Unsupported step {step.step_name}")

    def _session(self, name: Optional[str] = None) -> Session:
        key = name or self.current
        try:
            session = self.sessions[key]
        except KeyError as exc:
            raise PlanValidationError(f"Unknown session '{key}'", details={"known": sorted(self.sessions)}) from exc
        return session

    def _locator(self, target: Target, session: Optional[Session] = None) -> Locator:
        session = session or self._session(target.session)
        if target.within is None:
            return session.locate(target.selector, target.index)
        return self._locator(target.within, session).locate(target.selector, target.index)

    async def _navigate(self, step: NavigateStep) -> None:
        name = step.session or self.current
        session = self.sessions.get(name)
        if session is None or session.closed:
            self.sessions[name] = await self.ctx.open(step.url)
        else:
            await session.goto(step.url)
        self.current = name

    async def _wait_for_popup(self, step: WaitForPopupStep) -> None:
        pending = self.popups.pop(step.name, None)
        if pending is None:
            raise PlanValidationError(f"Popup '{step.name}' was never expected")
        self.sessions[step.name] = await actions.wait_for_popup(pending, timeout=step.timeout_ms)

    async def _close_session(self, step: CloseSessionStep) -> None:
        session = self._session(step.session)
        await session.close()
        if step.session == self.current:
            self.current = MAIN_SESSION
            if MAIN_SESSION in self.sessions and not self.sessions[MAIN_SESSION].closed:
                await self.sessions[MAIN_SESSION].bring_to_front()

    async def _assert(self, step: AssertStep) -> None:
        predicate = self._predicate(step)
        if step.negate:
            predicate = ~predicate
        if step.subject == "url":
            session = self._session(step.session)
            await expect(lambda: session.url, predicate, step.timeout_ms or session.config.assertion_timeout_ms)
            return
        if step.target is None:
            raise PlanValidationError("Element assertions require a target", details={"step": step.payload()})
        session = self._session(step.target.session or step.session)
        await expect(self._locator(step.target, session), predicate, step.timeout_ms)

    @staticmethod
    def _predicate(step: AssertStep) -> Predicate:
        if step.predicate == "visible":
            return is_visible()
        if step.predicate == "checked":
            return is_checked()
        if step.predicate == "contains_text":
            return contains_text(step.value or "")
        if step.predicate == "equals":
            return equals(step.value)
        return has_attribute(step.attribute or "", step.value)


def register_plan_file(
    plan_file: PlanFile,
    target: ScenarioRegistry,
    *,
    base_dir: Path,
    source: str = "",
) -> List[ScenarioSpec]:
    """Register every scenario of ``plan_file`` so the runner can execute it."""

    specs: List[ScenarioSpec] = []
    for plan in plan_file.scenarios:

        async def _run(ctx: ScenarioContext, plan: ScenarioPlan = plan) -> None:
            await PlanExecutor(ctx, plan, base_dir=base_dir).run()

        spec = ScenarioSpec(
            name=plan.name,
            func=_run,
            tags=tuple(plan.tags),
            timeout_ms=plan.timeout_ms,
            description=plan.description,
            source=source,
        )
        specs.append(target.add(spec))
    return specs
