"""Runs scenarios as isolated workers and builds the run report."""

from __future__ import annotations

import asyncio
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError, async_playwright

from .config import HarnessConfig, load_config
from .errors import AssertionTimeoutError, DialogNotHandled, HarnessError, ScenarioTimeoutError
from .reporting import FAILED, PASSED, LogPaths, RunReport, ScenarioResult, StructuredLogger, prepare_log_paths
from .scenario import ScenarioContext, ScenarioSpec
from .session import SessionController

log = logging.getLogger(__name__)


def _slug(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("_") or "scenario"


def _describe_error(exc: BaseException) -> Dict[str, Any]:
    if isinstance(exc, HarnessError):
        return exc.as_dict()
    return {"type": type(exc).__name__, "code": "UNHANDLED", "message": str(exc), "details": {}}


async def launch_browser(playwright: Any, config: HarnessConfig) -> Any:
    engine = getattr(playwright, config.browser)
    return await engine.launch(headless=config.headless)


class ScenarioRunner:
    def __init__(
        self,
        config: Optional[HarnessConfig] = None,
        *,
        run_id: Optional[str] = None,
        browser: Any = None,
    ) -> None:
        self.config = config or load_config()
        self.run_id = run_id or f"run-{time.strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:6]}"
        self._browser = browser

    async def run(self, specs: Sequence[ScenarioSpec]) -> RunReport:
        paths = prepare_log_paths(self.config.log_root / self.run_id)
        logger = StructuredLogger(self.run_id, paths)
        report = RunReport(run_id=self.run_id, browser=self.config.browser, base_url=self.config.base_url)
        try:
            if self._browser is not None:
                report.results = await self._run_all(self._browser, specs, logger, paths)
            else:
                async with async_playwright() as pw:
                    browser = await launch_browser(pw, self.config)
                    try:
                        report.results = await self._run_all(browser, specs, logger, paths)
                    finally:
                        await browser.close()
        finally:
            logger.close()
            report.finished_at = time.time()
            report.write(paths.report)
        log.info("Run %s finished: %s", self.run_id, report.totals())
        return report

    async def _run_all(
        self,
        browser: Any,
        specs: Sequence[ScenarioSpec],
        logger: StructuredLogger,
        paths: LogPaths,
    ) -> List[ScenarioResult]:
        semaphore = asyncio.Semaphore(self.config.workers)

        async def _worker(spec: ScenarioSpec) -> ScenarioResult:
            async with semaphore:
                return await self.run_scenario(browser, spec, logger=logger, paths=paths)

        return list(await asyncio.gather(*(_worker(spec) for spec in specs)))

    async def run_scenario(
        self,
        browser: Any,
        spec: ScenarioSpec,
        *,
        logger: Optional[StructuredLogger] = None,
        paths: Optional[LogPaths] = None,
    ) -> ScenarioResult:
        controller = SessionController(browser, self.config)
        ctx = ScenarioContext(spec.name, controller, logger=logger)
        result = ScenarioResult(name=spec.name)
        timeout_ms = spec.timeout_ms or self.config.scenario_timeout_ms
        started = time.monotonic()
        ctx.event("scenario_started", timeout_ms=timeout_ms)
        log.info("Scenario %s started", spec.name)

        error: Optional[BaseException] = None
        try:
            await asyncio.wait_for(spec.func(ctx), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            error = ScenarioTimeoutError(
                f"Scenario exceeded {timeout_ms} ms",
                details={"timeout_ms": timeout_ms, "steps": ctx.step_count},
            )
        except (HarnessError, AssertionError) as exc:
            error = exc
        except Exception as exc:
            log.exception("Scenario %s raised an unexpected error", spec.name)
            error = exc

        if error is not None and self.config.capture_on_failure and paths is not None:
            result.diagnostics = await self._capture(ctx, spec.name, paths, error)

        unconsumed, late_errors = await ctx.teardown()
        if error is None and late_errors:
            error = late_errors[0]
        pending_dialogs = [entry for entry in unconsumed if entry.get("kind") == "dialog"]
        if error is None and pending_dialogs:
            error = DialogNotHandled(
                f"{len(pending_dialogs)} dialog registration(s) were never consumed",
                details={"registrations": pending_dialogs},
            )
        for entry in unconsumed:
            if entry.get("kind") == "popup":
                ctx.warn(f"popup registration {entry['id']} was never awaited")

        result.status = PASSED if error is None else FAILED
        result.error = _describe_error(error) if error is not None else None
        result.duration_s = time.monotonic() - started
        result.steps = ctx.step_count
        result.unconsumed = unconsumed
        result.warnings = list(ctx.warnings)
        ctx.event("scenario_finished", status=result.status, error=result.error)
        if error is None:
            log.info("Scenario %s passed in %.2fs", spec.name, result.duration_s)
        else:
            log.warning("Scenario %s failed: %s", spec.name, error)
        return result

    async def _capture(
        self,
        ctx: ScenarioContext,
        name: str,
        paths: LogPaths,
        error: BaseException,
    ) -> Dict[str, Any]:
        diagnostics: Dict[str, Any] = {}
        if isinstance(error, AssertionTimeoutError):
            diagnostics["last_observed"] = error.last_observed
        session = ctx.current
        if session is None:
            return diagnostics
        diagnostics["url"] = session.url
        slug = _slug(name)
        try:
            shot = await session.screenshot(paths.shots / f"{slug}.png")
            diagnostics["screenshot"] = str(shot)
            dom_path: Path = paths.dom / f"{slug}.html"
            dom_path.write_text(await session.content(), encoding="utf-8")
            diagnostics["dom"] = str(dom_path)
        except (PlaywrightError, OSError) as exc:
            log.warning("Failed to capture diagnostics for %s: %s", name, exc)
            diagnostics["capture_error"] = str(exc)
        return diagnostics
