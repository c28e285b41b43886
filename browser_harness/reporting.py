"""Structured run logging and pass/fail reports."""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

log = logging.getLogger(__name__)

PASSED = "passed"
FAILED = "failed"


@dataclass(slots=True)
class LogPaths:
    base: Path
    shots: Path
    dom: Path
    events: Path
    report: Path


def prepare_log_paths(base_dir: Path) -> LogPaths:
    shots = base_dir / "shots"
    dom = base_dir / "dom"
    for directory in (base_dir, shots, dom):
        directory.mkdir(parents=True, exist_ok=True)
    return LogPaths(
        base=base_dir,
        shots=shots,
        dom=dom,
        events=base_dir / "events.jsonl",
        report=base_dir / "report.json",
    )


class StructuredLogger:
    """Writes one JSON line per scenario event."""

    def __init__(self, run_id: str, paths: LogPaths) -> None:
        self.run_id = run_id
        self.paths = paths
        self._seq = 0
        self._lock = threading.Lock()
        self._events_file = paths.events.open("a", encoding="utf-8")

    def log_event(
        self,
        *,
        scenario: str,
        event: str,
        step: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
        error: Optional[Dict[str, Any]] = None,
    ) -> int:
        with self._lock:
            self._seq += 1
            payload = {
                "ts": time.time(),
                "run_id": self.run_id,
                "seq": self._seq,
                "scenario": scenario,
                "event": event,
                "step": step,
                "data": data or {},
                "error": error,
            }
            self._events_file.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
            self._events_file.flush()
            return self._seq

    def close(self) -> None:
        try:
            self._events_file.close()
        except OSError as exc:
            log.warning("Failed to close event log %s: %s", self.paths.events, exc)


@dataclass(slots=True)
class ScenarioResult:
    name: str
    status: str = FAILED
    duration_s: float = 0.0
    error: Optional[Dict[str, Any]] = None
    warnings: List[str] = field(default_factory=list)
    unconsumed: List[Dict[str, Any]] = field(default_factory=list)
    diagnostics: Dict[str, Any] = field(default_factory=dict)
    steps: int = 0

    @property
    def passed(self) -> bool:
        return self.status == PASSED

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "status": self.status,
            "duration_s": round(self.duration_s, 3),
            "steps": self.steps,
        }
        if self.error:
            payload["error"] = self.error
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        if self.unconsumed:
            payload["unconsumed"] = list(self.unconsumed)
        if self.diagnostics:
            payload["diagnostics"] = dict(self.diagnostics)
        return payload


@dataclass(slots=True)
class RunReport:
    run_id: str
    browser: str
    base_url: str
    results: List[ScenarioResult] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    @property
    def success(self) -> bool:
        return bool(self.results) and all(r.passed for r in self.results)

    def totals(self) -> Dict[str, int]:
        passed = sum(1 for r in self.results if r.passed)
        return {"total": len(self.results), "passed": passed, "failed": len(self.results) - passed}

    def as_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "browser": self.browser,
            "base_url": self.base_url,
            "success": self.success,
            "totals": self.totals(),
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "results": [r.as_dict() for r in self.results],
        }

    def write(self, path: Path) -> Path:
        with path.open("w", encoding="utf-8") as fh:
            json.dump(self.as_dict(), fh, ensure_ascii=False, indent=2, default=str)
        return path

    def format_text(self) -> str:
        lines = [f"Run {self.run_id} ({self.browser}{', ' + self.base_url if self.base_url else ''})"]
        for result in self.results:
            marker = "PASS" if result.passed else "FAIL"
            line = f"  [{marker}] {result.name} ({result.duration_s:.2f}s)"
            if result.error:
                line += f" - {result.error.get('type')}: {result.error.get('message')}"
            lines.append(line)
            for warning in result.warnings:
                lines.append(f"      warning: {warning}")
            shot = result.diagnostics.get("screenshot")
            if shot:
                lines.append(f"      screenshot: {shot}")
        totals = self.totals()
        lines.append(f"  {totals['passed']}/{totals['total']} passed")
        return "\n".join(lines)
