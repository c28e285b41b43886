"""Error taxonomy shared by every harness layer.

Each error is fatal for the scenario that raised it. The runner records the
class name, ``code`` and ``details`` as the scenario's failure reason.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class HarnessError(Exception):
    code = "HARNESS_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.details = details or {}

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "code": self.code,
            "message": str(self),
            "details": self.details,
        }


class NavigationError(HarnessError):
    code = "NAVIGATION"


class ActionError(HarnessError):
    """Target was not actionable within the bounded wait."""

    code = "ACTION"

    def __init__(self, message: str, *, reason: str = "not_actionable", details: Optional[Dict[str, Any]] = None):
        payload = dict(details or {})
        payload.setdefault("reason", reason)
        super().__init__(message, details=payload)
        self.reason = reason


class InvalidFileError(HarnessError):
    code = "INVALID_FILE"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot upload {path!r}: {reason}", details={"path": path, "reason": reason})
        self.path = path
        self.reason = reason


class DialogNotHandled(HarnessError):
    code = "DIALOG_NOT_HANDLED"


class DialogMismatchError(HarnessError):
    code = "DIALOG_MISMATCH"


class PopupTimeoutError(HarnessError):
    code = "POPUP_TIMEOUT"


class AssertionTimeoutError(HarnessError):
    code = "ASSERTION_TIMEOUT"

    def __init__(self, message: str, *, last_observed: Any = None, details: Optional[Dict[str, Any]] = None):
        payload = dict(details or {})
        payload["last_observed"] = last_observed
        super().__init__(message, details=payload)
        self.last_observed = last_observed


class ScenarioTimeoutError(HarnessError):
    code = "TIMEOUT"


class PlanValidationError(HarnessError):
    code = "PLAN_VALIDATION"
