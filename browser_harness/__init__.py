"""Declarative browser-interaction test harness on top of Playwright."""

from . import actions, assertions
from .config import HarnessConfig, load_config
from .errors import (
    ActionError,
    AssertionTimeoutError,
    DialogMismatchError,
    DialogNotHandled,
    HarnessError,
    InvalidFileError,
    NavigationError,
    PlanValidationError,
    PopupTimeoutError,
    ScenarioTimeoutError,
)
from .locator import Locator
from .runner import ScenarioRunner
from .scenario import ScenarioContext, ScenarioRegistry
from .session import Session, SessionController, SessionState

__all__ = [
    "ActionError",
    "AssertionTimeoutError",
    "DialogMismatchError",
    "DialogNotHandled",
    "HarnessConfig",
    "HarnessError",
    "InvalidFileError",
    "Locator",
    "NavigationError",
    "PlanValidationError",
    "PopupTimeoutError",
    "ScenarioContext",
    "ScenarioRegistry",
    "ScenarioRunner",
    "ScenarioTimeoutError",
    "Session",
    "SessionController",
    "SessionState",
    "actions",
    "assertions",
    "load_config",
]
