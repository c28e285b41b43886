"""Declarative scenario plans."""

from .executor import PlanExecutor, register_plan_file
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
from .registry import PlanFile, ScenarioPlan, StepRegistry, load_plan_file, registry

__all__ = [
    "AssertStep",
    "CheckDialogsStep",
    "CheckStep",
    "ClickStep",
    "CloseSessionStep",
    "DragDropStep",
    "ExpectDialogStep",
    "ExpectPopupStep",
    "FillStep",
    "HoverStep",
    "NavigateStep",
    "PlanExecutor",
    "PlanFile",
    "ScenarioPlan",
    "SetInputFilesStep",
    "StepBase",
    "StepRegistry",
    "SwitchSessionStep",
    "Target",
    "UncheckStep",
    "WaitForPopupStep",
    "load_plan_file",
    "register_plan_file",
    "registry",
]
