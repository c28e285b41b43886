"""Step registry and plan file loading built on pydantic models."""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from ..errors import PlanValidationError
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
    UncheckStep,
    WaitForPopupStep,
)


@dataclass(slots=True)
class StepSpec:
    name: str
    model: Type[StepBase]
    description: str | None = None

    def to_metadata(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description or ""}


S = TypeVar("S", bound=StepBase)


class StepRegistry:
    """Central registry holding the typed step definitions."""

    def __init__(self) -> None:
        self._steps: Dict[str, StepSpec] = {}
        self._adapter: Optional[TypeAdapter[Any]] = None

    def register(self, model: Type[S], *, name: Optional[str] = None, description: str | None = None) -> Type[S]:
        if not issubclass(model, StepBase):
            raise TypeError("model must subclass StepBase")
        step_name = name or getattr(model, "__step_name__", None) or model.__name__
        model.__step_name__ = step_name
        doc = (model.__doc__ or "").strip()
        self._steps[step_name] = StepSpec(name=step_name, model=model, description=description or doc or None)
        self._adapter = None
        return model

    def get(self, name: str) -> StepSpec:
        try:
            return self._steps[name]
        except KeyError as exc:
            raise KeyError(f"Unknown step '{name}'") from exc

    def __contains__(self, name: str) -> bool:  # pragma: no cover - trivial
        return name in self._steps

    def __iter__(self) -> Iterator[StepSpec]:  # pragma: no cover - trivial
        return iter(self._steps.values())

    def _ensure_adapter(self) -> TypeAdapter[Any]:
        if self._adapter is None:
            if not self._steps:
                raise RuntimeError("No steps registered")
            step_types = tuple(spec.model for spec in self._steps.values())
            union = step_types[0]
            for model in step_types[1:]:
                union = union | model  # type: ignore[operator]
            self._adapter = TypeAdapter(union)
        return self._adapter

    def parse_step(self, data: Any) -> StepBase:
        if isinstance(data, StepBase):
            return data
        if isinstance(data, dict):
            step_type = data.get("type", data.get("action"))
            if step_type is not None and step_type in self._steps:
                # Validate against the named model so errors point at the right fields.
                return self._steps[step_type].model.model_validate(data)
            if step_type is not None:
                raise ValueError(f"Unknown step type {step_type!r}")
        adapter = self._ensure_adapter()
        return adapter.validate_python(data)

    def schema(self) -> Dict[str, Any]:
        return {name: spec.to_metadata() for name, spec in self._steps.items()}


registry = StepRegistry()

registry.register(NavigateStep)
registry.register(ClickStep)
registry.register(HoverStep)
registry.register(FillStep)
registry.register(CheckStep)
registry.register(UncheckStep)
registry.register(SetInputFilesStep)
registry.register(DragDropStep)
registry.register(ExpectDialogStep)
registry.register(CheckDialogsStep)
registry.register(ExpectPopupStep)
registry.register(WaitForPopupStep)
registry.register(SwitchSessionStep)
registry.register(CloseSessionStep)
registry.register(AssertStep)


class ScenarioPlan(BaseModel):
    """One declarative scenario: a name plus an ordered list of steps."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)
    timeout_ms: Optional[int] = Field(default=None, gt=0)
    description: str = ""
    steps: List[StepBase] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _coerce_steps(cls, value: Any) -> Any:
        if isinstance(value, dict) and "steps" in value:
            value = dict(value)
            value["steps"] = [registry.parse_step(step) for step in value["steps"] or []]
        return value


class PlanFile(BaseModel):
    """Top-level plan document holding one or more scenarios."""

    model_config = ConfigDict(extra="forbid")

    scenarios: List[ScenarioPlan] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _coerce_single(cls, value: Any) -> Any:
        if isinstance(value, dict) and "steps" in value and "scenarios" not in value:
            return {"scenarios": [value]}
        if isinstance(value, list):
            return {"scenarios": value}
        return value


def load_plan_file(path: Path) -> PlanFile:
    """Parse a JSON or TOML plan file, raising :class:`PlanValidationError` on bad input."""

    try:
        if path.suffix.lower() == ".toml":
            with path.open("rb") as fh:
                data = tomllib.load(fh)
        else:
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
    except (OSError, ValueError) as exc:
        raise PlanValidationError(f"Cannot read plan file {path}: {exc}", details={"path": str(path)}) from exc
    try:
        return PlanFile.model_validate(data)
    except ValidationError as exc:
        raise PlanValidationError(
            f"Invalid plan file {path}: {exc.error_count()} error(s)",
            details={"path": str(path), "errors": exc.errors(include_url=False)},
        ) from exc
