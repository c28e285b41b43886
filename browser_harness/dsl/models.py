"""Typed step models for declarative scenario plans."""

from __future__ import annotations

from typing import Any, ClassVar, Dict, List, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

DialogResponse = Literal["accept", "accept_with_text", "dismiss"]
DialogType = Literal["alert", "confirm", "prompt", "beforeunload"]
PredicateName = Literal["visible", "contains_text", "checked", "equals", "attribute"]


class Target(BaseModel):
    """Declarative locator: selector, optional index, optional enclosing target."""

    model_config = ConfigDict(extra="forbid")

    selector: str = Field(min_length=1)
    index: Optional[int] = Field(default=None, ge=0)
    within: Optional["Target"] = None
    session: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_from_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"selector": value}
        return value

    def describe(self) -> str:
        own = self.selector if self.index is None else f"{self.selector} [{self.index}]"
        if self.within is None:
            return own
        return f"{self.within.describe()} >> {own}"


class StepBase(BaseModel):
    """Base class for all plan steps."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    __step_name__: ClassVar[str]

    def payload(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True)
        data.setdefault("type", self.__step_name__)
        return data

    @property
    def step_name(self) -> str:
        return self.__step_name__


class NavigateStep(StepBase):
    __step_name__ = "navigate"

    type: Literal["navigate"] = Field(default="navigate", validation_alias=AliasChoices("type", "action"))
    url: str = Field(validation_alias=AliasChoices("url", "target"))
    session: Optional[str] = None


class ClickStep(StepBase):
    __step_name__ = "click"

    type: Literal["click"] = Field(default="click", validation_alias=AliasChoices("type", "action"))
    target: Target = Field(validation_alias=AliasChoices("target", "selector"))


class HoverStep(StepBase):
    __step_name__ = "hover"

    type: Literal["hover"] = Field(default="hover", validation_alias=AliasChoices("type", "action"))
    target: Target = Field(validation_alias=AliasChoices("target", "selector"))


class CheckStep(StepBase):
    __step_name__ = "check"

    type: Literal["check"] = Field(default="check", validation_alias=AliasChoices("type", "action"))
    target: Target = Field(validation_alias=AliasChoices("target", "selector"))


class UncheckStep(StepBase):
    __step_name__ = "uncheck"

    type: Literal["uncheck"] = Field(default="uncheck", validation_alias=AliasChoices("type", "action"))
    target: Target = Field(validation_alias=AliasChoices("target", "selector"))


class FillStep(StepBase):
    __step_name__ = "fill"

    type: Literal["fill"] = Field(default="fill", validation_alias=AliasChoices("type", "action"))
    target: Target = Field(validation_alias=AliasChoices("target", "selector"))
    text: str = Field(validation_alias=AliasChoices("text", "value"))


class SetInputFilesStep(StepBase):
    __step_name__ = "set_input_files"

    type: Literal["set_input_files"] = Field(
        default="set_input_files",
        validation_alias=AliasChoices("type", "action"),
    )
    target: Target = Field(validation_alias=AliasChoices("target", "selector"))
    files: List[str] = Field(validation_alias=AliasChoices("files", "file", "paths"))

    @field_validator("files", mode="before")
    @classmethod
    def _ensure_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("files")
    @classmethod
    def _ensure_non_empty(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("files must contain at least one path")
        return value


class DragDropStep(StepBase):
    __step_name__ = "drag_drop"

    type: Literal["drag_drop"] = Field(default="drag_drop", validation_alias=AliasChoices("type", "action"))
    source: Target
    target: Target


class ExpectDialogStep(StepBase):
    __step_name__ = "expect_dialog"

    type: Literal["expect_dialog"] = Field(
        default="expect_dialog",
        validation_alias=AliasChoices("type", "action"),
    )
    response: DialogResponse = "accept"
    text: Optional[str] = None
    dialog_type: Optional[DialogType] = Field(
        default=None,
        validation_alias=AliasChoices("dialog_type", "expected_type"),
    )
    message: Optional[str] = Field(default=None, validation_alias=AliasChoices("message", "expected_message"))
    session: Optional[str] = None

    @model_validator(mode="after")
    def _text_required(self) -> "ExpectDialogStep":
        if self.response == "accept_with_text" and self.text is None:
            raise ValueError("accept_with_text requires text")
        return self


class CheckDialogsStep(StepBase):
    __step_name__ = "check_dialogs"

    type: Literal["check_dialogs"] = Field(
        default="check_dialogs",
        validation_alias=AliasChoices("type", "action"),
    )
    session: Optional[str] = None


class ExpectPopupStep(StepBase):
    __step_name__ = "expect_popup"

    type: Literal["expect_popup"] = Field(
        default="expect_popup",
        validation_alias=AliasChoices("type", "action"),
    )
    name: str = Field(min_length=1, validation_alias=AliasChoices("name", "as"))
    session: Optional[str] = None


class WaitForPopupStep(StepBase):
    __step_name__ = "wait_for_popup"

    type: Literal["wait_for_popup"] = Field(
        default="wait_for_popup",
        validation_alias=AliasChoices("type", "action"),
    )
    name: str = Field(min_length=1)
    timeout_ms: Optional[int] = Field(default=None, ge=0)


class SwitchSessionStep(StepBase):
    __step_name__ = "switch_session"

    type: Literal["switch_session"] = Field(
        default="switch_session",
        validation_alias=AliasChoices("type", "action"),
    )
    session: str = Field(min_length=1)


class CloseSessionStep(StepBase):
    __step_name__ = "close_session"

    type: Literal["close_session"] = Field(
        default="close_session",
        validation_alias=AliasChoices("type", "action"),
    )
    session: str = Field(min_length=1)


class AssertStep(StepBase):
    __step_name__ = "assert"

    type: Literal["assert"] = Field(default="assert", validation_alias=AliasChoices("type", "action"))
    target: Optional[Target] = Field(default=None, validation_alias=AliasChoices("target", "selector"))
    subject: Literal["element", "url"] = "element"
    predicate: PredicateName = Field(default="visible", validation_alias=AliasChoices("predicate", "expect"))
    value: Optional[str] = None
    attribute: Optional[str] = None
    negate: bool = Field(default=False, validation_alias=AliasChoices("negate", "not"))
    timeout_ms: Optional[int] = Field(default=None, ge=0)
    session: Optional[str] = None

    @model_validator(mode="after")
    def _check_arguments(self) -> "AssertStep":
        if self.subject == "element" and self.target is None:
            raise ValueError("element assertions require a target")
        if self.subject == "url" and self.predicate not in {"contains_text", "equals"}:
            raise ValueError("url assertions support contains_text and equals only")
        if self.predicate in {"contains_text", "equals"} and self.value is None:
            raise ValueError(f"{self.predicate} requires a value")
        if self.predicate == "attribute" and not self.attribute:
            raise ValueError("attribute assertions require an attribute name")
        return self
