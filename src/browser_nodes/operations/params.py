"""Parameter models for the registered operations."""

from __future__ import annotations

from pydantic import Field, field_validator

from .registry import OperationParams

WAIT_UNTIL = ("load", "domcontentloaded", "networkidle", "commit")
LOAD_STATES = ("load", "domcontentloaded", "networkidle")
MOUSE_BUTTONS = ("left", "right", "middle")
SELECTOR_STATES = ("attached", "detached", "visible", "hidden")


class NoParams(OperationParams):
    pass


class NavigateParams(OperationParams):
    url: str = Field(..., min_length=1)
    wait_until: str = "load"


class ClickParams(OperationParams):
    selector: str = Field(..., min_length=1)
    button: str = "left"
    click_count: int = Field(default=1, ge=1)


class FillParams(OperationParams):
    selector: str = Field(..., min_length=1)
    text: str


class TypeParams(OperationParams):
    selector: str = Field(..., min_length=1)
    text: str
    delay_ms: int = Field(default=0, ge=0)


class PressParams(OperationParams):
    key: str = Field(..., min_length=1)
    selector: str | None = None


class SelectOptionParams(OperationParams):
    selector: str = Field(..., min_length=1)
    values: list[str] = Field(..., min_length=1)

    @field_validator("values", mode="before")
    @classmethod
    def _single_value(cls, value):
        if isinstance(value, str):
            return [value]
        return value


class WaitForSelectorParams(OperationParams):
    selector: str = Field(..., min_length=1)
    state: str = "visible"


class WaitForLoadStateParams(OperationParams):
    state: str


class WaitForTimeoutParams(OperationParams):
    duration_ms: int = Field(..., ge=0)


class ScreenshotParams(OperationParams):
    full_page: bool = False
    # None falls back to the configured default quality
    quality: int | None = Field(default=None, ge=0, le=100)


class EvaluateParams(OperationParams):
    script: str = Field(..., min_length=1)


class InstructionParams(OperationParams):
    instruction: str = Field(..., min_length=1)


class ObserveParams(OperationParams):
    instruction: str = ""
