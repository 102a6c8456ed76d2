"""
Data models for events arriving from the page.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EventType(Enum):
    """Kinds of UI events the page reports."""

    KEY = "key"
    INPUT = "input"
    CLICK = "click"


class UIEvent(BaseModel):
    """One user interaction reported by the page."""

    model_config = ConfigDict(extra="forbid")

    type: EventType = Field(..., description="Kind of interaction")
    key: Optional[str] = Field(None, description="Key value for key events")
    value: Optional[str] = Field(None, description="Field value for input events")
    target: Optional[str] = Field(None, description="Action name for click events")

    @model_validator(mode="after")
    def validate_fields(self):
        if self.type is EventType.KEY and not self.key:
            raise ValueError("Key events require 'key'")
        if self.type is EventType.INPUT and self.value is None:
            raise ValueError("Input events require 'value'")
        if self.type is EventType.CLICK and not self.target:
            raise ValueError("Click events require 'target'")
        return self
