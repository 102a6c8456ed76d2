"""
Frames pushed from the server to the page over the websocket.
"""

from typing import Dict, Literal

from pydantic import BaseModel, ConfigDict, Field


class RenderFrame(BaseModel):
    """Replacement HTML for the regions that changed."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["render"] = "render"
    regions: Dict[str, str] = Field(default_factory=dict)


class ErrorFrame(BaseModel):
    """Report of an event the server could not handle."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["error"] = "error"
    message: str
    error_code: str = "EVENT_REJECTED"


class HealthStatus(BaseModel):
    """Body of ``GET /health``."""

    status: str = "ok"
    version: str
    sessions: int = Field(..., ge=0)
