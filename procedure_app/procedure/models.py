"""
Data models for the procedure runtime.

Defines Pydantic models for port messages and procedure bookkeeping.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProcedureState(Enum):
    """Lifecycle state of a scheduled procedure."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PortMessage(BaseModel):
    """A message travelling through a port, tagged with the channel key it belongs to."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    port: str = Field(..., description="Name of the port the message travels on")
    key: Optional[str] = Field(
        None, description="Channel key; None for messages not tied to a request"
    )
    payload: Any = Field(None, description="JSON-compatible message body")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v):
        if not v or not v.strip():
            raise ValueError("Port name cannot be empty")
        return v.strip()


class ProcedureRecord(BaseModel):
    """Bookkeeping entry for one procedure run."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    id: str = Field(..., description="Runtime-unique procedure identifier")
    name: str = Field("procedure", description="Human readable procedure name")
    state: ProcedureState = Field(ProcedureState.PENDING)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = Field(None)
    error: Optional[str] = Field(None, description="Failure reason if the run failed")

    @property
    def duration(self) -> Optional[float]:
        """Seconds the procedure ran, or None while still running."""
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def is_finished(self) -> bool:
        return self.state in (
            ProcedureState.COMPLETED,
            ProcedureState.FAILED,
            ProcedureState.CANCELLED,
        )

    def finish(self, state: ProcedureState, error: Optional[str] = None) -> None:
        """Move the record into a terminal state."""
        self.state = state
        self.error = error
        self.finished_at = datetime.now(timezone.utc)
