"""
Base exception classes for procedure-app.

Provides a hierarchy of exceptions for the errors that can occur while
running procedures, talking to ports and serving program sessions.
"""

from typing import Optional, Dict, Any


class ProcedureAppError(Exception):
    """Base exception class for all procedure-app errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class ValidationError(ProcedureAppError):
    """Raised when validation fails."""

    def __init__(
        self,
        message: str,
        validation_type: Optional[str] = None,
        violations: Optional[list] = None,
    ):
        super().__init__(message, "VALIDATION_FAILED")
        self.validation_type = validation_type
        self.violations = violations or []
        self.context.update(
            {
                "validation_type": validation_type,
                "violations": violations,
            }
        )


class PortError(ProcedureAppError):
    """Raised when a port handler fails or a port message cannot be delivered."""

    def __init__(
        self,
        message: str,
        port_name: Optional[str] = None,
        key: Optional[str] = None,
        error_code: str = "PORT_ERROR",
    ):
        super().__init__(message, error_code)
        self.port_name = port_name
        self.key = key
        self.context.update(
            {
                "port_name": port_name,
                "key": key,
            }
        )


class PortNotFoundError(PortError):
    """Raised when sending to or subscribing on a port that was never registered."""

    def __init__(self, port_name: str, direction: str = "outgoing"):
        super().__init__(
            f"No {direction} port registered under '{port_name}'",
            port_name=port_name,
            error_code="PORT_NOT_FOUND",
        )
        self.direction = direction
        self.context["direction"] = direction


class ProcedureError(ProcedureAppError):
    """Raised when a procedure fails, either by breaking or by an unexpected error."""

    def __init__(
        self,
        message: str,
        procedure_id: Optional[str] = None,
        reason: Any = None,
    ):
        super().__init__(message, "PROCEDURE_FAILED")
        self.procedure_id = procedure_id
        self.reason = reason
        self.context.update(
            {
                "procedure_id": procedure_id,
                "reason": repr(reason) if reason is not None else None,
            }
        )


class ProcedureCancelledError(ProcedureError):
    """Raised inside a procedure's awaiter when the procedure was cancelled."""

    def __init__(self, procedure_id: Optional[str] = None):
        super().__init__(
            f"Procedure cancelled: {procedure_id}", procedure_id=procedure_id
        )
        self.error_code = "PROCEDURE_CANCELLED"


class SessionNotFoundError(ProcedureAppError):
    """Raised when an event targets a session that does not exist."""

    def __init__(self, session_id: Optional[str]):
        super().__init__(f"Unknown session: {session_id}", "SESSION_NOT_FOUND")
        self.session_id = session_id
        self.context["session_id"] = session_id


class ScenarioError(ProcedureAppError):
    """Raised when a browser scenario cannot be executed."""

    def __init__(
        self,
        message: str,
        scenario_name: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        super().__init__(message, "SCENARIO_FAILED")
        self.scenario_name = scenario_name
        self.base_url = base_url
        self.context.update(
            {
                "scenario_name": scenario_name,
                "base_url": base_url,
            }
        )
