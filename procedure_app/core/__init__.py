"""Core components for procedure-app."""

from .config import Config
from .exceptions import (
    ProcedureAppError,
    ValidationError,
    PortError,
    PortNotFoundError,
    ProcedureError,
    ProcedureCancelledError,
    SessionNotFoundError,
    ScenarioError,
)
from .logging_config import setup_logging, get_logger

__all__ = [
    "Config",
    "ProcedureAppError",
    "ValidationError",
    "PortError",
    "PortNotFoundError",
    "ProcedureError",
    "ProcedureCancelledError",
    "SessionNotFoundError",
    "ScenarioError",
    "setup_logging",
    "get_logger",
]
