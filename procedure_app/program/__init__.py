"""Programs, sessions and the demo program."""

from .demo import DemoProgram
from .models import EventType, UIEvent
from .program import Command, Program, ProgramSession, attempt, run
from .session import SessionContext, SessionManager, generate_run_id

__all__ = [
    "DemoProgram",
    "EventType",
    "UIEvent",
    "Command",
    "Program",
    "ProgramSession",
    "attempt",
    "run",
    "SessionContext",
    "SessionManager",
    "generate_run_id",
]
