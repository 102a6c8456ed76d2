"""
Session management for procedure-app.

Handles session ID generation, correlation and the lifecycle of the
program sessions backing each page visit.
"""

import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..core.config import Config
from ..core.exceptions import SessionNotFoundError
from ..core.logging_config import get_logger
from .program import Program, ProgramSession


def generate_run_id() -> str:
    """
    Generate a unique identifier for correlating logs of one session or run.

    Returns:
        Identifier of the form ``YYYYMMDD-<16 hex chars>``
    """
    suffix = uuid.uuid4().hex[:16]
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"{timestamp}-{suffix}"


@dataclass
class SessionContext:
    """Context information for a live session."""

    session: ProgramSession
    start_time: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def duration(self) -> float:
        """Get current session duration in seconds."""
        return time.time() - self.start_time

    @property
    def start_timestamp(self) -> str:
        return datetime.fromtimestamp(self.start_time).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "start_time": self.start_timestamp,
            "duration": self.duration,
            "metadata": self.metadata,
        }


class SessionManager:
    """Starts, tracks and ends program sessions."""

    def __init__(
        self,
        program_factory: Callable[[], Program],
        config: Optional[Config] = None,
    ):
        self.program_factory = program_factory
        self.config = config or Config.from_env()
        self.logger = get_logger("procedure_app.sessions")
        self._sessions: "OrderedDict[str, SessionContext]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    @property
    def session_ids(self) -> List[str]:
        return list(self._sessions)

    async def start_session(
        self, metadata: Optional[Dict[str, Any]] = None
    ) -> ProgramSession:
        """
        Start a new program session.

        The oldest sessions are ended first when the live session count
        would exceed ``config.max_sessions``.

        Args:
            metadata: Optional metadata to associate with the session

        Returns:
            The started program session
        """
        while len(self._sessions) >= self.config.max_sessions:
            oldest_id = next(iter(self._sessions))
            self.logger.warning(
                f"Session limit reached, evicting {oldest_id}",
                extra={"metadata": {"max_sessions": self.config.max_sessions}},
            )
            await self.end_session(oldest_id)

        session_id = generate_run_id()
        session = ProgramSession(
            session_id,
            self.program_factory(),
            logger=get_logger("procedure_app.session"),
        )
        context = SessionContext(session=session, metadata=metadata or {})
        self._sessions[session_id] = context
        session.start()

        self.logger.info(
            f"Session registered: {session_id}",
            extra={
                "metadata": {
                    "session_id": session_id,
                    "start_time": context.start_timestamp,
                    "live_sessions": len(self._sessions),
                    **context.metadata,
                }
            },
        )
        return session

    def get_session(self, session_id: Optional[str]) -> ProgramSession:
        context = self._sessions.get(session_id) if session_id else None
        if context is None:
            raise SessionNotFoundError(session_id)
        return context.session

    def get_context(self, session_id: str) -> SessionContext:
        context = self._sessions.get(session_id)
        if context is None:
            raise SessionNotFoundError(session_id)
        return context

    async def end_session(
        self, session_id: str, error: Optional[Exception] = None
    ) -> None:
        """
        End a session and release its procedures and ports.

        Args:
            session_id: Session to end
            error: Optional error that ended the session
        """
        context = self._sessions.pop(session_id, None)
        if context is None:
            self.logger.warning(f"Attempted to end unknown session: {session_id}")
            return

        await context.session.close()

        log_data = {
            "metadata": {
                "session_id": session_id,
                "duration": context.duration,
                "success": error is None,
                **context.metadata,
            }
        }
        if error:
            log_data["metadata"]["error"] = str(error)
            log_data["metadata"]["error_type"] = error.__class__.__name__
            self.logger.error(
                f"Session failed: {session_id} ({context.duration:.2f}s)",
                extra=log_data,
            )
        else:
            self.logger.info(
                f"Session ended: {session_id} ({context.duration:.2f}s)",
                extra=log_data,
            )

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.end_session(session_id)
