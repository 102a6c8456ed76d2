"""
Elm-style programs driven by procedures.

A program is a model, an update function and a view. Effects never happen
inside ``update``; it returns commands, which the session hands to its
procedure runtime.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core.exceptions import ValidationError
from ..procedure import PortRegistry, Procedure, ProcedureRuntime
from .models import EventType, UIEvent

View = Dict[str, Any]
RenderListener = Callable[[View], None]


@dataclass(frozen=True)
class Command:
    """A procedure to schedule together with the tagger for its result."""

    procedure: Procedure
    tagger: Optional[Callable[[Any], Any]] = None
    attempt: bool = False


def run(procedure: Procedure, tagger: Optional[Callable[[Any], Any]] = None) -> Command:
    return Command(procedure, tagger)


def attempt(procedure: Procedure, tagger: Callable[[Any], Any]) -> Command:
    return Command(procedure, tagger, attempt=True)


class Program:
    """Base class for programs served to the page."""

    name = "program"

    # UI event type -> incoming port the event value is published on
    event_ports: Dict[EventType, str] = {}

    def ports(self, registry: PortRegistry) -> None:
        """Register host-side port handlers and incoming ports."""

    def init(self) -> Tuple[Any, List[Command]]:
        raise NotImplementedError

    def update(self, msg: Any, model: Any) -> Tuple[Any, List[Command]]:
        raise NotImplementedError

    def view(self, model: Any) -> View:
        raise NotImplementedError

    def event_to_msg(self, event: UIEvent) -> Optional[Any]:
        """Translate a page event into a program message, or None if unhandled."""
        return None


class ProgramSession:
    """
    One running instance of a program, bound to a single page visit.

    The session owns the model, the ports and the procedure runtime. Each
    update re-renders the view and tells listeners which regions changed.
    """

    def __init__(
        self,
        session_id: str,
        program: Program,
        logger: Optional[logging.Logger] = None,
    ):
        self.session_id = session_id
        self.program = program
        self.logger = logger or logging.getLogger(__name__)
        self.ports = PortRegistry(logger=self.logger)
        self.runtime = ProcedureRuntime(
            self.ports, self.dispatch, session_id=session_id, logger=self.logger
        )
        self.model: Any = None
        self._view: View = {}
        self._listeners: List[RenderListener] = []
        self._started = False
        self._closed = False

    @property
    def view(self) -> View:
        return dict(self._view)

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Install ports, build the initial model and run the init commands."""
        if self._started:
            return
        self._started = True
        self.program.ports(self.ports)
        self.model, commands = self.program.init()
        self._view = self.program.view(self.model)
        self._execute(commands)
        self.logger.info(
            f"Session started: {self.session_id}",
            extra={"metadata": {"session_id": self.session_id, "program": self.program.name}},
        )

    def add_listener(self, listener: RenderListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: RenderListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def handle_event(self, event: UIEvent) -> None:
        """
        Feed a page event into the program.

        Events bound to an incoming port are published there for open
        channels to pick up; everything else goes through ``event_to_msg``.
        """
        if self._closed:
            return

        port_name = self.program.event_ports.get(event.type)
        if port_name is not None:
            self.ports.publish(port_name, None, event.key if event.type is EventType.KEY else event.value)
            return

        msg = self.program.event_to_msg(event)
        if msg is None:
            raise ValidationError(
                f"Unhandled {event.type.value} event",
                validation_type="event",
                violations=[event.model_dump_json()],
            )
        self.dispatch(msg)

    def dispatch(self, msg: Any) -> None:
        """Apply one message: update the model, re-render, run new commands."""
        if self._closed:
            return
        self.logger.debug(
            f"Dispatch {type(msg).__name__}",
            extra={"metadata": {"session_id": self.session_id}},
        )
        self.model, commands = self.program.update(msg, self.model)
        self._render()
        self._execute(commands)

    def _render(self) -> None:
        view = self.program.view(self.model)
        changed = {
            region: content
            for region, content in view.items()
            if self._view.get(region) != content
        }
        self._view = view
        if not changed:
            return
        for listener in list(self._listeners):
            listener(changed)

    def _execute(self, commands: List[Command]) -> None:
        for command in commands:
            if command.attempt:
                self.runtime.attempt(command.procedure, command.tagger)
            else:
                self.runtime.run(command.procedure, command.tagger)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._listeners.clear()
        await self.runtime.cancel_all()
        await self.ports.aclose()
        self.logger.info(
            f"Session closed: {self.session_id}",
            extra={"metadata": {"session_id": self.session_id}},
        )
