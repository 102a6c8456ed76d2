"""
Channels: keyed conversations over ports.

A channel optionally sends one request on an outgoing port, tagged with a
fresh key, and then listens on an incoming port for the messages that
pass its filters.
"""

import asyncio
from typing import Any, Callable, List, Optional, Tuple

from ..core.exceptions import ProcedureCancelledError, ProcedureError
from .models import PortMessage
from .procedure import Procedure, ProcedureContext
from .ports import Subscription

Predicate = Callable[[Optional[str], PortMessage], bool]


def matching_key(key: Optional[str], message: PortMessage) -> bool:
    """Filter that keeps only replies to this channel's own request."""
    return message.key == key


class Channel:
    """
    Immutable description of a conversation with the outside world.

    Build one with ``Channel.open`` or ``Channel.join``, refine it with
    ``connect`` and ``filter``, then turn it into a procedure with one of
    the ``accept`` methods.
    """

    def __init__(
        self,
        request_port: Optional[str] = None,
        payload: Any = None,
        reply_port: Optional[str] = None,
        predicates: Tuple[Predicate, ...] = (),
    ):
        self.request_port = request_port
        self.payload = payload
        self.reply_port = reply_port
        self.predicates = predicates

    @classmethod
    def open(cls, port_name: str, payload: Any = None) -> "Channel":
        """Channel that sends ``payload`` on ``port_name`` once it starts listening."""
        return cls(request_port=port_name, payload=payload)

    @classmethod
    def join(cls, port_name: str) -> "Channel":
        """Channel that only listens on an incoming port."""
        return cls(reply_port=port_name)

    def connect(self, port_name: str) -> "Channel":
        return Channel(self.request_port, self.payload, port_name, self.predicates)

    def filter(self, predicate: Predicate) -> "Channel":
        return Channel(
            self.request_port,
            self.payload,
            self.reply_port,
            self.predicates + (predicate,),
        )

    def _matches(self, key: Optional[str], message: PortMessage) -> bool:
        return all(predicate(key, message) for predicate in self.predicates)

    async def _start(self, ctx: ProcedureContext) -> Tuple[Optional[str], Subscription]:
        if self.reply_port is None:
            raise ProcedureError(
                "Channel has no port to listen on; call connect() first",
                procedure_id=ctx.procedure_id,
                reason="unconnected-channel",
            )

        # Listen before sending so a synchronous reply cannot be missed.
        subscription = ctx.subscribe(self.reply_port)
        key = None
        if self.request_port is not None:
            key = ctx.next_key()
            try:
                await ctx.send(
                    PortMessage(port=self.request_port, key=key, payload=self.payload)
                )
            except Exception:
                subscription.close()
                raise
        return key, subscription

    def accept_one(self, timeout: Optional[float] = None) -> Procedure[PortMessage]:
        """
        Procedure yielding the first message that passes every filter.

        Args:
            timeout: Seconds to wait before breaking with reason "timeout"
        """

        async def step(ctx):
            key, subscription = await self._start(ctx)
            try:
                return await asyncio.wait_for(
                    self._first_match(ctx, key, subscription), timeout
                )
            except asyncio.TimeoutError:
                raise ProcedureError(
                    f"No reply on {self.reply_port} within {timeout}s",
                    procedure_id=ctx.procedure_id,
                    reason="timeout",
                )
            finally:
                subscription.close()

        return Procedure(step, name=self._name("accept_one"))

    async def _first_match(
        self, ctx: ProcedureContext, key: Optional[str], subscription: Subscription
    ) -> PortMessage:
        async for message in subscription:
            if self._matches(key, message):
                return message
        raise ProcedureCancelledError(ctx.procedure_id)

    def accept_until(self, predicate: Callable[[PortMessage], bool]) -> Procedure[List[PortMessage]]:
        """Procedure yielding matching messages up to and including the one where ``predicate`` holds."""

        async def step(ctx):
            key, subscription = await self._start(ctx)
            accepted = []
            try:
                async for message in subscription:
                    if not self._matches(key, message):
                        continue
                    accepted.append(message)
                    if predicate(message):
                        return accepted
            finally:
                subscription.close()
            raise ProcedureCancelledError(ctx.procedure_id)

        return Procedure(step, name=self._name("accept_until"))

    def accept(self, tagger: Callable[[PortMessage], Any]) -> Procedure[None]:
        """
        Procedure that never completes on its own.

        Every matching message is turned into a program message with
        ``tagger`` and dispatched right away. The procedure ends only when
        the runtime cancels it.
        """

        async def step(ctx):
            key, subscription = await self._start(ctx)
            try:
                async for message in subscription:
                    if self._matches(key, message):
                        ctx.dispatch(tagger(message))
            finally:
                subscription.close()
            raise ProcedureCancelledError(ctx.procedure_id)

        return Procedure(step, name=self._name("accept"))

    accept_forever = accept

    def _name(self, mode: str) -> str:
        ports = "->".join(p for p in (self.request_port, self.reply_port) if p)
        return f"channel[{ports}].{mode}"

    def __repr__(self) -> str:
        return (
            f"Channel(request_port={self.request_port!r}, reply_port={self.reply_port!r}, "
            f"filters={len(self.predicates)})"
        )
