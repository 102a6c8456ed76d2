"""
Port registry.

Ports are the only way procedures talk to the outside world. Outgoing
ports carry requests to host handlers; incoming ports carry events and
replies back, fanned out to every open subscription on that port.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from ..core.exceptions import PortError, PortNotFoundError
from ..core.logging_config import log_port_call
from .models import PortMessage

PortHandler = Callable[[PortMessage, "PortRegistry"], Union[None, Awaitable[None]]]

_CLOSED = object()


class Subscription:
    """Async iterator over the messages published on one incoming port."""

    def __init__(self, registry: "PortRegistry", port_name: str):
        self.registry = registry
        self.port_name = port_name
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, message: PortMessage) -> None:
        if not self._closed:
            self._queue.put_nowait(message)

    def close(self) -> None:
        """Stop receiving; any pending iteration ends after queued messages."""
        if self._closed:
            return
        self._closed = True
        self.registry._unsubscribe(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> PortMessage:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class PortRegistry:
    """
    Named outgoing and incoming ports for one program session.

    Outgoing handlers may be plain functions, which run inside ``send``,
    or coroutine functions, which are scheduled and run in the background.
    Either kind answers by calling ``publish`` on an incoming port.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._outgoing: Dict[str, PortHandler] = {}
        self._incoming: Dict[str, List[Subscription]] = {}
        self._pending: Set[asyncio.Task] = set()

    @property
    def outgoing_ports(self) -> List[str]:
        return sorted(self._outgoing)

    @property
    def incoming_ports(self) -> List[str]:
        return sorted(self._incoming)

    @property
    def pending_calls(self) -> int:
        """Number of asynchronous handlers still running."""
        return len(self._pending)

    def register_outgoing(self, name: str, handler: PortHandler) -> None:
        if name in self._outgoing:
            raise PortError(f"Outgoing port already registered: {name}", port_name=name)
        self._outgoing[name] = handler
        self.logger.debug(f"Registered outgoing port: {name}")

    def register_incoming(self, name: str) -> None:
        if name in self._incoming:
            raise PortError(f"Incoming port already registered: {name}", port_name=name)
        self._incoming[name] = []
        self.logger.debug(f"Registered incoming port: {name}")

    def has_incoming(self, name: str) -> bool:
        return name in self._incoming

    def subscribe(self, name: str) -> Subscription:
        """Open a subscription on an incoming port."""
        if name not in self._incoming:
            raise PortNotFoundError(name, direction="incoming")
        subscription = Subscription(self, name)
        self._incoming[name].append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._incoming.get(subscription.port_name, [])
        if subscription in subscribers:
            subscribers.remove(subscription)

    def subscriber_count(self, name: str) -> int:
        if name not in self._incoming:
            raise PortNotFoundError(name, direction="incoming")
        return len(self._incoming[name])

    def publish(self, name: str, key: Optional[str], payload: Any = None) -> int:
        """
        Publish a message on an incoming port.

        Args:
            name: Incoming port name
            key: Channel key the message answers, or None for plain events
            payload: Message body

        Returns:
            Number of subscriptions the message was delivered to
        """
        if name not in self._incoming:
            raise PortNotFoundError(name, direction="incoming")

        message = PortMessage(port=name, key=key, payload=payload)
        subscribers = list(self._incoming[name])
        for subscription in subscribers:
            subscription.deliver(message)

        self.logger.debug(
            f"Published on {name}",
            extra={"metadata": {"port_name": name, "key": key, "subscribers": len(subscribers)}},
        )
        return len(subscribers)

    async def send(self, message: PortMessage) -> None:
        """
        Send a message on an outgoing port.

        Synchronous handlers complete before this returns, so their replies
        are already delivered. Asynchronous handlers are scheduled and this
        returns immediately.
        """
        handler = self._outgoing.get(message.port)
        if handler is None:
            raise PortNotFoundError(message.port, direction="outgoing")

        if inspect.iscoroutinefunction(handler):
            task = asyncio.get_running_loop().create_task(
                self._run_async_handler(handler, message)
            )
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return

        start_time = time.time()
        try:
            handler(message, self)
        except PortError:
            log_port_call(
                self.logger, message.port, message.key, time.time() - start_time, False
            )
            raise
        except Exception as e:
            log_port_call(
                self.logger,
                message.port,
                message.key,
                time.time() - start_time,
                False,
                error=str(e),
            )
            raise PortError(
                f"Port handler failed: {message.port}: {e}",
                port_name=message.port,
                key=message.key,
            ) from e

        log_port_call(
            self.logger, message.port, message.key, time.time() - start_time, True
        )

    async def _run_async_handler(self, handler: PortHandler, message: PortMessage) -> None:
        start_time = time.time()
        try:
            await handler(message, self)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_port_call(
                self.logger,
                message.port,
                message.key,
                time.time() - start_time,
                False,
                error=str(e),
            )
            return

        log_port_call(
            self.logger, message.port, message.key, time.time() - start_time, True
        )

    async def aclose(self) -> None:
        """Cancel pending handlers and close every open subscription."""
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()

        for subscribers in self._incoming.values():
            for subscription in list(subscribers):
                subscription.close()
