"""
Composable procedures.

A procedure describes asynchronous work without running it. Procedures are
built from a handful of primitives and combined with ``map``, ``and_then``
and ``catch``; a ``ProcedureRuntime`` executes them and feeds the result
back to the program as a message.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from ..core.exceptions import ProcedureCancelledError, ProcedureError
from .models import PortMessage
from .ports import PortRegistry, Subscription

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful procedure outcome."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed procedure outcome carrying the break reason."""

    error: Any

    @property
    def is_ok(self) -> bool:
        return False


class ProcedureContext:
    """Everything a running procedure may touch: ports, keys and the program."""

    def __init__(
        self,
        procedure_id: str,
        ports: PortRegistry,
        dispatch: Callable[[Any], None],
        key_factory: Callable[[], str],
    ):
        self.procedure_id = procedure_id
        self.ports = ports
        self._dispatch = dispatch
        self._key_factory = key_factory
        self._subscriptions: List[Subscription] = []

    def next_key(self) -> str:
        return self._key_factory()

    def subscribe(self, port_name: str) -> Subscription:
        subscription = self.ports.subscribe(port_name)
        self._subscriptions.append(subscription)
        return subscription

    async def send(self, message: PortMessage) -> None:
        await self.ports.send(message)

    def dispatch(self, msg: Any) -> None:
        self._dispatch(msg)

    def close(self) -> None:
        """Close every subscription this procedure opened."""
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions.clear()

    @property
    def open_subscriptions(self) -> int:
        return sum(1 for s in self._subscriptions if not s.closed)


Step = Callable[[ProcedureContext], Awaitable[T]]


class Procedure(Generic[T]):
    """A lazily evaluated asynchronous computation producing ``T``."""

    def __init__(self, step: Step, name: Optional[str] = None):
        self._step = step
        self.name = name or getattr(step, "__name__", "procedure")

    async def execute(self, ctx: ProcedureContext) -> T:
        return await self._step(ctx)

    def named(self, name: str) -> "Procedure[T]":
        return Procedure(self._step, name=name)

    def map(self, fn: Callable[[T], U]) -> "Procedure[U]":
        async def step(ctx):
            return fn(await self.execute(ctx))

        return Procedure(step, name=self.name)

    def and_then(self, fn: Callable[[T], "Procedure[U]"]) -> "Procedure[U]":
        """Continue with the procedure ``fn`` builds from this one's result."""

        async def step(ctx):
            value = await self.execute(ctx)
            return await fn(value).execute(ctx)

        return Procedure(step, name=self.name)

    def map_error(self, fn: Callable[[Any], Any]) -> "Procedure[T]":
        async def step(ctx):
            try:
                return await self.execute(ctx)
            except ProcedureCancelledError:
                raise
            except ProcedureError as e:
                raise ProcedureError(
                    e.message, procedure_id=ctx.procedure_id, reason=fn(e.reason)
                ) from e
            except Exception as e:
                raise ProcedureError(
                    f"Procedure crashed: {e!r}", procedure_id=ctx.procedure_id, reason=fn(e)
                ) from e

        return Procedure(step, name=self.name)

    def catch(self, fn: Callable[[Any], "Procedure[T]"]) -> "Procedure[T]":
        """Recover from a failure by continuing with the procedure ``fn`` returns.

        ``fn`` receives the break reason, or the exception itself when a step
        raised something other than a ProcedureError.
        """

        async def step(ctx):
            try:
                return await self.execute(ctx)
            except ProcedureCancelledError:
                raise
            except ProcedureError as e:
                return await fn(e.reason).execute(ctx)
            except Exception as e:
                return await fn(e).execute(ctx)

        return Procedure(step, name=self.name)

    def __repr__(self) -> str:
        return f"Procedure({self.name!r})"


def provide(value: T) -> Procedure[T]:
    """Procedure that yields ``value``."""

    async def step(ctx):
        return value

    return Procedure(step, name="provide")


def fetch(fn: Callable[..., Awaitable[T]], *args, **kwargs) -> Procedure[T]:
    """Procedure that awaits ``fn(*args, **kwargs)`` and yields its result."""

    async def step(ctx):
        return await fn(*args, **kwargs)

    return Procedure(step, name=getattr(fn, "__name__", "fetch"))


def do(fn: Callable[..., Any], *args, **kwargs) -> Procedure[None]:
    """Procedure that runs a side effect, sync or async, and yields None."""

    async def step(ctx):
        result = fn(*args, **kwargs)
        if inspect.isawaitable(result):
            await result
        return None

    return Procedure(step, name=getattr(fn, "__name__", "do"))


def send(port_name: str, payload: Any = None) -> Procedure[None]:
    """Procedure that sends one message on an outgoing port, expecting no reply."""

    async def step(ctx):
        await ctx.send(PortMessage(port=port_name, key=ctx.next_key(), payload=payload))
        return None

    return Procedure(step, name=f"send:{port_name}")


def break_(error: Any) -> Procedure[Any]:
    """Procedure that fails immediately with ``error`` as the reason."""

    async def step(ctx):
        raise ProcedureError(
            f"Procedure broke: {error!r}", procedure_id=ctx.procedure_id, reason=error
        )

    return Procedure(step, name="break")


def from_result(result) -> Procedure[Any]:
    """Procedure that yields an ``Ok`` value or breaks with an ``Err`` reason."""
    if isinstance(result, Ok):
        return provide(result.value)
    return break_(result.error)


def sequence(procedures: List[Procedure[Any]]) -> Procedure[Any]:
    """Run procedures one after another and yield the last result."""

    async def step(ctx):
        result = None
        for procedure in procedures:
            result = await procedure.execute(ctx)
        return result

    return Procedure(step, name="sequence")


def collect(procedures: List[Procedure[T]]) -> Procedure[List[T]]:
    """Run procedures one after another and yield all results in order."""

    async def step(ctx):
        results = []
        for procedure in procedures:
            results.append(await procedure.execute(ctx))
        return results

    return Procedure(step, name="collect")
