"""Procedures, channels and ports."""

from .channel import Channel, matching_key
from .models import PortMessage, ProcedureRecord, ProcedureState
from .ports import PortRegistry, Subscription
from .procedure import (
    Err,
    Ok,
    Procedure,
    ProcedureContext,
    break_,
    collect,
    do,
    fetch,
    from_result,
    provide,
    send,
    sequence,
)
from .runtime import ProcedureRuntime

__all__ = [
    "Channel",
    "matching_key",
    "PortMessage",
    "ProcedureRecord",
    "ProcedureState",
    "PortRegistry",
    "Subscription",
    "Err",
    "Ok",
    "Procedure",
    "ProcedureContext",
    "break_",
    "collect",
    "do",
    "fetch",
    "from_result",
    "provide",
    "send",
    "sequence",
    "ProcedureRuntime",
]
