"""
The demo program served at ``/``.

It shows three uses of procedures:

* a channel opened on init that listens to key presses forever,
* a request/response round trip through a synchronous and an
  asynchronous port,
* two procedures sharing the same save ports, told apart by channel key.
"""

import asyncio
import re
from dataclasses import dataclass, field, replace
from typing import List, Tuple

from ..procedure import Channel, PortMessage, PortRegistry, matching_key
from .models import EventType, UIEvent
from .program import Command, Program, run

TRACKED_KEYS = ("X", "Y", "Z")
NOT_YET_PRESSED = "You have not yet pressed X, Y, or Z"
NUMBER_RE = re.compile(r"-?[0-9]+")

KEYS_PORT = "keys"
SEND_ASYNC_PORT = "sendMessageAsync"
SEND_SYNC_PORT = "sendMessageSync"
MESSAGE_RECEIVED_PORT = "messageReceived"
SAVE_PORT = "save"
SAVED_PORT = "saved"


@dataclass(frozen=True)
class Model:
    on_type: str = NOT_YET_PRESSED
    port_input: str = ""
    port_message: str = ""
    save_messages: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class KeyPressed:
    key: str


@dataclass(frozen=True)
class PortInputChanged:
    value: str


@dataclass(frozen=True)
class MessageSubmitted:
    asynchronous: bool


@dataclass(frozen=True)
class MessageReceived:
    text: str


@dataclass(frozen=True)
class WordSaveClicked:
    pass


@dataclass(frozen=True)
class NumberSaveClicked:
    pass


@dataclass(frozen=True)
class Saved:
    text: str


CLICK_MESSAGES = {
    "port-async-submit": lambda: MessageSubmitted(asynchronous=True),
    "port-sync-submit": lambda: MessageSubmitted(asynchronous=False),
    "word-save": WordSaveClicked,
    "number-save": NumberSaveClicked,
}


def is_tracked_key(key, message: PortMessage) -> bool:
    return message.payload in TRACKED_KEYS


class DemoProgram(Program):
    """Procedures demo: key channel, message ports and shared save ports."""

    name = "procedure-demo"
    event_ports = {EventType.KEY: KEYS_PORT}

    def __init__(self, async_delay: float = 0.3):
        self.async_delay = async_delay

    def ports(self, registry: PortRegistry) -> None:
        registry.register_incoming(KEYS_PORT)
        registry.register_incoming(MESSAGE_RECEIVED_PORT)
        registry.register_incoming(SAVED_PORT)

        delay = self.async_delay

        def send_message_sync(message: PortMessage, ports: PortRegistry) -> None:
            ports.publish(MESSAGE_RECEIVED_PORT, message.key, message.payload)

        async def send_message_async(message: PortMessage, ports: PortRegistry) -> None:
            await asyncio.sleep(delay)
            ports.publish(MESSAGE_RECEIVED_PORT, message.key, message.payload)

        async def save(message: PortMessage, ports: PortRegistry) -> None:
            await asyncio.sleep(delay)
            ports.publish(SAVED_PORT, message.key, message.payload)

        registry.register_outgoing(SEND_SYNC_PORT, send_message_sync)
        registry.register_outgoing(SEND_ASYNC_PORT, send_message_async)
        registry.register_outgoing(SAVE_PORT, save)

    def init(self) -> Tuple[Model, List[Command]]:
        on_type = (
            Channel.join(KEYS_PORT)
            .filter(is_tracked_key)
            .accept(lambda message: KeyPressed(message.payload))
        )
        return Model(), [run(on_type)]

    def update(self, msg, model: Model) -> Tuple[Model, List[Command]]:
        if isinstance(msg, KeyPressed):
            return replace(model, on_type=f"You pressed {msg.key}!!!"), []

        if isinstance(msg, PortInputChanged):
            return replace(model, port_input=msg.value), []

        if isinstance(msg, MessageSubmitted):
            if not model.port_input.strip():
                return model, []
            port = SEND_ASYNC_PORT if msg.asynchronous else SEND_SYNC_PORT
            request = (
                Channel.open(port, {"message": model.port_input})
                .connect(MESSAGE_RECEIVED_PORT)
                .filter(matching_key)
                .accept_one()
                .map(lambda reply: reply.payload["message"])
            )
            return model, [run(request, MessageReceived)]

        if isinstance(msg, MessageReceived):
            return replace(model, port_message=f"Thanks for the message: {msg.text}"), []

        if isinstance(msg, WordSaveClicked):
            word = model.port_input.strip()
            if not word:
                return model, []
            return model, [run(self._save("word", word), Saved)]

        if isinstance(msg, NumberSaveClicked):
            text = model.port_input.strip()
            if not text:
                return model, []
            if not NUMBER_RE.fullmatch(text):
                return self._append(model, f"Could not save a number: {text}"), []
            return model, [run(self._save("number", int(text)), Saved)]

        if isinstance(msg, Saved):
            return self._append(model, msg.text), []

        return model, []

    @staticmethod
    def _save(kind: str, value):
        return (
            Channel.open(SAVE_PORT, {"kind": kind, "value": value})
            .connect(SAVED_PORT)
            .filter(matching_key)
            .accept_one()
            .map(lambda reply: f"You saved a {kind}: {reply.payload['value']}")
        )

    @staticmethod
    def _append(model: Model, text: str) -> Model:
        return replace(model, save_messages=model.save_messages + (text,))

    def view(self, model: Model) -> dict:
        return {
            "on-type": model.on_type,
            "port-message": model.port_message,
            "save-messages": list(model.save_messages),
        }

    def event_to_msg(self, event: UIEvent):
        if event.type is EventType.INPUT:
            return PortInputChanged(event.value)
        if event.type is EventType.CLICK:
            factory = CLICK_MESSAGES.get(event.target)
            return factory() if factory else None
        return None
