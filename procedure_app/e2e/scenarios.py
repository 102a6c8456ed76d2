"""
Browser scenarios for the procedure demo.

Each scenario drives the page with Playwright and asserts on rendered text
through ``expect``, which retries until its timeout before failing.
"""

from enum import Enum
from typing import Awaitable, Callable, Dict

from playwright.async_api import Page, expect

ON_TYPE = "[data-on-type]"
PORT_INPUT = "[data-port-input]"
PORT_SUBMIT = "[data-port-submit]"
PORT_ASYNC_SUBMIT = "[data-port-async-submit]"
PORT_SYNC_SUBMIT = "[data-port-sync-submit]"
PORT_MESSAGE = "[data-port-message]"
WORD_SAVE = "[data-word-save]"
NUMBER_SAVE = "[data-number-save]"
SAVE_MESSAGES = "[data-save-messages]"

Scenario = Callable[[Page, str], Awaitable[None]]

SCENARIOS: Dict[str, Scenario] = {}


class BrowserMode(Enum):
    """Browser execution mode."""

    HEADED = "headed"
    HEADLESS = "headless"


def scenario(name: str):
    """Register a scenario under ``name``."""

    def decorator(func: Scenario) -> Scenario:
        SCENARIOS[name] = func
        return func

    return decorator


@scenario("open-channel-on-init")
async def open_channel_on_init(page: Page, base_url: str) -> None:
    await page.goto(base_url)

    await page.keyboard.type("bbb")
    await expect(page.locator(ON_TYPE)).to_contain_text("You have not yet pressed X, Y, or Z")

    await page.keyboard.type("Z")
    await expect(page.locator(ON_TYPE)).to_contain_text("You pressed Z!!!")

    await page.keyboard.type("X")
    await expect(page.locator(ON_TYPE)).to_contain_text("You pressed X!!!")


@scenario("port-async-round-trip")
async def port_async_round_trip(page: Page, base_url: str) -> None:
    await page.goto(base_url)

    await expect(page.locator(PORT_SUBMIT)).to_be_visible()
    await page.locator(PORT_INPUT).press_sequentially("Hello async!")
    await page.click(PORT_ASYNC_SUBMIT)

    await expect(page.locator(PORT_MESSAGE)).to_contain_text(
        "Thanks for the message: Hello async!"
    )


@scenario("port-sync-round-trip")
async def port_sync_round_trip(page: Page, base_url: str) -> None:
    await page.goto(base_url)

    await page.locator(PORT_INPUT).press_sequentially("Hello synchronous!")
    await page.click(PORT_SYNC_SUBMIT)

    await expect(page.locator(PORT_MESSAGE)).to_contain_text(
        "Thanks for the message: Hello synchronous!"
    )


@scenario("shared-ports")
async def shared_ports(page: Page, base_url: str) -> None:
    await page.goto(base_url)

    await page.locator(PORT_INPUT).fill("Hello")
    await page.click(WORD_SAVE)

    await page.locator(PORT_INPUT).fill("27")
    await page.click(NUMBER_SAVE)

    await expect(page.locator(SAVE_MESSAGES)).to_contain_text("You saved a word: Hello")
    await expect(page.locator(SAVE_MESSAGES)).to_contain_text("You saved a number: 27")
