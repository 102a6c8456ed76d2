"""
Browser tests for the procedure demo.

Each registered scenario runs against a live server in real Chromium.
"""

import pytest
from playwright.async_api import expect

from procedure_app.core.exceptions import ScenarioError
from procedure_app.e2e import SCENARIOS, BrowserMode, ScenarioRunner
from procedure_app.e2e.scenarios import ON_TYPE, PORT_INPUT, PORT_MESSAGE, PORT_SYNC_SUBMIT


@pytest.mark.asyncio
@pytest.mark.parametrize("name", list(SCENARIOS))
async def test_scenario(name, page, live_server):
    await SCENARIOS[name](page, live_server.base_url)


@pytest.mark.asyncio
async def test_initial_page(page, live_server):
    await page.goto(live_server.base_url)

    await expect(page.locator(ON_TYPE)).to_have_text("You have not yet pressed X, Y, or Z")
    await expect(page.locator(PORT_MESSAGE)).to_be_empty()


@pytest.mark.asyncio
async def test_empty_message_is_not_sent(page, live_server):
    await page.goto(live_server.base_url)

    await page.click(PORT_SYNC_SUBMIT)
    await page.locator(PORT_INPUT).press_sequentially("later")
    await page.click(PORT_SYNC_SUBMIT)

    await expect(page.locator(PORT_MESSAGE)).to_have_text("Thanks for the message: later")


@pytest.mark.asyncio
async def test_runner_against_live_server(live_server):
    runner = ScenarioRunner(live_server, mode=BrowserMode.HEADLESS)

    try:
        summary = await runner.run(["port-sync-round-trip", "shared-ports"])
    except ScenarioError as e:
        pytest.skip(e.message)

    assert summary.success, [r.error_info for r in summary.results if not r.passed]
