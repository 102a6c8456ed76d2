"""
Fixtures for browser tests: a live server and a fresh Chromium page.
"""

import socket

import pytest
import pytest_asyncio
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from procedure_app.core.config import Config
from procedure_app.web import ServerThread


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture(scope="session")
def live_server(tmp_path_factory):
    """Server running the demo program in a background thread."""
    base = tmp_path_factory.mktemp("live-server")
    config = Config(
        host="127.0.0.1",
        port=_free_port(),
        logs_dir=base / "logs",
        artifacts_dir=base / "artifacts",
    )
    server = ServerThread(config).start_and_wait()
    yield config
    server.stop()


@pytest_asyncio.fixture
async def page():
    async with async_playwright() as playwright:
        try:
            browser = await playwright.chromium.launch(headless=True)
        except PlaywrightError as e:
            pytest.skip(f"Chromium not available: {e.message.splitlines()[0]}")
        context = await browser.new_context()
        page = await context.new_page()
        yield page
        await context.close()
        await browser.close()
