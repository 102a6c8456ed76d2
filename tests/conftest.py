"""
Pytest configuration and shared fixtures for procedure-app tests.

Provides common fixtures for configuration, ports, runtimes and program
sessions, plus marker registration.
"""

import logging

import pytest
import pytest_asyncio

from procedure_app.core.config import Config
from procedure_app.procedure import PortRegistry, ProcedureRuntime
from procedure_app.program import DemoProgram, ProgramSession

ENV_VARS = [
    "CI",
    "PROCEDURE_APP_HEADLESS",
    "PROCEDURE_APP_LOG_LEVEL",
    "PROCEDURE_APP_HOST",
    "PROCEDURE_APP_PORT",
    "PROCEDURE_APP_ASYNC_DELAY",
]


@pytest.fixture(autouse=True)
def setup_test_environment(tmp_path, monkeypatch):
    """Isolate tests from the caller's environment and working directory."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)

    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in root_logger.handlers:
        if handler not in handlers:
            handler.close()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def temp_config(tmp_path):
    """Configuration with temporary directories and a fast async port."""
    return Config(
        logs_dir=tmp_path / "logs",
        artifacts_dir=tmp_path / "artifacts",
        async_port_delay=0.01,
        max_sessions=5,
    )


@pytest.fixture
def dispatched():
    """List collecting every message a runtime dispatches."""
    return []


@pytest.fixture
def ports():
    return PortRegistry()


@pytest_asyncio.fixture
async def runtime(ports, dispatched):
    runtime = ProcedureRuntime(ports, dispatched.append, session_id="test-session")
    yield runtime
    await runtime.cancel_all()
    await ports.aclose()


@pytest_asyncio.fixture
async def demo_session():
    """A started demo program session with a fast async port."""
    session = ProgramSession("demo-session", DemoProgram(async_delay=0.01))
    session.start()
    yield session
    await session.close()


@pytest.fixture
def async_test_timeout():
    """Default timeout for async waits in tests."""
    return 2.0


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "e2e: mark test as requiring a browser"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "/e2e/" in item.nodeid or item.nodeid.startswith("tests/e2e"):
            item.add_marker(pytest.mark.e2e)
            item.add_marker(pytest.mark.slow)
        if "server" in item.nodeid:
            item.add_marker(pytest.mark.integration)
