"""
Scenario runner.

Launches a browser with Playwright, runs registered scenarios in fresh
browser contexts and collects a result per scenario, with a screenshot
for every failure.
"""

import logging
import re
import time
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright, expect
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.config import Config
from ..core.exceptions import ScenarioError
from ..core.logging_config import log_performance
from .scenarios import SCENARIOS, BrowserMode


class ScenarioStatus(Enum):
    """Scenario execution status."""

    PASSED = "passed"
    FAILED = "failed"


class ScenarioResult(BaseModel):
    """Container for one scenario's outcome."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Scenario name")
    status: ScenarioStatus = Field(..., description="Scenario status")
    duration: float = Field(..., ge=0, description="Scenario duration in seconds")
    error_info: Optional[Dict[str, Any]] = Field(
        None, description="Error information if the scenario failed"
    )
    screenshot: Optional[str] = Field(None, description="Screenshot taken on failure")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Scenario name cannot be empty")
        return v.strip()

    @property
    def passed(self) -> bool:
        return self.status is ScenarioStatus.PASSED


class RunSummary(BaseModel):
    """Aggregate over one runner invocation."""

    base_url: str
    results: List[ScenarioResult] = Field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.status is ScenarioStatus.PASSED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status is ScenarioStatus.FAILED)

    @property
    def success(self) -> bool:
        return self.failed == 0


class ScenarioRunner:
    """
    Runs browser scenarios against a live server.

    Every scenario gets its own browser context, so each one starts from
    a fresh page visit with no shared state.
    """

    def __init__(
        self,
        config: Config,
        base_url: Optional[str] = None,
        mode: Optional[BrowserMode] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.base_url = (base_url or config.base_url).rstrip("/")
        if mode is None:
            mode = (
                BrowserMode.HEADLESS
                if config.get_effective_headless_mode()
                else BrowserMode.HEADED
            )
        self.mode = mode
        self.logger = logger or logging.getLogger(__name__)

    def select(self, names: Optional[Sequence[str]] = None) -> List[str]:
        """Resolve scenario names, all of them when ``names`` is empty."""
        if not names:
            return list(SCENARIOS)
        unknown = [name for name in names if name not in SCENARIOS]
        if unknown:
            raise ScenarioError(
                f"Unknown scenario(s): {', '.join(unknown)}. "
                f"Available: {', '.join(SCENARIOS)}",
                scenario_name=unknown[0],
                base_url=self.base_url,
            )
        return list(names)

    @log_performance("Scenario run")
    async def run(self, names: Optional[Sequence[str]] = None) -> RunSummary:
        selected = self.select(names)
        summary = RunSummary(base_url=self.base_url)
        expect.set_options(timeout=self.config.expect_timeout_ms)

        self.logger.info(
            f"Running {len(selected)} scenario(s) in {self.mode.value} mode",
            extra={"metadata": {"base_url": self.base_url, "scenarios": selected}},
        )

        async with async_playwright() as playwright:
            try:
                browser = await playwright.chromium.launch(
                    headless=self.mode is BrowserMode.HEADLESS
                )
            except PlaywrightError as e:
                raise ScenarioError(
                    f"Failed to launch browser: {e.message}", base_url=self.base_url
                ) from e

            try:
                for name in selected:
                    summary.results.append(await self._run_one(browser, name))
            finally:
                await browser.close()

        self.logger.info(
            f"Scenarios finished: {summary.passed} passed, {summary.failed} failed",
            extra={"metadata": {"passed": summary.passed, "failed": summary.failed}},
        )
        return summary

    async def _run_one(self, browser, name: str) -> ScenarioResult:
        context = await browser.new_context()
        page = await context.new_page()
        start_time = time.time()
        try:
            await SCENARIOS[name](page, self.base_url)
        except (AssertionError, PlaywrightError) as e:
            screenshot = await self._screenshot(page, name)
            self.logger.warning(
                f"Scenario failed: {name}",
                extra={"metadata": {"status": "failed", "error": str(e).splitlines()[0] if str(e) else ""}},
            )
            return ScenarioResult(
                name=name,
                status=ScenarioStatus.FAILED,
                duration=time.time() - start_time,
                error_info={"type": e.__class__.__name__, "message": str(e)},
                screenshot=screenshot,
            )
        finally:
            await context.close()

        self.logger.info(f"Scenario passed: {name}", extra={"metadata": {"status": "passed"}})
        return ScenarioResult(
            name=name, status=ScenarioStatus.PASSED, duration=time.time() - start_time
        )

    async def _screenshot(self, page, name: str) -> Optional[str]:
        safe_name = re.sub(r"[^A-Za-z0-9_.-]", "_", name)
        path = Path(self.config.get_screenshot_dir()) / f"{safe_name}-{int(time.time())}.png"
        try:
            await page.screenshot(path=str(path))
        except PlaywrightError as e:
            self.logger.warning(f"Could not capture screenshot for {name}: {e.message}")
            return None
        return str(path)
