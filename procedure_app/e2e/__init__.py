"""Playwright scenarios for the procedure demo."""

from .runner import RunSummary, ScenarioResult, ScenarioRunner, ScenarioStatus
from .scenarios import SCENARIOS, BrowserMode, scenario

__all__ = [
    "RunSummary",
    "ScenarioResult",
    "ScenarioRunner",
    "ScenarioStatus",
    "SCENARIOS",
    "BrowserMode",
    "scenario",
]
