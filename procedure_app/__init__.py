"""
procedure-app - procedures and ports for Elm-style web programs

Runs programs whose effects are composable procedures talking to the
outside world through ports, serves them to the browser and checks them
end to end with Playwright.
"""

__version__ = "0.1.0"
__author__ = "procedure-app maintainers"

from .core.config import Config
from .core.exceptions import ProcedureAppError
from .core.logging_config import setup_logging

__all__ = [
    "Config",
    "ProcedureAppError",
    "setup_logging",
]
