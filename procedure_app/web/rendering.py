"""
HTML rendering for the page and its live regions.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader
from markupsafe import escape

TEMPLATE_DIR = Path(__file__).parent / "templates"


class ViewRenderer:
    """
    Renders program views with Jinja2.

    Each view region is rendered by the macro in ``regions.html`` named
    after it (dashes become underscores). Regions without a macro render
    as escaped text.
    """

    def __init__(
        self,
        template_dir: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.template_dir = Path(template_dir or TEMPLATE_DIR)
        self.logger = logger or logging.getLogger(__name__)
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=True,
        )
        self._macros = self.jinja_env.get_template("regions.html").module

    def render_region(self, region: str, content: Any) -> str:
        macro = getattr(self._macros, region.replace("-", "_"), None)
        if macro is None:
            return str(escape("" if content is None else content))
        return str(macro(content))

    def render_regions(self, view: Dict[str, Any]) -> Dict[str, str]:
        return {region: self.render_region(region, content) for region, content in view.items()}

    def render_page(self, session_id: str, view: Dict[str, Any], title: str = "Procedures") -> str:
        template = self.jinja_env.get_template("index.html")
        return template.render(
            session_id=session_id,
            title=title,
            regions=self.render_regions(view),
        )
