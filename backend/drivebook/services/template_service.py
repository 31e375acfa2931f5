# backend/drivebook/services/template_service.py
"""
Template rendering for notification emails.

Templates live in drivebook/templates and are rendered with Jinja2 using a
small set of common context variables.
"""

from datetime import datetime
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from ..core.config import settings
from ..core.constants import BRAND_NAME

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"


class TemplateService:
    """Centralized Jinja2 rendering."""

    def __init__(self, template_dir: Optional[Path] = None):
        self.env = Environment(
            loader=FileSystemLoader(template_dir or TEMPLATE_DIR),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._register_custom_filters()

    def _register_custom_filters(self) -> None:
        def format_hours(value: Any) -> str:
            number = float(value)
            return f"{number:g} hour" if number == 1 else f"{number:g} hours"

        self.env.filters["format_hours"] = format_hours

    def get_common_context(self) -> Dict[str, Any]:
        return {
            "brand_name": BRAND_NAME,
            "current_year": datetime.now().year,
            "support_email": settings.from_email,
        }

    def render_template(
        self, template_name: str, context: Optional[Dict[str, Any]] = None, **kwargs: Any
    ) -> str:
        """
        Render a template with the common context merged in.

        Raises:
            TemplateNotFound: If template doesn't exist
        """
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound:
            logger.error(f"Template not found: {template_name}")
            raise
        full_context = self.get_common_context()
        if context:
            full_context.update(context)
        full_context.update(kwargs)
        return template.render(full_context)
