import logging
from typing import Any, Callable, Dict, Mapping, Optional

from .layout import LayoutEngine
from .models import CatalogAsset
from .registry import get_template
from .token_layouts import TokenLayout

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]

_LOG_LEVELS = {"success": logging.INFO, "info": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


def log_notifier(message: str, severity: str = "info") -> None:
    """Default notification sink: operator messages go to the log."""
    logger.log(_LOG_LEVELS.get(severity, logging.INFO), f"[{severity}] {message}")


class UnknownTemplateError(KeyError):
    pass


class Composer:
    """Routes a compose request to the procedural engine or a token layout by template kind."""

    def __init__(
        self,
        engine: LayoutEngine,
        token_layouts: Mapping[str, TokenLayout],
        notify: Optional[Notifier] = None,
    ):
        self.engine = engine
        self.token_layouts: Dict[str, TokenLayout] = dict(token_layouts)
        self.notify = notify or log_notifier

    async def compose(
        self,
        template_id: str,
        values: Mapping[str, Any],
        background: Optional[CatalogAsset] = None,
        resolution: Any = "1920x1080",
        text_variant: Optional[str] = None,
    ) -> str:
        template = get_template(template_id)
        if template is None:
            raise UnknownTemplateError(template_id)
        # defaults first so partially filled forms still render
        merged = {**template.default_values, **dict(values or {})}
        if template.kind == "procedural":
            return self.engine.render(merged, background, text_variant, resolution)
        layout = self.token_layouts.get(template_id)
        if layout is None:
            raise UnknownTemplateError(template_id)
        return await layout.render(merged, background, resolution)

    async def preload(self) -> None:
        for layout in self.token_layouts.values():
            await layout.preload()
