"""
Fixed-layout thumbnails drawn from SVG template files.

Positioning, sizing and styling live in the SVG files under templates/; edit
those to change the look. The renderers here only compute the token values.
"""
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import aiofiles
import httpx

from .models import CatalogAsset, coerce_asset, parse_resolution
from .text_metrics import FontSpec, HeuristicTextMetrics, TextMetrics
from .text_wrap import truncate_to_width, wrap_text_to_width, wrap_topic_text
from .tokens import TemplateCache, escape_xml, substitute

logger = logging.getLogger(__name__)

TEMPLATE_WIDTH = 1920
TEMPLATE_HEIGHT = 1080


class TemplateLoader:
    """Reads template files from a directory or, for http(s) roots, over HTTP."""

    def __init__(self, root: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.root = str(root)
        self.timeout = timeout
        self.transport = transport

    async def load(self, relative_path: str) -> str:
        if self.root.startswith(("http://", "https://")):
            url = f"{self.root.rstrip('/')}/{relative_path}"
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.text
        async with aiofiles.open(Path(self.root) / relative_path, "r", encoding="utf-8") as f:
            return await f.read()


def loading_placeholder(width: int, height: int) -> str:
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" viewBox="0 0 {width} {height}">'
        f'<rect width="{width}" height="{height}" fill="#f0f0f0"/>'
        f'<text x="{width / 2:g}" y="{height / 2:g}" text-anchor="middle" font-family="sans-serif" font-size="24" fill="#666">'
        "Loading template...</text></svg>"
    )


def resize_document(svg: str, width: int, height: int) -> str:
    """Swap the template's 1920x1080 size attributes; the viewBox keeps the drawing scaled."""
    if width == TEMPLATE_WIDTH and height == TEMPLATE_HEIGHT:
        return svg
    svg = re.sub(r'width="1920"', f'width="{width}"', svg, count=1)
    svg = re.sub(r'height="1080"', f'height="{height}"', svg, count=1)
    return svg


def guest_image(guests: List[Any], index: int) -> str:
    if index >= len(guests):
        return ""
    asset = coerce_asset(guests[index])
    return escape_xml(asset.source) if asset else ""


class TokenLayout:
    """Base for template-file layouts keyed by a guest-count variant."""

    template_id = ""
    template_paths: Dict[int, str] = {}
    default_variant = 0

    def __init__(self, loader: TemplateLoader, cache: TemplateCache, metrics: Optional[TextMetrics] = None):
        self.loader = loader
        self.cache = cache
        self.metrics = metrics or HeuristicTextMetrics()

    def variant_for(self, values: Mapping[str, Any]) -> int:
        raise NotImplementedError

    def tokens_for(self, values: Mapping[str, Any], background: Optional[CatalogAsset]) -> Dict[str, str]:
        raise NotImplementedError

    async def template_source(self, variant: int) -> Optional[str]:
        path = self.template_paths.get(variant) or self.template_paths[self.default_variant]
        try:
            return await self.cache.get((self.template_id, variant), lambda: self.loader.load(path))
        except (OSError, ValueError, httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"{self.template_id}: template for variant {variant} unavailable: {e}")
            return None

    async def preload(self) -> None:
        for variant in self.template_paths:
            await self.template_source(variant)

    async def render(self, values: Mapping[str, Any], background: Optional[CatalogAsset], resolution: Any) -> str:
        width, height = parse_resolution(resolution)
        content = await self.template_source(self.variant_for(values))
        if not content:
            return loading_placeholder(width, height)
        svg = substitute(content, self.tokens_for(values, background))
        return resize_document(svg, width, height)


class CommunityStandupLayout(TokenLayout):
    template_id = "dotnet-community-standup"
    template_paths = {
        2: "dotnet-community-standup/two-guests.svg",
        3: "dotnet-community-standup/three-guests.svg",
        4: "dotnet-community-standup/four-guests.svg",
    }
    default_variant = 3

    # ~18 characters per line keeps the topic inside the left 55% of the canvas
    TOPIC_MAX_CHARS = 18
    TOPIC_MAX_LINES = 3

    def variant_for(self, values: Mapping[str, Any]) -> int:
        try:
            return int(values.get("guestCount") or self.default_variant)
        except (TypeError, ValueError):
            return self.default_variant

    def tokens_for(self, values: Mapping[str, Any], background: Optional[CatalogAsset]) -> Dict[str, str]:
        topic_lines = wrap_topic_text(str(values.get("topic") or ""), self.TOPIC_MAX_CHARS, self.TOPIC_MAX_LINES)
        pill_lines = str(values.get("pill") or "").split("\n")
        guests = list(values.get("guests") or [])
        return {
            "BACKGROUND": escape_xml(background.url) if background else "",
            "PILL_LINE_1": escape_xml(pill_lines[0] if pill_lines else ""),
            "PILL_LINE_2": escape_xml(pill_lines[1] if len(pill_lines) > 1 else ""),
            "TOPIC_LINE_1": escape_xml(topic_lines[0]),
            "TOPIC_LINE_2": escape_xml(topic_lines[1]),
            "TOPIC_LINE_3": escape_xml(topic_lines[2]),
            "GUEST_1": guest_image(guests, 0),
            "GUEST_2": guest_image(guests, 1),
            "GUEST_3": guest_image(guests, 2),
            "GUEST_4": guest_image(guests, 3),
        }


class OnDotNetLiveLayout(TokenLayout):
    template_id = "on-dotnet-live"
    template_paths = {
        1: "on-dotnet-live/one-guest.svg",
        2: "on-dotnet-live/two-guests.svg",
    }
    default_variant = 1

    TITLE_FONT = FontSpec(88, 600, '"Segoe UI"')
    TITLE_MAX_WIDTH = 924

    def variant_for(self, values: Mapping[str, Any]) -> int:
        try:
            count = int(values.get("guestCount") or self.default_variant)
        except (TypeError, ValueError):
            count = self.default_variant
        return min(2, max(1, count))

    def title_lines(self, title: str) -> List[str]:
        """Up to three lines; anything past the second line is joined and ellipsized."""
        wrapped = wrap_text_to_width(title.strip(), self.TITLE_MAX_WIDTH, self.metrics, self.TITLE_FONT)
        third = " ".join(wrapped[2:])
        if third:
            third = truncate_to_width(third, self.TITLE_MAX_WIDTH, self.metrics, self.TITLE_FONT)
        return [
            wrapped[0] if wrapped else "",
            wrapped[1] if len(wrapped) > 1 else "",
            third,
        ]

    def tokens_for(self, values: Mapping[str, Any], background: Optional[CatalogAsset]) -> Dict[str, str]:
        title = str(values.get("title") or "")
        line1, line2, line3 = self.title_lines(title)
        guests = list(values.get("guests") or [])
        return {
            "BACKGROUND": escape_xml(background.url) if background else "",
            "TITLE": escape_xml(title),
            "TITLE_LINE_1": escape_xml(line1),
            "TITLE_LINE_2": escape_xml(line2),
            "TITLE_LINE_3": escape_xml(line3),
            "GUEST_1_NAME": escape_xml(values.get("guest1Name") or ""),
            "GUEST_2_NAME": escape_xml(values.get("guest2Name") or ""),
            "DAY": escape_xml(values.get("day") or ""),
            "TIME": escape_xml(values.get("time") or ""),
            "GUEST_1": guest_image(guests, 0),
            "GUEST_2": guest_image(guests, 1),
        }
