"""Procedural layout for the blog thumbnail.

All constants below are authored against a 1920 px wide reference canvas and
scaled by `width / 1920`, so every layout is the same picture at any size.
"""
import logging
import math
import uuid
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple, Union

from jinja2 import Template

from .models import REFERENCE_WIDTH, CatalogAsset, ImageAsset, LogoAsset, coerce_asset, parse_resolution
from .text_metrics import DEFAULT_FONT_FAMILY, FontSpec, HeuristicTextMetrics, TextMetrics
from .text_wrap import wrap_text_to_width

logger = logging.getLogger(__name__)

# Reference design constants (1920 wide). Tuned against the example assets.
EDGE_MARGIN_X = 75
EDGE_MARGIN_Y = 132

PILL_HEIGHT = 126
PILL_FONT_SIZE = 88
PILL_PADDING_X = 44
PILL_FONT_WEIGHT = 600

TITLE_FONT_SIZE = 133
TITLE_X = 73
TITLE_Y = 444
TITLE_FONT_WEIGHT = 700
SUBTITLE_FONT_SIZE = 75
SUBTITLE_FONT_WEIGHT = 700
LINE_HEIGHT_FACTOR = 1.1

LOGO_RADIUS = 205
LOGO_CENTER_FROM_RIGHT = 376
LOGO_RIGHT_MARGIN = 55
LOGO_EDGE_MARGIN_Y = 55
LOGO_GAP = 24
LOGO_GAP_THREE = 18
LOGO_STAGGER_FACTOR = 0.55
SINGLE_LOGO_CENTER_Y_RATIO = 0.48
LOGO_CLIP_FACTOR = 0.9
LOGO_IMAGE_FIT = 0.98

CIRCLE_LAYOUT_CENTER_X = 1685.76
CIRCLE_LAYOUT_CENTER_Y = 678.24
CIRCLE_LAYOUT_RADIUS = 491.52
SPLIT_CLIP_TOP_X = 1345
SPLIT_CLIP_BOTTOM_X = 1090
OVERLAY_RECT = (1239, 110, 950, 861)

FALLBACK_BACKGROUND = "#1a1a2e"

IMAGE_LAYOUT_KINDS = ("circle", "split", "overlay")

THEMES = {
    "dark": {"text": "#ffffff", "pill": "#8dc8e8", "pill_text": "#000000"},
    "light": {"text": "#0f0f0f", "pill": "#5946da", "pill_text": "#ffffff"},
}


# Right-side content: nothing, a logo stack, or a single-image layout. Never both.
@dataclass(frozen=True)
class NoRightSide:
    pass


@dataclass(frozen=True)
class Logos:
    logos: Tuple[ImageAsset, ...]


@dataclass(frozen=True)
class ImageLayout:
    kind: str
    image: ImageAsset


RightSideContent = Union[NoRightSide, Logos, ImageLayout]


def right_side_from_values(values: Mapping[str, Any]) -> RightSideContent:
    """Build the right-side content from form values. An image layout wins over logos."""
    kind = str(values.get("imageLayout") or "none").strip().lower()
    image = coerce_asset(values.get("layoutImage"))
    if kind in IMAGE_LAYOUT_KINDS and image is not None and image.source:
        return ImageLayout(kind=kind, image=image)
    logos = [a for a in (coerce_asset(v, LogoAsset) for v in (values.get("logos") or [])) if a is not None]
    if logos:
        return Logos(logos=tuple(logos))
    return NoRightSide()


@dataclass
class Pill:
    text: str
    x: float
    y: float
    width: float
    height: float
    radius: float
    font: FontSpec
    text_x: float
    text_y: float


@dataclass
class TextBlock:
    lines: List[str]
    x: float
    y: float
    line_height: float
    font: FontSpec


@dataclass
class LogoCircle:
    href: str
    cx: float
    cy: float
    radius: float
    clip_radius: float
    image_size: float


@dataclass
class ImageRegion:
    kind: str
    href: str
    x: float
    y: float
    width: float
    height: float
    cx: float = 0.0
    cy: float = 0.0
    radius: float = 0.0
    clip_points: List[Tuple[float, float]] = field(default_factory=list)


@dataclass
class LayoutGeometry:
    width: int
    height: int
    scale: float
    text_max_width: float
    pill: Optional[Pill] = None
    title: Optional[TextBlock] = None
    subtitle: Optional[TextBlock] = None
    logos: List[LogoCircle] = field(default_factory=list)
    image_region: Optional[ImageRegion] = None


def _logo_stack(count: int, width: int, height: int, scale: float) -> Tuple[float, List[Tuple[float, float]]]:
    """Radius and centers for `count` logo circles stacked on the right side."""
    ref_radius = LOGO_RADIUS * scale
    edge_y = LOGO_EDGE_MARGIN_Y * scale
    right_margin = LOGO_RIGHT_MARGIN * scale
    gap = (LOGO_GAP_THREE if count == 3 else LOGO_GAP) * scale
    desired_x = width - LOGO_CENTER_FROM_RIGHT * scale

    # shrink only when the stack would not fit between the vertical margins
    max_stack = max(0.0, height - 2 * edge_y)
    fit_radius = max(0.0, (max_stack - (count - 1) * gap) / (2 * count))
    radius = min(ref_radius, fit_radius)

    stagger = radius * LOGO_STAGGER_FACTOR if count == 3 else 0.0
    base_x = min(desired_x - stagger / 2, width - right_margin - radius - stagger)

    if count == 1:
        cy = height * SINGLE_LOGO_CENTER_Y_RATIO
        cy = min(max(cy, edge_y + radius), height - edge_y - radius)
        return radius, [(base_x, cy)]

    spacing = radius * 2 + gap
    stack_height = count * 2 * radius + (count - 1) * gap
    stack_top = max(edge_y, (height - stack_height) / 2)
    centers = []
    for i in range(count):
        x = base_x + stagger if (count == 3 and i == 1) else base_x
        centers.append((x, stack_top + radius + i * spacing))
    return radius, centers


def compute_geometry(
    values: Mapping[str, Any],
    resolution: Any,
    metrics: Optional[TextMetrics] = None,
    right_side: Optional[RightSideContent] = None,
) -> LayoutGeometry:
    """Turn form values into absolute positions on the output canvas."""
    metrics = metrics or HeuristicTextMetrics()
    width, height = parse_resolution(resolution)
    scale = width / REFERENCE_WIDTH
    if right_side is None:
        right_side = right_side_from_values(values)

    pill_text = str(values.get("pill") or "")
    title = str(values.get("title") or "")
    subtitle = str(values.get("subtitle") or "")

    edge_x = EDGE_MARGIN_X * scale
    edge_y = EDGE_MARGIN_Y * scale

    geometry = LayoutGeometry(width=width, height=height, scale=scale, text_max_width=0.0)

    if pill_text:
        pill_font = FontSpec(PILL_FONT_SIZE * scale, PILL_FONT_WEIGHT, DEFAULT_FONT_FAMILY)
        pill_h = PILL_HEIGHT * scale
        pill_w = metrics.measure(pill_text, pill_font) + 2 * PILL_PADDING_X * scale
        geometry.pill = Pill(
            text=pill_text,
            x=edge_x,
            y=edge_y,
            width=pill_w,
            height=pill_h,
            radius=pill_h / 2,
            font=pill_font,
            text_x=edge_x + pill_w / 2,
            text_y=edge_y + pill_h / 2 + pill_font.size * 0.35,
        )

    has_right_side = not isinstance(right_side, NoRightSide)
    title_x = TITLE_X * scale
    right_boundary = width / 2 if has_right_side else width - edge_x
    text_max_width = max(0.0, right_boundary - title_x)
    geometry.text_max_width = text_max_width

    if title:
        title_font = FontSpec(TITLE_FONT_SIZE * scale, TITLE_FONT_WEIGHT)
        geometry.title = TextBlock(
            lines=wrap_text_to_width(title, text_max_width, metrics, title_font),
            x=title_x,
            y=TITLE_Y * scale,
            line_height=title_font.size * LINE_HEIGHT_FACTOR,
            font=title_font,
        )

    if subtitle:
        sub_font = FontSpec(SUBTITLE_FONT_SIZE * scale, SUBTITLE_FONT_WEIGHT)
        sub_lines = wrap_text_to_width(subtitle, text_max_width, metrics, sub_font)
        line_height = sub_font.size * LINE_HEIGHT_FACTOR
        # bottom anchored: the last baseline sits edge_y above the bottom edge
        sub_y = (height - edge_y) - max(0, len(sub_lines) - 1) * line_height
        geometry.subtitle = TextBlock(lines=sub_lines, x=title_x, y=sub_y, line_height=line_height, font=sub_font)

    if isinstance(right_side, Logos) and right_side.logos:
        radius, centers = _logo_stack(len(right_side.logos), width, height, scale)
        clip_radius = radius * LOGO_CLIP_FACTOR
        image_size = clip_radius * math.sqrt(2) * LOGO_IMAGE_FIT
        geometry.logos = [
            LogoCircle(href=logo.source, cx=cx, cy=cy, radius=radius, clip_radius=clip_radius, image_size=image_size)
            for logo, (cx, cy) in zip(right_side.logos, centers)
        ]
    elif isinstance(right_side, ImageLayout):
        geometry.image_region = _image_region(right_side, width, height, scale)

    return geometry


def _image_region(layout: ImageLayout, width: int, height: int, scale: float) -> ImageRegion:
    href = layout.image.source
    if layout.kind == "circle":
        cx = CIRCLE_LAYOUT_CENTER_X * scale
        cy = CIRCLE_LAYOUT_CENTER_Y * scale
        r = CIRCLE_LAYOUT_RADIUS * scale
        return ImageRegion(kind="circle", href=href, x=cx - r, y=cy - r, width=2 * r, height=2 * r, cx=cx, cy=cy, radius=r)
    if layout.kind == "split":
        bottom_x = SPLIT_CLIP_BOTTOM_X * scale
        top_x = SPLIT_CLIP_TOP_X * scale
        return ImageRegion(
            kind="split",
            href=href,
            x=bottom_x,
            y=0.0,
            width=width - bottom_x,
            height=float(height),
            clip_points=[(top_x, 0.0), (bottom_x, float(height)), (float(width), float(height)), (float(width), 0.0)],
        )
    x, y, w, h = (v * scale for v in OVERLAY_RECT)
    return ImageRegion(kind="overlay", href=href, x=x, y=y, width=w, height=h)


def new_id_prefix() -> str:
    """Process-unique prefix for clip path and filter ids."""
    return f"tn-{uuid.uuid4().hex[:12]}"


def _num(value: float) -> str:
    # compact, stable number formatting for attributes
    text = f"{float(value):.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


SVG_TEMPLATE = Template(
    """<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink" width="{{ width }}" height="{{ height }}" viewBox="0 0 {{ width }} {{ height }}">
  <defs>
    <filter id="{{ uid }}-shadow" x="-50%" y="-50%" width="200%" height="200%">
      <feDropShadow dx="0" dy="{{ num(2 * scale) }}" stdDeviation="{{ num(8 * scale) }}" flood-opacity="0.15"/>
    </filter>
    <filter id="{{ uid }}-image-shadow" x="-50%" y="-50%" width="200%" height="200%">
      <feDropShadow dx="{{ num(-6 * scale) }}" dy="{{ num(-6 * scale) }}" stdDeviation="{{ num(25 * scale) }}" flood-opacity="0.3"/>
    </filter>
{%- for logo in g.logos %}
    <clipPath id="{{ uid }}-logo-clip-{{ loop.index0 }}">
      <circle cx="0" cy="0" r="{{ num(logo.clip_radius) }}"/>
    </clipPath>
{%- endfor %}
{%- if region and region.kind == 'circle' %}
    <clipPath id="{{ uid }}-circle-clip">
      <circle cx="{{ num(region.cx) }}" cy="{{ num(region.cy) }}" r="{{ num(region.radius) }}"/>
    </clipPath>
{%- elif region and region.kind == 'split' %}
    <clipPath id="{{ uid }}-split-clip">
      <path d="M {% for px, py in region.clip_points %}{% if not loop.first %} L {% endif %}{{ num(px) }},{{ num(py) }}{% endfor %} Z"/>
    </clipPath>
{%- endif %}
  </defs>
  <!-- Background -->
{%- if background_url %}
  <image href="{{ background_url | e }}" x="0" y="0" width="{{ width }}" height="{{ height }}" preserveAspectRatio="xMidYMid slice"/>
{%- else %}
  <rect width="{{ width }}" height="{{ height }}" fill="{{ fallback_fill }}"/>
{%- endif %}
{%- if g.pill %}
  <!-- Pill/Badge -->
  <g>
    <rect x="{{ num(g.pill.x) }}" y="{{ num(g.pill.y) }}" width="{{ num(g.pill.width) }}" height="{{ num(g.pill.height) }}" rx="{{ num(g.pill.radius) }}" fill="{{ theme.pill }}"/>
    <text x="{{ num(g.pill.text_x) }}" y="{{ num(g.pill.text_y) }}" font-family="{{ g.pill.font.family | e }}" font-size="{{ num(g.pill.font.size) }}" font-weight="{{ g.pill.font.weight }}" fill="{{ theme.pill_text }}" text-anchor="middle">{{ g.pill.text | e }}</text>
  </g>
{%- endif %}
{%- for block in [g.title, g.subtitle] if block %}
  <text x="{{ num(block.x) }}" y="{{ num(block.y) }}" font-family="{{ block.font.family | e }}" font-size="{{ num(block.font.size) }}" font-weight="{{ block.font.weight }}" fill="{{ theme.text }}">
  {%- for line in block.lines %}<tspan x="{{ num(block.x) }}" dy="{{ '0' if loop.first else num(block.line_height) }}">{{ line | e }}</tspan>{% endfor -%}
  </text>
{%- endfor %}
{%- for logo in g.logos %}
  <g transform="translate({{ num(logo.cx) }}, {{ num(logo.cy) }})">
    <circle cx="0" cy="0" r="{{ num(logo.radius) }}" fill="white" filter="url(#{{ uid }}-shadow)"/>
    <image href="{{ logo.href | e }}" x="{{ num(-logo.image_size / 2) }}" y="{{ num(-logo.image_size / 2) }}" width="{{ num(logo.image_size) }}" height="{{ num(logo.image_size) }}" clip-path="url(#{{ uid }}-logo-clip-{{ loop.index0 }})" preserveAspectRatio="xMidYMid meet"/>
  </g>
{%- endfor %}
{%- if region and region.kind == 'circle' %}
  <circle cx="{{ num(region.cx) }}" cy="{{ num(region.cy) }}" r="{{ num(region.radius) }}" fill="white" filter="url(#{{ uid }}-image-shadow)"/>
  <image href="{{ region.href | e }}" x="{{ num(region.x) }}" y="{{ num(region.y) }}" width="{{ num(region.width) }}" height="{{ num(region.height) }}" clip-path="url(#{{ uid }}-circle-clip)" preserveAspectRatio="xMidYMid slice"/>
{%- elif region and region.kind == 'split' %}
  <image href="{{ region.href | e }}" x="{{ num(region.x) }}" y="{{ num(region.y) }}" width="{{ num(region.width) }}" height="{{ num(region.height) }}" clip-path="url(#{{ uid }}-split-clip)" preserveAspectRatio="xMidYMid slice"/>
{%- elif region and region.kind == 'overlay' %}
  <rect x="{{ num(region.x) }}" y="{{ num(region.y) }}" width="{{ num(region.width) }}" height="{{ num(region.height) }}" fill="white" filter="url(#{{ uid }}-image-shadow)"/>
  <image href="{{ region.href | e }}" x="{{ num(region.x) }}" y="{{ num(region.y) }}" width="{{ num(region.width) }}" height="{{ num(region.height) }}" preserveAspectRatio="xMidYMid slice"/>
{%- endif %}
</svg>
"""
)


class LayoutEngine:
    """Renders the procedural blog thumbnail."""

    def __init__(self, metrics: Optional[TextMetrics] = None):
        self.metrics = metrics or HeuristicTextMetrics()

    def compute_geometry(
        self,
        values: Mapping[str, Any],
        resolution: Any,
        right_side: Optional[RightSideContent] = None,
    ) -> LayoutGeometry:
        return compute_geometry(values, resolution, self.metrics, right_side)

    def render(
        self,
        values: Mapping[str, Any],
        background: Optional[CatalogAsset],
        text_variant: Optional[str],
        resolution: Any,
        right_side: Optional[RightSideContent] = None,
        id_prefix: Optional[str] = None,
    ) -> str:
        g = self.compute_geometry(values, resolution, right_side)
        variant = text_variant or (background.variant if background else None) or "dark"
        theme = THEMES.get(variant, THEMES["dark"])
        svg = SVG_TEMPLATE.render(
            g=g,
            region=g.image_region,
            width=g.width,
            height=g.height,
            scale=g.scale,
            uid=id_prefix or new_id_prefix(),
            background_url=background.url if background else "",
            fallback_fill=FALLBACK_BACKGROUND,
            theme=theme,
            num=_num,
        )
        logger.debug(
            f"Rendered layout {g.width}x{g.height} (title_lines={len(g.title.lines) if g.title else 0}, "
            f"logos={len(g.logos)}, image_layout={g.image_region.kind if g.image_region else 'none'})"
        )
        return svg
