import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional

from PIL import ImageFont

logger = logging.getLogger(__name__)

# Average glyph advance as a fraction of the font size, used when no font file is available
AVG_CHAR_WIDTH_FACTOR = 0.6

DEFAULT_FONT_FAMILY = "'Segoe UI', system-ui, -apple-system, sans-serif"


@dataclass(frozen=True)
class FontSpec:
    size: float
    weight: int = 400
    family: str = DEFAULT_FONT_FAMILY

    def css(self) -> str:
        return f"{self.weight} {self.size}px {self.family}"


class TextMetrics:
    """Width measurement capability used by wrapping and layout."""

    precise = False

    def measure(self, text: str, font: FontSpec) -> float:
        raise NotImplementedError


class HeuristicTextMetrics(TextMetrics):
    """width ~= len(text) * size * 0.6. Stable on hosts without font files."""

    def measure(self, text: str, font: FontSpec) -> float:
        if not text:
            return 0.0
        return len(text) * max(0.0, float(font.size)) * AVG_CHAR_WIDTH_FACTOR


@lru_cache(maxsize=64)
def _load_font(path: str, size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.truetype(path, size)


class PillowTextMetrics(TextMetrics):
    """Measures with FreeType through Pillow. Font files are chosen by weight:
    <500 regular, 500-649 semibold, >=650 bold; missing weights use the nearest configured file."""

    precise = True

    def __init__(self, font_paths: Dict[str, str]):
        if not font_paths:
            raise ValueError("PillowTextMetrics needs at least one font file")
        self.font_paths = dict(font_paths)

    def _path_for(self, weight: int) -> str:
        if weight >= 650:
            order = ("bold", "semibold", "regular")
        elif weight >= 500:
            order = ("semibold", "bold", "regular")
        else:
            order = ("regular", "semibold", "bold")
        for key in order:
            if key in self.font_paths:
                return self.font_paths[key]
        return next(iter(self.font_paths.values()))

    def measure(self, text: str, font: FontSpec) -> float:
        if not text:
            return 0.0
        size = float(font.size)
        # FreeType wants integer pixel sizes; measure at a rounded size and rescale
        px = max(1, int(round(size)))
        ft = _load_font(self._path_for(font.weight), px)
        return max(0.0, float(ft.getlength(text)) * (size / px))


def create_text_metrics(
    regular: Optional[str] = None,
    semibold: Optional[str] = None,
    bold: Optional[str] = None,
) -> TextMetrics:
    """Select the metrics backend once, at construction time.
    Falls back to the heuristic model when none of the font files can be loaded."""
    candidates = {"regular": regular, "semibold": semibold, "bold": bold}
    usable: Dict[str, str] = {}
    for key, path in candidates.items():
        if not path:
            continue
        try:
            _load_font(path, 16)
            usable[key] = path
        except OSError as e:
            logger.warning(f"Font file for {key} text could not be loaded ({path}): {e}")
    if usable:
        logger.info(f"Using FreeType text metrics ({', '.join(sorted(usable))})")
        return PillowTextMetrics(usable)
    logger.info("No font files available; using heuristic text metrics")
    return HeuristicTextMetrics()
