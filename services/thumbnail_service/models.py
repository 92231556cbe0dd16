import re
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_RESOLUTION = (1920, 1080)
REFERENCE_WIDTH = 1920
REFERENCE_HEIGHT = 1080

_RESOLUTION_RE = re.compile(r"^(\d+)\s*x\s*(\d+)$", re.IGNORECASE)


class ImageAsset(BaseModel):
    """An image picked from the catalog or uploaded by the operator.
    `source` is either a remote/relative URL or a data URL."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    source: str = ""
    is_uploaded: bool = False


class LogoAsset(ImageAsset):
    pass


class CatalogAsset(BaseModel):
    """A background or logo discovered on disk. Logos carry no variant."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    url: str
    variant: Optional[Literal["dark", "light"]] = None


def coerce_asset(value: Any, cls=ImageAsset) -> Optional[ImageAsset]:
    """Accept an asset model, a mapping from the form layer (camelCase keys allowed) or a bare URL."""
    if value is None:
        return None
    if isinstance(value, ImageAsset):
        return value
    if isinstance(value, Mapping):
        data = dict(value)
        if "source" not in data:
            data["source"] = data.get("dataUrl") or data.get("data_url") or data.get("url") or ""
        if "is_uploaded" not in data and "isUploaded" in data:
            data["is_uploaded"] = bool(data["isUploaded"])
        if not data.get("id"):
            data["id"] = data.get("name") or data["source"][:32] or "asset"
        return cls.model_validate({k: data[k] for k in ("id", "name", "source", "is_uploaded") if k in data})
    if isinstance(value, str) and value:
        return cls(id=value[:32], name="", source=value)
    return None


def parse_resolution(resolution: Any) -> Tuple[int, int]:
    """Parse a "WxH" string. Anything malformed or non-positive falls back to 1920x1080."""
    if not isinstance(resolution, str):
        return DEFAULT_RESOLUTION
    m = _RESOLUTION_RE.match(resolution.strip())
    if not m:
        return DEFAULT_RESOLUTION
    width, height = int(m.group(1)), int(m.group(2))
    if width <= 0 or height <= 0:
        return DEFAULT_RESOLUTION
    return width, height


# Request / response payloads
class ComposeRequest(BaseModel):
    template_id: str = "dotnet-blog"
    values: Dict[str, Any] = Field(default_factory=dict)
    background_id: Optional[str] = None
    resolution: str = "1920x1080"
    text_variant: Optional[Literal["dark", "light"]] = None


class ComposeResult(BaseModel):
    template_id: str
    width: int
    height: int
    svg: str


class SvgExportRequest(ComposeRequest):
    # also write a copy into the configured export directory
    save: bool = False


class RasterExportRequest(SvgExportRequest):
    format: str = "jpg"


class SettingsUpdate(BaseModel):
    settings: Dict[str, Any] = Field(default_factory=dict)


class CatalogResult(BaseModel):
    backgrounds: List[CatalogAsset]
    logos: List[CatalogAsset]
