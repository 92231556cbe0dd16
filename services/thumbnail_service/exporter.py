import asyncio
import base64
import io
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional
from urllib.parse import unquote_to_bytes

from PIL import Image, features

from .models import parse_resolution

logger = logging.getLogger(__name__)

EXPORT_FALLBACK_HINT = "Export failed. Try SVG export instead."
DEFAULT_QUALITY = 92


@dataclass(frozen=True)
class RasterFormat:
    name: str
    extension: str
    media_type: str
    pil_format: str
    lossy: bool


RASTER_FORMATS = {
    "png": RasterFormat("png", "png", "image/png", "PNG", lossy=False),
    "jpg": RasterFormat("jpg", "jpg", "image/jpeg", "JPEG", lossy=True),
    "webp": RasterFormat("webp", "webp", "image/webp", "WEBP", lossy=True),
}
FORMAT_ALIASES = {"jpeg": "jpg"}


class ExportError(Exception):
    """Recoverable export failure. `message` is operator facing."""

    def __init__(self, message: str = EXPORT_FALLBACK_HINT):
        super().__init__(message)
        self.message = message


class UnsupportedFormatError(ExportError):
    pass


@dataclass(frozen=True)
class ExportedFile:
    filename: str
    media_type: str
    content: bytes
    path: Optional[Path] = None


def export_filename(extension: str, now_ms: Optional[int] = None) -> str:
    stamp = int(time.time() * 1000) if now_ms is None else int(now_ms)
    return f"thumbnail-{stamp}.{extension}"


def resolve_format(fmt: Optional[str]) -> RasterFormat:
    """Look up a raster format, probing the encoder where the host may lack one."""
    name = (fmt or "jpg").strip().lower()
    name = FORMAT_ALIASES.get(name, name)
    spec = RASTER_FORMATS.get(name)
    if spec is None:
        raise UnsupportedFormatError(f"Unsupported export format '{fmt}'. Use PNG, JPG or WebP, or export as SVG.")
    if spec.name == "webp" and not features.check("webp"):
        raise UnsupportedFormatError("WebP format is not supported on this host. Try JPG or PNG instead.")
    return spec


def _data_url_fetcher(url: str, *_, **__) -> bytes:
    """CairoSVG URL fetcher that only resolves data URLs.
    Anything still external after inlining renders empty rather than hitting the network."""
    if url and url.startswith("data:"):
        header, _, data_part = url.partition(",")
        try:
            if ";base64" in header:
                return base64.b64decode(data_part)
            return unquote_to_bytes(data_part)
        except ValueError as e:
            logger.warning(f"rasterize: undecodable data URL: {e}")
            return b""
    logger.warning(f"rasterize: skipping non-inlined resource {(url or '')[:120]}")
    return b""


def rasterize(svg_text: str, width: int, height: int) -> bytes:
    """SVG -> PNG bytes at exactly width x height."""
    # cairosvg is imported lazily so a host without native cairo can still serve SVG exports
    try:
        import cairosvg  # type: ignore
    except (ImportError, OSError) as e:
        logger.error(f"CairoSVG unavailable: {e}")
        raise ExportError() from e
    try:
        png_bytes = cairosvg.svg2png(
            bytestring=svg_text.encode("utf-8"),
            output_width=width,
            output_height=height,
            unsafe=False,
            url_fetcher=_data_url_fetcher,
        )
    except Exception as e:
        logger.error(f"Failed to decode SVG for rasterization: {e}")
        raise ExportError() from e
    if not png_bytes:
        raise ExportError()
    return png_bytes


def encode_raster(png_bytes: bytes, spec: RasterFormat, width: int, height: int, quality: int = DEFAULT_QUALITY) -> bytes:
    try:
        with Image.open(io.BytesIO(png_bytes)) as im:
            im.load()
            if im.size != (width, height):
                im = im.resize((width, height), Image.Resampling.LANCZOS)
            buf = io.BytesIO()
            if spec.pil_format == "JPEG":
                # flatten transparency onto white to avoid dark backgrounds
                if im.mode in ("RGBA", "LA") or (im.mode == "P" and "transparency" in im.info):
                    rgba = im.convert("RGBA")
                    background = Image.new("RGB", rgba.size, (255, 255, 255))
                    background.paste(rgba, mask=rgba.split()[-1])
                    rgb_im = background
                else:
                    rgb_im = im.convert("RGB")
                rgb_im.save(buf, format="JPEG", quality=quality)
            elif spec.pil_format == "WEBP":
                im.save(buf, format="WEBP", quality=quality)
            else:
                im.save(buf, format="PNG")
            return buf.getvalue()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.error(f"Failed to encode {spec.name.upper()}: {e}")
        raise ExportError() from e


def write_atomically(directory: Path, filename: str, content: bytes) -> Path:
    """Write via a temp file in the same directory and rename, so no partial file survives a failure."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / filename
    fd, tmp_name = tempfile.mkstemp(dir=str(directory), prefix=".export-", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(tmp_name, target)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return target


def export_svg(svg_text: str, output_dir: Optional[Path] = None) -> ExportedFile:
    """Vector export: the document as-is."""
    filename = export_filename("svg")
    content = svg_text.encode("utf-8")
    path = write_atomically(output_dir, filename, content) if output_dir else None
    return ExportedFile(filename=filename, media_type="image/svg+xml", content=content, path=path)


async def export_raster(
    svg_text: str,
    resolution: str,
    fmt: str = "jpg",
    *,
    inline: Optional[Callable[[str], Awaitable[str]]] = None,
    quality: int = DEFAULT_QUALITY,
    output_dir: Optional[Path] = None,
) -> ExportedFile:
    """Inline, rasterize and encode `svg_text`. Raises ExportError (or UnsupportedFormatError before any work)."""
    spec = resolve_format(fmt)
    width, height = parse_resolution(resolution)

    if inline is not None:
        try:
            svg_text = await inline(svg_text)
        except Exception as e:
            logger.error(f"Inlining failed before rasterization: {e}")
            raise ExportError() from e

    png_bytes = await asyncio.to_thread(rasterize, svg_text, width, height)
    if spec.name == "png":
        content = png_bytes
    else:
        content = await asyncio.to_thread(encode_raster, png_bytes, spec, width, height, quality)

    filename = export_filename(spec.extension)
    path = None
    if output_dir:
        try:
            path = write_atomically(output_dir, filename, content)
        except OSError as e:
            logger.error(f"Failed to write {filename}: {e}")
            raise ExportError() from e
    logger.info(f"Exported {filename} ({width}x{height}, {len(content)} bytes)")
    return ExportedFile(filename=filename, media_type=spec.media_type, content=content, path=path)
