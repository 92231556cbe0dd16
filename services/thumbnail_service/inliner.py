"""
Inline external <image> references as data URLs so the SVG is self-contained.

Best effort per image: each reference is fetched concurrently under its own
timeout, and a failed fetch leaves that reference exactly as it was. The
document is serialized only after every fetch has settled.
"""
import asyncio
import base64
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union
from urllib.parse import urljoin, urlparse

import aiofiles
import httpx
from lxml import etree

logger = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
XLINK_HREF = f"{{{XLINK_NS}}}href"

DEFAULT_FETCH_TIMEOUT_S = 10.0


@dataclass(frozen=True)
class Embedded:
    data_url: str


@dataclass(frozen=True)
class Failed:
    reason: str


InlineResult = Union[Embedded, Failed]


class InlineSourceError(Exception):
    pass


def to_data_url(data: bytes, mime: Optional[str]) -> str:
    mime = (mime or "").split(";")[0].strip() or "application/octet-stream"
    b64 = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{b64}"


def _parse_svg(svg_text: str) -> Optional[etree._Element]:
    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True, remove_blank_text=False)
    try:
        root = etree.fromstring(svg_text.strip().encode("utf-8"), parser)
    except etree.XMLSyntaxError as e:
        logger.warning(f"inline: could not parse SVG, leaving it untouched: {e}")
        return None
    if etree.QName(root).localname.lower() != "svg":
        return None
    return root


def _with_xlink_namespace(root: etree._Element) -> etree._Element:
    """Return a root that declares the xlink prefix, rebuilding it when missing."""
    if root.nsmap.get("xlink") == XLINK_NS:
        return root
    nsmap = dict(root.nsmap)
    nsmap["xlink"] = XLINK_NS
    new_root = etree.Element(root.tag, attrib=dict(root.attrib), nsmap=nsmap)
    new_root.text = root.text
    for child in list(root):
        new_root.append(child)
    return new_root


def _image_elements(root: etree._Element) -> List[etree._Element]:
    images = []
    for el in root.iter():
        if isinstance(el.tag, str) and etree.QName(el).localname == "image":
            images.append(el)
    return images


class AssetInliner:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_FETCH_TIMEOUT_S,
        assets_dir: Optional[Path] = None,
        assets_url_prefix: str = "/assets/",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = float(timeout)
        self.assets_dir = Path(assets_dir).resolve() if assets_dir else None
        self.assets_url_prefix = assets_url_prefix
        self.transport = transport

    def resolve(self, href: str) -> str:
        """Absolute http(s) URL for `href`, raising InlineSourceError when there is none."""
        try:
            absolute = urljoin(self.base_url, href.strip())
            parsed = urlparse(absolute)
        except ValueError as e:
            raise InlineSourceError(f"unparseable URL: {e}") from e
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InlineSourceError(f"unsupported URL: {absolute}")
        return absolute

    def _local_asset_path(self, absolute_url: str) -> Optional[Path]:
        """Map URLs under our own assets prefix to files on disk."""
        if self.assets_dir is None:
            return None
        url = urlparse(absolute_url)
        base = urlparse(self.base_url)
        if (url.scheme, url.netloc) != (base.scheme, base.netloc):
            return None
        if not url.path.startswith(self.assets_url_prefix):
            return None
        candidate = (self.assets_dir / url.path[len(self.assets_url_prefix):]).resolve()
        if not candidate.is_relative_to(self.assets_dir) or not candidate.is_file():
            return None
        return candidate

    async def _read_local(self, path: Path) -> Tuple[bytes, Optional[str]]:
        async with aiofiles.open(path, "rb") as f:
            data = await f.read()
        mime, _ = mimetypes.guess_type(str(path))
        return data, mime

    async def _fetch_remote(self, client: httpx.AsyncClient, url: str) -> Tuple[bytes, Optional[str]]:
        response = await client.get(url)
        if not response.is_success:
            raise InlineSourceError(f"HTTP {response.status_code}")
        mime = response.headers.get("Content-Type") or mimetypes.guess_type(urlparse(url).path)[0]
        return response.content, mime

    async def _resolve_one(self, client: httpx.AsyncClient, href: str) -> InlineResult:
        try:
            url = self.resolve(href)
            local = self._local_asset_path(url)
            if local is not None:
                fetch = self._read_local(local)
            else:
                fetch = self._fetch_remote(client, url)
            # the timeout cancels only this fetch, never its siblings
            data, mime = await asyncio.wait_for(fetch, timeout=self.timeout)
            return Embedded(to_data_url(data, mime))
        except asyncio.TimeoutError:
            logger.warning(f"inline: timed out after {self.timeout:g}s fetching {href[:120]}")
            return Failed("timeout")
        except (InlineSourceError, httpx.HTTPError, httpx.InvalidURL, OSError, ValueError) as e:
            logger.warning(f"inline: failed to inline image {href[:120]}: {type(e).__name__}: {e}")
            return Failed(str(e) or type(e).__name__)

    async def inline(self, svg_text: str) -> str:
        if not svg_text:
            return svg_text
        root = _parse_svg(svg_text)
        if root is None:
            return svg_text
        root = _with_xlink_namespace(root)

        pending: List[Tuple[etree._Element, str]] = []
        for img in _image_elements(root):
            href = img.get("href") or img.get(XLINK_HREF)
            if not href or href.startswith("data:"):
                continue
            pending.append((img, href))

        if pending:
            async with httpx.AsyncClient(transport=self.transport, follow_redirects=True, timeout=self.timeout) as client:
                results = await asyncio.gather(*(self._resolve_one(client, href) for _, href in pending))
            embedded = 0
            for (img, _), result in zip(pending, results):
                if isinstance(result, Embedded):
                    img.set("href", result.data_url)
                    img.set(XLINK_HREF, result.data_url)
                    embedded += 1
            logger.info(f"inline: embedded {embedded}/{len(pending)} images")

        return etree.tostring(root, encoding="unicode")


async def inline_images(svg_text: str, base_url: str, **kwargs) -> str:
    return await AssetInliner(base_url, **kwargs).inline(svg_text)
