"""
Token substitution for fixed-layout SVG templates.

Tokens use the double underscore form __TOKEN_NAME__, which survives editors such
as Inkscape without being URL-encoded. The legacy {{TOKEN_NAME}} form is still
replaced for older template files.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Mapping, Union

logger = logging.getLogger(__name__)


def escape_xml(text: Any) -> str:
    """Escape the five XML special characters for safe embedding in SVG."""
    if not text:
        return ""
    return (
        str(text)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def substitute(template_text: str, tokens: Mapping[str, Any]) -> str:
    """Replace every __NAME__ and {{NAME}} marker for the names in `tokens`.

    Replacement is global and literal: values are inserted as-is and never
    scanned again, so a value that happens to contain a marker stays intact.
    Markers for names missing from `tokens` are left untouched. `None` becomes ''.
    """
    if not template_text or not tokens:
        return template_text or ""
    # longest names first so one name that prefixes another cannot shadow it
    names = sorted(tokens.keys(), key=len, reverse=True)
    alternation = "|".join(re.escape(str(n)) for n in names)
    pattern = re.compile(rf"__({alternation})__|\{{\{{({alternation})\}}\}}")

    def repl(m: re.Match) -> str:
        name = m.group(1) if m.group(1) is not None else m.group(2)
        value = tokens.get(name)
        return "" if value is None else str(value)

    return pattern.sub(repl, template_text)


# Template cache entries: absent (no key), loading (in-flight task) or ready (content)
@dataclass(frozen=True)
class Loading:
    task: "asyncio.Task[str]"


@dataclass(frozen=True)
class Ready:
    content: str


CacheEntry = Union[Loading, Ready]


class TemplateCache:
    """Append-only cache of template sources keyed by variant.

    Concurrent requests for a key that is still loading share the same
    in-flight load. A failed load removes the entry again and the error is
    raised to every waiter; nothing is retried automatically.
    """

    def __init__(self):
        self._entries: Dict[Hashable, CacheEntry] = {}

    def peek(self, key: Hashable) -> Union[CacheEntry, None]:
        return self._entries.get(key)

    def get_ready(self, key: Hashable) -> Union[str, None]:
        entry = self._entries.get(key)
        return entry.content if isinstance(entry, Ready) else None

    async def get(self, key: Hashable, loader: Callable[[], Awaitable[str]]) -> str:
        entry = self._entries.get(key)
        if isinstance(entry, Ready):
            return entry.content
        if isinstance(entry, Loading):
            return await asyncio.shield(entry.task)

        task = asyncio.ensure_future(self._load(key, loader))
        self._entries[key] = Loading(task)
        return await asyncio.shield(task)

    async def _load(self, key: Hashable, loader: Callable[[], Awaitable[str]]) -> str:
        try:
            content = await loader()
        except Exception as e:
            logger.error(f"Failed to load template {key!r}: {e}")
            self._entries.pop(key, None)
            raise
        self._entries[key] = Ready(content)
        return content
