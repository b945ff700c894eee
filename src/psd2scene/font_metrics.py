"""Font metrics probing.

Resolved font files are fetched once to check that they are reachable and to
read the vertical metrics used for line-height and baseline corrections.
"""

import asyncio
import dataclasses
import io
import logging
import urllib.parse
import urllib.request

from fontTools.ttLib import TTFont

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class FontInfo:
    """Vertical metrics of a font, in font units."""

    ascender: float
    descender: float
    units_per_em: float

    @property
    def factor(self) -> float:
        """Line-height correction factor of the font."""
        return (self.ascender - self.descender) / self.units_per_em

    @classmethod
    def from_bytes(cls, data: bytes) -> "FontInfo":
        """Read metrics from TrueType or OpenType font data."""
        font = TTFont(io.BytesIO(data), lazy=True)
        try:
            hhea = font["hhea"]
            return cls(
                ascender=float(hhea.ascent),
                descender=float(hhea.descent),
                units_per_em=float(font["head"].unitsPerEm),
            )
        finally:
            font.close()


class FontInfoCache:
    """Font metrics keyed by font URI.

    Entries are inserted once and never invalidated, so every distinct URI is
    fetched at most once, even when several text blocks ask for it at the same
    time. Failed fetches are not cached.
    """

    def __init__(self, timeout: float = 30.0) -> None:
        self.timeout = timeout
        self._entries: dict[str, FontInfo] = {}
        self._pending: dict[str, asyncio.Future[FontInfo]] = {}

    def __contains__(self, uri: str) -> bool:
        return uri in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, uri: str) -> FontInfo | None:
        """Cached metrics for a URI, without fetching."""
        return self._entries.get(uri)

    async def get(self, uri: str) -> FontInfo:
        """Get metrics for a URI, fetching the font on first use.

        Raises:
            OSError: If the font cannot be fetched.
            ValueError: If the data is not a readable font.
        """
        if uri in self._entries:
            return self._entries[uri]

        pending = self._pending.get(uri)
        if pending is not None:
            return await pending

        pending = asyncio.ensure_future(self._load(uri))
        self._pending[uri] = pending
        try:
            info = await pending
        finally:
            del self._pending[uri]
        return self._entries.setdefault(uri, info)

    async def _load(self, uri: str) -> FontInfo:
        logger.debug(f"Fetching font: {uri}")
        data = await asyncio.to_thread(self.fetch, uri)
        try:
            return FontInfo.from_bytes(data)
        except Exception as e:
            raise ValueError(f"Invalid font data at {uri}: {e}") from e

    def fetch(self, uri: str) -> bytes:
        """Read font data from a URL or a local path."""
        if not urllib.parse.urlparse(uri).scheme:
            with open(uri, "rb") as f:
                return f.read()
        with urllib.request.urlopen(uri, timeout=self.timeout) as response:
            return response.read()
