"""Typeface resolution.

Photoshop stores fonts by PostScript name, e.g. ``Roboto-BoldItalic``. The
converter turns the name into :class:`TypefaceParams` and asks a pluggable
resolver for a matching typeface and font file. :class:`CatalogFontResolver`
is the default resolver; it searches a :class:`FontCatalog` of typefaces
loaded from a JSON asset description.
"""

import asyncio
import dataclasses
import json
import logging
import re
import urllib.request
from typing import Any, Awaitable, Callable, Iterable, Literal

logger = logging.getLogger(__name__)

FontStyle = Literal["normal", "italic"]

DEFAULT_FAMILY = "Roboto"

# Google Fonts typefaces in the asset description format of FontCatalog.
DEFAULT_FONT_CATALOG_URL = (
    "https://unpkg.com/@imgly/idml-importer@1.0.6/dist/assets/"
    "google-fonts/content.json"
)

# Weight keywords of PostScript names, in match order.
WEIGHT_KEYWORDS: dict[str, str] = {
    "Thin": "thin",
    "Extra-light": "extraLight",
    "ExtraLight": "extraLight",
    "Light": "light",
    "Regular": "normal",
    "Medium": "medium",
    "Semi-bold": "semiBold",
    "SemiBold": "semiBold",
    "Bold": "bold",
    "Extra-bold": "extraBold",
    "ExtraBold": "extraBold",
    "Black": "heavy",
    "Heavy": "heavy",
}

WEIGHTS = (
    "thin",
    "extraLight",
    "light",
    "normal",
    "medium",
    "semiBold",
    "bold",
    "extraBold",
    "heavy",
)

WEIGHT_ALIAS_MAP = {
    "100": "thin",
    "200": "extraLight",
    "300": "light",
    "regular": "normal",
    "400": "normal",
    "500": "medium",
    "600": "semiBold",
    "700": "bold",
    "800": "extraBold",
    "900": "heavy",
}

TYPEFACE_ALIAS_MAP = {
    "Helvetica": "Roboto",
    "Times New Roman": "Tinos",
    "Arial": "Arimo",
    "Georgia": "Tinos",
    "Garamond": "EB Garamond",
    "Futura": "Raleway",
    "Comic Sans MS": "Comic Neue",
}


@dataclasses.dataclass
class TypefaceParams:
    """Font query derived from a PostScript name."""

    family: str
    style: FontStyle = "normal"
    weight: str = "normal"


@dataclasses.dataclass
class Font:
    uri: str
    sub_family: str = "Regular"
    weight: str = "normal"
    style: FontStyle = "normal"


@dataclasses.dataclass
class Typeface:
    name: str
    fonts: list[Font] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class FontResolverResult:
    typeface: Typeface
    font: Font


TypefaceResolver = Callable[
    [TypefaceParams],
    "FontResolverResult | None | Awaitable[FontResolverResult | None]",
]


def parse_postscript_name(name: str) -> TypefaceParams:
    """Split a PostScript font name into family, style, and weight.

    Example::

        parse_postscript_name("Roboto-BoldItalic")
        # TypefaceParams(family='Roboto', style='italic', weight='bold')
    """
    lower_name = name.lower()
    for suffix in ("-italic", "-oblique"):
        if lower_name.endswith(suffix):
            return TypefaceParams(name[: -len(suffix)], "italic", "normal")

    for keyword, weight in WEIGHT_KEYWORDS.items():
        marker = f"-{keyword}".lower()
        if marker in lower_name:
            family = name[: lower_name.index(marker)]
            style: FontStyle = (
                "italic"
                if "italic" in lower_name or "oblique" in lower_name
                else "normal"
            )
            return TypefaceParams(family, style, weight)

    return TypefaceParams(name, "normal", "normal")


def normalize_weight(weight: str | None) -> str:
    """Normalize a weight name or numeric weight to a weight keyword."""
    if not weight:
        return "normal"
    if weight in WEIGHTS:
        return weight
    lower = str(weight).lower()
    for known in WEIGHTS:
        if known.lower() == lower:
            return known
    return WEIGHT_ALIAS_MAP.get(lower, "normal")


def pascal_case_to_queries(name: str) -> list[str]:
    """Split a PascalCase family name into decreasing word prefixes.

    Example::

        pascal_case_to_queries("OpenSansItalic")
        # ['Open Sans Italic', 'Open Sans', 'Open']
    """
    words = re.sub(r"([A-Z])", r" \1", name).split()
    if len(words) < 2:
        return []
    return [" ".join(words[:i]) for i in range(len(words), 0, -1)]


class FontCatalog:
    """Searchable collection of typefaces.

    The catalog reads the asset description format used by font asset
    libraries::

        {"assets": [{"payload": {"typeface": {"name": "Roboto", "fonts": [
            {"uri": "https://.../Roboto-Bold.ttf", "subFamily": "Bold",
             "weight": "bold", "style": "normal"}]}}}]}
    """

    def __init__(self, typefaces: Iterable[Typeface] = ()) -> None:
        self._typefaces = {typeface.name.lower(): typeface for typeface in typefaces}

    def __len__(self) -> int:
        return len(self._typefaces)

    def add(self, typeface: Typeface) -> None:
        self._typefaces[typeface.name.lower()] = typeface

    def find(self, family: str) -> Typeface | None:
        """Find a typeface by case-insensitive family name."""
        return self._typefaces.get(family.lower())

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "FontCatalog":
        typefaces = []
        for asset in data.get("assets", []):
            payload = asset.get("payload", {}).get("typeface")
            if not payload:
                logger.debug(f"Asset without typeface: {asset.get('id')}")
                continue
            typefaces.append(
                Typeface(
                    name=payload["name"],
                    fonts=[
                        Font(
                            uri=font["uri"],
                            sub_family=font.get("subFamily", "Regular"),
                            weight=normalize_weight(font.get("weight")),
                            style=font.get("style", "normal"),
                        )
                        for font in payload.get("fonts", [])
                    ],
                )
            )
        return cls(typefaces)

    @classmethod
    def from_file(cls, path: str) -> "FontCatalog":
        with open(path, encoding="utf-8") as f:
            return cls.from_json(json.load(f))

    @classmethod
    def from_url(cls, url: str, timeout: float = 30.0) -> "FontCatalog":
        logger.info(f"Fetching font catalog: {url}")
        with urllib.request.urlopen(url, timeout=timeout) as response:
            return cls.from_json(json.loads(response.read().decode("utf-8")))


class CatalogFontResolver:
    """Resolve typefaces against a font catalog.

    Given a ``url`` instead of a catalog, the catalog is fetched on the first
    query and the resolver becomes asynchronous. A catalog that cannot be
    fetched is logged once and treated as empty.

    Example::

        resolver = CatalogFontResolver(url=DEFAULT_FONT_CATALOG_URL)
        result = await resolver(TypefaceParams("Roboto", weight="bold"))
    """

    def __init__(
        self, catalog: FontCatalog | None = None, url: str | None = None
    ) -> None:
        if catalog is None and url is None:
            catalog = FontCatalog()
        self.catalog = catalog
        self.url = url
        self._loading: asyncio.Lock | None = None

    def __call__(
        self, params: TypefaceParams
    ) -> "FontResolverResult | None | Awaitable[FontResolverResult | None]":
        if self.catalog is None:
            return self._resolve_after_loading(params)
        return self.resolve(self.catalog, params)

    async def load(self) -> FontCatalog:
        """Fetch the catalog from the url, once."""
        if self._loading is None:
            self._loading = asyncio.Lock()
        async with self._loading:
            if self.catalog is None:
                try:
                    self.catalog = await asyncio.to_thread(
                        FontCatalog.from_url, self.url
                    )
                except (OSError, ValueError, KeyError) as e:
                    logger.error(
                        f"Could not load font catalog from '{self.url}' due to: {e}"
                    )
                    self.catalog = FontCatalog()
        return self.catalog

    async def _resolve_after_loading(
        self, params: TypefaceParams
    ) -> FontResolverResult | None:
        return self.resolve(await self.load(), params)

    @staticmethod
    def resolve(
        catalog: FontCatalog, params: TypefaceParams
    ) -> FontResolverResult | None:
        family = TYPEFACE_ALIAS_MAP.get(params.family, params.family)
        typeface = catalog.find(family)
        if typeface is None:
            # Names like "OpenSansRoman" carry the style in the family name.
            for query in pascal_case_to_queries(family):
                typeface = catalog.find(query)
                if typeface is not None:
                    break
        if typeface is None:
            return None

        weight = normalize_weight(params.weight)
        for font in typeface.fonts:
            if font.style.lower() == params.style and font.weight == weight:
                return FontResolverResult(typeface, font)
        logger.debug(
            f"No exact {params.style}/{weight} variant of '{typeface.name}', "
            "trying the regular variant."
        )
        for font in typeface.fonts:
            if font.style == "normal" and font.weight == "normal":
                return FontResolverResult(typeface, font)
        return None
