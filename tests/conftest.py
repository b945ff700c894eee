import io
import logging
from typing import Any

import numpy as np
import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen
from psd_tools.constants import PathResourceID

from psd2scene.core.geometry import Rectangle, Transform
from psd2scene.core.path import PathRecord
from psd2scene.document import LayerNode, TextContent
from psd2scene.flags import Flags
from psd2scene.scene import MemoryScene

logger = logging.getLogger(__name__)


def solid_pixels(
    width: int, height: int, rgba: tuple[int, int, int, int] = (255, 0, 0, 255)
) -> np.ndarray:
    """Create RGBA pixels of a single color."""
    return np.tile(np.array(rgba, dtype=np.uint8), (height, width, 1))


def make_raster_layer(
    name: str = "Pixel",
    left: float = 0,
    top: float = 0,
    width: int = 10,
    height: int = 10,
    rgba: tuple[int, int, int, int] = (255, 0, 0, 255),
    **kwargs: Any,
) -> LayerNode:
    """Create a raster layer whose composite is a solid color."""

    def composite(own_effects_only: bool, full: bool) -> np.ndarray:
        return solid_pixels(width, height, rgba)

    return LayerNode(
        name=name,
        left=left,
        top=top,
        width=width,
        height=height,
        composite=composite,
        **kwargs,
    )


def rectangle_records(
    top: float, left: float, bottom: float, right: float, closed: bool = True
) -> list[PathRecord]:
    """Path records of a rectangle in unit-square coordinates."""
    if closed:
        length = PathRecord(PathResourceID.CLOSED_LENGTH)
        kind = PathResourceID.CLOSED_KNOT_LINKED
    else:
        length = PathRecord(PathResourceID.OPEN_LENGTH)
        kind = PathResourceID.OPEN_KNOT_LINKED
    corners = [(top, left), (top, right), (bottom, right), (bottom, left)]
    return [length] + [PathRecord(kind, corner, corner, corner) for corner in corners]


def make_engine_data(
    runs: list[tuple[int, dict]],
    paragraph: dict | None = None,
    font_names: tuple[str, ...] = ("Roboto-Regular",),
    shape_type: int | None = 1,
) -> dict:
    """Create text engine data from (length, style sheet data) runs."""
    rendered = {}
    if shape_type is not None:
        rendered = {"Shapes": {"Children": [{"ShapeType": shape_type}]}}
    return {
        "EngineDict": {
            "StyleRun": {
                "RunArray": [
                    {"StyleSheet": {"StyleSheetData": data}} for _, data in runs
                ],
                "RunLengthArray": [length for length, _ in runs],
            },
            "ParagraphRun": {
                "RunArray": [{"ParagraphSheet": {"Properties": paragraph or {}}}],
                "RunLengthArray": [sum(length for length, _ in runs)],
            },
            "Rendered": rendered,
        },
        "ResourceDict": {
            "FontSet": [{"Name": name} for name in font_names],
            "StyleSheetSet": [],
        },
        "DocumentResources": {},
    }


def make_text_layer(
    text: str,
    runs: list[tuple[int, dict]],
    name: str = "Text",
    transform: Transform | None = Transform(tx=10, ty=20),
    bounds: Rectangle | None = Rectangle(0, 0, 100, 40),
    paragraph: dict | None = None,
    font_names: tuple[str, ...] = ("Roboto-Regular",),
    shape_type: int | None = 1,
    **kwargs: Any,
) -> LayerNode:
    """Create a text layer with the given style runs."""
    engine_data = make_engine_data(runs, paragraph, font_names, shape_type)
    return LayerNode(
        name=name,
        content=TextContent(text, engine_data, transform, bounds),
        **kwargs,
    )


def build_font(
    ascent: int = 800, descent: int = -200, units_per_em: int = 1000
) -> bytes:
    """Build a minimal TrueType font with the given vertical metrics."""
    builder = FontBuilder(units_per_em, isTTF=True)
    builder.setupGlyphOrder([".notdef"])
    builder.setupCharacterMap({})
    pen = TTGlyphPen(None)
    pen.moveTo((0, 0))
    pen.lineTo((0, 500))
    pen.lineTo((400, 500))
    pen.lineTo((400, 0))
    pen.closePath()
    builder.setupGlyf({".notdef": pen.glyph()})
    builder.setupHorizontalMetrics({".notdef": (500, 0)})
    builder.setupHorizontalHeader(ascent=ascent, descent=descent)
    builder.setupNameTable({"familyName": "Test Sans", "styleName": "Regular"})
    builder.setupOS2(
        sTypoAscender=ascent, usWinAscent=ascent, usWinDescent=-descent
    )
    builder.setupPost()
    with io.BytesIO() as output:
        builder.save(output)
        return output.getvalue()


@pytest.fixture
def engine() -> MemoryScene:
    return MemoryScene()


@pytest.fixture
def flags() -> Flags:
    """Flags that keep conversions offline."""
    return Flags(enable_text_typeface_reachable_check=False, font_catalog_url=None)
