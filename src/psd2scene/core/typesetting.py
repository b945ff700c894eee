"""Rich text structures of PSD text layers.

This module wraps the engine data of a text layer (as plain dicts and lists,
see :func:`psd2scene.document.unwrap_engine_data`) and provides style runs,
paragraph runs, and style sheets with the layer and document defaults.

Example engine data layout::

    {
        "EngineDict": {
            "StyleRun": {"RunArray": [{"StyleSheet": {"StyleSheetData": {...}}}],
                         "RunLengthArray": [5, 5]},
            "ParagraphRun": {"RunArray": [{"ParagraphSheet": {"Properties": {...}}}],
                             "RunLengthArray": [10]},
            "Rendered": {"Shapes": {"Children": [{"ShapeType": 0}]}},
        },
        "ResourceDict": {"FontSet": [{"Name": "Roboto-Bold"}],
                         "StyleSheetSet": [{"StyleSheetData": {...}}]},
        "DocumentResources": {...},
    }
"""

import dataclasses
import logging
from enum import IntEnum
from typing import Any

logger = logging.getLogger(__name__)


class ShapeType(IntEnum):
    """Text shape type values from Photoshop."""

    POINT = 0
    BOUNDING_BOX = 1


class FontCaps(IntEnum):
    """Font capitalization style values from Photoshop."""

    NORMAL = 0
    SMALL_CAPS = 1
    ALL_CAPS = 2


@dataclasses.dataclass
class ParagraphSheet:
    """Paragraph sheet data."""

    name: str = ""
    properties: dict = dataclasses.field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict | None) -> "ParagraphSheet":
        data = data or {}
        if "ParagraphSheet" in data:
            data = data["ParagraphSheet"] or {}
        return cls(
            name=data.get("Name", ""),
            properties=dict(data.get("Properties") or {}),
        )

    def get(self, key: str, default: Any = None) -> Any:
        return self.properties.get(key, default)

    @property
    def justification(self) -> int:
        return int(self.properties.get("Justification", 0))

    @property
    def auto_leading(self) -> float | None:
        """Auto leading scale, if set."""
        value = self.properties.get("AutoLeading")
        return None if value is None else float(value)


@dataclasses.dataclass
class StyleSheet:
    """Style sheet data."""

    name: str = ""
    style_sheet_data: dict = dataclasses.field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict | None) -> "StyleSheet":
        data = data or {}
        if "StyleSheet" in data:
            data = data["StyleSheet"] or {}
        return cls(
            name=data.get("Name", ""),
            style_sheet_data=dict(data.get("StyleSheetData") or {}),
        )

    def __contains__(self, key: str) -> bool:
        return key in self.style_sheet_data

    def get(self, key: str, default: Any = None) -> Any:
        return self.style_sheet_data.get(key, default)

    @property
    def font(self) -> int:
        """Font index into the font set."""
        return int(self.style_sheet_data.get("Font", 0))

    @property
    def font_size(self) -> float | None:
        value = self.style_sheet_data.get("FontSize")
        return None if value is None else float(value)

    @property
    def faux_bold(self) -> bool:
        return bool(self.style_sheet_data.get("FauxBold", False))

    @property
    def faux_italic(self) -> bool:
        return bool(self.style_sheet_data.get("FauxItalic", False))

    @property
    def font_caps(self) -> int:
        return int(self.style_sheet_data.get("FontCaps", 0))

    @property
    def auto_leading(self) -> bool:
        """Whether auto leading is enabled."""
        return bool(self.style_sheet_data.get("AutoLeading", True))

    @property
    def leading(self) -> float | None:
        value = self.style_sheet_data.get("Leading")
        return None if value is None else float(value)

    @property
    def tracking(self) -> float:
        return float(self.style_sheet_data.get("Tracking", 0))

    @property
    def kerning(self) -> float:
        return float(self.style_sheet_data.get("Kerning", 0))

    @property
    def fill_color(self) -> tuple[float, ...] | None:
        """Fill color as ARGB values between 0 and 1."""
        return _get_argb(self.style_sheet_data.get("FillColor"))

    @property
    def stroke_color(self) -> tuple[float, ...] | None:
        """Stroke color as ARGB values between 0 and 1."""
        return _get_argb(self.style_sheet_data.get("StrokeColor"))

    @property
    def stroke_flag(self) -> bool:
        """Whether stroke is enabled."""
        return bool(self.style_sheet_data.get("StrokeFlag", False))

    @property
    def outline_width(self) -> float:
        return float(self.style_sheet_data.get("OutlineWidth", 1.0))


@dataclasses.dataclass
class StyleRun:
    """Style of the character range [start, end)."""

    start: int
    end: int
    style: StyleSheet

    def __len__(self) -> int:
        return self.end - self.start


@dataclasses.dataclass
class ParagraphRun:
    """Paragraph style of the character range [start, end)."""

    start: int
    end: int
    style: ParagraphSheet


class RunLengthIndex:
    """Get run index from character index using run length array.

    Example::

        rli = RunLengthIndex([4, 2, 5])
        rli(0) -> 0
        rli(3) -> 0
        rli(4) -> 1
        rli(10) -> 2
        rli.ranges(5) -> [(0, 4), (4, 5), (5, 5)]
    """

    def __init__(self, run_length_array: list[int]):
        self._cumulative_lengths = []
        cumulative = 0
        for length in run_length_array:
            cumulative += int(length)
            self._cumulative_lengths.append(cumulative)

    @property
    def boundaries(self) -> list[int]:
        return self._cumulative_lengths

    def __call__(self, index: int) -> int:
        """Get the run index for the given character index."""
        if index < 0:
            raise IndexError("Character index cannot be negative.")
        for run_index, cumulative_length in enumerate(self._cumulative_lengths):
            if index < cumulative_length:
                return run_index
        raise IndexError("Character index out of range.")

    def ranges(self, length: int) -> list[tuple[int, int]]:
        """Run ranges clamped to the given text length.

        There is one range per run; runs past the end of the text are empty.
        """
        ranges = []
        start = 0
        for boundary in self._cumulative_lengths:
            ranges.append((min(start, length), min(boundary, length)))
            start = boundary
        return ranges


class TypeSetting:
    """Engine data wrapper of a text layer.

    Example::

        setting = TypeSetting(layer.content.engine_data, layer.content.text)
        for run in setting.style_runs:
            print(run.start, run.end, setting.get_style_value(run.style, "FillColor"))
    """

    def __init__(self, engine_data: dict, text: str):
        self._engine_data = engine_data or {}
        self.text = text

    @property
    def engine_dict(self) -> dict:
        return self._engine_data.get("EngineDict") or {}

    @property
    def resources(self) -> dict:
        return self._engine_data.get("ResourceDict") or {}

    @property
    def document_resources(self) -> dict:
        return self._engine_data.get("DocumentResources") or {}

    @property
    def font_set(self) -> list[dict]:
        """Font set of the layer, falling back to the document font set."""
        font_set = self.resources.get("FontSet") or self.document_resources.get(
            "FontSet"
        )
        return [dict(font) for font in font_set or []]

    @property
    def default_style(self) -> StyleSheet:
        """First style sheet of the layer resources."""
        return _first_style_sheet(self.resources)

    @property
    def document_style(self) -> StyleSheet:
        """First style sheet of the document resources."""
        return _first_style_sheet(self.document_resources)

    @property
    def style_runs(self) -> list[StyleRun]:
        """Style runs, clamped to the text length."""
        style_run = self.engine_dict.get("StyleRun") or {}
        run_array = style_run.get("RunArray") or []
        index = RunLengthIndex(style_run.get("RunLengthArray") or [])
        runs = []
        for i, (start, end) in enumerate(index.ranges(len(self.text))):
            if start >= end:
                continue
            if i >= len(run_array) or not run_array[i]:
                logger.debug(f"Style run {i} has no style sheet, skipping.")
                continue
            runs.append(StyleRun(start, end, StyleSheet.from_dict(run_array[i])))
        return runs

    @property
    def paragraph_runs(self) -> list[ParagraphRun]:
        """Paragraph runs, clamped to the text length."""
        paragraph_run = self.engine_dict.get("ParagraphRun") or {}
        run_array = paragraph_run.get("RunArray") or []
        index = RunLengthIndex(paragraph_run.get("RunLengthArray") or [])
        return [
            ParagraphRun(start, end, ParagraphSheet.from_dict(run_array[i]))
            for i, (start, end) in enumerate(index.ranges(len(self.text)))
            if start < end and i < len(run_array)
        ]

    @property
    def first_paragraph(self) -> ParagraphSheet:
        """Sheet of the first paragraph run, regardless of the text length."""
        paragraph_run = self.engine_dict.get("ParagraphRun") or {}
        run_array = paragraph_run.get("RunArray") or []
        return ParagraphSheet.from_dict(run_array[0] if run_array else None)

    @property
    def first_style(self) -> StyleSheet:
        """Sheet of the first style run, regardless of the text length."""
        style_run = self.engine_dict.get("StyleRun") or {}
        run_array = style_run.get("RunArray") or []
        return StyleSheet.from_dict(run_array[0] if run_array else None)

    @property
    def shape_type(self) -> ShapeType | None:
        """Shape type of the first rendered shape."""
        rendered = self.engine_dict.get("Rendered") or {}
        children = (rendered.get("Shapes") or {}).get("Children") or []
        if not children:
            logger.debug("No shapes found.")
            return None
        value = children[0].get("ShapeType")
        if value is None:
            return None
        try:
            return ShapeType(int(value))
        except ValueError:
            logger.debug(f"Unknown shape type: {value}")
            return None

    def get_style_value(self, style: StyleSheet, key: str) -> Any:
        """Look up a style value in the run, layer default, then document default.

        Unset and falsy values fall through to the next level.
        """
        for sheet in (style, self.default_style, self.document_style):
            value = sheet.get(key)
            if value:
                return value
        return None

    def get_postscript_name(self, font_index: int) -> str | None:
        font_set = self.font_set
        if not 0 <= font_index < len(font_set):
            logger.warning(f"Font index {font_index} is out of the font set.")
            return None
        name = font_set[font_index].get("Name")
        if name is None:
            logger.warning(f"PostScript name not found for font index {font_index}.")
            return None
        return str(name)


def _first_style_sheet(resources: dict) -> StyleSheet:
    sheets = resources.get("StyleSheetSet") or []
    return StyleSheet.from_dict(sheets[0] if sheets else None)


def _get_argb(color: Any) -> tuple[float, ...] | None:
    if not color:
        return None
    values = color.get("Values") if isinstance(color, dict) else color
    if not values or len(values) != 4:
        return None
    return tuple(float(v) for v in values)
