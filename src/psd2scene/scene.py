"""Scene engine interface and an in-memory implementation.

The converter only talks to a :class:`SceneEngine`, the capability set of the
target scene graph: block creation, shapes and fills, property setters,
geometric combination, grouping, and render state. :class:`MemoryScene` is a
small reference engine that keeps the scene in plain Python objects; it is used
by the command line tool to export JSON and by the tests.
"""

import dataclasses
import itertools
import logging
import math
from typing import Any, Callable, Iterable, Protocol, Sequence

from psd2scene.core.color_utils import AnyColor, CMYKColor, Color
from psd2scene.core.path import parse_path
from psd2scene.font_resolver import Typeface

logger = logging.getLogger(__name__)

# Average advance of a glyph in em units used by the monospace text layout.
GLYPH_ADVANCE = 0.6


class SceneError(RuntimeError):
    """Raised when the scene engine cannot perform an operation."""


class SceneEngine(Protocol):
    """Capability set of the target scene graph."""

    def create(self, kind: str) -> int: ...
    def destroy(self, block: int) -> None: ...
    def is_valid(self, block: int) -> bool: ...
    def get_type(self, block: int) -> str: ...
    def append_child(self, parent: int, child: int) -> None: ...
    def insert_child(self, parent: int, child: int, index: int) -> None: ...
    def get_parent(self, block: int) -> int | None: ...
    def get_children(self, block: int) -> list[int]: ...

    # Shapes and fills
    def create_shape(self, kind: str) -> int: ...
    def set_shape(self, block: int, shape: int) -> None: ...
    def get_shape(self, block: int) -> int | None: ...
    def create_fill(self, kind: str) -> int: ...
    def set_fill(self, block: int, fill: int) -> None: ...
    def get_fill(self, block: int) -> int | None: ...
    def set_fill_enabled(self, block: int, enabled: bool) -> None: ...

    # Properties by property-path key
    def set_float(self, block: int, key: str, value: float) -> None: ...
    def get_float(self, block: int, key: str) -> float: ...
    def set_string(self, block: int, key: str, value: str) -> None: ...
    def get_string(self, block: int, key: str) -> str: ...
    def set_bool(self, block: int, key: str, value: bool) -> None: ...
    def get_bool(self, block: int, key: str) -> bool: ...
    def set_enum(self, block: int, key: str, value: str) -> None: ...
    def get_enum(self, block: int, key: str) -> str: ...
    def set_color(self, block: int, key: str, value: AnyColor) -> None: ...

    # Block attributes
    def set_kind(self, block: int, kind: str) -> None: ...
    def set_name(self, block: int, name: str) -> None: ...
    def set_visible(self, block: int, visible: bool) -> None: ...
    def set_position_x(self, block: int, value: float) -> None: ...
    def set_position_y(self, block: int, value: float) -> None: ...
    def get_position_x(self, block: int) -> float: ...
    def get_position_y(self, block: int) -> float: ...
    def set_width(self, block: int, value: float) -> None: ...
    def set_height(self, block: int, value: float) -> None: ...
    def get_width(self, block: int) -> float: ...
    def get_height(self, block: int) -> float: ...
    def set_height_mode(self, block: int, mode: str) -> None: ...
    def get_frame_height(self, block: int) -> float: ...
    def set_rotation(self, block: int, radians: float) -> None: ...
    def get_rotation(self, block: int) -> float: ...
    def set_opacity(self, block: int, value: float) -> None: ...
    def get_opacity(self, block: int) -> float: ...
    def set_blend_mode(self, block: int, mode: str) -> None: ...
    def set_clipped(self, block: int, clipped: bool) -> None: ...

    # Crop and stroke
    def set_crop_scale_x(self, block: int, value: float) -> None: ...
    def set_crop_scale_y(self, block: int, value: float) -> None: ...
    def set_crop_translation_x(self, block: int, value: float) -> None: ...
    def set_crop_translation_y(self, block: int, value: float) -> None: ...
    def set_stroke_enabled(self, block: int, enabled: bool) -> None: ...
    def set_stroke_width(self, block: int, width: float) -> None: ...
    def set_stroke_color(self, block: int, color: AnyColor) -> None: ...

    # Text
    def set_font(self, block: int, font_uri: str, typeface: Typeface) -> None: ...
    def set_text_case(self, block: int, case: str, start: int, end: int) -> None: ...
    def can_toggle_bold_font(self, block: int, start: int, end: int) -> bool: ...
    def toggle_bold_font(self, block: int, start: int, end: int) -> None: ...
    def can_toggle_italic_font(self, block: int, start: int, end: int) -> bool: ...
    def toggle_italic_font(self, block: int, start: int, end: int) -> None: ...
    def set_text_color(
        self, block: int, color: AnyColor, start: int, end: int
    ) -> None: ...
    def replace_text(self, block: int, text: str, start: int, end: int) -> None: ...

    # Boolean operations and grouping
    def combine(self, blocks: Sequence[int], operation: str) -> int: ...
    def is_groupable(self, blocks: Sequence[int]) -> bool: ...
    def group(self, blocks: Sequence[int]) -> int: ...

    # Render state
    def get_state(self, block: int) -> str: ...
    def on_state_changed(
        self, blocks: Sequence[int], callback: Callable[[list[int]], None]
    ) -> Callable[[], None]: ...


@dataclasses.dataclass
class Block:
    """Block record of the in-memory scene."""

    id: int
    type: str
    kind: str = ""
    name: str = ""
    parent: int | None = None
    children: list[int] = dataclasses.field(default_factory=list)
    shape: int | None = None
    fill: int | None = None
    typeface: Typeface | None = None
    state: str = "Ready"
    properties: dict[str, Any] = dataclasses.field(default_factory=dict)
    text_ranges: list[tuple[str, int, int, Any]] = dataclasses.field(
        default_factory=list
    )


class MemoryScene:
    """In-memory scene engine.

    Geometric operations work on axis-aligned bounds, and text is laid out with a
    monospace model where every glyph advances by ``GLYPH_ADVANCE`` em plus the
    letter spacing. This is enough to exercise the converter and to export the
    resulting scene as JSON.

    Example::

        scene = MemoryScene()
        result = asyncio.run(Converter(document, scene).build())
        print(json.dumps(scene.to_dict(result.scene), indent=2))
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.blocks: dict[int, Block] = {}
        self._listeners: list[tuple[frozenset[int], Callable[[list[int]], None]]] = []

    def _get(self, block: int) -> Block:
        try:
            return self.blocks[block]
        except KeyError:
            raise SceneError(f"Invalid block: {block}") from None

    def _new(self, type_: str) -> int:
        block_id = next(self._ids)
        self.blocks[block_id] = Block(block_id, type_)
        return block_id

    # Hierarchy

    def create(self, kind: str) -> int:
        block = self._new(kind)
        if kind == "text":
            self.blocks[block].properties.update(
                {"text/text": "", "text/fontSize": 12.0, "text/lineHeight": 1.0}
            )
        return block

    def destroy(self, block: int) -> None:
        record = self._get(block)
        for child in list(record.children):
            self.destroy(child)
        for owned in (record.shape, record.fill):
            if owned is not None and owned in self.blocks:
                del self.blocks[owned]
        self._detach(block)
        del self.blocks[block]

    def is_valid(self, block: int) -> bool:
        return block in self.blocks

    def get_type(self, block: int) -> str:
        return self._get(block).type

    def _detach(self, block: int) -> None:
        record = self._get(block)
        if record.parent is not None and record.parent in self.blocks:
            self.blocks[record.parent].children.remove(block)
        record.parent = None

    def append_child(self, parent: int, child: int) -> None:
        self.insert_child(parent, child, len(self._get(parent).children))

    def insert_child(self, parent: int, child: int, index: int) -> None:
        self._detach(child)
        self._get(parent).children.insert(index, child)
        self._get(child).parent = parent

    def get_parent(self, block: int) -> int | None:
        return self._get(block).parent

    def get_children(self, block: int) -> list[int]:
        return list(self._get(block).children)

    # Shapes and fills

    def create_shape(self, kind: str) -> int:
        return self._new(f"shape/{kind}")

    def set_shape(self, block: int, shape: int) -> None:
        self._get(shape)
        self._get(block).shape = shape

    def get_shape(self, block: int) -> int | None:
        return self._get(block).shape

    def create_fill(self, kind: str) -> int:
        return self._new(f"fill/{kind}")

    def set_fill(self, block: int, fill: int) -> None:
        self._get(fill)
        self._get(block).fill = fill

    def get_fill(self, block: int) -> int | None:
        return self._get(block).fill

    def set_fill_enabled(self, block: int, enabled: bool) -> None:
        self._get(block).properties["fill/enabled"] = enabled

    # Properties

    def set_float(self, block: int, key: str, value: float) -> None:
        self._get(block).properties[key] = float(value)

    def get_float(self, block: int, key: str) -> float:
        return float(self._get(block).properties.get(key, 0.0))

    def set_string(self, block: int, key: str, value: str) -> None:
        self._get(block).properties[key] = str(value)

    def get_string(self, block: int, key: str) -> str:
        return str(self._get(block).properties.get(key, ""))

    def set_bool(self, block: int, key: str, value: bool) -> None:
        self._get(block).properties[key] = bool(value)

    def get_bool(self, block: int, key: str) -> bool:
        return bool(self._get(block).properties.get(key, False))

    def set_enum(self, block: int, key: str, value: str) -> None:
        self._get(block).properties[key] = value

    def get_enum(self, block: int, key: str) -> str:
        return str(self._get(block).properties.get(key, ""))

    def set_color(self, block: int, key: str, value: AnyColor) -> None:
        self._get(block).properties[key] = value

    def get_property(self, block: int, key: str, default: Any = None) -> Any:
        return self._get(block).properties.get(key, default)

    # Block attributes

    def set_kind(self, block: int, kind: str) -> None:
        self._get(block).kind = kind

    def get_kind(self, block: int) -> str:
        return self._get(block).kind

    def set_name(self, block: int, name: str) -> None:
        self._get(block).name = name

    def get_name(self, block: int) -> str:
        return self._get(block).name

    def set_visible(self, block: int, visible: bool) -> None:
        self.set_bool(block, "visible", visible)

    def is_visible(self, block: int) -> bool:
        return bool(self._get(block).properties.get("visible", True))

    def set_position_x(self, block: int, value: float) -> None:
        self.set_float(block, "position/x", value)

    def set_position_y(self, block: int, value: float) -> None:
        self.set_float(block, "position/y", value)

    def get_position_x(self, block: int) -> float:
        return self.get_float(block, "position/x")

    def get_position_y(self, block: int) -> float:
        return self.get_float(block, "position/y")

    def set_width(self, block: int, value: float) -> None:
        self.set_float(block, "width", value)

    def set_height(self, block: int, value: float) -> None:
        self.set_float(block, "height", value)

    def get_width(self, block: int) -> float:
        return self.get_float(block, "width")

    def get_height(self, block: int) -> float:
        if self.get_height_mode(block) == "Auto":
            return self.get_frame_height(block)
        return self.get_float(block, "height")

    def set_height_mode(self, block: int, mode: str) -> None:
        self.set_enum(block, "height/mode", mode)

    def get_height_mode(self, block: int) -> str:
        return self.get_enum(block, "height/mode") or "Absolute"

    def get_frame_height(self, block: int) -> float:
        record = self._get(block)
        if record.type == "text" and self.get_height_mode(block) == "Auto":
            return self.layout_text_height(block)
        return self.get_float(block, "height")

    def layout_text_height(self, block: int) -> float:
        """Height of the text laid out with the monospace model."""
        props = self._get(block).properties
        font_size = float(props.get("text/fontSize", 12.0))
        spacing = float(props.get("text/letterSpacing", 0.0))
        line_height = float(props.get("text/lineHeight", 1.0))
        width = float(props.get("width", 0.0))
        text = str(props.get("text/text", ""))

        advance = font_size * (GLYPH_ADVANCE + spacing)
        lines = 0
        for paragraph in text.replace("\r", "\n").split("\n"):
            if advance <= 0 or width <= 0:
                lines += 1
                continue
            per_line = max(1, math.floor(width / advance))
            lines += max(1, math.ceil(len(paragraph) / per_line))
        return lines * font_size * line_height

    def set_rotation(self, block: int, radians: float) -> None:
        self.set_float(block, "rotation", radians)

    def get_rotation(self, block: int) -> float:
        return self.get_float(block, "rotation")

    def set_opacity(self, block: int, value: float) -> None:
        self.set_float(block, "opacity", value)

    def get_opacity(self, block: int) -> float:
        return float(self._get(block).properties.get("opacity", 1.0))

    def set_blend_mode(self, block: int, mode: str) -> None:
        self.set_enum(block, "blend/mode", mode)

    def get_blend_mode(self, block: int) -> str:
        return self.get_enum(block, "blend/mode") or "Normal"

    def set_clipped(self, block: int, clipped: bool) -> None:
        self.set_bool(block, "clipped", clipped)

    # Crop and stroke

    def set_crop_scale_x(self, block: int, value: float) -> None:
        self.set_float(block, "crop/scaleX", value)

    def set_crop_scale_y(self, block: int, value: float) -> None:
        self.set_float(block, "crop/scaleY", value)

    def set_crop_translation_x(self, block: int, value: float) -> None:
        self.set_float(block, "crop/translationX", value)

    def set_crop_translation_y(self, block: int, value: float) -> None:
        self.set_float(block, "crop/translationY", value)

    def set_stroke_enabled(self, block: int, enabled: bool) -> None:
        self.set_bool(block, "stroke/enabled", enabled)

    def set_stroke_width(self, block: int, width: float) -> None:
        self.set_float(block, "stroke/width", width)

    def set_stroke_color(self, block: int, color: AnyColor) -> None:
        self.set_color(block, "stroke/color", color)

    # Text

    def set_font(self, block: int, font_uri: str, typeface: Typeface) -> None:
        record = self._get(block)
        record.typeface = typeface
        record.properties["text/fontFileUri"] = font_uri
        record.properties["text/typeface"] = typeface.name

    def _check_range(self, block: int, start: int, end: int) -> Block:
        record = self._get(block)
        length = len(record.properties.get("text/text", ""))
        if not 0 <= start <= end <= length:
            raise SceneError(f"Text range [{start}, {end}) is out of bounds")
        return record

    def set_text_case(self, block: int, case: str, start: int, end: int) -> None:
        self._check_range(block, start, end).text_ranges.append(
            ("case", start, end, case)
        )

    def _has_font(self, block: int, style: str | None, weight: str | None) -> bool:
        typeface = self._get(block).typeface
        if typeface is None:
            return False
        return any(
            (style is None or font.style == style)
            and (weight is None or font.weight == weight)
            for font in typeface.fonts
        )

    def can_toggle_bold_font(self, block: int, start: int, end: int) -> bool:
        self._check_range(block, start, end)
        return self._has_font(block, None, "bold")

    def toggle_bold_font(self, block: int, start: int, end: int) -> None:
        if not self.can_toggle_bold_font(block, start, end):
            raise SceneError("Bold font is not available")
        self._get(block).text_ranges.append(("bold", start, end, True))

    def can_toggle_italic_font(self, block: int, start: int, end: int) -> bool:
        self._check_range(block, start, end)
        return self._has_font(block, "italic", None)

    def toggle_italic_font(self, block: int, start: int, end: int) -> None:
        if not self.can_toggle_italic_font(block, start, end):
            raise SceneError("Italic font is not available")
        self._get(block).text_ranges.append(("italic", start, end, True))

    def set_text_color(
        self, block: int, color: AnyColor, start: int, end: int
    ) -> None:
        self._check_range(block, start, end).text_ranges.append(
            ("color", start, end, color)
        )

    def replace_text(self, block: int, text: str, start: int, end: int) -> None:
        record = self._check_range(block, start, end)
        current = record.properties.get("text/text", "")
        record.properties["text/text"] = current[:start] + text + current[end:]

    def get_text_ranges(self, block: int, op: str) -> list[tuple[int, int, Any]]:
        return [
            (start, end, value)
            for name, start, end, value in self._get(block).text_ranges
            if name == op
        ]

    # Boolean operations and grouping

    def get_bounds(self, block: int) -> tuple[float, float, float, float]:
        """Scene bounds (left, top, right, bottom) of the visible content."""
        record = self._get(block)
        x, y = self.get_position_x(block), self.get_position_y(block)
        width, height = self.get_width(block), self.get_height(block)
        bounds = (x, y, x + width, y + height)

        if record.shape is None or self.get_type(record.shape) != "shape/vector_path":
            return bounds
        path = parse_path(self.get_string(record.shape, "vector_path/path"))
        path_bounds = path.bounds()
        if path_bounds is None:
            return (x, y, x, y)
        path_width = self.get_float(record.shape, "vector_path/width") or width
        path_height = self.get_float(record.shape, "vector_path/height") or height
        sx = width / path_width if path_width else 1.0
        sy = height / path_height if path_height else 1.0
        return intersect_bounds(
            [
                bounds,
                (
                    x + path_bounds[0] * sx,
                    y + path_bounds[1] * sy,
                    x + path_bounds[2] * sx,
                    y + path_bounds[3] * sy,
                ),
            ]
        )

    def combine(self, blocks: Sequence[int], operation: str) -> int:
        """Combine blocks into a new block and destroy the inputs.

        The result keeps the fill and attributes of the first block.

        Raises:
            SceneError: If the operation is unknown or the result is empty.
        """
        if len(blocks) < 2:
            raise SceneError("At least two blocks are required to combine")
        bounds = [self.get_bounds(block) for block in blocks]
        if operation == "Intersection":
            left, top, right, bottom = intersect_bounds(bounds)
        elif operation == "Union":
            left = min(b[0] for b in bounds)
            top = min(b[1] for b in bounds)
            right = max(b[2] for b in bounds)
            bottom = max(b[3] for b in bounds)
        else:
            raise SceneError(f"Unsupported boolean operation: {operation}")
        if right - left <= 0 or bottom - top <= 0:
            raise SceneError(f"{operation} of blocks {list(blocks)} is empty")

        first = self._get(blocks[0])
        result = self._new("graphic")
        record = self.blocks[result]
        record.kind = first.kind
        record.name = first.name
        record.properties.update(
            {
                key: value
                for key, value in first.properties.items()
                if key in ("opacity", "blend/mode", "visible")
            }
        )
        record.fill, first.fill = first.fill, None

        self.set_shape(result, self.create_shape("rect"))
        self.set_position_x(result, left)
        self.set_position_y(result, top)
        self.set_width(result, right - left)
        self.set_height(result, bottom - top)

        if first.parent is not None:
            index = self.blocks[first.parent].children.index(first.id)
            self.insert_child(first.parent, result, index)
        for block in blocks:
            self.destroy(block)
        return result

    def is_groupable(self, blocks: Sequence[int]) -> bool:
        if not blocks or not all(self.is_valid(block) for block in blocks):
            return False
        parents = {self._get(block).parent for block in blocks}
        return len(parents) == 1 and None not in parents

    def group(self, blocks: Sequence[int]) -> int:
        if not self.is_groupable(blocks):
            raise SceneError(f"Blocks {list(blocks)} cannot be grouped")
        parent = self._get(blocks[0]).parent
        assert parent is not None
        index = min(self.blocks[parent].children.index(block) for block in blocks)
        group = self.create("group")
        self.insert_child(parent, group, index)
        for block in blocks:
            self.append_child(group, block)
        return group

    # Render state

    def get_state(self, block: int) -> str:
        return self._get(block).state

    def set_state(self, block: int, state: str) -> None:
        self._get(block).state = state
        for blocks, callback in list(self._listeners):
            if not blocks or block in blocks:
                callback([block])

    def on_state_changed(
        self, blocks: Sequence[int], callback: Callable[[list[int]], None]
    ) -> Callable[[], None]:
        entry = (frozenset(blocks), callback)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    # Export

    def find(self, type_: str | None = None, kind: str | None = None) -> list[int]:
        """Find blocks by type and kind, in creation order."""
        return [
            block.id
            for block in self.blocks.values()
            if (type_ is None or block.type == type_)
            and (kind is None or block.kind == kind)
        ]

    def to_dict(self, block: int) -> dict[str, Any]:
        """Export a block subtree as JSON-compatible data."""
        record = self._get(block)
        data: dict[str, Any] = {"id": record.id, "type": record.type}
        if record.kind:
            data["kind"] = record.kind
        if record.name:
            data["name"] = record.name
        data["properties"] = {
            key: _to_json(value) for key, value in sorted(record.properties.items())
        }
        if record.shape is not None:
            data["shape"] = self.to_dict(record.shape)
        if record.fill is not None:
            data["fill"] = self.to_dict(record.fill)
        if record.text_ranges:
            data["textRanges"] = [
                {"op": op, "start": start, "end": end, "value": _to_json(value)}
                for op, start, end, value in record.text_ranges
            ]
        if record.children:
            data["children"] = [self.to_dict(child) for child in record.children]
        return data


def intersect_bounds(
    bounds: Iterable[tuple[float, float, float, float]],
) -> tuple[float, float, float, float]:
    items = list(bounds)
    return (
        max(b[0] for b in items),
        max(b[1] for b in items),
        min(b[2] for b in items),
        min(b[3] for b in items),
    )


def _to_json(value: Any) -> Any:
    if isinstance(value, (Color, CMYKColor)):
        return dataclasses.asdict(value)
    return value
