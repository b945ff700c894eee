"""Parsed document model.

The converter consumes a small, read-only tree of :class:`DocumentNode`,
:class:`GroupNode`, and :class:`LayerNode` objects. Every layer carries exactly
one content variant (:class:`TextContent`, :class:`VectorContent`, or
:class:`RasterContent`) decided once when the node is built, and every node
carries its ancestor chain, attached in a single top-down pass.

:meth:`DocumentNode.from_psd` builds the tree from a ``psd_tools.PSDImage``.
"""

import dataclasses
import logging
from typing import Any, Callable, Iterable, Iterator, Sequence

import numpy as np
from psd_tools import PSDImage
from psd_tools.api import layers
from psd_tools.constants import BlendMode, PathResourceID, Tag
from psd_tools.psd.descriptor import Descriptor
from psd_tools.psd.vector import InitialFillRule, Knot, Subpath
from psd_tools.terminology import Key

from psd2scene.core.geometry import Rectangle, Transform
from psd2scene.core.path import PathRecord

logger = logging.getLogger(__name__)

# composite(own_effects_only, full) -> RGBA pixels with shape (height, width, 4).
CompositeFn = Callable[[bool, bool], np.ndarray | None]


@dataclasses.dataclass
class TextContent:
    """Text payload: the string plus the engine data style structure."""

    text: str
    engine_data: dict = dataclasses.field(default_factory=dict)
    transform: Transform | None = None
    bounds: Rectangle | None = None


@dataclasses.dataclass
class VectorContent:
    """Vector payload: path records plus stroke and fill descriptors."""

    mask_path: list[PathRecord] | None = None
    stroke_content: Descriptor | None = None
    stroke_mask_path: list[PathRecord] | None = None
    stroke_style: Descriptor | None = None
    gradient_fill: bool = False

    def has_markers(self) -> bool:
        return any(
            marker is not None
            for marker in (
                self.mask_path,
                self.stroke_content,
                self.stroke_mask_path,
                self.stroke_style,
            )
        )


@dataclasses.dataclass
class RasterContent:
    """Raster payload; pixels come from the layer composite."""


LayerContent = TextContent | VectorContent | RasterContent


def classify_layer(
    text: TextContent | None, vector: VectorContent | None
) -> LayerContent:
    """Pick the content variant of a layer; text wins over vector data."""
    if text is not None:
        return text
    if vector is not None and vector.has_markers():
        return vector
    return RasterContent()


@dataclasses.dataclass(eq=False)
class GroupNode:
    """Named container of layers and groups."""

    name: str
    children: list[Any] = dataclasses.field(default_factory=list)
    opacity: int = 255
    blend_mode: BlendMode = BlendMode.PASS_THROUGH
    visible: bool = True
    layer_id: int | None = None
    mask_path: list[PathRecord] | None = None
    has_pixel_mask: bool = False
    ancestors: tuple["GroupNode", ...] = dataclasses.field(
        default=(), repr=False, compare=False
    )

    def __iter__(self) -> Iterator[Any]:
        return iter(self.children)

    def __len__(self) -> int:
        return len(self.children)

    @property
    def is_pass_through(self) -> bool:
        return self.blend_mode == BlendMode.PASS_THROUGH


@dataclasses.dataclass(eq=False)
class LayerNode:
    """Leaf layer."""

    name: str
    left: float = 0
    top: float = 0
    width: float = 0
    height: float = 0
    opacity: int = 255
    blend_mode: BlendMode = BlendMode.NORMAL
    visible: bool = True
    layer_id: int | None = None
    group_id: int | float | None = None
    fill_opacity: int | None = None
    solid_color: Descriptor | None = None
    content: LayerContent = dataclasses.field(default_factory=RasterContent)
    composite: CompositeFn | None = dataclasses.field(default=None, repr=False)
    ancestors: tuple[GroupNode, ...] = dataclasses.field(
        default=(), repr=False, compare=False
    )

    @property
    def kind(self) -> str:
        return {
            TextContent: "text",
            VectorContent: "vector",
            RasterContent: "raster",
        }[type(self.content)]

    @property
    def transform(self) -> Transform | None:
        if isinstance(self.content, TextContent):
            return self.content.transform
        return None

    def is_visible(self) -> bool:
        """Visibility including the ancestor groups."""
        return self.visible and all(group.visible for group in self.ancestors)

    def get_pixels(
        self, own_effects_only: bool = True, full: bool = False
    ) -> np.ndarray | None:
        if self.composite is None:
            return None
        return self.composite(own_effects_only, full)


@dataclasses.dataclass(eq=False)
class DocumentNode:
    """Root of a parsed document."""

    name: str
    width: int
    height: int
    children: list[Any] = dataclasses.field(default_factory=list)

    def __post_init__(self) -> None:
        self.link()

    def __iter__(self) -> Iterator[Any]:
        return iter(self.children)

    def __len__(self) -> int:
        return len(self.children)

    def link(self) -> None:
        """Attach the ancestor chain (nearest group first) to every node."""

        def visit(nodes: Iterable[Any], chain: tuple[GroupNode, ...]) -> None:
            for node in nodes:
                if isinstance(node, (GroupNode, LayerNode)):
                    node.ancestors = chain
                if isinstance(node, GroupNode):
                    visit(node.children, (node,) + chain)

        visit(self.children, ())

    def descendants(self) -> Iterator[Any]:
        """Depth-first pre-order iteration over all nodes."""

        def visit(nodes: Iterable[Any]) -> Iterator[Any]:
            for node in nodes:
                yield node
                if isinstance(node, GroupNode):
                    yield from visit(node.children)

        return visit(self.children)

    @classmethod
    def from_psd(cls, psdimage: PSDImage, name: str | None = None) -> "DocumentNode":
        """Build a document tree from a PSDImage.

        Children keep the psd_tools order, which is bottom-most first.
        """
        return cls(
            name=name if name is not None else psdimage.name,
            width=psdimage.width,
            height=psdimage.height,
            children=[convert_layer(layer, psdimage.viewbox) for layer in psdimage],
        )


def convert_layer(
    layer: layers.Layer, viewbox: tuple[int, int, int, int] | None = None
) -> GroupNode | LayerNode:
    """Convert a psd_tools layer into a document node."""
    if layer.is_group():
        return GroupNode(
            name=layer.name,
            children=[convert_layer(child, viewbox) for child in layer],
            opacity=layer.opacity,
            blend_mode=layer.blend_mode,
            visible=layer.visible,
            layer_id=layer.layer_id,
            mask_path=get_path_records(layer, Tag.VECTOR_MASK_SETTING1),
            has_pixel_mask=layer.has_mask(),
        )

    parent = layer.parent
    node = LayerNode(
        name=layer.name,
        left=layer.left,
        top=layer.top,
        width=layer.width,
        height=layer.height,
        opacity=layer.opacity,
        blend_mode=layer.blend_mode,
        visible=layer.visible,
        layer_id=layer.layer_id,
        group_id=parent.layer_id if isinstance(parent, layers.Group) else None,
        fill_opacity=layer.tagged_blocks.get_data(Tag.BLEND_FILL_OPACITY),
        content=classify_layer(get_text_content(layer), get_vector_content(layer)),
        composite=get_composite_fn(layer, viewbox),
    )
    solid_color = layer.tagged_blocks.get_data(Tag.SOLID_COLOR_SHEET_SETTING)
    if solid_color is not None:
        node.solid_color = solid_color.get(Key.Color)
    return node


def get_composite_fn(
    layer: layers.Layer, viewbox: tuple[int, int, int, int] | None = None
) -> CompositeFn:
    def composite(own_effects_only: bool, full: bool) -> np.ndarray | None:
        # psd_tools always renders the layer with its own effects only. A full
        # render covers the whole canvas instead of the layer bounds.
        viewport = viewbox if full else None
        image = layer.composite(viewport=viewport)
        if image is None:
            logger.warning(f"Layer '{layer.name}' has no pixels to composite.")
            return None
        return np.asarray(image.convert("RGBA"))

    return composite


def get_text_content(layer: layers.Layer) -> TextContent | None:
    if not isinstance(layer, layers.TypeLayer):
        return None
    setting = layer.tagged_blocks.get_data(Tag.TYPE_TOOL_OBJECT_SETTING)
    bounds = None
    if setting is not None:
        desc = setting.text_data.get("bounds")
        if desc is not None:
            bounds = Rectangle(
                left=_get_float(desc, Key.Left),
                top=_get_float(desc, Key.Top),
                right=_get_float(desc, Key.Right),
                bottom=_get_float(desc, Key.Bottom),
            )
    return TextContent(
        text=layer.text,
        engine_data={
            "EngineDict": unwrap_engine_data(layer.engine_dict),
            "ResourceDict": unwrap_engine_data(layer.resource_dict),
            "DocumentResources": unwrap_engine_data(layer.document_resources),
        },
        transform=Transform(*layer.transform),
        bounds=bounds,
    )


def get_vector_content(layer: layers.Layer) -> VectorContent:
    blocks = layer.tagged_blocks
    return VectorContent(
        mask_path=get_path_records(layer, Tag.VECTOR_MASK_SETTING1),
        stroke_content=blocks.get_data(Tag.VECTOR_STROKE_CONTENT_DATA),
        stroke_mask_path=get_path_records(layer, Tag.VECTOR_MASK_SETTING2),
        stroke_style=blocks.get_data(Tag.VECTOR_STROKE_DATA),
        gradient_fill=Tag.GRADIENT_FILL_SETTING in blocks,
    )


def get_path_records(layer: layers.Layer, tag: Tag) -> list[PathRecord] | None:
    """Flatten a vector mask setting into path records."""
    setting = layer.tagged_blocks.get_data(tag)
    if setting is None or setting.path is None:
        return None
    return list(flatten_path(setting.path))


def flatten_path(path: Sequence[Any]) -> Iterator[PathRecord]:
    for item in path:
        if isinstance(item, Subpath):
            yield PathRecord(
                PathResourceID.CLOSED_LENGTH
                if item.is_closed()
                else PathResourceID.OPEN_LENGTH
            )
            for knot in item:
                yield PathRecord(
                    knot.selector,
                    preceding=tuple(knot.preceding),
                    anchor=tuple(knot.anchor),
                    leaving=tuple(knot.leaving),
                )
        elif isinstance(item, Knot):
            yield PathRecord(
                item.selector,
                preceding=tuple(item.preceding),
                anchor=tuple(item.anchor),
                leaving=tuple(item.leaving),
            )
        elif isinstance(item, InitialFillRule):
            yield PathRecord(PathResourceID.INITIAL_FILL, fill=bool(item.value))
        elif hasattr(item, "selector"):
            yield PathRecord(item.selector)


def unwrap_engine_data(value: Any) -> Any:
    """Convert psd_tools engine data elements into plain dicts and lists."""
    if value is None or isinstance(value, (str, bytes, bool, int, float)):
        return value
    if hasattr(value, "items") and hasattr(value, "keys"):
        return {
            str(getattr(key, "value", key)): unwrap_engine_data(item)
            for key, item in value.items()
        }
    if hasattr(value, "value"):
        return unwrap_engine_data(value.value)
    return [unwrap_engine_data(item) for item in value]


def _get_float(desc: Descriptor, key: Key) -> float | None:
    value = desc.get(key)
    if value is None:
        return None
    return float(value)
