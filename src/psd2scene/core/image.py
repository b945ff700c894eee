import logging
from typing import Any

from psd_tools.psd.descriptor import Descriptor
from psd_tools.terminology import Key

from psd2scene.core.base import ConverterProtocol, Page
from psd2scene.core.color_utils import (
    WHITE,
    CMYKColor,
    Color,
    clamp,
    cmyk2rgb,
    color2rgba8,
    descriptor2color,
)
from psd2scene.core.path import PathRecord, reconstruct_path
from psd2scene.document import LayerNode, VectorContent
from psd2scene.image_utils import encode_data_uri

logger = logging.getLogger(__name__)


def get_background(layer: LayerNode) -> tuple[int, int, int, int] | None:
    """Opaque background from the solid color sheet of the layer, if any."""
    if layer.solid_color is None:
        return None
    color = descriptor2color(layer.solid_color)
    if color is None:
        return (0, 0, 0, 255)
    r, g, b, _ = color2rgba8(color)
    return (r, g, b, 255)


def _get_value(desc: Any, key: Any, default: float | None = None) -> float | None:
    item = desc.get(key) if desc is not None else None
    if item is None:
        return default
    return float(getattr(item, "value", item))


class ImageConverter(ConverterProtocol):
    """Raster and vector block builders."""

    def encode_layer(
        self, layer: LayerNode, width: int, height: int, full: bool = False
    ) -> str | None:
        """Encode the layer composite as a PNG data URI.

        Returns:
            The data URI, or None if the layer has no pixels.
        """
        if width <= 0 or height <= 0:
            logger.debug(f"Layer '{layer.name}' is empty, skipping pixels.")
            return None
        pixels = layer.get_pixels(own_effects_only=True, full=full)
        if pixels is None:
            return None
        data = self.png_encoder(pixels, width, height, get_background(layer))
        return encode_data_uri(data)

    def set_image_fill(self, block: int, uri: str | None) -> int:
        fill = self.engine.create_fill("image")
        self.engine.set_fill(block, fill)
        if uri is not None:
            self.engine.set_string(fill, "fill/image/imageFileURI", uri)
        return fill

    async def add_image(self, page: Page, layer: LayerNode) -> int:
        """Add a raster block with the layer composite as image fill."""
        width, height = int(layer.width), int(layer.height)
        uri = self.encode_layer(layer, width, height)

        block = self.engine.create("graphic")
        self.engine.set_shape(block, self.engine.create_shape("rect"))
        self.set_image_fill(block, uri)
        self.engine.set_kind(block, "image")
        self.engine.append_child(page.block, block)

        self.engine.set_position_x(block, layer.left)
        self.engine.set_position_y(block, layer.top)
        self.engine.set_width(block, width)
        self.engine.set_height(block, height)
        return block

    async def add_vector(self, page: Page, layer: LayerNode) -> int:
        """Add a canvas-sized shape block from the vector data of the layer.

        A vector mask clips the layer composite. Without one, the stroke
        content color fills the stroke mask path.
        """
        assert isinstance(layer.content, VectorContent)
        content = layer.content

        block = self.engine.create("graphic")
        self.engine.set_position_x(block, 0)
        self.engine.set_position_y(block, 0)
        self.engine.set_width(block, page.width)
        self.engine.set_height(block, page.height)
        self.engine.append_child(page.block, block)

        records: list[PathRecord] = []
        if content.mask_path is not None:
            records = content.mask_path
            uri = self.encode_layer(layer, page.width, page.height, full=True)
            self.set_image_fill(block, uri)
        elif content.stroke_content is not None:
            color = descriptor2color(content.stroke_content.get(Key.Color))
            if color is None:
                color = Color(0.0, 0.0, 0.0, clamp(layer.opacity / 255))
            if content.stroke_mask_path is not None:
                records = content.stroke_mask_path
            fill = self.engine.create_fill("color")
            self.engine.set_color(fill, "fill/color/value", color)
            self.engine.set_fill(block, fill)

        self.engine.set_kind(block, "shape")
        shape = self.engine.create_shape("vector_path")
        self.engine.set_shape(block, shape)
        path = reconstruct_path(records, page.width, page.height)
        self.engine.set_string(shape, "vector_path/path", str(path))
        self.engine.set_float(shape, "vector_path/width", page.width)
        self.engine.set_float(shape, "vector_path/height", page.height)

        if content.gradient_fill:
            logger.warning("Gradient fills are currently not supported")
        if content.stroke_style is not None:
            self.set_vector_stroke(block, content.stroke_style)
        return block

    def set_vector_stroke(self, block: int, stroke_style: Descriptor) -> None:
        """Set the stroke width, opacity, and color of a vector block."""
        content = stroke_style.get("strokeStyleContent")
        color = descriptor2color(content.get(Key.Color)) if content else None
        if color is None:
            logger.warning("Vector stroke color not found for the vector stroke")
            color = WHITE
        if isinstance(color, CMYKColor):
            color = cmyk2rgb(color)
        opacity = _get_value(stroke_style, "strokeStyleOpacity", 100.0)
        width = _get_value(stroke_style, "strokeStyleLineWidth", 1.0)
        self.engine.set_stroke_enabled(block, True)
        self.engine.set_stroke_width(block, width or 0.0)
        self.engine.set_stroke_color(
            block, Color(color.r, color.g, color.b, clamp((opacity or 0.0) / 100))
        )
