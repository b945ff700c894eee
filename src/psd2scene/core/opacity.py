import logging

from psd2scene.core.base import ConverterProtocol
from psd2scene.core.color_utils import clamp
from psd2scene.document import LayerNode

logger = logging.getLogger(__name__)


def get_fill_opacity(layer: LayerNode) -> float:
    """Blend-option fill opacity between 0 and 1.

    A zero fill opacity hides the whole layer; it is treated as an authoring
    mistake and replaced by full opacity.
    """
    if layer.fill_opacity is None:
        return 1.0
    if layer.fill_opacity == 0:
        logger.warning(
            f"Layer '{layer.name}' has a fill opacity of 0, using full opacity."
        )
        return 1.0
    return layer.fill_opacity / 255


def compose_opacity(layer: LayerNode, raster_fill: bool = False) -> float:
    """Compose the opacity of a layer with its ancestor groups.

    Fill opacity and layer opacity are multiplied independently. This is an
    approximation of Photoshop compositing, where fill opacity does not apply
    to layer effects.

    Args:
        layer: Source layer.
        raster_fill: Whether the block is filled with the layer composite. The
            composite already includes the layer opacity, so only the fill
            opacity is applied.

    Returns:
        Opacity between 0 and 1.
    """
    fill_opacity = get_fill_opacity(layer)
    opacity = fill_opacity * (layer.opacity / 255)
    if raster_fill and layer.kind != "vector":
        opacity = fill_opacity

    for group in layer.ancestors:
        # Pass-through groups do not attenuate their descendants.
        if group.is_pass_through:
            continue
        opacity *= group.opacity / 255
    return clamp(opacity)


class OpacityConverter(ConverterProtocol):
    """Opacity converter mixin."""

    def apply_opacity(self, block: int, layer: LayerNode) -> float:
        """Set the composed opacity of the layer on the block."""
        fill = self.engine.get_fill(block)
        raster_fill = fill is not None and self.engine.get_type(fill) == "fill/image"
        opacity = compose_opacity(layer, raster_fill)
        self.engine.set_opacity(block, opacity)
        return opacity
