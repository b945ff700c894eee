import logging

from psd2scene.core.base import ConverterProtocol, Page
from psd2scene.core.color_utils import MASK_COLOR
from psd2scene.core.path import reconstruct_path
from psd2scene.document import GroupNode, LayerNode
from psd2scene.scene import SceneError

logger = logging.getLogger(__name__)


class MaskConverter(ConverterProtocol):
    """Clip mask converter mixin.

    Vector masks of ancestor groups are approximated by intersecting the layer
    block with one canvas-sized shape per mask.
    """

    def create_clip_mask_block(self, page: Page, group: GroupNode) -> int | None:
        """Create a shape block from the vector mask of a group.

        Returns:
            The mask block, or None if the group has no vector mask.
        """
        if group.has_pixel_mask:
            logger.warning(
                f"Group '{group.name}' has a pixel mask, which is not supported."
            )
        if group.mask_path is None:
            return None

        block = self.engine.create("graphic")
        self.engine.set_fill_enabled(block, True)
        fill = self.engine.create_fill("color")
        self.engine.set_fill(block, fill)
        # Only the geometry of the mask matters.
        self.engine.set_color(fill, "fill/color/value", MASK_COLOR)

        self.engine.set_kind(block, "shape")
        shape = self.engine.create_shape("vector_path")
        self.engine.set_shape(block, shape)
        self.engine.set_width(block, page.width)
        self.engine.set_height(block, page.height)

        path = reconstruct_path(group.mask_path, page.width, page.height)
        self.engine.set_string(shape, "vector_path/path", str(path))
        self.engine.set_float(shape, "vector_path/width", page.width)
        self.engine.set_float(shape, "vector_path/height", page.height)
        self.engine.append_child(page.block, block)
        return block

    def apply_clip_masks(self, page: Page, block: int, layer: LayerNode) -> int:
        """Intersect a block with the vector masks of the layer's ancestors.

        The resulting block is cropped so that the layer content keeps its
        original position and size. If the intersection fails, the mask blocks
        are removed and the original block is returned unchanged.

        Returns:
            The intersected block, or the original block.
        """
        masks = []
        for group in layer.ancestors:
            mask = self.create_clip_mask_block(page, group)
            if mask is not None:
                masks.append(mask)
        if not masks:
            return block

        old_width = self.engine.get_width(block)
        old_height = self.engine.get_height(block)
        old_x = self.engine.get_position_x(block)
        old_y = self.engine.get_position_y(block)
        try:
            result = self.engine.combine([block] + masks, "Intersection")
        except (SceneError, ValueError) as e:
            logger.warning(
                f"Failed to apply clip masks to layer '{layer.name}': {e}"
            )
            for mask in masks:
                if self.engine.is_valid(mask):
                    self.engine.destroy(mask)
            return block

        new_width = self.engine.get_width(result)
        new_height = self.engine.get_height(result)
        new_x = self.engine.get_position_x(result)
        new_y = self.engine.get_position_y(result)
        if new_width <= 0 or new_height <= 0:
            logger.warning(
                f"Clip masks of layer '{layer.name}' produced an empty block, "
                "the content is not cropped."
            )
            return result
        self.engine.set_crop_scale_x(result, old_width / new_width)
        self.engine.set_crop_scale_y(result, old_height / new_height)
        self.engine.set_crop_translation_x(result, (old_x - new_x) / new_width)
        self.engine.set_crop_translation_y(result, (old_y - new_y) / new_height)
        logger.debug(f"Applied {len(masks)} clip mask(s) to layer '{layer.name}'.")
        return result
