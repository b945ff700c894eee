import logging
import math
from typing import Any, Awaitable, Callable

from psd_tools.constants import BlendMode

from psd2scene.core.base import ConverterProtocol, GroupMemberships, Page
from psd2scene.core.constants import BLEND_MODE
from psd2scene.document import (
    DocumentNode,
    GroupNode,
    LayerNode,
    RasterContent,
    TextContent,
    VectorContent,
)

logger = logging.getLogger(__name__)


class LayerConverter(ConverterProtocol):
    """Main layer converter mixin."""

    async def add_children(self, page: Page, node: DocumentNode | GroupNode) -> None:
        """Add the child nodes to the page, in source order."""
        for child in node:
            await self.add_node(page, child)

    async def add_node(self, page: Page, node: Any) -> None:
        """Add a group subtree or a single layer to the page.

        Raises:
            TypeError: If the node is neither a group nor a layer.
        """
        if isinstance(node, GroupNode):
            if not node.visible and not self.flags.include_hidden_layers:
                logger.debug(f"Group '{node.name}' is invisible, skipping.")
                return
            logger.debug(f"Entering group: '{node.name}'")
            await self.add_children(page, node)
        elif isinstance(node, LayerNode):
            await self.add_layer(page, node)
        else:
            raise TypeError("Invalid node type")

    async def add_layer(self, page: Page, layer: LayerNode) -> int | None:
        """Add a layer to the page.

        Failures are logged and do not stop the traversal.

        Returns:
            The created block, or None if the layer is skipped or failed.
        """
        visible = layer.is_visible()
        if not visible and not self.flags.include_hidden_layers:
            logger.debug(
                f"Layer '{layer.name}' ({layer.kind}) is invisible, skipping."
            )
            return None
        logger.debug(f"Adding layer: '{layer.name}' ({layer.kind})")

        registry: dict[type, Callable[[Page, LayerNode], Awaitable[int]]] = {
            TextContent: self.add_text,
            VectorContent: self.add_vector,
            RasterContent: self.add_image,
        }
        try:
            block = await registry[type(layer.content)](page, layer)
            self.engine.set_name(block, layer.name)
            if not visible:
                self.engine.set_visible(block, False)
            self.set_blend_mode(block, layer.blend_mode)
            self.apply_rotation(block, layer)
            if self.flags.apply_clip_masks and layer.kind == "raster":
                block = self.apply_clip_masks(page, block, layer)
            self.add_membership(page.memberships, block, layer)
            self.apply_opacity(block, layer)
        except Exception as e:
            logger.error(f"Failed to convert layer '{layer.name}': {e}")
            return None
        return block

    def add_membership(
        self, memberships: GroupMemberships, block: int, layer: LayerNode
    ) -> None:
        group_id = layer.group_id
        if group_id is None or (isinstance(group_id, float) and math.isnan(group_id)):
            return
        if not self.engine.is_valid(block):
            logger.warning(
                f"Block of layer '{layer.name}' is invalid, "
                "leaving it out of its group."
            )
            return
        memberships.add(int(group_id), block)

    def set_blend_mode(self, block: int, mode: BlendMode) -> None:
        """Set the scene blend mode of a block."""
        if mode not in BLEND_MODE:
            name = getattr(mode, "name", str(mode))
            logger.warning(f"Unsupported blend mode: '{name}', using the default.")
            return
        self.engine.set_blend_mode(block, BLEND_MODE[mode])

    def apply_rotation(self, block: int, layer: LayerNode) -> None:
        """Rotate the block by the rotation of the layer transform."""
        transform = layer.transform
        if transform is None or not transform.rotation:
            return
        self.engine.set_rotation(block, transform.rotation)

    def create_groups(self, memberships: GroupMemberships) -> list[int]:
        """Group the blocks that came from the same source group.

        Returns:
            The created group blocks.
        """
        groups = []
        for group_id, blocks in memberships.items():
            if len(blocks) <= 1:
                continue
            try:
                if not self.engine.is_groupable(blocks):
                    logger.warning(
                        f"Blocks of group {group_id} cannot be grouped, skipping."
                    )
                    continue
                groups.append(self.engine.group(blocks))
            except Exception as e:
                logger.warning(f"Failed to group blocks of group {group_id}: {e}")
        logger.debug(f"Created {len(groups)} group(s).")
        return groups
