import dataclasses
from typing import Any, Protocol

from psd_tools.constants import BlendMode

from psd2scene.core.typesetting import TypeSetting
from psd2scene.document import DocumentNode, GroupNode, LayerNode
from psd2scene.flags import Flags
from psd2scene.font_metrics import FontInfo, FontInfoCache
from psd2scene.font_resolver import TypefaceResolver
from psd2scene.image_utils import PngEncoder
from psd2scene.scene import SceneEngine


class GroupMemberships(dict[int, list[int]]):
    """Blocks created for each source group id, in creation order."""

    def add(self, group_id: int, block: int) -> None:
        self.setdefault(group_id, []).append(block)


@dataclasses.dataclass
class Page:
    """Page being filled from one document."""

    block: int
    document: DocumentNode
    memberships: GroupMemberships = dataclasses.field(
        default_factory=GroupMemberships
    )

    @property
    def width(self) -> int:
        return self.document.width

    @property
    def height(self) -> int:
        return self.document.height


class ConverterProtocol(Protocol):
    """Converter state protocol."""

    engine: SceneEngine
    flags: Flags
    png_encoder: PngEncoder
    font_resolver: TypefaceResolver
    font_cache: FontInfoCache

    # Traversal
    async def add_children(
        self, page: Page, node: DocumentNode | GroupNode
    ) -> None: ...
    async def add_node(self, page: Page, node: Any) -> None: ...
    async def add_layer(self, page: Page, layer: LayerNode) -> int | None: ...
    def create_groups(self, memberships: GroupMemberships) -> list[int]: ...

    # Block builders
    async def add_text(self, page: Page, layer: LayerNode) -> int: ...
    async def add_vector(self, page: Page, layer: LayerNode) -> int: ...
    async def add_image(self, page: Page, layer: LayerNode) -> int: ...

    # Layer attributes
    def set_blend_mode(self, block: int, mode: BlendMode) -> None: ...
    def apply_rotation(self, block: int, layer: LayerNode) -> None: ...
    def apply_opacity(self, block: int, layer: LayerNode) -> float: ...
    def create_clip_mask_block(self, page: Page, group: GroupNode) -> int | None: ...
    def apply_clip_masks(self, page: Page, block: int, layer: LayerNode) -> int: ...

    # Text
    async def resolve_font(
        self, block: int, setting: TypeSetting, text: str
    ) -> FontInfo | None: ...
