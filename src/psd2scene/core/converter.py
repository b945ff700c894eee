import asyncio
import dataclasses
import logging
from typing import Sequence

from psd2scene.core.base import Page
from psd2scene.core.constants import STACK_SPACING, TARGET_DPI
from psd2scene.core.image import ImageConverter
from psd2scene.core.layer import LayerConverter
from psd2scene.core.mask import MaskConverter
from psd2scene.core.opacity import OpacityConverter
from psd2scene.core.text import TextConverter
from psd2scene.diagnostics import DiagnosticLog, capture_diagnostics
from psd2scene.document import DocumentNode
from psd2scene.flags import Flags
from psd2scene.font_metrics import FontInfoCache
from psd2scene.font_resolver import CatalogFontResolver, TypefaceResolver
from psd2scene.image_utils import PngEncoder, encode_png
from psd2scene.scene import SceneEngine

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class ConversionResult:
    """Outcome of a conversion session."""

    scene: int
    pages: list[int]
    messages: DiagnosticLog


class Converter(
    LayerConverter,
    ImageConverter,
    TextConverter,
    MaskConverter,
    OpacityConverter,
):
    """Converter main class.

    Each document becomes one page of a vertically stacked scene.

    Example usage::

        from psd_tools import PSDImage
        from psd2scene import DocumentNode, MemoryScene
        from psd2scene.core.converter import Converter

        document = DocumentNode.from_psd(PSDImage.open("example.psd"))
        engine = MemoryScene()
        result = asyncio.run(Converter(document, engine).build())
        for message in result.messages:
            print(message.severity, message.message)

    Args:
        documents: Source document, or documents for a multi-page scene.
        engine: Scene engine to build the blocks in.
        flags: Conversion flags. Defaults to :meth:`Flags.default`.
        png_encoder: Encoder for layer pixels.
        font_resolver: Typeface resolver, synchronous or asynchronous. Defaults
            to a catalog resolver for the catalog of ``flags.font_catalog_url``.
        font_cache: Font metrics cache shared by the pages.
    """

    def __init__(
        self,
        documents: DocumentNode | Sequence[DocumentNode],
        engine: SceneEngine,
        *,
        flags: Flags | None = None,
        png_encoder: PngEncoder = encode_png,
        font_resolver: TypefaceResolver | None = None,
        font_cache: FontInfoCache | None = None,
    ) -> None:
        if isinstance(documents, DocumentNode):
            documents = [documents]
        if not all(isinstance(document, DocumentNode) for document in documents):
            raise TypeError("documents must be instances of DocumentNode")
        if not documents:
            raise ValueError("At least one document is required")
        self.documents = list(documents)
        self.engine = engine
        self.flags = flags if flags is not None else Flags.default()
        self.png_encoder = png_encoder
        if font_resolver is None:
            font_resolver = CatalogFontResolver(url=self.flags.font_catalog_url)
        self.font_resolver = font_resolver
        self.font_cache = font_cache if font_cache is not None else FontInfoCache()

    async def build(self) -> ConversionResult:
        """Build the scene and collect the diagnostics of the session."""
        with capture_diagnostics() as log:
            scene, stack = self.create_scene()
            pages = await asyncio.gather(
                *(self.add_page(stack, document) for document in self.documents)
            )
            logger.info(f"Converted {len(pages)} page(s).")
        return ConversionResult(scene=scene, pages=list(pages), messages=log)

    def create_scene(self) -> tuple[int, int]:
        """Create the scene with a vertical stack of pages.

        Returns:
            The scene and stack blocks.
        """
        scene = self.engine.create("scene")
        self.engine.set_enum(scene, "scene/layout", "VerticalStack")
        stack = self.engine.create("stack")
        self.engine.append_child(scene, stack)
        self.engine.set_float(stack, "stack/spacing", STACK_SPACING)
        self.engine.set_bool(stack, "stack/spacingInScreenspace", True)

        self.engine.set_string(scene, "scene/pageFormatId", "Custom")
        self.engine.set_string(scene, "scene/designUnit", "Pixel")
        self.engine.set_float(scene, "scene/dpi", TARGET_DPI)
        width = max(document.width for document in self.documents)
        height = max(document.height for document in self.documents)
        self.engine.set_float(scene, "scene/pageDimensions/width", width)
        self.engine.set_float(scene, "scene/pageDimensions/height", height)
        return scene, stack

    async def add_page(self, stack: int, document: DocumentNode) -> int:
        """Fill a new page with the layers of a document."""
        block = self.engine.create("page")
        self.engine.set_name(block, document.name)
        self.engine.set_width(block, document.width)
        self.engine.set_height(block, document.height)
        self.engine.set_clipped(block, True)
        self.engine.set_fill_enabled(block, False)
        self.engine.append_child(stack, block)

        logger.info("Started analyzing the .PSD File")
        page = Page(block, document)
        await self.add_children(page, document)
        if self.flags.groups_enabled:
            self.create_groups(page.memberships)
        return block
