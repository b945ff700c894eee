import asyncio
import os
from logging import getLogger
from typing import IO, Any, Sequence, Union

from psd_tools import PSDImage

from psd2scene.core.converter import ConversionResult, Converter
from psd2scene.diagnostics import DiagnosticLog, LogMessage
from psd2scene.document import DocumentNode, GroupNode, LayerNode
from psd2scene.flags import Flags
from psd2scene.scene import MemoryScene, SceneEngine, SceneError
from psd2scene.version import __version__ as __version__

logger = getLogger(__name__)

__all__ = [
    "ConversionResult",
    "Converter",
    "DiagnosticLog",
    "DocumentNode",
    "Flags",
    "GroupNode",
    "LayerNode",
    "LogMessage",
    "MemoryScene",
    "SceneEngine",
    "SceneError",
    "convert",
    "convert_async",
    "load_document",
]

Source = Union[str, "os.PathLike[str]", IO[bytes], PSDImage, DocumentNode]


def load_document(source: Source) -> DocumentNode:
    """Load a document from a path, a file object, or a PSDImage."""
    if isinstance(source, DocumentNode):
        return source
    if not isinstance(source, PSDImage):
        source = PSDImage.open(source)
    return DocumentNode.from_psd(source)


async def convert_async(
    sources: Source | Sequence[Source],
    engine: SceneEngine | None = None,
    **kwargs: Any,
) -> tuple[SceneEngine, ConversionResult]:
    """Convert documents into a scene, one page per document.

    Args:
        sources: Document source, or sources for a multi-page scene.
        engine: Scene engine to build in. Defaults to a new :class:`MemoryScene`.
        kwargs: Keyword arguments of :class:`Converter`.

    Returns:
        The engine and the conversion result.
    """
    if isinstance(sources, (list, tuple)):
        documents = [load_document(source) for source in sources]
    else:
        documents = [load_document(sources)]  # type: ignore[arg-type]
    engine = engine if engine is not None else MemoryScene()
    result = await Converter(documents, engine, **kwargs).build()
    return engine, result


def convert(
    sources: Source | Sequence[Source],
    engine: SceneEngine | None = None,
    **kwargs: Any,
) -> tuple[SceneEngine, ConversionResult]:
    """Convert documents into a scene.

    Example::

        from psd2scene import convert

        engine, result = convert("example.psd")
        print(engine.to_dict(result.scene))
    """
    return asyncio.run(convert_async(sources, engine, **kwargs))
