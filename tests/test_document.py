"""Tests for the parsed document model."""

import pytest
from PIL import Image
from psd_tools import PSDImage
from psd_tools.api.layers import PixelLayer
from psd_tools.constants import PathResourceID

from psd2scene.core.path import PathRecord
from psd2scene.document import (
    DocumentNode,
    GroupNode,
    LayerNode,
    RasterContent,
    TextContent,
    VectorContent,
    classify_layer,
    unwrap_engine_data,
)


class TestClassifyLayer:
    """Test the content kind of layers."""

    def test_text_wins(self):
        """Test that text content takes precedence over vector data."""
        text = TextContent("abc")
        vector = VectorContent(mask_path=[])
        assert classify_layer(text, vector) is text

    def test_vector(self):
        """Test that stroke content marks a vector layer."""
        vector = VectorContent(stroke_content={})
        assert classify_layer(None, vector) is vector

    def test_vector_without_markers(self):
        """Test that vector data without markers is raster."""
        assert isinstance(classify_layer(None, VectorContent()), RasterContent)

    def test_raster(self):
        """Test that layers without text or vector data are raster."""
        assert isinstance(classify_layer(None, None), RasterContent)


class TestDocumentNode:
    """Test navigation of the document tree."""

    @pytest.fixture
    def document(self):
        layer = LayerNode("Layer")
        inner = GroupNode("Inner", children=[layer])
        outer = GroupNode("Outer", children=[inner])
        return DocumentNode("Document", 10, 10, children=[outer, LayerNode("Top")])

    def test_ancestors(self, document):
        """Test the ancestor chain of nested nodes."""
        outer, top = document.children
        (inner,) = outer.children
        (layer,) = inner.children
        assert layer.ancestors == (inner, outer)
        assert inner.ancestors == (outer,)
        assert top.ancestors == ()

    def test_descendants(self, document):
        """Test the depth-first order of descendants."""
        names = [node.name for node in document.descendants()]
        assert names == ["Outer", "Inner", "Layer", "Top"]

    def test_visibility(self, document):
        """Test that hidden groups hide their descendants."""
        outer, top = document.children
        layer = outer.children[0].children[0]
        assert layer.is_visible()
        outer.visible = False
        assert not layer.is_visible()
        assert top.is_visible()

    def test_kind(self):
        """Test the content kind of layer nodes."""
        assert LayerNode("Layer").kind == "raster"
        assert LayerNode("Text", content=TextContent("abc")).kind == "text"
        vector = VectorContent(mask_path=[PathRecord(PathResourceID.CLOSED_LENGTH)])
        assert LayerNode("Shape", content=vector).kind == "vector"

    def test_pixels(self):
        """Test the pixel accessor of layers."""
        assert LayerNode("Empty").get_pixels() is None
        calls = []
        layer = LayerNode(
            "Layer", composite=lambda own, full: calls.append((own, full))
        )
        layer.get_pixels(full=True)
        assert calls == [(True, True)]


def test_unwrap_engine_data():
    """Test unwrapping of parsed engine data values."""
    class Element:
        def __init__(self, value):
            self.value = value

    data = {
        Element("EngineDict"): {"Runs": [Element(1), Element(2.5)]},
        "Name": Element("Roboto"),
        "Flag": True,
    }
    assert unwrap_engine_data(data) == {
        "EngineDict": {"Runs": [1, 2.5]},
        "Name": "Roboto",
        "Flag": True,
    }


class TestFromPSD:
    """Test building documents from psd_tools images."""

    def test_empty_document(self):
        """Test a document without layers."""
        psdimage = PSDImage.new("RGB", (40, 30))
        document = DocumentNode.from_psd(psdimage, name="Empty")
        assert (document.name, document.width, document.height) == ("Empty", 40, 30)
        assert len(document) == 0

    def test_pixel_layer(self):
        """Test the bounds and pixels of a pixel layer."""
        psdimage = PSDImage.new("RGB", (40, 30))
        image = Image.new("RGB", (10, 8), (255, 0, 0))
        PixelLayer.frompil(image, psdimage, name="Red", top=5, left=4)

        document = DocumentNode.from_psd(psdimage)
        (layer,) = document.children
        assert layer.name == "Red"
        assert (layer.left, layer.top, layer.width, layer.height) == (4, 5, 10, 8)
        assert layer.kind == "raster"
        assert layer.group_id is None

        pixels = layer.get_pixels()
        assert pixels.shape == (8, 10, 4)
        assert pixels[0, 0].tolist() == [255, 0, 0, 255]
