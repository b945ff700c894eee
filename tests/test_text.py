import asyncio
import logging

import pytest

from psd2scene.core.base import Page
from psd2scene.core.color_utils import Color
from psd2scene.core.converter import Converter
from psd2scene.core.geometry import Rectangle, Transform
from psd2scene.core.text import (
    get_line_height,
    replace_text_variables,
    revert_replace_text_variables,
)
from psd2scene.core.typesetting import TypeSetting
from psd2scene.document import DocumentNode
from psd2scene.flags import Flags
from psd2scene.font_resolver import (
    DEFAULT_FONT_CATALOG_URL,
    CatalogFontResolver,
    Font,
    FontCatalog,
    FontResolverResult,
    Typeface,
)

from .conftest import build_font, make_engine_data, make_text_layer

RED = {"Values": [1.0, 1.0, 0.0, 0.0]}


def add_text(converter, layer):
    document = DocumentNode("Document", 200, 100, children=[layer])
    page = Page(converter.engine.create("page"), document)
    return asyncio.run(converter.add_text(page, layer))


class TestTextVariables:
    """Test hiding and restoring of text variables."""

    def test_replace_and_revert(self, engine):
        """Test that variable braces are hidden and restored in place."""
        block = engine.create("text")
        engine.set_string(block, "text/text", "Hi {{name}}!")

        replacements = replace_text_variables(engine, block)
        assert engine.get_string(block, "text/text") == "Hi **name**!"
        assert [r.index for r in replacements] == [3, 4, 9, 10]

        revert_replace_text_variables(engine, block, replacements)
        assert engine.get_string(block, "text/text") == "Hi {{name}}!"

    def test_multiple_variables(self, engine):
        """Test that every variable of the text is hidden."""
        block = engine.create("text")
        engine.set_string(block, "text/text", "{{a}} and {{b}}")
        replacements = replace_text_variables(engine, block)
        assert engine.get_string(block, "text/text") == "**a** and **b**"
        assert len(replacements) == 8

    def test_no_variables(self, engine):
        """Test that single braces are left alone."""
        block = engine.create("text")
        engine.set_string(block, "text/text", "Plain {text}")
        assert replace_text_variables(engine, block) == []
        assert engine.get_string(block, "text/text") == "Plain {text}"

    @pytest.mark.parametrize(
        "text, hidden, count",
        [
            ("{{{{a}}}}", "****a****", 8),
            ("{{a}}{{b}}", "**a****b**", 8),
            ("{{a}b}}", "{{a}b}}", 0),
            ("x{{}}y", "x{{}}y", 0),
        ],
    )
    def test_round_trip(self, engine, text, hidden, count):
        """Test that nested and adjacent variables are restored exactly."""
        block = engine.create("text")
        engine.set_string(block, "text/text", text)

        replacements = replace_text_variables(engine, block)
        assert engine.get_string(block, "text/text") == hidden
        assert len(replacements) == count

        revert_replace_text_variables(engine, block, replacements)
        assert engine.get_string(block, "text/text") == text


class TestLineHeight:
    """Test the line height of the first style run."""

    def test_auto_leading_default(self):
        """Test the default of auto leading without a paragraph value."""
        setting = TypeSetting(make_engine_data([(3, {})]), "abc")
        assert get_line_height(setting, "abc") == 1.2

    def test_auto_leading_of_paragraph(self):
        """Test that auto leading uses the paragraph value."""
        data = make_engine_data([(3, {})], paragraph={"AutoLeading": 1.5})
        assert get_line_height(TypeSetting(data, "abc"), "abc") == 1.5

    def test_explicit_leading(self):
        """Test that explicit leading is divided by the font size."""
        data = make_engine_data(
            [(3, {"AutoLeading": False, "Leading": 36, "FontSize": 24})]
        )
        assert get_line_height(TypeSetting(data, "abc"), "abc") == 1.5

    def test_missing_leading(self):
        """Test the fallback when explicit leading has no value."""
        data = make_engine_data([(3, {"AutoLeading": False, "FontSize": 24})])
        assert get_line_height(TypeSetting(data, "abc"), "abc") == 1.2

    def test_too_small(self, caplog):
        """Test that a too small line height triggers a warning."""
        data = make_engine_data(
            [(3, {"AutoLeading": False, "Leading": 10, "FontSize": 24})]
        )
        with caplog.at_level(logging.WARNING):
            assert get_line_height(TypeSetting(data, "abc"), "abc") == 1.2
        assert "too small" in caplog.text


class TestAddText:
    """Test text block creation from text layers."""

    @pytest.fixture
    def converter(self, engine, flags):
        return Converter(DocumentNode("Document", 200, 100), engine, flags=flags)

    def test_text_block(self, converter):
        """Test the geometry and styles of a text block."""
        engine = converter.engine
        layer = make_text_layer(
            "Hello World",
            [(11, {"FontSize": 24, "FillColor": RED, "Tracking": 100})],
            paragraph={"Justification": 2},
        )
        block = add_text(converter, layer)

        assert engine.get_type(block) == "text"
        assert engine.get_string(block, "text/text") == "Hello World"
        assert engine.get_bool(block, "text/clipLinesOutsideOfFrame") is False
        assert engine.get_position_x(block) == 10
        assert engine.get_position_y(block) == 20
        assert engine.get_width(block) == 100
        assert engine.get_height(block) == 40
        assert engine.get_float(block, "text/fontSize") == 24
        assert engine.get_float(block, "text/letterSpacing") == pytest.approx(0.1)
        assert engine.get_float(block, "text/lineHeight") == pytest.approx(1.2)
        assert engine.get_enum(block, "text/horizontalAlignment") == "Center"
        assert engine.get_text_ranges(block, "color") == [
            (0, 11, Color(1.0, 0.0, 0.0, 1.0))
        ]

    def test_letter_spacing_is_averaged(self, converter):
        """Test that tracking is averaged over the whole text."""
        layer = make_text_layer(
            "HelloWorld",
            [(5, {"FontSize": 12, "Tracking": 100}), (5, {"FontSize": 12})],
        )
        block = add_text(converter, layer)
        spacing = converter.engine.get_float(block, "text/letterSpacing")
        assert spacing == pytest.approx(0.05)

    def test_font_size_scaled_by_transform(self, converter):
        """Test that the font size follows the transform scale."""
        layer = make_text_layer(
            "Big", [(3, {"FontSize": 10})], transform=Transform(xx=2, yy=2)
        )
        block = add_text(converter, layer)
        assert converter.engine.get_float(block, "text/fontSize") == 20

    def test_multiple_font_sizes(self, converter, caplog):
        """Test that only the first font size is used, with a warning."""
        layer = make_text_layer(
            "Hello World", [(5, {"FontSize": 24}), (6, {"FontSize": 12})]
        )
        with caplog.at_level(logging.WARNING):
            block = add_text(converter, layer)
        assert converter.engine.get_float(block, "text/fontSize") == 24
        assert "multiple font sizes" in caplog.text

    def test_missing_fill_color(self, converter, caplog):
        """Test that a run without fill color triggers a warning."""
        layer = make_text_layer("abc", [(3, {"FontSize": 12})])
        with caplog.at_level(logging.WARNING):
            block = add_text(converter, layer)
        assert converter.engine.get_text_ranges(block, "color") == []
        assert "Text fill color not found" in caplog.text

    def test_case_and_unavailable_bold(self, converter, caplog):
        """Test text case ranges and the faux bold warning."""
        layer = make_text_layer(
            "abc", [(3, {"FontSize": 12, "FontCaps": 2, "FauxBold": True})]
        )
        with caplog.at_level(logging.WARNING):
            block = add_text(converter, layer)
        engine = converter.engine
        assert engine.get_text_ranges(block, "case") == [(0, 3, "Uppercase")]
        assert engine.get_text_ranges(block, "bold") == []
        assert "Bold font is not available" in caplog.text

    def test_text_stroke(self, converter):
        """Test the stroke of the first style run."""
        style = {
            "FontSize": 12,
            "StrokeFlag": True,
            "StrokeColor": {"Values": [1.0, 0.0, 0.0, 1.0]},
            "OutlineWidth": 2,
        }
        block = add_text(converter, make_text_layer("abc", [(3, style)]))
        engine = converter.engine
        assert engine.get_bool(block, "stroke/enabled") is True
        assert engine.get_float(block, "stroke/width") == 2
        assert engine.get_property(block, "stroke/color") == Color(0.0, 0.0, 1.0)

    def test_missing_bounds(self, converter, caplog):
        """Test that missing bounds keep the block with an error."""
        layer = make_text_layer(
            "abc", [(3, {"FontSize": 12})], bounds=Rectangle(None, 0, 10, 10)
        )
        with caplog.at_level(logging.ERROR):
            block = add_text(converter, layer)
        assert converter.engine.is_valid(block)
        assert "Failed to place text layer" in caplog.text

    def test_layer_geometry_without_transform(self, converter):
        """Test that layer bounds are used without a text transform."""
        layer = make_text_layer(
            "abc",
            [(3, {"FontSize": 12})],
            transform=None,
            left=5,
            top=6,
            width=70,
            height=30,
        )
        block = add_text(converter, layer)
        engine = converter.engine
        assert (engine.get_position_x(block), engine.get_position_y(block)) == (5, 6)
        assert (engine.get_width(block), engine.get_height(block)) == (70, 30)

    def test_typeface_not_found(self, converter, caplog):
        """Test that an unknown typeface leaves the font unset."""
        layer = make_text_layer("abc", [(3, {"FontSize": 12})])
        with caplog.at_level(logging.WARNING):
            block = add_text(converter, layer)
        assert converter.engine.get_string(block, "text/fontFileUri") == ""
        assert "Could not find a typeface for the font family 'Roboto'" in caplog.text

    def test_invisible_font_is_skipped(self, converter, caplog):
        """Test that the invisible placeholder font is not resolved."""
        layer = make_text_layer(
            "abc", [(3, {"FontSize": 12})], font_names=("AdobeInvisFont",)
        )
        with caplog.at_level(logging.WARNING):
            add_text(converter, layer)
        assert "Could not find a typeface" not in caplog.text


class TestResolveFont:
    """Test typeface resolution and font metrics of text blocks."""

    @pytest.fixture
    def font_path(self, tmp_path):
        path = tmp_path / "Roboto-Regular.ttf"
        path.write_bytes(build_font(ascent=900, descent=-300))
        return str(path)

    def create_converter(self, engine, uri, **kwargs):
        typeface = Typeface("Roboto", [Font(uri=uri)])
        resolver = CatalogFontResolver(FontCatalog([typeface]))
        flags = Flags(enable_text_typeface_reachable_check=True, **kwargs)
        return Converter(
            DocumentNode("Document", 200, 100),
            engine,
            flags=flags,
            font_resolver=resolver,
        )

    def test_font_metrics(self, engine, font_path):
        """Test that font metrics correct line height and position."""
        converter = self.create_converter(engine, font_path)
        layer = make_text_layer("abc", [(3, {"FontSize": 24})])
        block = add_text(converter, layer)

        assert engine.get_string(block, "text/fontFileUri") == font_path
        assert engine.blocks[block].typeface.name == "Roboto"
        # Line height is corrected by (900 + 300) / 1000.
        assert engine.get_float(block, "text/lineHeight") == pytest.approx(1.0)
        # Vertical offset is (300 + 900 - 1000) / 1000 * (24 / 72) / 2.
        assert engine.get_position_y(block) == pytest.approx(20 - 0.2 / 3 / 2)
        assert font_path in converter.font_cache

    def test_unreachable_font(self, engine, tmp_path, caplog):
        """Test that an unreachable font is logged and left unset."""
        uri = str(tmp_path / "missing.ttf")
        converter = self.create_converter(engine, uri)
        layer = make_text_layer("abc", [(3, {"FontSize": 24})])
        with caplog.at_level(logging.ERROR):
            block = add_text(converter, layer)
        assert engine.get_string(block, "text/fontFileUri") == ""
        assert f"Could not load font at '{uri}'" in caplog.text

    def test_async_resolver(self, engine, flags):
        """Test that asynchronous resolvers are awaited."""
        typeface = Typeface("Roboto", [Font(uri="https://example.com/Roboto.ttf")])
        calls = []

        async def resolver(params):
            calls.append(params)
            return FontResolverResult(typeface, typeface.fonts[0])

        converter = Converter(
            DocumentNode("Document", 200, 100),
            engine,
            flags=flags,
            font_resolver=resolver,
        )
        layer = make_text_layer(
            "abc", [(3, {"FontSize": 12})], font_names=("Roboto-BoldItalic",)
        )
        block = add_text(converter, layer)
        assert calls[0].family == "Roboto"
        assert calls[0].weight == "bold"
        assert calls[0].style == "italic"
        assert engine.get_string(block, "text/fontFileUri") == (
            "https://example.com/Roboto.ttf"
        )

    def test_invalid_resolver_result(self, engine, flags):
        """Test that a resolver returning another type is rejected."""
        converter = Converter(
            DocumentNode("Document", 200, 100),
            engine,
            flags=flags,
            font_resolver=lambda params: params.family,
        )
        layer = make_text_layer("abc", [(3, {"FontSize": 12})])
        with pytest.raises(TypeError, match="FontResolverResult"):
            add_text(converter, layer)

    def test_missing_font_set_uses_default_family(self, engine, flags):
        """Test that text without a font set queries the default family."""
        calls = []

        def resolver(params):
            calls.append(params)
            return None

        converter = Converter(
            DocumentNode("Document", 200, 100),
            engine,
            flags=flags,
            font_resolver=resolver,
        )
        add_text(converter, make_text_layer("abc", [(3, {})], font_names=()))
        assert calls[0].family == "Roboto"


class TestDefaultFontCatalog:
    """Test the catalog resolver the converter uses by default."""

    @pytest.fixture
    def catalog_urls(self, monkeypatch):
        """Serve a one-typeface catalog instead of fetching it."""
        urls = []
        typeface = Typeface(
            "Roboto",
            [
                Font(uri="https://example.com/Roboto-Regular.ttf"),
                Font(
                    uri="https://example.com/Roboto-Bold.ttf",
                    sub_family="Bold",
                    weight="bold",
                ),
            ],
        )

        def from_url(url, timeout=30.0):
            urls.append(url)
            return FontCatalog([typeface])

        monkeypatch.setattr(FontCatalog, "from_url", staticmethod(from_url))
        return urls

    def test_resolves_cataloged_family(self, engine, catalog_urls):
        """Test that the default converter resolves a family of the catalog."""
        converter = Converter(
            DocumentNode("Document", 200, 100),
            engine,
            flags=Flags(enable_text_typeface_reachable_check=False),
        )
        regular = add_text(
            converter, make_text_layer("abc", [(3, {"FontSize": 12})])
        )
        bold = add_text(
            converter,
            make_text_layer(
                "abc", [(3, {"FontSize": 12})], font_names=("Roboto-Bold",)
            ),
        )
        assert engine.get_string(regular, "text/fontFileUri") == (
            "https://example.com/Roboto-Regular.ttf"
        )
        assert engine.get_string(bold, "text/fontFileUri") == (
            "https://example.com/Roboto-Bold.ttf"
        )
        assert catalog_urls == [DEFAULT_FONT_CATALOG_URL]

    def test_custom_catalog_url(self, engine, catalog_urls):
        """Test that the catalog url of the flags is fetched."""
        flags = Flags(
            enable_text_typeface_reachable_check=False,
            font_catalog_url="https://example.com/fonts.json",
        )
        converter = Converter(DocumentNode("Document", 200, 100), engine, flags=flags)
        add_text(converter, make_text_layer("abc", [(3, {"FontSize": 12})]))
        assert catalog_urls == ["https://example.com/fonts.json"]

    def test_unavailable_catalog(self, engine, monkeypatch, caplog):
        """Test that an unavailable catalog is logged and resolves nothing."""

        def from_url(url, timeout=30.0):
            raise OSError("offline")

        monkeypatch.setattr(FontCatalog, "from_url", staticmethod(from_url))
        converter = Converter(
            DocumentNode("Document", 200, 100),
            engine,
            flags=Flags(enable_text_typeface_reachable_check=False),
        )
        layer = make_text_layer("abc", [(3, {"FontSize": 12})])
        with caplog.at_level(logging.WARNING):
            block = add_text(converter, layer)
        assert engine.get_string(block, "text/fontFileUri") == ""
        assert "Could not load font catalog" in caplog.text
        assert "offline" in caplog.text
        assert "Could not find a typeface" in caplog.text
