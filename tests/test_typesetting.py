import pytest

from psd2scene.core.typesetting import (
    ParagraphSheet,
    RunLengthIndex,
    ShapeType,
    StyleSheet,
    TypeSetting,
)

from .conftest import make_engine_data


class TestRunLengthIndex:
    """Test the lookup of run-length encoded runs."""

    def test_call(self):
        """Test finding the run of a character index."""
        index = RunLengthIndex([4, 2, 5])
        assert index(0) == 0
        assert index(3) == 0
        assert index(4) == 1
        assert index(10) == 2

    def test_out_of_range(self):
        """Test that indices outside the runs raise IndexError."""
        index = RunLengthIndex([4, 2])
        with pytest.raises(IndexError):
            index(6)
        with pytest.raises(IndexError):
            index(-1)

    def test_ranges_are_clamped(self):
        """Test that run ranges are clamped to the text length."""
        index = RunLengthIndex([4, 2, 5])
        assert index.ranges(5) == [(0, 4), (4, 5), (5, 5)]
        assert index.ranges(20) == [(0, 4), (4, 6), (6, 11)]


class TestStyleSheet:
    """Test style sheets of text runs."""

    def test_from_dict(self):
        """Test reading a style sheet from engine data."""
        sheet = StyleSheet.from_dict(
            {"StyleSheet": {"Name": "Body", "StyleSheetData": {"FontSize": 24}}}
        )
        assert sheet.name == "Body"
        assert sheet.font_size == 24.0
        assert "FontSize" in sheet
        assert "Leading" not in sheet

    def test_defaults(self):
        """Test default style values."""
        sheet = StyleSheet()
        assert sheet.font == 0
        assert sheet.font_size is None
        assert sheet.auto_leading is True
        assert sheet.leading is None
        assert sheet.tracking == 0.0
        assert sheet.kerning == 0.0
        assert sheet.stroke_flag is False
        assert sheet.outline_width == 1.0
        assert sheet.fill_color is None

    def test_colors(self):
        """Test that colors need four components."""
        sheet = StyleSheet(
            style_sheet_data={
                "FillColor": {"Type": 1, "Values": [1.0, 0.5, 0.25, 0.0]},
                "StrokeColor": {"Type": 1, "Values": [1.0, 0.0]},
            }
        )
        assert sheet.fill_color == (1.0, 0.5, 0.25, 0.0)
        assert sheet.stroke_color is None


class TestParagraphSheet:
    """Test paragraph sheets of text runs."""

    def test_from_dict(self):
        """Test reading a paragraph sheet from engine data."""
        sheet = ParagraphSheet.from_dict(
            {"ParagraphSheet": {"Properties": {"Justification": 2, "AutoLeading": 1.5}}}
        )
        assert sheet.justification == 2
        assert sheet.auto_leading == 1.5

    def test_defaults(self):
        """Test default paragraph values."""
        sheet = ParagraphSheet.from_dict(None)
        assert sheet.justification == 0
        assert sheet.auto_leading is None


class TestTypeSetting:
    """Test the text engine data wrapper."""

    def test_style_runs(self):
        """Test the ranges and styles of style runs."""
        data = make_engine_data([(5, {"Tracking": 100}), (5, {"Tracking": 0})])
        runs = TypeSetting(data, "HelloWorld").style_runs
        assert [(run.start, run.end) for run in runs] == [(0, 5), (5, 10)]
        assert [run.style.tracking for run in runs] == [100, 0]
        assert [len(run) for run in runs] == [5, 5]

    def test_style_runs_clamped_to_text(self):
        """Test that style runs do not extend past the text."""
        data = make_engine_data([(5, {"Tracking": 100}), (5, {"Tracking": 0})])
        runs = TypeSetting(data, "Hello W").style_runs
        assert [(run.start, run.end) for run in runs] == [(0, 5), (5, 7)]

    def test_empty_runs_are_skipped(self):
        """Test that zero-length runs are skipped."""
        data = make_engine_data([(0, {"FontSize": 10}), (3, {"FontSize": 12})])
        runs = TypeSetting(data, "abc").style_runs
        assert len(runs) == 1
        assert runs[0].style.font_size == 12

    def test_paragraph_runs(self):
        """Test the paragraph runs of a text."""
        data = make_engine_data([(4, {})], paragraph={"Justification": 1})
        setting = TypeSetting(data, "abcd")
        assert len(setting.paragraph_runs) == 1
        assert setting.first_paragraph.justification == 1

    def test_style_value_fallback(self):
        """Test the fallback from run to layer and document styles."""
        data = make_engine_data([(3, {"FontSize": 0})])
        data["ResourceDict"]["StyleSheetSet"] = [
            {"StyleSheetData": {"FontSize": 18, "Leading": 20}}
        ]
        data["DocumentResources"]["StyleSheetSet"] = [
            {"StyleSheetData": {"FillColor": {"Values": [1, 0, 0, 0]}}}
        ]
        setting = TypeSetting(data, "abc")
        style = setting.first_style
        assert setting.get_style_value(style, "FontSize") == 18
        assert setting.get_style_value(style, "FillColor") == {"Values": [1, 0, 0, 0]}
        assert setting.get_style_value(style, "Tracking") is None

    def test_font_set_fallback(self):
        """Test the fallback to the document font set."""
        data = make_engine_data([(3, {})], font_names=())
        data["DocumentResources"]["FontSet"] = [{"Name": "Arial-BoldMT"}]
        setting = TypeSetting(data, "abc")
        assert setting.get_postscript_name(0) == "Arial-BoldMT"

    def test_postscript_name_out_of_range(self, caplog):
        """Test that an unknown font index triggers a warning."""
        setting = TypeSetting(make_engine_data([(3, {})]), "abc")
        assert setting.get_postscript_name(0) == "Roboto-Regular"
        assert setting.get_postscript_name(3) is None
        assert "out of the font set" in caplog.text

    @pytest.mark.parametrize(
        "value, expected",
        [(0, ShapeType.POINT), (1, ShapeType.BOUNDING_BOX), (7, None), (None, None)],
    )
    def test_shape_type(self, value, expected):
        """Test the text box shape type."""
        data = make_engine_data([(3, {})], shape_type=value)
        assert TypeSetting(data, "abc").shape_type == expected

    def test_empty_engine_data(self):
        """Test that empty engine data gives empty runs."""
        setting = TypeSetting({}, "abc")
        assert setting.style_runs == []
        assert setting.font_set == []
        assert setting.first_style.font_size is None
