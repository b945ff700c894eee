"""Text layer conversion.

The scene supports ranged case, font variant, and color styling, but only one
font, font size, letter spacing, and line height per block. Style runs are
applied where possible; the remaining attributes are reconciled from the first
run or averaged over all runs.
"""

import dataclasses
import inspect
import logging
import re

from psd2scene.core import fitting
from psd2scene.core.base import ConverterProtocol, Page
from psd2scene.core.color_utils import argb2color
from psd2scene.core.constants import (
    DEFAULT_LINE_HEIGHT,
    FONT_SIZE_KEY,
    INVISIBLE_FONT,
    JUSTIFICATION,
    LETTER_SPACING_KEY,
    LINE_HEIGHT_KEY,
    MIN_LINE_HEIGHT,
    TARGET_DPI,
    TEXT_BOX_MODE,
    TEXT_CASE,
    TEXT_KEY,
)
from psd2scene.core.geometry import (
    BoundsError,
    Transform,
    map_layer_geometry,
    map_text_geometry,
)
from psd2scene.core.typesetting import StyleRun, TypeSetting
from psd2scene.document import LayerNode, TextContent
from psd2scene.font_metrics import FontInfo
from psd2scene.font_resolver import (
    DEFAULT_FAMILY,
    FontResolverResult,
    TypefaceParams,
    parse_postscript_name,
)
from psd2scene.scene import SceneEngine

logger = logging.getLogger(__name__)

# Variable syntax of the scene engine, e.g. "{{name}}".
TEXT_VARIABLE_PATTERN = re.compile(r"\{\{[^}]+\}\}")


@dataclasses.dataclass(frozen=True)
class TextReplacement:
    """Original character at a replaced text position."""

    index: int
    character: str


def replace_text_variables(
    engine: SceneEngine, block: int, placeholder: str = "*"
) -> list[TextReplacement]:
    """Hide ``{{...}}`` sequences from the variable system of the scene.

    The braces are replaced by a placeholder of the same length, so character
    positions of the text do not change.

    Returns:
        The replaced positions in ascending order.
    """
    text = engine.get_string(block, TEXT_KEY)
    replacements = []
    match = TEXT_VARIABLE_PATTERN.search(text)
    while match is not None:
        start, end = match.span()
        for index in (start, start + 1, end - 2, end - 1):
            replacements.append(TextReplacement(index, text[index]))
        text = (
            text[:start]
            + placeholder * 2
            + text[start + 2 : end - 2]
            + placeholder * 2
            + text[end:]
        )
        match = TEXT_VARIABLE_PATTERN.search(text)

    if replacements:
        engine.set_string(block, TEXT_KEY, text)
    return sorted(replacements, key=lambda replacement: replacement.index)


def revert_replace_text_variables(
    engine: SceneEngine, block: int, replacements: list[TextReplacement]
) -> None:
    """Restore the characters replaced by :func:`replace_text_variables`."""
    for replacement in reversed(replacements):
        engine.replace_text(
            block, replacement.character, replacement.index, replacement.index + 1
        )


def shorten(text: str, length: int = 10) -> str:
    return text[:length] + "..." if len(text) > length else text


def get_line_height(setting: TypeSetting, text: str) -> float:
    """Line height relative to the font size, from the first style run."""
    style = setting.first_style
    if style.auto_leading:
        auto_leading = setting.first_paragraph.auto_leading
        return auto_leading if auto_leading is not None else DEFAULT_LINE_HEIGHT

    if not style.font_size or style.leading is None:
        return DEFAULT_LINE_HEIGHT
    line_height = style.leading / style.font_size
    if line_height < MIN_LINE_HEIGHT:
        logger.warning(
            f'Line height of block with text "{shorten(text)}" is too small. '
            "Setting to default value."
        )
        return DEFAULT_LINE_HEIGHT
    return line_height


class TextConverter(ConverterProtocol):
    """Text converter mixin."""

    async def add_text(self, page: Page, layer: LayerNode) -> int:
        """Add a text block to the page."""
        assert isinstance(layer.content, TextContent)
        content = layer.content
        text = content.text or ""

        block = self.engine.create("text")
        self.engine.append_child(page.block, block)
        # Lines slightly outside of the frame must stay visible.
        self.engine.set_bool(block, "text/clipLinesOutsideOfFrame", False)
        self.engine.set_string(block, TEXT_KEY, text)

        setting = TypeSetting(content.engine_data, text)
        font_info = await self.resolve_font(block, setting, text)

        if content.transform is not None:
            try:
                geometry = map_text_geometry(content.transform, content.bounds)
            except BoundsError as e:
                logger.error(f"Failed to place text layer '{layer.name}': {e}")
                return block
        else:
            geometry = map_layer_geometry(
                layer.left, layer.top, layer.width, layer.height
            )
        if geometry.rotation:
            self.engine.set_rotation(block, geometry.rotation)
        self.engine.set_width(block, geometry.width)
        self.engine.set_height(block, geometry.height)
        self.engine.set_position_x(block, geometry.x)
        self.engine.set_position_y(block, geometry.y)

        runs = setting.style_runs
        replacements = replace_text_variables(self.engine, block)
        tracking = 0.0
        kerning = 0.0
        for run in runs:
            try:
                self.apply_style_run(block, setting, run, text)
            except Exception as e:
                logger.error(
                    f"Failed to style text '{shorten(text[run.start : run.end])}' "
                    f"of layer '{layer.name}': {e}"
                )
            tracking += run.style.tracking * len(run)
            kerning += run.style.kerning * len(run)
        revert_replace_text_variables(self.engine, block, replacements)

        self.set_font_size(block, setting, content.transform, runs)
        justification = setting.first_paragraph.justification
        self.engine.set_enum(
            block,
            "text/horizontalAlignment",
            JUSTIFICATION.get(justification, "Left"),
        )
        self.set_text_stroke(block, setting)

        # The scene has one letter spacing per block; runs are averaged.
        letter_spacing = 0.0
        if text:
            letter_spacing = (tracking / 1000 + kerning / 1000) / len(text)
        self.engine.set_float(block, LETTER_SPACING_KEY, letter_spacing)

        line_height = get_line_height(setting, text)
        if font_info is not None:
            line_height /= font_info.factor
        self.engine.set_float(block, LINE_HEIGHT_KEY, line_height)

        shape_type = setting.shape_type
        text_box_mode = TEXT_BOX_MODE.get(
            int(shape_type) if shape_type is not None else -1, "Fixed"
        )
        if text_box_mode == "Auto" and self.flags.enable_text_fitting:
            await fitting.fit_letter_spacing(
                self.engine, block, timeout=self.flags.block_ready_timeout
            )
        if self.flags.enable_text_one_line_alignment_fix:
            fitting.fix_one_line_alignment(self.engine, block)
        if self.flags.enable_text_vertical_alignment_fix:
            fitting.fix_vertical_alignment(self.engine, block, font_info)
        return block

    def apply_style_run(
        self, block: int, setting: TypeSetting, run: StyleRun, text: str
    ) -> None:
        """Apply case, font variants, and fill color of a style run."""
        start, end = run.start, run.end
        style = run.style

        case = TEXT_CASE.get(style.font_caps)
        if case is not None:
            self.engine.set_text_case(block, case, start, end)

        if style.faux_bold:
            if self.engine.can_toggle_bold_font(block, start, end):
                self.engine.toggle_bold_font(block, start, end)
            else:
                logger.error(
                    "Bold font is not available for text "
                    f"'{shorten(text[start:end])}'."
                )
        if style.faux_italic:
            if self.engine.can_toggle_italic_font(block, start, end):
                self.engine.toggle_italic_font(block, start, end)
            else:
                logger.error(
                    "Italic font is not available for text "
                    f"'{shorten(text[start:end])}'."
                )

        fill_color = setting.get_style_value(style, "FillColor")
        values = fill_color.get("Values") if isinstance(fill_color, dict) else None
        color = argb2color(values)
        if color is not None:
            self.engine.set_text_color(block, color, start, end)
        else:
            logger.warning(
                f"Text fill color not found for text part '{text[start:end]}', "
                f"text: '{shorten(text)}', using the default color"
            )

    def set_font_size(
        self,
        block: int,
        setting: TypeSetting,
        transform: Transform | None,
        runs: list[StyleRun],
    ) -> None:
        """Set the font size of the first style run, scaled by the transform."""
        font_size = setting.get_style_value(setting.first_style, "FontSize")
        if not font_size:
            logger.debug("Font size not found, keeping the default.")
            return
        font_size = float(font_size) / (TARGET_DPI / 72)
        if transform is not None and transform.scale:
            font_size *= transform.scale
        self.engine.set_float(block, FONT_SIZE_KEY, font_size)

        sizes = {run.style.font_size for run in runs if run.style.font_size}
        if len(sizes) > 1:
            logger.warning(
                f"Text '{shorten(setting.text)}' has multiple font sizes "
                f"{sorted(sizes)}, only the first one is used."
            )

    def set_text_stroke(self, block: int, setting: TypeSetting) -> None:
        """Set the stroke of the first style run, if enabled."""
        style = setting.first_style
        if not style.stroke_flag:
            return
        color = argb2color(style.stroke_color)
        if color is None:
            return
        self.engine.set_stroke_enabled(block, True)
        self.engine.set_stroke_width(block, style.outline_width)
        self.engine.set_stroke_color(block, color)

    async def resolve_font(
        self, block: int, setting: TypeSetting, text: str
    ) -> FontInfo | None:
        """Resolve and set the font of a text block.

        Returns:
            Metrics of the font when they are known.
        """
        params = self.get_typeface_params(setting)
        if params is None or params.family.lower() == INVISIBLE_FONT.lower():
            return None

        result = self.font_resolver(params)
        if inspect.isawaitable(result):
            result = await result
        if result is None:
            logger.warning(
                "Could not find a typeface for the font family "
                f"'{params.family}' with weight '{params.weight}' and style "
                f"'{params.style}', text: '{shorten(text)}'"
            )
            return None
        if not isinstance(result, FontResolverResult):
            raise TypeError(
                "Font resolver must return a FontResolverResult or None, "
                f"got {type(result).__name__}"
            )

        font_uri = result.font.uri
        font_info = self.font_cache.lookup(font_uri)
        if self.flags.enable_text_typeface_reachable_check:
            try:
                font_info = await self.font_cache.get(font_uri)
            except (OSError, ValueError) as e:
                # The font is not set, otherwise the text would not render.
                logger.error(
                    f"Could not load font at '{font_uri}' "
                    f"for text: '{shorten(text)}' due to: {e}"
                )
                return None
        self.engine.set_font(block, font_uri, result.typeface)
        return font_info

    def get_typeface_params(self, setting: TypeSetting) -> TypefaceParams | None:
        if not setting.font_set:
            logger.warning("Font set not found, using the default font set")
            return TypefaceParams(DEFAULT_FAMILY)
        name = setting.get_postscript_name(setting.first_style.font)
        if name is None:
            return None
        return parse_postscript_name(name)
