from psd_tools.constants import BlendMode

# Blend modes with a scene equivalent. Other modes keep the scene default.
BLEND_MODE: dict[BlendMode, str] = {
    BlendMode.PASS_THROUGH: "PassThrough",
    BlendMode.NORMAL: "Normal",
    BlendMode.DARKEN: "Darken",
    BlendMode.MULTIPLY: "Multiply",
    BlendMode.COLOR_BURN: "ColorBurn",
    BlendMode.LIGHTEN: "Lighten",
    BlendMode.SCREEN: "Screen",
    BlendMode.COLOR_DODGE: "ColorDodge",
    BlendMode.OVERLAY: "Overlay",
    BlendMode.SOFT_LIGHT: "SoftLight",
    BlendMode.HARD_LIGHT: "HardLight",
    BlendMode.DIFFERENCE: "Difference",
    BlendMode.EXCLUSION: "Exclusion",
    BlendMode.HUE: "Hue",
    BlendMode.SATURATION: "Saturation",
    BlendMode.COLOR: "Color",
    BlendMode.LUMINOSITY: "Luminosity",
}

# Photoshop sizes text at 72 dpi.
TARGET_DPI = 72

STACK_SPACING = 35
DEFAULT_LINE_HEIGHT = 1.2
MIN_LINE_HEIGHT = 0.6

# Paragraph justification; justified text has no scene equivalent.
JUSTIFICATION: dict[int, str] = {
    0: "Left",
    1: "Right",
    2: "Center",
}

# FontCaps values; small caps have no scene equivalent.
TEXT_CASE: dict[int, str] = {
    1: "Lowercase",
    2: "Uppercase",
}

# Text shape type to text box mode: point text grows, box text is fixed.
TEXT_BOX_MODE: dict[int, str] = {
    0: "Auto",
    1: "Fixed",
}

# Placeholder font Photoshop assigns to invisible characters.
INVISIBLE_FONT = "AdobeInvisFont"

# Property keys of the scene engine.
TEXT_KEY = "text/text"
FONT_SIZE_KEY = "text/fontSize"
LETTER_SPACING_KEY = "text/letterSpacing"
LINE_HEIGHT_KEY = "text/lineHeight"
FONT_URI_KEY = "text/fontFileUri"
