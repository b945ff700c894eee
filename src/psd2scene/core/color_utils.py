import dataclasses
import logging
from typing import Sequence

from psd_tools.psd.descriptor import Descriptor
from psd_tools.terminology import Key

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Color:
    """RGBA color with channels between 0 and 1."""

    r: float
    g: float
    b: float
    a: float = 1.0


@dataclasses.dataclass(frozen=True)
class CMYKColor:
    """CMYK color with channels between 0 and 1."""

    c: float
    m: float
    y: float
    k: float
    tint: float = 1.0


AnyColor = Color | CMYKColor

# Solid fill used for clip-mask shapes; only their geometry matters.
MASK_COLOR = Color(1.0, 0.0, 0.0, 1.0)
WHITE = Color(1.0, 1.0, 1.0, 1.0)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a value to the given range."""
    return max(low, min(high, float(value)))


def descriptor2color(desc: Descriptor | None) -> AnyColor | None:
    """Convert a color descriptor to a normalized color.

    Byte RGB channels are divided by 255, float RGB channels are clamped to
    [0, 1], and CMYK percentages are divided by 100.
    """
    if desc is None:
        return None

    if Key.Red in desc:
        return Color(
            clamp(float(desc.get(Key.Red, 0)) / 255),
            clamp(float(desc.get(Key.Green, 0)) / 255),
            clamp(float(desc.get(Key.Blue, 0)) / 255),
        )
    if "redFloat" in desc:
        return Color(
            clamp(float(desc.get("redFloat", 0.0))),
            clamp(float(desc.get("greenFloat", 0.0))),
            clamp(float(desc.get("blueFloat", 0.0))),
        )
    if Key.Cyan in desc:
        return CMYKColor(
            clamp(float(desc.get(Key.Cyan, 0)) / 100),
            clamp(float(desc.get(Key.Magenta, 0)) / 100),
            clamp(float(desc.get(Key.Yellow, 0)) / 100),
            clamp(float(desc.get(Key.Black, 0)) / 100),
        )

    logger.warning(f"Unsupported color mode: {getattr(desc, 'classID', None)}")
    return None


def argb2color(values: Sequence[float] | None) -> Color | None:
    """Convert an engine data ARGB quadruple with values between 0 and 1."""
    if values is None or len(values) != 4:
        return None
    a, r, g, b = (float(v) for v in values)
    return Color(clamp(r), clamp(g), clamp(b), clamp(a))


def cmyk2rgb(color: CMYKColor) -> Color:
    """Convert CMYK color to RGB color."""
    return Color(
        clamp((1.0 - color.c) * (1.0 - color.k)),
        clamp((1.0 - color.m) * (1.0 - color.k)),
        clamp((1.0 - color.y) * (1.0 - color.k)),
    )


def color2rgba8(color: AnyColor) -> tuple[int, int, int, int]:
    """Convert a color to an 8-bit RGBA tuple."""
    if isinstance(color, CMYKColor):
        color = cmyk2rgb(color)
    return (
        float2uint8(color.r),
        float2uint8(color.g),
        float2uint8(color.b),
        float2uint8(color.a),
    )


def float2uint8(v: float) -> int:
    """Convert a float in the range [0.0, 1.0] to an integer in the range [0, 255]."""
    return clip_int(round(255 * v))


def clip_int(value: int | float, min_value: int = 0, max_value: int = 255) -> int:
    """Clip an int value to the specified range."""
    return max(min_value, min(max_value, int(value)))
