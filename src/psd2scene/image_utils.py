import base64
import io
import logging
from typing import Callable, Sequence

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

# encoder(pixels, width, height, background) -> PNG bytes
PngEncoder = Callable[
    [np.ndarray | bytes, int, int, Sequence[int] | None], bytes
]


def blend_background(pixels: np.ndarray, background: Sequence[int]) -> np.ndarray:
    """Alpha-blend RGBA pixels over an RGBA background color.

    Color channels are mixed by the pixel alpha, and the resulting alpha is
    ``a * 255 + (1 - a) * background_alpha``.
    """
    rgba = pixels.astype(np.float64)
    alpha = rgba[..., 3:4] / 255.0
    bg = np.asarray(background, dtype=np.float64).reshape(1, 1, 4)
    color = rgba[..., :3] * alpha + bg[..., :3] * (1.0 - alpha)
    out_alpha = alpha * 255.0 + (1.0 - alpha) * bg[..., 3:4]
    result = np.concatenate([color, out_alpha], axis=-1)
    return np.clip(np.round(result), 0, 255).astype(np.uint8)


def encode_png(
    pixels: np.ndarray | bytes,
    width: int,
    height: int,
    background: Sequence[int] | None = None,
) -> bytes:
    """Encode raw RGBA pixels to PNG.

    Args:
        pixels: RGBA pixels, either an array of shape (height, width, 4) or a flat
            buffer of ``width * height * 4`` bytes.
        width: Image width in pixels.
        height: Image height in pixels.
        background: Optional (r, g, b, a) color in the range [0, 255] to blend
            the pixels over.
    """
    if isinstance(pixels, bytes):
        pixels = np.frombuffer(pixels, dtype=np.uint8)
    array = np.asarray(pixels, dtype=np.uint8).reshape(height, width, 4)
    if background is not None:
        array = blend_background(array, background)

    with io.BytesIO() as output:
        Image.fromarray(array).save(output, format="PNG")
        return output.getvalue()


def encode_data_uri(data: bytes, mime: str = "image/png") -> str:
    """Encode bytes as a base64 data URI."""
    base64_data = base64.b64encode(data).decode("utf-8")
    return f"data:{mime};base64,{base64_data}"


def decode_data_uri(data_uri: str) -> bytes:
    """Decode the payload of a base64 data URI."""
    _, base64_data = data_uri.split(",", 1)
    return base64.b64decode(base64_data)
