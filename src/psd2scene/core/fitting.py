"""Text fitting and alignment corrections.

Text laid out by the scene engine rarely breaks lines exactly where Photoshop
does. :func:`fit_letter_spacing` searches for the largest letter spacing that
keeps auto-sized text within the original frame height, and the alignment
fixes compensate for differences in font metric handling.
"""

import asyncio
import logging
import math

from psd2scene.core.constants import FONT_SIZE_KEY, LETTER_SPACING_KEY, TEXT_KEY
from psd2scene.font_metrics import FontInfo
from psd2scene.scene import SceneEngine

logger = logging.getLogger(__name__)

DEFAULT_STEP = 0.001
DEFAULT_MAX_STEPS = 500


def points_to_inches(points: float) -> float:
    """Photoshop sizes text at 72 points per inch."""
    return points / 72


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


async def wait_until_block_is_ready(
    engine: SceneEngine, block: int, timeout: float | None = 1.0
) -> None:
    """Wait until a pending block becomes ready.

    The wait gives up silently after ``timeout`` seconds so that layout never
    blocks the conversion.
    """
    if engine.get_state(block) != "Pending":
        return

    ready: asyncio.Future[None] = asyncio.get_running_loop().create_future()

    def on_state_changed(blocks: list[int]) -> None:
        if ready.done():
            return
        if all(engine.get_state(changed) != "Pending" for changed in blocks):
            ready.set_result(None)

    unsubscribe = engine.on_state_changed([block], on_state_changed)
    try:
        await asyncio.wait_for(ready, timeout)
    except asyncio.TimeoutError:
        logger.debug(f"Block {block} is still pending after {timeout}s.")
    finally:
        unsubscribe()


def is_overflowing(
    engine: SceneEngine, block: int, target_height: float, font_size: float
) -> bool:
    """Whether the auto-sized frame exceeds the target height.

    A slack of half the font size (in inches) absorbs sub-pixel differences.
    """
    frame_height = engine.get_frame_height(block)
    return frame_height - target_height > points_to_inches(font_size) / 2


def is_perfect_fit(
    engine: SceneEngine,
    block: int,
    target_height: float,
    font_size: float,
    step: float = DEFAULT_STEP,
) -> bool:
    """Decrease the letter spacing by one step and check for a perfect fit.

    The fit is perfect when the text overflows before the decrement and does
    not overflow after it. The decremented spacing stays set on the block.
    """
    overflowing_before = is_overflowing(engine, block, target_height, font_size)
    spacing = engine.get_float(block, LETTER_SPACING_KEY)
    engine.set_float(block, LETTER_SPACING_KEY, spacing - step)
    overflowing_after = is_overflowing(engine, block, target_height, font_size)
    return overflowing_before and not overflowing_after


async def fit_letter_spacing(
    engine: SceneEngine,
    block: int,
    step: float = DEFAULT_STEP,
    max_steps: int = DEFAULT_MAX_STEPS,
    timeout: float | None = 1.0,
) -> float | None:
    """Find the largest letter spacing that keeps the text in its frame height.

    The search runs over the step counts ``[-max_steps, max_steps]`` around the
    current spacing with at most ``ceil(sqrt(max_steps))`` iterations. The
    height mode and height of the block are restored in any case.

    Returns:
        The letter spacing set on the block, or None if no fit was found. In
        that case the original spacing is restored.
    """
    await wait_until_block_is_ready(engine, block, timeout)
    original_height = engine.get_height(block)
    engine.set_height_mode(block, "Auto")
    baseline = engine.get_float(block, LETTER_SPACING_KEY)
    font_size = engine.get_float(block, FONT_SIZE_KEY)

    def set_steps(steps: int) -> None:
        engine.set_float(block, LETTER_SPACING_KEY, baseline + steps * step)

    def overflowing() -> bool:
        return is_overflowing(engine, block, original_height, font_size)

    result = None
    low, high = -max_steps, max_steps
    try:
        for _ in range(math.ceil(math.sqrt(max_steps))):
            if is_perfect_fit(engine, block, original_height, font_size, step):
                result = engine.get_float(block, LETTER_SPACING_KEY)
                break
            if high - low <= 1:
                set_steps(low)
                if not overflowing():
                    result = engine.get_float(block, LETTER_SPACING_KEY)
                break
            middle = round_half_up((low + high) / 2)
            set_steps(middle)
            if overflowing():
                high = middle
            else:
                low = middle

        if result is None:
            text = engine.get_string(block, TEXT_KEY)
            logger.warning(
                "Could not find a perfect fit for the text block with text "
                f'"{text[:10]}..."'
            )
            engine.set_float(block, LETTER_SPACING_KEY, baseline)
    finally:
        engine.set_height_mode(block, "Absolute")
        engine.set_height(block, original_height)
    return result


def move_text_in_text_direction(
    engine: SceneEngine, block: int, dx: float, dy: float
) -> None:
    """Move a block along its own rotated axes."""
    rotation = engine.get_rotation(block)
    cos_theta, sin_theta = math.cos(rotation), math.sin(rotation)
    x = engine.get_position_x(block)
    y = engine.get_position_y(block)
    engine.set_position_x(block, x + dx * cos_theta - dy * sin_theta)
    engine.set_position_y(block, y + dx * sin_theta + dy * cos_theta)


def fix_vertical_alignment(
    engine: SceneEngine, block: int, font_info: FontInfo | None
) -> float:
    """Shift text by the imbalance between the font's ascender and descender.

    The formula is tuned against Photoshop renderings.

    Returns:
        The applied offset, 0 when the font metrics are unknown.
    """
    if font_info is None:
        return 0.0
    font_size = points_to_inches(engine.get_float(block, FONT_SIZE_KEY))
    units_per_em = font_info.units_per_em
    offset = (
        (-font_info.descender + font_info.ascender - units_per_em)
        / units_per_em
        * font_size
    ) / 2
    move_text_in_text_direction(engine, block, 0, -offset)
    return offset


def fix_one_line_alignment(engine: SceneEngine, block: int) -> bool:
    """Align single-line text to the bottom of its frame.

    Text is considered single-line when its frame is lower than two font
    sizes. The block keeps its absolute height.

    Returns:
        Whether the block was moved.
    """
    font_size = points_to_inches(engine.get_float(block, FONT_SIZE_KEY))
    frame_height = engine.get_frame_height(block)
    if frame_height >= 2 * font_size:
        return False

    engine.set_height_mode(block, "Auto")
    auto_height = engine.get_frame_height(block)
    engine.set_position_y(
        block, engine.get_position_y(block) + frame_height - auto_height
    )
    engine.set_height_mode(block, "Absolute")
    engine.set_height(block, frame_height)
    return True
