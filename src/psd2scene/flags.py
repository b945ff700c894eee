"""Conversion flags.

This module provides the switches that control optional parts of the
conversion, such as clip masks, text fitting, and deferred grouping.
"""

import logging
import os
from dataclasses import dataclass

from psd2scene.font_resolver import DEFAULT_FONT_CATALOG_URL

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass
class Flags:
    """Flags for a conversion session.

    Flags can be configured via environment variables or constructor parameters.
    Constructor parameters are used as given; environment variables are only read
    by :meth:`default`.

    Environment variables:
        PSD2SCENE_APPLY_CLIP_MASKS: Intersect raster layers with ancestor vector
            masks (default: true)
        PSD2SCENE_ENABLE_TEXT_FITTING: Shrink auto-sized text to its original
            height by adjusting letter spacing (default: true)
        PSD2SCENE_ENABLE_TEXT_ONE_LINE_ALIGNMENT_FIX: Shift single-line text by
            the font's line gap (default: false)
        PSD2SCENE_ENABLE_TEXT_VERTICAL_ALIGNMENT_FIX: Shift text by the font's
            ascender/descender imbalance (default: true)
        PSD2SCENE_ENABLE_TEXT_TYPEFACE_REACHABLE_CHECK: Fetch resolved font files
            to verify and measure them (default: true)
        PSD2SCENE_GROUPS_ENABLED: Group blocks that shared a source group
            (default: false)
        PSD2SCENE_INCLUDE_HIDDEN_LAYERS: Create hidden layers as invisible blocks
            instead of skipping them (default: false)
        PSD2SCENE_BLOCK_READY_TIMEOUT: Seconds to wait for a text block to be
            ready before measuring it (default: 1.0)
        PSD2SCENE_FONT_CATALOG_URL: Typeface catalog of the default font
            resolver, empty to disable it (default: the Google Fonts catalog)

    Example:
        >>> flags = Flags.default()
        >>> flags = Flags(groups_enabled=True, enable_text_fitting=False)
    """

    apply_clip_masks: bool = True
    enable_text_fitting: bool = True
    enable_text_one_line_alignment_fix: bool = False
    enable_text_vertical_alignment_fix: bool = True
    enable_text_typeface_reachable_check: bool = True
    groups_enabled: bool = False
    include_hidden_layers: bool = False
    block_ready_timeout: float = 1.0
    font_catalog_url: str | None = DEFAULT_FONT_CATALOG_URL

    @classmethod
    def default(cls) -> "Flags":
        """Create Flags with values from environment variables.

        Raises:
            ValueError: If an environment variable contains an invalid value.
        """

        def parse_env_bool(key: str, default: bool) -> bool:
            value_str = os.environ.get(key)
            if value_str is None:
                return default
            value = value_str.strip().lower()
            if value in _TRUE_VALUES:
                return True
            if value in _FALSE_VALUES:
                return False
            raise ValueError(
                f"Environment variable {key}={value_str!r} is not a valid boolean"
            )

        def parse_env_float(key: str, default: float) -> float:
            value_str = os.environ.get(key)
            if value_str is None:
                return default
            try:
                value = float(value_str)
            except ValueError as e:
                raise ValueError(
                    f"Environment variable {key}={value_str!r} is not a valid number"
                ) from e
            if value < 0:
                logger.warning(
                    f"Environment variable {key}={value} is negative, "
                    f"using the default of {default}."
                )
                return default
            return value

        def parse_env_url(key: str, default: str) -> str | None:
            value = os.environ.get(key, default).strip()
            return value or None

        return cls(
            apply_clip_masks=parse_env_bool("PSD2SCENE_APPLY_CLIP_MASKS", True),
            enable_text_fitting=parse_env_bool("PSD2SCENE_ENABLE_TEXT_FITTING", True),
            enable_text_one_line_alignment_fix=parse_env_bool(
                "PSD2SCENE_ENABLE_TEXT_ONE_LINE_ALIGNMENT_FIX", False
            ),
            enable_text_vertical_alignment_fix=parse_env_bool(
                "PSD2SCENE_ENABLE_TEXT_VERTICAL_ALIGNMENT_FIX", True
            ),
            enable_text_typeface_reachable_check=parse_env_bool(
                "PSD2SCENE_ENABLE_TEXT_TYPEFACE_REACHABLE_CHECK", True
            ),
            groups_enabled=parse_env_bool("PSD2SCENE_GROUPS_ENABLED", False),
            include_hidden_layers=parse_env_bool(
                "PSD2SCENE_INCLUDE_HIDDEN_LAYERS", False
            ),
            block_ready_timeout=parse_env_float("PSD2SCENE_BLOCK_READY_TIMEOUT", 1.0),
            font_catalog_url=parse_env_url(
                "PSD2SCENE_FONT_CATALOG_URL", DEFAULT_FONT_CATALOG_URL
            ),
        )
