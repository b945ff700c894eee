import argparse
import json
import logging
import os
import pathlib
import sys

from psd2scene import convert
from psd2scene.flags import Flags
from psd2scene.scene import MemoryScene


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Convert PSD files to a scene")
    parser.add_argument(
        "input", metavar="INPUT", type=str, nargs="+", help="Input PSD file paths"
    )
    parser.add_argument(
        "--output",
        "-o",
        metavar="PATH",
        type=str,
        default=None,
        help="Output JSON file. Default: standard output",
    )
    parser.add_argument(
        "--groups",
        dest="groups_enabled",
        action="store_true",
        help="Group blocks that came from the same layer group.",
    )
    parser.add_argument(
        "--include-hidden",
        dest="include_hidden_layers",
        action="store_true",
        help="Create hidden layers as invisible blocks instead of skipping them.",
    )
    parser.add_argument(
        "--no-clip-masks",
        dest="apply_clip_masks",
        action="store_false",
        help="Disable clipping of raster layers by group vector masks.",
    )
    parser.add_argument(
        "--no-text-fitting",
        dest="enable_text_fitting",
        action="store_false",
        help="Disable letter spacing fitting of auto-sized text.",
    )
    parser.add_argument(
        "--font-catalog",
        metavar="URL",
        type=str,
        default=None,
        help="Typeface catalog URL or JSON file. Default: the Google Fonts catalog",
    )
    parser.add_argument(
        "--no-font-catalog",
        dest="font_catalog_enabled",
        action="store_false",
        help="Do not resolve typefaces from a catalog.",
    )
    parser.add_argument(
        "--loglevel",
        metavar="LEVEL",
        default="WARNING",
        help="Logging level, default WARNING",
    )
    return parser.parse_args()


def to_url(location: str) -> str:
    """Turn a local file path into a file URL, and keep other URLs."""
    if os.path.exists(location):
        return pathlib.Path(location).resolve().as_uri()
    return location


def main() -> None:
    """Main function to convert PSD files to a JSON scene."""
    args = parse_args()
    logging.basicConfig(level=getattr(logging, args.loglevel.upper(), "WARNING"))
    flags = Flags.default()
    flags.groups_enabled = flags.groups_enabled or args.groups_enabled
    flags.include_hidden_layers = (
        flags.include_hidden_layers or args.include_hidden_layers
    )
    flags.apply_clip_masks = flags.apply_clip_masks and args.apply_clip_masks
    flags.enable_text_fitting = (
        flags.enable_text_fitting and args.enable_text_fitting
    )
    if args.font_catalog is not None:
        flags.font_catalog_url = to_url(args.font_catalog)
    if not args.font_catalog_enabled:
        flags.font_catalog_url = None

    engine = MemoryScene()
    _, result = convert(args.input, engine, flags=flags)
    output = {
        "scene": engine.to_dict(result.scene),
        "messages": [
            {"message": message.message, "severity": message.severity}
            for message in result.messages
        ],
    }
    if args.output is None:
        json.dump(output, sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        with open(args.output, "w") as f:
            json.dump(output, f, indent=2)


if __name__ == "__main__":
    main()
