"""Vector path reconstruction.

Photoshop stores vector masks and shape outlines as a flat list of path
records. Knot records carry three points in the unit square, each given as a
``(vertical, horizontal)`` pair: the preceding control point, the anchor, and
the leaving control point. This module rebuilds a cubic Bezier path from those
records, scaled to pixels.
"""

import dataclasses
import logging
import re
from enum import IntEnum
from typing import Iterable, Iterator, Sequence

from psd_tools.constants import PathResourceID

logger = logging.getLogger(__name__)

DEFAULT_NUMBER_DIGITS = 2

KNOT_RECORDS = (
    PathResourceID.CLOSED_KNOT_LINKED,
    PathResourceID.CLOSED_KNOT_UNLINKED,
    PathResourceID.OPEN_KNOT_LINKED,
    PathResourceID.OPEN_KNOT_UNLINKED,
)
OPEN_KNOT_RECORDS = (
    PathResourceID.OPEN_KNOT_LINKED,
    PathResourceID.OPEN_KNOT_UNLINKED,
)

Point = tuple[float, float]


class FillRule(IntEnum):
    """Initial fill rule of a path."""

    EMPTY = 0
    FULL = 1


@dataclasses.dataclass(frozen=True)
class PathRecord:
    """Path record.

    Points are ``(vertical, horizontal)`` pairs in the unit square, following the
    PSD convention. Only knot records use the points; ``fill`` is only used by the
    initial fill rule record.
    """

    kind: PathResourceID
    preceding: Point = (0.0, 0.0)
    anchor: Point = (0.0, 0.0)
    leaving: Point = (0.0, 0.0)
    fill: bool = False

    @property
    def is_knot(self) -> bool:
        return self.kind in KNOT_RECORDS

    @property
    def is_open(self) -> bool:
        return self.kind in OPEN_KNOT_RECORDS


@dataclasses.dataclass(frozen=True)
class PathCommand:
    """A single path command with its points in pixels."""

    op: str
    points: tuple[Point, ...] = ()

    def __str__(self) -> str:
        if not self.points:
            return self.op
        return " ".join([self.op] + [seq2str(point) for point in self.points])


@dataclasses.dataclass
class VectorPath:
    """Reconstructed path, with the size it was normalized against."""

    commands: list[PathCommand]
    width: float
    height: float
    fill_rule: FillRule = FillRule.EMPTY

    def __str__(self) -> str:
        return " ".join(str(command) for command in self.commands)

    def __bool__(self) -> bool:
        return bool(self.commands)

    @property
    def is_closed(self) -> bool:
        return bool(self.commands) and self.commands[-1].op == "Z"

    def points(self) -> Iterator[Point]:
        for command in self.commands:
            yield from command.points

    def translate(self, dx: float, dy: float) -> "VectorPath":
        """Return a copy with every point shifted by (dx, dy)."""
        return dataclasses.replace(
            self,
            commands=[
                PathCommand(
                    command.op, tuple((x + dx, y + dy) for x, y in command.points)
                )
                for command in self.commands
            ],
        )

    def bounds(self) -> tuple[float, float, float, float] | None:
        """Bounding box (left, top, right, bottom) of the control point hull."""
        points = list(self.points())
        if not points:
            return None
        xs = [x for x, _ in points]
        ys = [y for _, y in points]
        return (min(xs), min(ys), max(xs), max(ys))


def normalize_coordinate(value: float) -> float:
    """Decode the signed wraparound encoding; values >= 200 are negative."""
    if value >= 200:
        return value - 256
    return value


def reconstruct_path(
    records: Iterable[PathRecord],
    width: float,
    height: float,
    offset: Point = (0.0, 0.0),
) -> VectorPath:
    """Build a cubic Bezier path from a path record sequence.

    Args:
        records: Path records in file order.
        width: Width used to scale horizontal unit coordinates to pixels.
        height: Height used to scale vertical unit coordinates to pixels.
        offset: (x, y) shift applied to every point after scaling.

    Returns:
        The reconstructed path. An empty record list gives an empty path.
    """

    def to_point(point: Point) -> Point:
        vertical, horizontal = point
        return (
            normalize_coordinate(horizontal) * width + offset[0],
            normalize_coordinate(vertical) * height + offset[1],
        )

    def curve(previous: PathRecord, current: PathRecord) -> PathCommand:
        return PathCommand(
            "C",
            (
                to_point(previous.leaving),
                to_point(current.preceding),
                to_point(current.anchor),
            ),
        )

    first: PathRecord | None = None
    previous: PathRecord | None = None
    is_closed = True
    fill_rule = FillRule.EMPTY
    curves: list[PathCommand] = []

    for record in records:
        if record.is_knot:
            if record.is_open:
                is_closed = False
            if first is None:
                first = record
            elif previous is not None:
                curves.append(curve(previous, record))
            previous = record
        elif record.kind == PathResourceID.INITIAL_FILL:
            fill_rule = FillRule.FULL if record.fill else FillRule.EMPTY
        elif record.kind == PathResourceID.PATH_FILL:
            logger.debug("Path fill rule record has no scene equivalent, ignoring.")
        # Subpath length and clipboard records do not draw anything.

    if first is None or previous is None:
        return VectorPath([], width, height, fill_rule)

    if is_closed:
        commands = curves + [curve(previous, first), PathCommand("Z")]
    else:
        commands = [curve(first, first)] + curves
    commands.insert(0, PathCommand("M", (to_point(first.anchor),)))
    return VectorPath(commands, width, height, fill_rule)


_TOKEN_RE = re.compile(r"[MCZmcz]|[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


def parse_path(data: str, width: float = 0.0, height: float = 0.0) -> VectorPath:
    """Parse a serialized path made of absolute M, C, and Z commands."""
    tokens = _TOKEN_RE.findall(data)
    commands: list[PathCommand] = []
    index = 0
    while index < len(tokens):
        op = tokens[index].upper()
        index += 1
        if op == "Z":
            commands.append(PathCommand("Z"))
            continue
        count = {"M": 1, "C": 3}.get(op)
        if count is None:
            raise ValueError(f"Unsupported path command: {op!r}")
        values = [float(v) for v in tokens[index : index + 2 * count]]
        if len(values) != 2 * count:
            raise ValueError(f"Truncated path command: {op!r}")
        index += 2 * count
        commands.append(
            PathCommand(op, tuple(zip(values[0::2], values[1::2])))  # type: ignore[arg-type]
        )
    return VectorPath(commands, width, height)


def num2str(num: int | float, digit: int = DEFAULT_NUMBER_DIGITS) -> str:
    """Convert a number to a string, trimming trailing zeros."""
    if isinstance(num, int):
        return str(num)
    if float(num).is_integer():
        return str(int(num))
    number = f"{num:.{digit}f}".rstrip("0").rstrip(".")
    return "0" if number in ("-0", "") else number


def seq2str(seq: Sequence[int | float], sep: str = ",") -> str:
    """Convert a sequence of numbers to a string."""
    return sep.join(num2str(n) for n in seq)
