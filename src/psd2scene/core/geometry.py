import dataclasses
import math


class BoundsError(ValueError):
    """Raised when text bounds cannot be resolved from the layer data."""


@dataclasses.dataclass(frozen=True)
class Transform:
    """Affine transform matrix of a text layer."""

    xx: float = 1.0
    xy: float = 0.0
    yx: float = 0.0
    yy: float = 1.0
    tx: float = 0.0
    ty: float = 0.0

    def apply(self, x: float, y: float) -> tuple[float, float]:
        """Map a point into scene coordinates.

        The shear terms are negated because the scene rotates in the opposite
        direction.
        """
        return (
            self.xx * x - self.xy * y + self.tx,
            -self.yx * x + self.yy * y + self.ty,
        )

    @property
    def rotation(self) -> float:
        """Rotation angle in radians."""
        return -math.atan2(self.yx, self.xx)

    @property
    def scale_x(self) -> float:
        return math.sqrt(self.xx**2 + self.xy**2)

    @property
    def scale_y(self) -> float:
        return math.sqrt(self.yy**2 + self.yx**2)

    @property
    def scale(self) -> float:
        """Average of the horizontal and vertical scale."""
        return (self.scale_x + self.scale_y) / 2


@dataclasses.dataclass(frozen=True)
class Rectangle:
    """Text bounds; any edge may be missing in malformed files."""

    left: float | None
    top: float | None
    right: float | None
    bottom: float | None


@dataclasses.dataclass(frozen=True)
class Geometry:
    """Position, size, and rotation of a block in scene coordinates."""

    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0


def distance(p: tuple[float, float], q: tuple[float, float]) -> float:
    return math.hypot(q[0] - p[0], q[1] - p[1])


def map_text_geometry(transform: Transform, bounds: Rectangle | None) -> Geometry:
    """Map the transformed text bounds to a scene geometry.

    Three corners of the bounds are transformed; the top-left corner becomes the
    position and the edge lengths become the size.

    Raises:
        BoundsError: If the left, top, or right edge is missing.
    """
    if bounds is None or None in (bounds.left, bounds.top, bounds.right):
        raise BoundsError(
            "Text bounds are missing; re-saving the document may fix this."
        )
    left, top, right = float(bounds.left), float(bounds.top), float(bounds.right)  # type: ignore[arg-type]
    bottom = float(bounds.bottom) if bounds.bottom is not None else top

    top_left = transform.apply(left, top)
    top_right = transform.apply(right, top)
    bottom_left = transform.apply(left, bottom)
    return Geometry(
        x=top_left[0],
        y=top_left[1],
        width=distance(top_left, top_right),
        height=distance(top_left, bottom_left),
        rotation=transform.rotation,
    )


def map_layer_geometry(
    left: float, top: float, width: float, height: float
) -> Geometry:
    """Geometry of an axis-aligned layer bounding box."""
    return Geometry(x=left, y=top, width=width, height=height)
