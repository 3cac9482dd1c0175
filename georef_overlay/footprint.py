"""
Map-space footprint of a georeferenced image.

The footprint is the image rectangle pushed through the current affine
transform: four corners in the winding order top-left, top-right,
bottom-right, bottom-left of the source image. Because the transform is
affine the footprint is always a parallelogram.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import numpy.typing as npt

from georef_overlay.affine import AffineMatrix
from georef_overlay.errors import InvalidFootprintError
from georef_overlay.types import MapUnits

Coordinate = tuple[float, float]


@dataclass(frozen=True)
class MapExtent:
    """Axis-aligned rectangle in map coordinates.

    Attributes:
        min_x: Left edge.
        min_y: Bottom edge.
        max_x: Right edge.
        max_y: Top edge.
    """

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def __post_init__(self) -> None:
        """Validate that the extent is finite and non-empty."""
        for name in ("min_x", "min_y", "max_x", "max_y"):
            value = float(getattr(self, name))
            if not math.isfinite(value):
                raise ValueError(f"Extent {name} must be finite, got {value}")
            object.__setattr__(self, name, value)
        if self.min_x >= self.max_x:
            raise ValueError(f"Extent min_x ({self.min_x}) must be less than max_x ({self.max_x})")
        if self.min_y >= self.max_y:
            raise ValueError(f"Extent min_y ({self.min_y}) must be less than max_y ({self.max_y})")

    @property
    def width(self) -> MapUnits:
        return MapUnits(self.max_x - self.min_x)

    @property
    def height(self) -> MapUnits:
        return MapUnits(self.max_y - self.min_y)

    def intersects(self, other: MapExtent) -> bool:
        return not (
            other.min_x > self.max_x
            or other.max_x < self.min_x
            or other.min_y > self.max_y
            or other.max_y < self.min_y
        )

    def to_tuple(self) -> tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


@dataclass(frozen=True)
class FootprintPolygon:
    """Closed quadrilateral outline of the image on the map.

    Attributes:
        corners: Exactly four (x, y) map coordinates, without the closing point.
    """

    corners: tuple[Coordinate, Coordinate, Coordinate, Coordinate]

    def __post_init__(self) -> None:
        """Normalize corners to float tuples and validate the count."""
        if len(self.corners) != 4:
            raise InvalidFootprintError(
                f"Footprint polygon must have exactly 4 corners, got {len(self.corners)}"
            )
        normalized = []
        for i, corner in enumerate(self.corners):
            if len(corner) != 2:
                raise InvalidFootprintError(f"Footprint corner {i} must be (x, y), got {corner!r}")
            x, y = float(corner[0]), float(corner[1])
            if not (math.isfinite(x) and math.isfinite(y)):
                raise InvalidFootprintError(f"Footprint corner {i} is not finite: ({x}, {y})")
            normalized.append((x, y))
        object.__setattr__(self, "corners", tuple(normalized))

    @classmethod
    def from_ring(cls, ring: Sequence[Sequence[float]]) -> FootprintPolygon:
        """Create a footprint from 4 corners or a closed 5-point ring.

        Raises:
            InvalidFootprintError: If the ring does not reduce to 4 corners.
        """
        points = [tuple(p) for p in ring]
        if len(points) == 5 and np.allclose(points[0], points[-1]):
            points = points[:-1]
        if len(points) != 4:
            raise InvalidFootprintError(
                f"Footprint ring must have 4 corners plus an optional closing point, "
                f"got {len(points)} points"
            )
        return cls(corners=tuple(points))  # type: ignore[arg-type]

    @property
    def ring(self) -> list[Coordinate]:
        """Corners closed by repeating the first point."""
        return [*self.corners, self.corners[0]]

    @property
    def bounding_box(self) -> MapExtent:
        xs = [x for x, _ in self.corners]
        ys = [y for _, y in self.corners]
        return MapExtent(min(xs), min(ys), max(xs), max(ys))

    @property
    def diagonal_length(self) -> MapUnits:
        """Length of the longer diagonal (corner0-corner2 or corner1-corner3)."""
        c0, c1, c2, c3 = self.corners
        return MapUnits(max(math.dist(c0, c2), math.dist(c1, c3)))

    def diagonal_midpoint_gap(self) -> float:
        """Distance between the midpoints of the two diagonals (0 for parallelograms)."""
        c0, c1, c2, c3 = self.corners
        m02 = ((c0[0] + c2[0]) / 2.0, (c0[1] + c2[1]) / 2.0)
        m13 = ((c1[0] + c3[0]) / 2.0, (c1[1] + c3[1]) / 2.0)
        return math.dist(m02, m13)

    def is_parallelogram(self, tolerance: float) -> bool:
        """Check whether the diagonals bisect each other within tolerance * diagonal."""
        return self.diagonal_midpoint_gap() <= tolerance * self.diagonal_length

    def contains(self, x: float, y: float) -> bool:
        """Even-odd ray-casting point-in-polygon test."""
        inside = False
        j = len(self.corners) - 1
        for i in range(len(self.corners)):
            xi, yi = self.corners[i]
            xj, yj = self.corners[j]
            if (yi > y) != (yj > y):
                x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
                if x < x_cross:
                    inside = not inside
            j = i
        return inside

    def contains_points(self, xs: npt.ArrayLike, ys: npt.ArrayLike) -> npt.NDArray[np.bool_]:
        """Vectorized ``contains`` over broadcastable coordinate arrays."""
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)
        inside = np.zeros(np.broadcast(xs, ys).shape, dtype=bool)
        j = len(self.corners) - 1
        for i in range(len(self.corners)):
            xi, yi = self.corners[i]
            xj, yj = self.corners[j]
            crosses = (yi > ys) != (yj > ys)
            # Horizontal edges never cross; their division result is masked out
            with np.errstate(divide="ignore", invalid="ignore"):
                x_cross = (xj - xi) * (ys - yi) / (yj - yi) + xi
            inside ^= crosses & (xs < x_cross)
            j = i
        return inside


def image_corners(img_w: float, img_h: float) -> list[Coordinate]:
    """Pixel corners of the image: top-left, top-right, bottom-right, bottom-left."""
    return [(0.0, 0.0), (float(img_w), 0.0), (float(img_w), float(img_h)), (0.0, float(img_h))]


def project_footprint(affine: AffineMatrix, img_w: float, img_h: float) -> FootprintPolygon:
    """Project the image's four pixel corners into map space.

    Args:
        affine: Pixel -> map transform.
        img_w: Image width in pixels.
        img_h: Image height in pixels.

    Returns:
        FootprintPolygon whose ``ring`` repeats the first corner to close it.
    """
    if img_w <= 0 or img_h <= 0:
        raise ValueError(f"Image dimensions must be positive, got {img_w}x{img_h}")
    corners = tuple(affine.apply(u, v) for u, v in image_corners(img_w, img_h))
    return FootprintPolygon(corners=corners)  # type: ignore[arg-type]
