"""Pixel, map and ground control point value types."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


def _require_finite(value: float, name: str) -> float:
    """Coerce to float and reject NaN/Infinity."""
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be a number, got {type(value).__name__}") from e
    if not math.isfinite(number):
        raise ValueError(f"{name} must be a finite number, got {value}")
    return number


@dataclass(frozen=True)
class PixelPoint:
    """Pixel coordinates in the source image.

    Origin is the top-left corner of the image and y grows downward.

    Attributes:
        x: Pixel x coordinate (column, u).
        y: Pixel y coordinate (row, v).
    """

    x: float
    y: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", _require_finite(self.x, "pixel x"))
        object.__setattr__(self, "y", _require_finite(self.y, "pixel y"))

    def distance_to(self, other: PixelPoint) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class MapCoordinate:
    """A position in the single planar map coordinate system (y grows upward).

    Attributes:
        x: Easting-like map coordinate.
        y: Northing-like map coordinate.
    """

    x: float
    y: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", _require_finite(self.x, "map x"))
        object.__setattr__(self, "y", _require_finite(self.y, "map y"))

    def distance_to(self, other: MapCoordinate) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class GCP:
    """A ground control point: one pixel <-> map correspondence.

    Attributes:
        id: Identifier of the point (e.g., "GCP1", "corner-0").
        pixel: Location in the source image.
        map: Location in the map plane.
    """

    id: str
    pixel: PixelPoint
    map: MapCoordinate

    @classmethod
    def create(cls, id: str, u: float, v: float, x: float, y: float) -> GCP:
        """Build a GCP from bare pixel (u, v) and map (x, y) numbers."""
        return cls(id=str(id), pixel=PixelPoint(u, v), map=MapCoordinate(x, y))

    def to_dict(self) -> dict[str, Any]:
        """Convert GCP to a dictionary for YAML/JSON serialization.

        Returns:
            Dictionary with id, pixel {u, v} and map {x, y} keys.
        """
        return {
            "id": self.id,
            "pixel": {"u": self.pixel.x, "v": self.pixel.y},
            "map": {"x": self.map.x, "y": self.map.y},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GCP:
        """Create GCP from a dictionary produced by ``to_dict``.

        Raises:
            KeyError: If required keys are missing from data.
            ValueError: If coordinates are not finite numbers.
        """
        return cls.create(
            id=str(data["id"]),
            u=data["pixel"]["u"],
            v=data["pixel"]["v"],
            x=data["map"]["x"],
            y=data["map"]["y"],
        )
