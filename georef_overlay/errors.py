"""
Error taxonomy for georeferencing operations.

Every failure raised by the solver, inverter, validator and footprint sync is a
GeorefError. They subclass ValueError so callers that already guard numeric
input with ``except ValueError`` keep working. None of them are fatal: they
describe input the caller can correct and retry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from georef_overlay.footprint import FootprintPolygon
    from georef_overlay.gcp_validation import ValidationResult


class GeorefError(ValueError):
    """Base class for all recoverable georeferencing failures."""


class InsufficientPointsError(GeorefError):
    """Fewer than 3 correspondences were supplied to the solver."""


class DegenerateGeometryError(GeorefError):
    """Correspondences are collinear or duplicated, so the solve is singular."""


class NonInvertibleError(GeorefError):
    """An affine matrix has a near-zero determinant."""


class InvalidFootprintError(GeorefError):
    """A footprint polygon does not have exactly 4 finite corners."""


class SessionClearedError(GeorefError):
    """The session was cleared and no longer holds a raster."""


class ValidationFailure(GeorefError):
    """A correspondence set failed validation.

    Attributes:
        result: The itemized ValidationResult (errors block, warnings do not).
    """

    def __init__(self, result: ValidationResult) -> None:
        self.result = result
        details = list(result.errors) or list(result.warnings)
        super().__init__("GCP validation failed:\n  " + "\n  ".join(details))


class NonParallelogramEditError(GeorefError):
    """A footprint edit cannot be represented by an affine transform.

    Affine maps send the image rectangle only to parallelograms. The session is
    left untouched; ``current_footprint`` is the footprint the caller should
    restore on screen.

    Attributes:
        current_footprint: Footprint still held by the session.
        midpoint_gap: Distance between the midpoints of the two diagonals.
        tolerance: Largest gap that would have been accepted.
    """

    def __init__(
        self,
        message: str,
        current_footprint: FootprintPolygon | None = None,
        midpoint_gap: float = 0.0,
        tolerance: float = 0.0,
    ) -> None:
        super().__init__(message)
        self.current_footprint = current_footprint
        self.midpoint_gap = midpoint_gap
        self.tolerance = tolerance
