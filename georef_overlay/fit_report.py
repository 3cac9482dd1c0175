"""
Fit quality of an affine transform against its correspondences.

An exact 3-point fit has zero residual degrees of freedom: the residuals are
zero by construction and say nothing about whether the affine model is right.
Such fits are reported as UNVERIFIABLE with no RMSE rather than RMSE = 0.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from georef_overlay.affine import AffineMatrix
from georef_overlay.points import GCP, MapCoordinate


class FitStatus(Enum):
    """Whether the residuals of a fit carry information."""

    UNVERIFIABLE = "unverifiable"
    VERIFIED = "verified"


@dataclass(frozen=True)
class Residual:
    """Map-space error of one GCP under a fitted transform.

    Attributes:
        id: GCP identifier.
        error: Euclidean distance between observed and predicted map coordinate.
        observed: Map coordinate given by the GCP.
        predicted: Pixel coordinate of the GCP pushed through the transform.
    """

    id: str
    error: float
    observed: MapCoordinate
    predicted: MapCoordinate


@dataclass(frozen=True)
class FitReport:
    """Residual summary of an affine fit.

    Attributes:
        status: UNVERIFIABLE for 3 or fewer GCPs, VERIFIED otherwise.
        message: Human-readable summary.
        rmse: Root-mean-square residual in map units, None when unverifiable.
        max_error: Largest residual in map units, None when unverifiable.
        residuals: Per-GCP residuals (empty when unverifiable).
    """

    status: FitStatus
    message: str
    rmse: float | None = None
    max_error: float | None = None
    residuals: tuple[Residual, ...] = field(default_factory=tuple)

    @property
    def is_verified(self) -> bool:
        return self.status is FitStatus.VERIFIED

    def worst_residual(self) -> Residual | None:
        """Return the GCP with the largest residual, the first to re-check."""
        if not self.residuals:
            return None
        return max(self.residuals, key=lambda r: r.error)


def evaluate_fit(gcps: Sequence[GCP], affine: AffineMatrix) -> FitReport:
    """Compute residuals, RMSE and max error of ``affine`` over ``gcps``.

    Args:
        gcps: Correspondences the transform was fitted to (or held-out checks).
        affine: Pixel -> map transform to evaluate.

    Returns:
        FitReport. Always UNVERIFIABLE when len(gcps) <= 3, regardless of where
        the points are placed.
    """
    if len(gcps) <= 3:
        return FitReport(
            status=FitStatus.UNVERIFIABLE,
            message=(
                f"{len(gcps)} GCPs leave no residual degrees of freedom; the fit cannot be "
                "verified. Use at least 4 GCPs."
            ),
        )

    residuals = []
    for gcp in gcps:
        px, py = affine.apply(gcp.pixel.x, gcp.pixel.y)
        predicted = MapCoordinate(px, py)
        residuals.append(
            Residual(
                id=gcp.id,
                error=gcp.map.distance_to(predicted),
                observed=gcp.map,
                predicted=predicted,
            )
        )

    sse = sum(r.error ** 2 for r in residuals)
    rmse = math.sqrt(sse / len(residuals))
    max_error = max(r.error for r in residuals)

    return FitReport(
        status=FitStatus.VERIFIED,
        message=f"Residuals computed for {len(residuals)} GCPs",
        rmse=rmse,
        max_error=max_error,
        residuals=tuple(residuals),
    )
