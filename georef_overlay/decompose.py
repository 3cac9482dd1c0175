"""
Lossy center/scale/rotation export of an affine transform.

Some consumers (e.g. image layers that only accept a center, per-axis scale and
a rotation) cannot represent a general affine matrix. ``decompose_affine``
produces those parameters and reports when the approximation drops shear.
Rendering never goes through this representation; ``georef_overlay.warp``
resamples through the full inverse matrix.

Sign conventions:
    rotation: atan2(c, a), radians, counter-clockwise positive in the y-up map
        plane.
    display_rotation: -rotation, for consumers that treat clockwise as positive.
    flipped: True when the determinant is negative, which is the usual case of
        a y-down image placed on a y-up map. The flip is modelled, not shear.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from georef_overlay.affine import AffineMatrix
from georef_overlay.types import Radians

logger = logging.getLogger(__name__)

SHEAR_TOLERANCE = 0.01  # fraction of (sx + sy)


@dataclass(frozen=True)
class DecomposedAffine:
    """Approximate center/scale/rotation parameters of an affine transform.

    Attributes:
        center: Map coordinate of the image's pixel center (W/2, H/2).
        scale: (sx, sy) map units per pixel along u and v.
        rotation: atan2(c, a) in radians.
        flipped: Whether the v axis is mirrored relative to u (det < 0).
        shear_error: |b - b_pred| + |d - d_pred| of the scale/rotation model.
        shear_detected: True when shear_error exceeds the tolerance.
        warnings: Human-readable warnings (shear).
    """

    center: tuple[float, float]
    scale: tuple[float, float]
    rotation: Radians
    flipped: bool
    shear_error: float
    shear_detected: bool
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def display_rotation(self) -> Radians:
        return Radians(-self.rotation)

    @property
    def lossless(self) -> bool:
        return not self.shear_detected


def decompose_affine(
    affine: AffineMatrix,
    img_w: float,
    img_h: float,
    shear_tolerance: float = SHEAR_TOLERANCE,
) -> DecomposedAffine:
    """Decompose ``affine`` into center, scale and rotation.

    Args:
        affine: Pixel -> map transform.
        img_w: Image width in pixels.
        img_h: Image height in pixels.
        shear_tolerance: Allowed shear discrepancy as a fraction of (sx + sy).

    Returns:
        DecomposedAffine. Always an approximation of the full matrix; check
        ``shear_detected`` before relying on it.
    """
    a, b, c, d = affine.a, affine.b, affine.c, affine.d

    center = affine.apply(img_w / 2.0, img_h / 2.0)
    sx = math.hypot(a, c)
    sy = math.hypot(b, d)
    theta = math.atan2(c, a)
    flipped = affine.determinant < 0

    # Scale/rotation-only prediction of the v column
    if flipped:
        expected_b = sy * math.sin(theta)
        expected_d = -sy * math.cos(theta)
    else:
        expected_b = -sy * math.sin(theta)
        expected_d = sy * math.cos(theta)

    shear_error = abs(b - expected_b) + abs(d - expected_d)
    shear_detected = shear_error > shear_tolerance * (sx + sy)

    warnings = []
    if shear_detected:
        message = (
            f"Affine transform contains shear (discrepancy {shear_error:.4g}); "
            "center/scale/rotation is only an approximation"
        )
        logger.warning(message)
        warnings.append(message)

    return DecomposedAffine(
        center=center,
        scale=(sx, sy),
        rotation=Radians(theta),
        flipped=flipped,
        shear_error=shear_error,
        shear_detected=shear_detected,
        warnings=tuple(warnings),
    )
