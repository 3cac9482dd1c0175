"""
Ground Control Point (GCP) validation module.

Checks a correspondence set before an affine solve is attempted, so the caller
can reject bad input up front instead of relying on the solver's determinant
check. Findings are split into errors (block applying the transform) and
warnings (likely mis-picked points, allowed after acknowledgement).
"""

import logging
import math
import numbers
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from georef_overlay.errors import GeorefError, ValidationFailure
from georef_overlay.points import GCP
from georef_overlay.solver import MIN_GCP_COUNT, solve_affine

logger = logging.getLogger(__name__)


# GCP validation constants
PIXEL_DUPLICATE_TOLERANCE = 1.0  # pixels, Euclidean
MAP_DUPLICATE_TOLERANCE = 0.01  # map units, Euclidean
MIN_TRIANGLE_AREA = 1.0  # |u1(v2-v3)+u2(v3-v1)+u3(v1-v2)| of the first three points
MAX_SCALE_RATIO = 10.0  # max(sx, sy) / min(sx, sy) before warning
MAX_GCP_COUNT = 1000  # Maximum number of GCPs to prevent O(n^2) performance issues
MAX_DESCRIPTION_LENGTH = 200  # Maximum length for GCP ids in error messages
MAX_IMAGE_DIMENSION = 100000


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a correspondence set.

    Attributes:
        valid: True when there are no errors (warnings may still be present).
        errors: Blocking problems, one message per finding.
        warnings: Non-blocking problems.
    """

    valid: bool
    errors: tuple[str, ...] = field(default_factory=tuple)
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def raise_for_errors(self) -> None:
        """Raise ValidationFailure if the set has blocking errors."""
        if not self.valid:
            raise ValidationFailure(self)


def _get_gcp_description(gcp: GCP, index: int) -> str:
    """Get a sanitized description for a GCP for use in error messages.

    Args:
        gcp: Ground control point
        index: Index of the GCP in the list

    Returns:
        Sanitized description string, e.g. "GCP 2 ('bridge')"
    """
    raw = gcp.id if gcp.id else f"index {index}"

    # Sanitize: remove control characters and limit length
    sanitized = ''.join(char for char in raw if char.isprintable() or char == ' ')
    if len(sanitized) > MAX_DESCRIPTION_LENGTH:
        sanitized = sanitized[:MAX_DESCRIPTION_LENGTH] + '...'

    return f"GCP {index + 1} ('{sanitized}')"


def _validate_image_dimension(dimension: Any, dimension_name: str) -> Optional[int]:
    """Validate and normalize an image dimension parameter.

    Args:
        dimension: The dimension value to validate (or None)
        dimension_name: Name for error messages ('image_width' or 'image_height')

    Returns:
        Validated dimension as int, or None if not provided

    Raises:
        ValueError: If dimension is invalid
    """
    if dimension is None:
        return None

    if not isinstance(dimension, numbers.Number) or isinstance(dimension, complex):
        raise ValueError(
            f"{dimension_name} must be a positive integer, got {type(dimension).__name__}"
        )
    if not math.isfinite(dimension):
        raise ValueError(
            f"{dimension_name} must be a finite positive integer, "
            f"got {dimension} (NaN and Infinity are not allowed)"
        )

    dim_int = int(dimension)
    if dim_int <= 0:
        raise ValueError(f"{dimension_name} must be positive, got {dim_int}")
    if dim_int > MAX_IMAGE_DIMENSION:
        raise ValueError(
            f"{dimension_name} {dim_int} exceeds maximum allowed value of {MAX_IMAGE_DIMENSION}"
        )
    return dim_int


def triangle_area_measure(p1: GCP, p2: GCP, p3: GCP) -> float:
    """Collinearity measure of three pixel points (twice the triangle area)."""
    u1, v1 = p1.pixel.x, p1.pixel.y
    u2, v2 = p2.pixel.x, p2.pixel.y
    u3, v3 = p3.pixel.x, p3.pixel.y
    return abs(u1 * (v2 - v3) + u2 * (v3 - v1) + u3 * (v1 - v2))


def detect_duplicate_gcps(
    gcps: Sequence[GCP],
    pixel_tolerance: float = PIXEL_DUPLICATE_TOLERANCE,
    map_tolerance: float = MAP_DUPLICATE_TOLERANCE,
) -> List[str]:
    """Find pairs of GCPs sampling the same pixel or the same map location.

    Unlike a combined check, pixel and map duplicates are reported separately:
    either one on its own makes the affine solve ill-conditioned.

    Args:
        gcps: Ground control points
        pixel_tolerance: Pixel pairs closer than this are duplicates
        map_tolerance: Map pairs closer than this are duplicates

    Returns:
        One error message per duplicate pair and axis
    """
    errors = []
    for i in range(len(gcps)):
        for j in range(i + 1, len(gcps)):
            desc_i = _get_gcp_description(gcps[i], i)
            desc_j = _get_gcp_description(gcps[j], j)

            pixel_dist = gcps[i].pixel.distance_to(gcps[j].pixel)
            if pixel_dist < pixel_tolerance:
                errors.append(
                    f"{desc_i} and {desc_j} have duplicate pixel coordinates "
                    f"({pixel_dist:.3f} px apart, minimum {pixel_tolerance} px)"
                )

            map_dist = gcps[i].map.distance_to(gcps[j].map)
            if map_dist < map_tolerance:
                errors.append(
                    f"{desc_i} and {desc_j} have duplicate map coordinates "
                    f"({map_dist:.4f} apart, minimum {map_tolerance})"
                )
    return errors


def validate_gcps(
    gcps: Sequence[GCP],
    image_width: Optional[int] = None,
    image_height: Optional[int] = None,
    *,
    pixel_tolerance: float = PIXEL_DUPLICATE_TOLERANCE,
    map_tolerance: float = MAP_DUPLICATE_TOLERANCE,
    min_triangle_area: float = MIN_TRIANGLE_AREA,
    max_scale_ratio: float = MAX_SCALE_RATIO,
    max_gcp_count: int = MAX_GCP_COUNT,
) -> ValidationResult:
    """Validate a correspondence set before solving.

    Errors:
        - fewer than 3 GCPs (reported alone)
        - more than ``max_gcp_count`` GCPs
        - repeated GCP ids
        - pixel coordinates outside [0, W] x [0, H] when dimensions are given
        - pixel pairs closer than ``pixel_tolerance``
        - map pairs closer than ``map_tolerance``
        - first three pixel points (near-)collinear
        - the correspondences do not define an invertible transform

    Warnings:
        - axis scale ratio of the fitted transform above ``max_scale_ratio``

    Args:
        gcps: Ground control points
        image_width: Optional image width for pixel bounds checking
        image_height: Optional image height for pixel bounds checking

    Returns:
        ValidationResult

    Raises:
        ValueError: If image_width/image_height are not positive integers
    """
    validated_width = _validate_image_dimension(image_width, 'image_width')
    validated_height = _validate_image_dimension(image_height, 'image_height')

    errors: List[str] = []
    warnings: List[str] = []

    if len(gcps) < MIN_GCP_COUNT:
        errors.append(f"At least {MIN_GCP_COUNT} GCPs are required (got {len(gcps)})")
        return ValidationResult(valid=False, errors=tuple(errors))

    # Check maximum count to prevent O(n^2) performance issues
    if len(gcps) > max_gcp_count:
        errors.append(
            f"Too many GCPs provided: {len(gcps)}. Maximum allowed is {max_gcp_count}"
        )
        return ValidationResult(valid=False, errors=tuple(errors))

    seen_ids = set()
    for i, gcp in enumerate(gcps):
        if gcp.id in seen_ids:
            errors.append(f"{_get_gcp_description(gcp, i)} reuses an existing id")
        seen_ids.add(gcp.id)

    if validated_width is not None or validated_height is not None:
        for i, gcp in enumerate(gcps):
            u, v = gcp.pixel.x, gcp.pixel.y
            if validated_width is not None and not 0 <= u <= validated_width:
                errors.append(
                    f"{_get_gcp_description(gcp, i)}: u coordinate {u} outside image width "
                    f"[0, {validated_width}]"
                )
            if validated_height is not None and not 0 <= v <= validated_height:
                errors.append(
                    f"{_get_gcp_description(gcp, i)}: v coordinate {v} outside image height "
                    f"[0, {validated_height}]"
                )

    errors.extend(detect_duplicate_gcps(gcps, pixel_tolerance, map_tolerance))

    area = triangle_area_measure(gcps[0], gcps[1], gcps[2])
    if area < min_triangle_area:
        errors.append(
            f"The first three GCPs are nearly collinear in the image (area measure "
            f"{area:.3f} < {min_triangle_area}). Spread GCPs across the image."
        )

    if not errors:
        try:
            affine = solve_affine(gcps)
        except GeorefError as e:
            errors.append(f"GCPs do not define a valid affine transform: {e}")
        else:
            sx, sy = affine.scale_x, affine.scale_y
            ratio = max(sx, sy) / min(sx, sy)
            if ratio > max_scale_ratio:
                warnings.append(
                    f"X/Y scale ratio is {ratio:.1f}:1 (limit {max_scale_ratio:.0f}:1). "
                    "Check the GCP positions for mis-picked points."
                )

    for message in errors:
        logger.debug(f"GCP validation error: {message}")
    for message in warnings:
        logger.warning(message)

    if not errors:
        logger.info(f"Successfully validated {len(gcps)} ground control points")

    return ValidationResult(valid=not errors, errors=tuple(errors), warnings=tuple(warnings))
