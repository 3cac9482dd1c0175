"""
Re-derive the affine transform from an edited footprint polygon.

When the user drags, rotates or scales the image outline on the map, the new
outline is paired corner-for-corner with the image's pixel corners and the
transform is re-solved. An affine map can only send the image rectangle to a
parallelogram, so edits that are not (close to) parallelograms are rejected
and the session keeps its current transform and footprint. The rejection
carries that footprint back to the caller so the visual edit can be reverted,
keeping the displayed outline and the warp in agreement.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence, Union

from georef_overlay.affine import AffineMatrix
from georef_overlay.errors import NonParallelogramEditError
from georef_overlay.footprint import FootprintPolygon, image_corners
from georef_overlay.points import GCP
from georef_overlay.session import GeorefSession
from georef_overlay.solver import solve_affine

logger = logging.getLogger(__name__)

PolygonLike = Union[FootprintPolygon, Sequence[Sequence[float]]]


def check_parallelogram(polygon: FootprintPolygon, tolerance: float) -> None:
    """Raise NonParallelogramEditError unless the diagonals bisect each other.

    Args:
        polygon: Edited footprint.
        tolerance: Allowed midpoint gap as a fraction of the longer diagonal.
    """
    gap = polygon.diagonal_midpoint_gap()
    allowed = tolerance * polygon.diagonal_length
    if gap > allowed:
        raise NonParallelogramEditError(
            f"Edited footprint is not a parallelogram (diagonal midpoints {gap:.4g} apart, "
            f"tolerance {allowed:.4g}); an affine transform cannot produce it",
            midpoint_gap=gap,
            tolerance=allowed,
        )


def corner_correspondences(
    polygon: FootprintPolygon, img_w: float, img_h: float
) -> list[GCP]:
    """Pair the image's pixel corners with the polygon corners in winding order."""
    return [
        GCP.create(f"corner-{i}", u, v, x, y)
        for i, ((u, v), (x, y)) in enumerate(zip(image_corners(img_w, img_h), polygon.corners))
    ]


def sync_from_polygon(session: GeorefSession, new_polygon: PolygonLike) -> AffineMatrix:
    """Re-georeference ``session`` so its footprint matches ``new_polygon``.

    Args:
        session: Session to update.
        new_polygon: Edited footprint: a FootprintPolygon, 4 corners, or a
            closed 5-point ring, in the same winding order as the session's
            footprint (top-left, top-right, bottom-right, bottom-left).

    Returns:
        The session's new AffineMatrix.

    Raises:
        InvalidFootprintError: If the polygon does not have exactly 4 corners.
        NonParallelogramEditError: If the polygon is not a parallelogram. The
            session is unchanged and ``error.current_footprint`` holds the
            footprint to restore.
        DegenerateGeometryError: If the polygon collapses to zero area.
        SessionClearedError: If the session has been cleared.
    """
    raster = session.raster
    if isinstance(new_polygon, FootprintPolygon):
        polygon = new_polygon
    else:
        polygon = FootprintPolygon.from_ring(new_polygon)

    try:
        check_parallelogram(polygon, session.config.parallelogram_tolerance)
    except NonParallelogramEditError as e:
        e.current_footprint = session.footprint
        logger.info(f"Footprint edit rejected: {e}")
        raise

    gcps = corner_correspondences(polygon, raster.width, raster.height)
    affine = solve_affine(gcps)
    state = session.replace_transform(affine, gcps=gcps)

    deviation = max(
        math.dist(requested, projected)
        for requested, projected in zip(polygon.corners, state.footprint.corners)
    )
    logger.debug(f"Footprint synced; max corner deviation after re-projection {deviation:.3g}")
    return affine
