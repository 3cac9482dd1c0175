"""
Affine transform estimation from ground control points.

Each GCP contributes one row [u, v, 1] of the coefficient matrix A and one
target per map axis. The two axes are independent 3-unknown problems:

    [a, b, tx] solves  A @ p = mapX
    [c, d, ty] solves  A @ p = mapY

Three points give an exact solve. Four or more are fitted by ordinary least
squares through the normal equations (A^T A) p = A^T b. Both paths go through
``solve_linear_3x3`` so there is one determinant routine and one epsilon.
"""

import logging
from typing import List, Sequence

from georef_overlay.affine import DETERMINANT_EPSILON, AffineMatrix
from georef_overlay.errors import (
    DegenerateGeometryError,
    InsufficientPointsError,
    NonInvertibleError,
)
from georef_overlay.points import GCP

logger = logging.getLogger(__name__)

MIN_GCP_COUNT = 3


def _det3(m: Sequence[Sequence[float]]) -> float:
    return (
        m[0][0] * (m[1][1] * m[2][2] - m[1][2] * m[2][1])
        - m[0][1] * (m[1][0] * m[2][2] - m[1][2] * m[2][0])
        + m[0][2] * (m[1][0] * m[2][1] - m[1][1] * m[2][0])
    )


def solve_linear_3x3(A: Sequence[Sequence[float]], b: Sequence[float]) -> List[float]:
    """Solve the 3x3 system A @ x = b by Cramer's rule.

    Args:
        A: 3x3 coefficient matrix (row-major).
        b: Right-hand side of length 3.

    Returns:
        Solution vector [x0, x1, x2].

    Raises:
        DegenerateGeometryError: If |det(A)| < DETERMINANT_EPSILON.
    """
    det_a = _det3(A)
    if abs(det_a) < DETERMINANT_EPSILON:
        raise DegenerateGeometryError(
            f"GCP pixel coordinates are collinear or duplicated (det={det_a:.3e}). "
            "Place GCPs at spread-out, non-aligned positions."
        )

    result = []
    for col in range(3):
        # Substitute column `col` with b
        a_i = [list(row) for row in A]
        for row in range(3):
            a_i[row][col] = b[row]
        result.append(_det3(a_i) / det_a)
    return result


def solve_affine(gcps: Sequence[GCP]) -> AffineMatrix:
    """Estimate the pixel -> map affine transform from correspondences.

    Args:
        gcps: At least 3 ground control points.

    Returns:
        AffineMatrix fitted exactly (3 points) or by least squares (4+ points).

    Raises:
        InsufficientPointsError: If fewer than 3 GCPs are given.
        DegenerateGeometryError: If the pixel points are collinear/duplicated, or
            the map points collapse so the fitted transform is not invertible.

    Example:
        >>> gcps = [
        ...     GCP.create("p1", 0, 0, 100, 100),
        ...     GCP.create("p2", 10, 0, 110, 100),
        ...     GCP.create("p3", 0, 10, 100, 90),
        ... ]
        >>> solve_affine(gcps).apply(10, 10)
        (110.0, 90.0)
    """
    n = len(gcps)
    if n < MIN_GCP_COUNT:
        raise InsufficientPointsError(
            f"At least {MIN_GCP_COUNT} GCPs are required to solve an affine transform "
            f"(got {n})"
        )

    if n == MIN_GCP_COUNT:
        A = [[g.pixel.x, g.pixel.y, 1.0] for g in gcps]
        bx = [g.map.x for g in gcps]
        by = [g.map.y for g in gcps]
        method = "exact"
    else:
        # Normal equations: A^T A and A^T b accumulated over all points
        A = [[0.0, 0.0, 0.0] for _ in range(3)]
        bx = [0.0, 0.0, 0.0]
        by = [0.0, 0.0, 0.0]
        for g in gcps:
            row = (g.pixel.x, g.pixel.y, 1.0)
            for i in range(3):
                for j in range(3):
                    A[i][j] += row[i] * row[j]
                bx[i] += row[i] * g.map.x
                by[i] += row[i] * g.map.y
        method = "least-squares"

    a, b, tx = solve_linear_3x3(A, bx)
    c, d, ty = solve_linear_3x3(A, by)

    try:
        affine = AffineMatrix(a=a, b=b, tx=tx, c=c, d=d, ty=ty)
    except NonInvertibleError as e:
        raise DegenerateGeometryError(
            "GCP map coordinates are collinear or duplicated; "
            f"the fitted transform is not invertible ({e})"
        ) from e

    logger.debug(f"Solved affine from {n} GCPs ({method}): {affine.to_dict()}")
    return affine
