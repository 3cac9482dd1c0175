"""
Affine pixel -> map transform.

The transform maps source-image pixel coordinates (u, v) to map coordinates:

    mapX = a*u + b*v + tx
    mapY = c*u + d*v + ty

An AffineMatrix is always invertible: the constructor rejects any matrix whose
linear part has |det| below DETERMINANT_EPSILON. The same epsilon is used by
the Cramer solver in ``georef_overlay.solver``.

GDAL interoperability:
    GDAL's 6-parameter GeoTransform stores the same coefficients in the order
    [GT0, GT1, GT2, GT3, GT4, GT5] = [tx, a, b, ty, c, d]:

        Xgeo = GT[0] + P*GT[1] + L*GT[2]
        Ygeo = GT[3] + P*GT[4] + L*GT[5]

    GT[0]/GT[3] are the map coordinates of the upper-left pixel CORNER. To get
    pixel CENTER coordinates, add 0.5 to u and v before calling ``apply``.

References:
    - GDAL GeoTransform: https://gdal.org/tutorials/geotransforms_tut.html
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np
import numpy.typing as npt

from georef_overlay.errors import NonInvertibleError

DETERMINANT_EPSILON = 1e-12

_FIELDS = ("a", "b", "tx", "c", "d", "ty")


@dataclass(frozen=True)
class AffineMatrix:
    """Immutable 6-coefficient affine transform from pixel to map space.

    Attributes:
        a: x scale/rotation term applied to u.
        b: x shear/rotation term applied to v.
        tx: x translation.
        c: y shear/rotation term applied to u.
        d: y scale/rotation term applied to v.
        ty: y translation.

    Raises:
        NonInvertibleError: If |a*d - b*c| < DETERMINANT_EPSILON.
        ValueError: If any coefficient is NaN or Infinity.
    """

    a: float
    b: float
    tx: float
    c: float
    d: float
    ty: float

    def __post_init__(self) -> None:
        """Coerce coefficients to float and enforce invertibility."""
        for name in _FIELDS:
            value = float(getattr(self, name))
            if not math.isfinite(value):
                raise ValueError(f"Affine coefficient '{name}' must be finite, got {value}")
            # Use object.__setattr__ since frozen=True
            object.__setattr__(self, name, value)

        det = self.a * self.d - self.b * self.c
        if abs(det) < DETERMINANT_EPSILON:
            raise NonInvertibleError(
                f"Affine matrix is singular (det={det:.3e}); "
                f"|det| must be at least {DETERMINANT_EPSILON}"
            )

    @classmethod
    def identity(cls) -> AffineMatrix:
        return cls(a=1.0, b=0.0, tx=0.0, c=0.0, d=1.0, ty=0.0)

    @classmethod
    def from_array(cls, array: npt.ArrayLike) -> AffineMatrix:
        """Create AffineMatrix from a 2x3 (or 3x3 with [0, 0, 1] last row) array.

        Raises:
            ValueError: If the array has the wrong shape.
        """
        data = np.asarray(array, dtype=np.float64)
        if data.shape == (3, 3):
            if not np.allclose(data[2], [0.0, 0.0, 1.0]):
                raise ValueError(f"3x3 affine matrix must end with [0, 0, 1], got {data[2]}")
            data = data[:2]
        if data.shape != (2, 3):
            raise ValueError(f"Affine matrix must be 2x3 or 3x3, got shape {data.shape}")
        return cls(
            a=data[0, 0], b=data[0, 1], tx=data[0, 2],
            c=data[1, 0], d=data[1, 1], ty=data[1, 2],
        )

    @classmethod
    def from_geotransform(cls, gt: Sequence[float]) -> AffineMatrix:
        """Create AffineMatrix from a GDAL GeoTransform [tx, a, b, ty, c, d].

        Raises:
            ValueError: If gt does not have exactly 6 elements.
        """
        if len(gt) != 6:
            raise ValueError(f"geotransform must have exactly 6 elements, got {len(gt)}")
        return cls(a=gt[1], b=gt[2], tx=gt[0], c=gt[4], d=gt[5], ty=gt[3])

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AffineMatrix:
        """Create AffineMatrix from a flat {a, b, tx, c, d, ty} dictionary.

        Raises:
            KeyError: If a coefficient is missing.
        """
        return cls(**{name: float(data[name]) for name in _FIELDS})

    def to_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in _FIELDS}

    def to_geotransform(self) -> list[float]:
        """Return the coefficients in GDAL GeoTransform order."""
        return [self.tx, self.a, self.b, self.ty, self.c, self.d]

    def to_array(self) -> npt.NDArray[np.float64]:
        """Return the 2x3 matrix [[a, b, tx], [c, d, ty]]."""
        return np.array(
            [[self.a, self.b, self.tx], [self.c, self.d, self.ty]], dtype=np.float64
        )

    @property
    def determinant(self) -> float:
        """Determinant of the linear part. Negative for y-down to y-up mappings."""
        return self.a * self.d - self.b * self.c

    @property
    def scale_x(self) -> float:
        """Map length of one pixel step along u: sqrt(a^2 + c^2)."""
        return math.hypot(self.a, self.c)

    @property
    def scale_y(self) -> float:
        """Map length of one pixel step along v: sqrt(b^2 + d^2)."""
        return math.hypot(self.b, self.d)

    def apply(self, u: float, v: float) -> tuple[float, float]:
        """Transform a single pixel coordinate to map coordinates.

        Examples:
            >>> m = AffineMatrix(a=0.15, b=0.0, tx=737575.05, c=0.0, d=-0.15, ty=4391595.45)
            >>> x, y = m.apply(10, 20)
            >>> print(f"({x:.2f}, {y:.2f})")
            (737576.55, 4391592.45)
        """
        return (
            self.a * u + self.b * v + self.tx,
            self.c * u + self.d * v + self.ty,
        )

    def apply_points(self, points: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """Transform an (N, 2) array of pixel coordinates to map coordinates."""
        pts = np.asarray(points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] != 2:
            raise ValueError(f"Points must have shape (N, 2), got {pts.shape}")
        return pts @ self.to_array()[:, :2].T + np.array([self.tx, self.ty])

    def inverse(self) -> AffineMatrix:
        """Return the map -> pixel transform. See ``invert_affine``."""
        return invert_affine(self)


def invert_affine(m: AffineMatrix) -> AffineMatrix:
    """Compute the inverse (map -> pixel) of an affine transform.

    The linear part is inverted algebraically and the translation follows:

        inv = 1/det * [[d, -b], [-c, a]]
        inv_t = -inv @ (tx, ty)

    Args:
        m: Forward pixel -> map transform.

    Returns:
        AffineMatrix mapping map coordinates back to pixel coordinates.

    Raises:
        NonInvertibleError: If |det| < DETERMINANT_EPSILON, or the inverse itself
            would be singular (forward determinant too large to invert).
    """
    det = m.a * m.d - m.b * m.c
    if abs(det) < DETERMINANT_EPSILON:
        raise NonInvertibleError(f"Affine matrix cannot be inverted (det={det:.3e})")

    ia = m.d / det
    ib = -m.b / det
    ic = -m.c / det
    id_ = m.a / det
    itx = -(ia * m.tx + ib * m.ty)
    ity = -(ic * m.tx + id_ * m.ty)

    return AffineMatrix(a=ia, b=ib, tx=itx, c=ic, d=id_, ty=ity)
