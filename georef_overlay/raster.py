"""
Decoded source raster and RGBA image I/O.

A SourceRaster owns a read-only (H, W, 4) uint8 RGBA buffer. It is never
mutated after decode, so any number of warp workers may sample it
concurrently without locking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np
import numpy.typing as npt

from georef_overlay.types import Pixels

logger = logging.getLogger(__name__)


def _to_rgba(array: npt.ArrayLike) -> npt.NDArray[np.uint8]:
    """Normalize gray, RGB or RGBA input to an (H, W, 4) uint8 array."""
    data = np.asarray(array)
    if data.dtype != np.uint8:
        if not np.issubdtype(data.dtype, np.number):
            raise ValueError(f"Raster must be numeric, got dtype {data.dtype}")
        data = np.clip(np.rint(data), 0, 255).astype(np.uint8)

    if data.ndim == 2:
        data = np.dstack([data, data, data, np.full_like(data, 255)])
    elif data.ndim == 3 and data.shape[2] == 3:
        data = np.dstack([data, np.full(data.shape[:2], 255, dtype=np.uint8)])
    elif not (data.ndim == 3 and data.shape[2] == 4):
        raise ValueError(
            f"Raster must have shape (H, W), (H, W, 3) or (H, W, 4), got {data.shape}"
        )

    if data.shape[0] == 0 or data.shape[1] == 0:
        raise ValueError(f"Raster must not be empty, got shape {data.shape}")
    return np.ascontiguousarray(data)


@dataclass(frozen=True, eq=False)
class SourceRaster:
    """Immutable RGBA pixel buffer of the image being georeferenced.

    Attributes:
        pixels: (H, W, 4) uint8 array, row-major, origin top-left. Read-only.
    """

    pixels: npt.NDArray[np.uint8]

    def __post_init__(self) -> None:
        """Copy input into an owned, read-only RGBA buffer."""
        rgba = _to_rgba(self.pixels).copy()
        rgba.setflags(write=False)
        # Use object.__setattr__ since frozen=True
        object.__setattr__(self, "pixels", rgba)

    @classmethod
    def from_array(cls, array: npt.ArrayLike) -> SourceRaster:
        """Create a raster from a gray, RGB or RGBA array (RGB channel order)."""
        return cls(pixels=np.asarray(array))

    @property
    def width(self) -> Pixels:
        return Pixels(self.pixels.shape[1])

    @property
    def height(self) -> Pixels:
        return Pixels(self.pixels.shape[0])


def load_raster(path: str | Path) -> SourceRaster:
    """Decode an image file into a SourceRaster.

    Args:
        path: PNG/JPEG/TIFF or any other format OpenCV can read.

    Returns:
        SourceRaster in RGBA channel order.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If OpenCV cannot decode the file.
    """
    image_path = Path(path)
    if not image_path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    image = cv2.imread(str(image_path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ValueError(f"Could not decode image file: {image_path}")

    if image.dtype != np.uint8:
        # 16-bit sources are scaled down to 8 bits per channel
        image = cv2.convertScaleAbs(image, alpha=255.0 / max(float(image.max()), 1.0))

    if image.ndim == 2:
        rgba = cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    elif image.shape[2] == 3:
        rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
    else:
        rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)

    logger.info(f"Loaded raster {image_path.name}: {rgba.shape[1]}x{rgba.shape[0]}")
    return SourceRaster(pixels=rgba)


def save_raster(path: str | Path, rgba: npt.NDArray[np.uint8]) -> None:
    """Write an (H, W, 4) RGBA array to disk (use PNG to keep transparency).

    Raises:
        ValueError: If the array is not RGBA or OpenCV fails to encode it.
    """
    data = np.asarray(rgba)
    if data.ndim != 3 or data.shape[2] != 4:
        raise ValueError(f"Expected an (H, W, 4) RGBA array, got shape {data.shape}")

    output_path = Path(path)
    if not cv2.imwrite(str(output_path), cv2.cvtColor(data, cv2.COLOR_RGBA2BGRA)):
        raise ValueError(f"Could not write image file: {output_path}")
    logger.info(f"Saved raster {output_path.name}: {data.shape[1]}x{data.shape[0]}")
