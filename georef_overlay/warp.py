"""
Resample the source raster into a map-space viewport.

For each output pixel:
    1. The pixel centre is mapped linearly across the requested extent to a
       map coordinate (row 0 is the top edge, max_y).
    2. Pixels outside the footprint bounding box are rejected early.
    3. An even-odd point-in-polygon test against the footprint ring clips the
       rest; outside pixels stay fully transparent.
    4. The inverse affine gives the source coordinate (u, v).
    5. (u, v) outside [0, W) x [0, H) stays transparent; otherwise the four
       nearest source pixels are blended bilinearly per channel and alpha is
       scaled by the opacity.

Source pixel (i, j) is taken to sit at its centre (i + 0.5, j + 0.5), the
GDAL pixel-is-area convention used by ``AffineMatrix``.

The work is split into bands of output rows processed by a thread pool. NumPy
releases the GIL in the vectorized kernels; every band reads the shared,
read-only source buffer and writes a disjoint slice of the output.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

import numpy as np
import numpy.typing as npt

from georef_overlay.footprint import MapExtent
from georef_overlay.raster import SourceRaster
from georef_overlay.session import GeorefSession, RenderRequest

logger = logging.getLogger(__name__)


def bilinear_sample(
    pixels: npt.NDArray[np.uint8], u: npt.ArrayLike, v: npt.ArrayLike
) -> npt.NDArray[np.float64]:
    """Bilinearly interpolate an (H, W, C) image at pixel coordinates (u, v).

    Neighbour indices are clamped to the image bounds, so samples within half
    a pixel of the border repeat the edge pixel.

    Returns:
        (N, C) float64 array of interpolated channel values.
    """
    height, width = pixels.shape[:2]
    su = np.asarray(u, dtype=np.float64).ravel() - 0.5
    sv = np.asarray(v, dtype=np.float64).ravel() - 0.5

    x0 = np.floor(su).astype(np.intp)
    y0 = np.floor(sv).astype(np.intp)
    fx = (su - x0)[:, None]
    fy = (sv - y0)[:, None]

    x0c = np.clip(x0, 0, width - 1)
    x1c = np.clip(x0 + 1, 0, width - 1)
    y0c = np.clip(y0, 0, height - 1)
    y1c = np.clip(y0 + 1, 0, height - 1)

    p00 = pixels[y0c, x0c].astype(np.float64)
    p01 = pixels[y0c, x1c].astype(np.float64)
    p10 = pixels[y1c, x0c].astype(np.float64)
    p11 = pixels[y1c, x1c].astype(np.float64)

    top = p00 * (1.0 - fx) + p01 * fx
    bottom = p10 * (1.0 - fx) + p11 * fx
    return top * (1.0 - fy) + bottom * fy


def output_pixel_centers(
    extent: MapExtent, output_size: tuple[int, int], row_start: int = 0, row_stop: Optional[int] = None
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Map coordinates of output pixel centres for rows [row_start, row_stop).

    Returns:
        (xs, ys) arrays of shape (rows, width).
    """
    width, height = output_size
    if row_stop is None:
        row_stop = height
    xs = extent.min_x + (np.arange(width) + 0.5) * (extent.width / width)
    ys = extent.max_y - (np.arange(row_start, row_stop) + 0.5) * (extent.height / height)
    return np.meshgrid(xs, ys)


def _warp_band(
    raster: SourceRaster,
    request: RenderRequest,
    row_start: int,
    row_stop: int,
    out: npt.NDArray[np.uint8],
) -> int:
    """Warp output rows [row_start, row_stop) into ``out``; return pixels written."""
    xs, ys = output_pixel_centers(request.extent, request.output_size, row_start, row_stop)

    bbox = request.footprint.bounding_box
    candidate = (xs >= bbox.min_x) & (xs <= bbox.max_x) & (ys >= bbox.min_y) & (ys <= bbox.max_y)
    if not candidate.any():
        return 0

    cx = xs[candidate]
    cy = ys[candidate]
    inside = request.footprint.contains_points(cx, cy)

    inverse = request.affine.inverse()
    u = inverse.a * cx + inverse.b * cy + inverse.tx
    v = inverse.c * cx + inverse.d * cy + inverse.ty
    in_source = inside & (u >= 0) & (u < raster.width) & (v >= 0) & (v < raster.height)
    if not in_source.any():
        return 0

    samples = bilinear_sample(raster.pixels, u[in_source], v[in_source])
    samples[:, 3] *= request.opacity

    write_mask = np.zeros_like(candidate)
    write_mask[candidate] = in_source
    band = out[row_start:row_stop]
    band[write_mask] = np.clip(np.rint(samples), 0, 255).astype(np.uint8)
    return int(in_source.sum())


def warp_request(
    raster: SourceRaster,
    request: RenderRequest,
    max_workers: Optional[int] = None,
    rows_per_task: int = 32,
) -> npt.NDArray[np.uint8]:
    """Warp ``raster`` as described by a RenderRequest snapshot.

    Args:
        raster: Source image.
        request: Extent, output size, transform, footprint and opacity.
        max_workers: Thread pool size (None uses the executor default).
        rows_per_task: Output rows per task.

    Returns:
        (height, width, 4) uint8 RGBA array; pixels off the image are (0, 0, 0, 0).
    """
    width, height = request.output_size
    out = np.zeros((height, width, 4), dtype=np.uint8)

    if not request.footprint.bounding_box.intersects(request.extent):
        logger.debug("Requested extent does not overlap the footprint; nothing to warp")
        return out

    bands = [(start, min(start + rows_per_task, height)) for start in range(0, height, rows_per_task)]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [
            executor.submit(_warp_band, raster, request, start, stop, out) for start, stop in bands
        ]
        written = sum(f.result() for f in futures)

    logger.debug(
        f"Warped {written} of {width * height} output pixels "
        f"(generation {request.generation}, {len(bands)} bands)"
    )
    return out


def warp(
    session: GeorefSession,
    extent: MapExtent,
    output_size: Sequence[int],
    max_workers: Optional[int] = None,
    rows_per_task: Optional[int] = None,
) -> npt.NDArray[np.uint8]:
    """Warp the session's raster into ``extent`` at ``output_size`` (width, height).

    The session state is snapshotted once, so concurrent footprint edits do not
    tear the output. The result is returned, not committed; see ``render``.
    """
    request = session.snapshot_request(extent, output_size)
    return warp_request(
        session.raster,
        request,
        max_workers=max_workers if max_workers is not None else session.config.max_workers,
        rows_per_task=rows_per_task or session.config.rows_per_task,
    )


def render(
    session: GeorefSession,
    extent: MapExtent,
    output_size: Sequence[int],
) -> tuple[npt.NDArray[np.uint8], bool]:
    """Submit, warp and commit a render for the current view.

    Returns:
        (rgba, committed). ``committed`` is False when a newer request or a
        transform change arrived while warping; the output was then discarded.
    """
    request = session.submit_render(extent, output_size)
    rgba = warp_request(
        session.raster,
        request,
        max_workers=session.config.max_workers,
        rows_per_task=session.config.rows_per_task,
    )
    return rgba, session.commit_render(request, rgba)
