#!/usr/bin/env python3
"""
Georeferencing session: the image being placed plus its current transform.

A GeorefSession owns everything that used to be ambient state in an
interactive overlay tool: the decoded source raster, the current affine
transform, the footprint derived from it, the GCP set it was solved from,
the display opacity, and the most recently committed warp.

Concurrency model:
    The transform, footprint and GCP set are held in one immutable
    ``TransformState`` that is replaced as a whole under a lock, so readers
    never see a half-updated transform.

    Warp requests arrive faster than a full warp completes (pan, zoom, drag).
    Each request is tagged with a generation number at submission time; a
    finished warp is only committed if its tag is still the latest. Anything
    that changes the transform or opacity also bumps the generation, so
    in-flight warps of the old state are discarded as stale.

Usage Example:
    >>> from georef_overlay import GCP, GeorefSession, MapExtent, SourceRaster
    >>> from georef_overlay.warp import render
    >>>
    >>> raster = SourceRaster.from_array(image_rgba)
    >>> session = GeorefSession.create(raster, gcps)
    >>> print(session.affine, session.footprint.ring)
    >>>
    >>> rgba, committed = render(session, MapExtent(0, 0, 500, 500), (256, 256))
    >>>
    >>> # User dragged the footprint
    >>> from georef_overlay.footprint_sync import sync_from_polygon
    >>> sync_from_polygon(session, edited_polygon)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np
import numpy.typing as npt

from georef_overlay.affine import AffineMatrix
from georef_overlay.decompose import DecomposedAffine, decompose_affine
from georef_overlay.errors import SessionClearedError, ValidationFailure
from georef_overlay.fit_report import FitReport, evaluate_fit
from georef_overlay.footprint import FootprintPolygon, MapExtent, project_footprint
from georef_overlay.gcp_validation import ValidationResult, validate_gcps
from georef_overlay.georef_config import GeorefConfig, get_default_config
from georef_overlay.points import GCP
from georef_overlay.raster import SourceRaster
from georef_overlay.solver import solve_affine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransformState:
    """One consistent snapshot of a session's georeferencing."""

    affine: AffineMatrix
    footprint: FootprintPolygon
    gcps: tuple[GCP, ...] = field(default_factory=tuple)


@dataclass(frozen=True, eq=False)
class RenderRequest:
    """Everything a warp needs, captured at submission time.

    Attributes:
        generation: Session generation the request was tagged with.
        extent: Map-space area covered by the output.
        output_size: (width, height) of the output in pixels.
        affine: Transform at submission time.
        footprint: Footprint at submission time.
        opacity: Opacity at submission time.
    """

    generation: int
    extent: MapExtent
    output_size: tuple[int, int]
    affine: AffineMatrix
    footprint: FootprintPolygon
    opacity: float


def _validate_output_size(output_size: Sequence[int]) -> tuple[int, int]:
    if len(output_size) != 2:
        raise ValueError(f"output_size must be (width, height), got {output_size!r}")
    width, height = (int(v) for v in output_size)
    if width <= 0 or height <= 0:
        raise ValueError(f"output_size must be positive, got {width}x{height}")
    return width, height


class GeorefSession:
    """
    Owning aggregate for one georeferenced image.

    Created when an image and its correspondences are first accepted
    (``create``), mutated on every footprint edit (``replace_transform``), and
    released by ``clear`` when the image is removed.

    Attributes:
        config: Thresholds used for validation, sync and warping.
        validation: Result of validating the GCPs the session was created from.
    """

    def __init__(
        self,
        raster: SourceRaster,
        affine: AffineMatrix,
        gcps: Sequence[GCP] = (),
        config: Optional[GeorefConfig] = None,
        validation: Optional[ValidationResult] = None,
    ):
        """
        Initialize a session from an already-solved transform.

        Args:
            raster: Decoded source image.
            affine: Pixel -> map transform.
            gcps: Correspondences the transform came from (may be empty).
            config: Session configuration (defaults from get_default_config()).
            validation: Validation result of ``gcps`` if already computed.
        """
        self.config = config or get_default_config()
        self.validation = validation
        self._raster: Optional[SourceRaster] = raster
        self._lock = threading.Lock()
        self._state = TransformState(
            affine=affine,
            footprint=project_footprint(affine, raster.width, raster.height),
            gcps=tuple(gcps),
        )
        self._generation = 0
        self._opacity = self.config.opacity
        self._displayed: Optional[npt.NDArray[np.uint8]] = None
        self._displayed_generation: Optional[int] = None

    @classmethod
    def create(
        cls,
        raster: SourceRaster,
        gcps: Sequence[GCP],
        config: Optional[GeorefConfig] = None,
        acknowledge_warnings: bool = True,
    ) -> GeorefSession:
        """
        Validate correspondences, solve the transform and open a session.

        Unlike plain ``validate_gcps``, creation always checks pixel bounds
        against the raster size: a GCP outside [0, width] x [0, height] is a
        blocking error here, even for sub-pixel overshoot at an edge.

        Args:
            raster: Decoded source image.
            gcps: At least 3 correspondences.
            config: Session configuration.
            acknowledge_warnings: When False, validation warnings (e.g. extreme
                anisotropy) are treated as blocking.

        Returns:
            New GeorefSession.

        Raises:
            ValidationFailure: If validation reports errors, or warnings that
                were not acknowledged.
            DegenerateGeometryError: If the solve is singular.
        """
        config = config or get_default_config()
        validation = validate_gcps(
            gcps,
            image_width=raster.width,
            image_height=raster.height,
            pixel_tolerance=config.pixel_duplicate_tolerance,
            map_tolerance=config.map_duplicate_tolerance,
            min_triangle_area=config.min_triangle_area,
            max_scale_ratio=config.max_scale_ratio,
            max_gcp_count=config.max_gcp_count,
        )
        validation.raise_for_errors()
        if validation.warnings and not acknowledge_warnings:
            raise ValidationFailure(validation)

        affine = solve_affine(gcps)
        session = cls(raster, affine, gcps=gcps, config=config, validation=validation)
        logger.info(
            f"Georef session created for {raster.width}x{raster.height} image "
            f"from {len(gcps)} GCPs"
        )
        return session

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    def _require_open(self) -> SourceRaster:
        raster = self._raster
        if raster is None:
            raise SessionClearedError("Georef session has been cleared")
        return raster

    @property
    def raster(self) -> SourceRaster:
        return self._require_open()

    @property
    def state(self) -> TransformState:
        return self._state

    @property
    def affine(self) -> AffineMatrix:
        return self._state.affine

    @property
    def footprint(self) -> FootprintPolygon:
        return self._state.footprint

    @property
    def gcps(self) -> tuple[GCP, ...]:
        return self._state.gcps

    @property
    def opacity(self) -> float:
        return self._opacity

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def displayed(self) -> Optional[npt.NDArray[np.uint8]]:
        """Last committed warp output, or None."""
        return self._displayed

    @property
    def displayed_generation(self) -> Optional[int]:
        """Generation of the last committed warp output, or None."""
        return self._displayed_generation

    @property
    def is_cleared(self) -> bool:
        return self._raster is None

    def fit_report(self) -> FitReport:
        """Evaluate the current transform against the current GCP set."""
        state = self._state
        return evaluate_fit(state.gcps, state.affine)

    def decompose(self) -> DecomposedAffine:
        """Lossy center/scale/rotation export of the current transform."""
        return decompose_affine(
            self.affine,
            self.raster.width,
            self.raster.height,
            shear_tolerance=self.config.shear_tolerance,
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def replace_transform(
        self, affine: AffineMatrix, gcps: Optional[Sequence[GCP]] = None
    ) -> TransformState:
        """
        Swap in a new transform and re-derive the footprint.

        Args:
            affine: New pixel -> map transform.
            gcps: New GCP set; None keeps the current one.

        Returns:
            The new TransformState.
        """
        raster = self.raster
        footprint = project_footprint(affine, raster.width, raster.height)
        with self._lock:
            new_gcps = self._state.gcps if gcps is None else tuple(gcps)
            self._state = TransformState(affine=affine, footprint=footprint, gcps=new_gcps)
            self._generation += 1
            state = self._state
            generation = self._generation
        logger.debug(f"Transform replaced (generation {generation}): {affine.to_dict()}")
        return state

    def set_opacity(self, opacity: float) -> None:
        """Change display opacity; in-flight renders become stale."""
        if not 0.0 <= opacity <= 1.0:
            raise ValueError(f"Opacity must be in [0, 1], got {opacity}")
        with self._lock:
            self._opacity = float(opacity)
            self._generation += 1
        logger.debug(f"Opacity set to {opacity:.2f}")

    def clear(self) -> None:
        """Release the raster and displayed output; the session is unusable afterwards."""
        with self._lock:
            self._raster = None
            self._displayed = None
            self._displayed_generation = None
            self._generation += 1
        logger.info("Georef session cleared")

    # ------------------------------------------------------------------
    # Render bookkeeping
    # ------------------------------------------------------------------

    def snapshot_request(
        self, extent: MapExtent, output_size: Sequence[int]
    ) -> RenderRequest:
        """Capture the current state as a RenderRequest without bumping the generation."""
        size = _validate_output_size(output_size)
        self._require_open()
        with self._lock:
            state = self._state
            return RenderRequest(
                generation=self._generation,
                extent=extent,
                output_size=size,
                affine=state.affine,
                footprint=state.footprint,
                opacity=self._opacity,
            )

    def submit_render(
        self, extent: MapExtent, output_size: Sequence[int]
    ) -> RenderRequest:
        """
        Register a new warp request; every earlier request becomes stale.

        Args:
            extent: Map-space area to render.
            output_size: (width, height) of the output in pixels.

        Returns:
            RenderRequest tagged with the new generation.
        """
        size = _validate_output_size(output_size)
        self._require_open()
        with self._lock:
            self._generation += 1
            state = self._state
            return RenderRequest(
                generation=self._generation,
                extent=extent,
                output_size=size,
                affine=state.affine,
                footprint=state.footprint,
                opacity=self._opacity,
            )

    def is_current(self, request: RenderRequest) -> bool:
        return request.generation == self._generation

    def commit_render(self, request: RenderRequest, rgba: npt.NDArray[np.uint8]) -> bool:
        """
        Publish a finished warp if its request is still the latest.

        Returns:
            True if committed, False if discarded as stale.
        """
        with self._lock:
            if request.generation != self._generation:
                current = self._generation
                committed = False
            else:
                self._displayed = rgba
                self._displayed_generation = request.generation
                committed = True

        if not committed:
            logger.debug(
                f"Discarding stale render (generation {request.generation}, current {current})"
            )
        return committed
