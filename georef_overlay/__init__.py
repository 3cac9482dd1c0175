"""
Affine image georeferencing package.

This package places a raster image on a planar map from a handful of ground
control points (GCPs), warps it for display at any pan/zoom, and keeps the
transform in sync when the image footprint is edited on the map.

Pipeline:
    GCPs -> validate_gcps -> solve_affine -> AffineMatrix
    AffineMatrix -> evaluate_fit / project_footprint / warp
    edited footprint -> sync_from_polygon -> new AffineMatrix

Example Usage:
    >>> from georef_overlay import (
    ...     GCP, GeorefSession, MapExtent, SourceRaster, solve_affine, warp
    ... )
    >>>
    >>> gcps = [
    ...     GCP.create("p1", 0, 0, 100, 100),
    ...     GCP.create("p2", 10, 0, 110, 100),
    ...     GCP.create("p3", 0, 10, 100, 90),
    ... ]
    >>> solve_affine(gcps).apply(10, 10)
    (110.0, 90.0)
    >>>
    >>> session = GeorefSession.create(SourceRaster.from_array(image), gcps)
    >>> rgba = warp(session, MapExtent(90, 80, 120, 110), (300, 300))

Available Classes:
    Value types:
        - GCP, PixelPoint, MapCoordinate: correspondences
        - AffineMatrix: invertible 6-coefficient pixel -> map transform
        - FootprintPolygon, MapExtent: map-space geometry
        - FitReport, FitStatus: residual summary
        - ValidationResult: itemized validation findings
        - DecomposedAffine: lossy center/scale/rotation export

    Session:
        - GeorefSession: owns raster, transform, footprint and render state
        - GeorefConfig: thresholds loaded from YAML
"""

from georef_overlay.affine import DETERMINANT_EPSILON, AffineMatrix, invert_affine
from georef_overlay.decompose import DecomposedAffine, decompose_affine
from georef_overlay.errors import (
    DegenerateGeometryError,
    GeorefError,
    InsufficientPointsError,
    InvalidFootprintError,
    NonInvertibleError,
    NonParallelogramEditError,
    SessionClearedError,
    ValidationFailure,
)
from georef_overlay.fit_report import FitReport, FitStatus, Residual, evaluate_fit
from georef_overlay.footprint import FootprintPolygon, MapExtent, project_footprint
from georef_overlay.footprint_sync import sync_from_polygon
from georef_overlay.gcp_validation import ValidationResult, validate_gcps
from georef_overlay.georef_config import GeorefConfig, get_default_config
from georef_overlay.points import GCP, MapCoordinate, PixelPoint
from georef_overlay.raster import SourceRaster, load_raster, save_raster
from georef_overlay.session import GeorefSession, RenderRequest
from georef_overlay.solver import solve_affine, solve_linear_3x3
from georef_overlay.warp import render, warp

# Define public API
__all__ = [
    # Value types
    'GCP',
    'PixelPoint',
    'MapCoordinate',
    'AffineMatrix',
    'DETERMINANT_EPSILON',
    'FootprintPolygon',
    'MapExtent',
    'FitReport',
    'FitStatus',
    'Residual',
    'ValidationResult',
    'DecomposedAffine',
    'SourceRaster',

    # Operations
    'solve_affine',
    'solve_linear_3x3',
    'invert_affine',
    'evaluate_fit',
    'validate_gcps',
    'decompose_affine',
    'project_footprint',
    'warp',
    'render',
    'sync_from_polygon',
    'load_raster',
    'save_raster',

    # Session and configuration
    'GeorefSession',
    'RenderRequest',
    'GeorefConfig',
    'get_default_config',

    # Errors
    'GeorefError',
    'InsufficientPointsError',
    'DegenerateGeometryError',
    'NonInvertibleError',
    'InvalidFootprintError',
    'ValidationFailure',
    'NonParallelogramEditError',
    'SessionClearedError',
]

# Package metadata
__version__ = '0.1.0'
__description__ = 'Affine GCP georeferencing and warping of raster images onto a planar map'
