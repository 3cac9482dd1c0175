"""
Unit type annotations for type-safe numeric parameters.

This module defines NewType aliases for the units used across the
georef_overlay codebase. They are zero-overhead type hints that document
which space a value lives in: source-image pixels or the planar map.

Type Safety Benefits:
    - Prevents mixing pixel-space and map-space values in signatures
    - Documents expected units in function signatures
    - Zero runtime overhead (NewType is erased at runtime)

Usage Example:
    >>> from georef_overlay.types import MapUnits, Pixels
    >>>
    >>> def pixel_size(extent_width: MapUnits, output_width: Pixels) -> MapUnits:
    ...     return MapUnits(extent_width / output_width)
"""

from typing import NewType

# Angular units
Radians = NewType('Radians', float)
"""Angle in radians (e.g., decomposed rotation of an affine matrix)"""

# Image coordinate units
Pixels = NewType('Pixels', int)
"""Image dimensions in whole pixels (e.g., raster width, height)"""

# Map plane units
MapUnits = NewType('MapUnits', float)
"""Distance or position in the planar map coordinate system (e.g., EPSG:3857 meters)"""
