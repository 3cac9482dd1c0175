"""CLI module for georeferencing tools.

Provides the `georef` command-line interface for validating GCPs, solving
the affine transform and warping images onto the map plane.
"""

from georef_overlay.cli.main import app

__all__ = ["app"]
