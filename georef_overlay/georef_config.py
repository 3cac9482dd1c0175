"""
Configuration for validation thresholds, footprint sync and warping.

Loaded from YAML (a ``georef:`` section) or built from a dictionary; any
option not given keeps its default.
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional
import logging

import yaml

from georef_overlay.decompose import SHEAR_TOLERANCE
from georef_overlay.gcp_validation import (
    MAP_DUPLICATE_TOLERANCE,
    MAX_GCP_COUNT,
    MAX_SCALE_RATIO,
    MIN_TRIANGLE_AREA,
    PIXEL_DUPLICATE_TOLERANCE,
)

logger = logging.getLogger(__name__)

DEFAULT_PARALLELOGRAM_TOLERANCE = 1e-3  # fraction of the footprint diagonal
DEFAULT_ROWS_PER_TASK = 32

_FLOAT_OPTIONS = (
    'pixel_duplicate_tolerance',
    'map_duplicate_tolerance',
    'min_triangle_area',
    'max_scale_ratio',
    'shear_tolerance',
    'parallelogram_tolerance',
    'opacity',
)


@dataclass(frozen=True)
class GeorefConfig:
    """Tunable thresholds for a georeferencing session.

    Attributes:
        pixel_duplicate_tolerance: Pixel pairs closer than this are duplicates.
        map_duplicate_tolerance: Map pairs closer than this are duplicates.
        min_triangle_area: Minimum collinearity measure of the first 3 GCPs.
        max_scale_ratio: Anisotropy above which validation warns.
        max_gcp_count: Largest accepted correspondence set.
        shear_tolerance: Relative shear tolerance of the decomposition.
        parallelogram_tolerance: Allowed diagonal-midpoint gap of a footprint
            edit, as a fraction of the longer diagonal.
        opacity: Alpha multiplier applied to warped pixels, in [0, 1].
        max_workers: Warp thread pool size (None uses the executor default).
        rows_per_task: Output rows handled by one warp task.
    """
    pixel_duplicate_tolerance: float = PIXEL_DUPLICATE_TOLERANCE
    map_duplicate_tolerance: float = MAP_DUPLICATE_TOLERANCE
    min_triangle_area: float = MIN_TRIANGLE_AREA
    max_scale_ratio: float = MAX_SCALE_RATIO
    max_gcp_count: int = MAX_GCP_COUNT
    shear_tolerance: float = SHEAR_TOLERANCE
    parallelogram_tolerance: float = DEFAULT_PARALLELOGRAM_TOLERANCE
    opacity: float = 1.0
    max_workers: Optional[int] = None
    rows_per_task: int = DEFAULT_ROWS_PER_TASK

    def __post_init__(self) -> None:
        """Validate option ranges."""
        for name in _FLOAT_OPTIONS:
            if name in ('max_scale_ratio', 'opacity'):
                continue
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value < 0:
                raise ValueError(f"'{name}' must be a non-negative number, got {value!r}")

        if not isinstance(self.max_scale_ratio, (int, float)) or self.max_scale_ratio < 1:
            raise ValueError(f"'max_scale_ratio' must be at least 1, got {self.max_scale_ratio!r}")
        if not isinstance(self.opacity, (int, float)) or not 0.0 <= self.opacity <= 1.0:
            raise ValueError(f"'opacity' must be in [0, 1], got {self.opacity!r}")
        if not isinstance(self.max_gcp_count, int) or self.max_gcp_count < 3:
            raise ValueError(f"'max_gcp_count' must be an integer >= 3, got {self.max_gcp_count!r}")
        if not isinstance(self.rows_per_task, int) or self.rows_per_task < 1:
            raise ValueError(f"'rows_per_task' must be a positive integer, got {self.rows_per_task!r}")
        if self.max_workers is not None and (
            not isinstance(self.max_workers, int) or self.max_workers < 1
        ):
            raise ValueError(f"'max_workers' must be a positive integer or null, got {self.max_workers!r}")

    @classmethod
    def from_yaml(cls, path: str) -> 'GeorefConfig':
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            GeorefConfig instance loaded from file

        Raises:
            FileNotFoundError: If configuration file does not exist
            ValueError: If configuration file is malformed or contains invalid values

        Example:
            >>> config = GeorefConfig.from_yaml('config/georef.yaml')
            >>> print(config.opacity)
            0.8
        """
        config_path = Path(path)

        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {path}\n"
                f"Please create a configuration file or use get_default_config()"
            )

        try:
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse YAML configuration file: {e}") from e

        if not data:
            raise ValueError(
                f"Configuration file is empty: {path}\n"
                f"Expected a 'georef' section"
            )

        if not isinstance(data, dict) or 'georef' not in data:
            raise ValueError(
                f"Configuration file missing 'georef' section: {path}\n"
                f"Expected structure: georef:\n  opacity: ...\n  ..."
            )

        logger.debug(f"Loaded georef configuration from {config_path}")
        return cls.from_dict(data['georef'] or {})

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'GeorefConfig':
        """Create configuration from dictionary.

        Args:
            config: Mapping of option name to value; missing options use defaults.

        Returns:
            GeorefConfig instance

        Raises:
            ValueError: If configuration has unknown keys or invalid values
        """
        if not isinstance(config, dict):
            raise ValueError(f"Configuration must be a dictionary, got {type(config)}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise ValueError(
                f"Unknown georef configuration option(s): {', '.join(unknown)}. "
                f"Valid options: {', '.join(sorted(known))}"
            )

        values = dict(config)
        for name in _FLOAT_OPTIONS:
            # PyYAML reads exponent literals without a dot (e.g. 1e-3) as strings
            if isinstance(values.get(name), str):
                try:
                    values[name] = float(values[name])
                except ValueError:
                    raise ValueError(
                        f"'{name}' must be a number, got {values[name]!r}"
                    ) from None

        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def get_default_config() -> GeorefConfig:
    """Return the default configuration."""
    return GeorefConfig()
