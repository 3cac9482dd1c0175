"""
Load ground control points from YAML files.

Two layouts are accepted.

Nested format:
    gcps:
      - id: "bridge"
        pixel: {u: 120.5, v: 80.0}
        map: {x: 14135000.0, y: 4518000.0}

Flat format (one line per point, as produced by point-picking tools):
    gcps:
      - name: "bridge"
        pixel_u: 120.5
        pixel_v: 80.0
        map_x: 14135000.0
        map_y: 4518000.0

Points without an id/name are numbered GCP1, GCP2, ... in file order.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from georef_overlay.points import GCP

logger = logging.getLogger(__name__)


def gcp_from_mapping(entry: dict[str, Any], index: int) -> GCP:
    """Build a GCP from one YAML entry in either layout.

    Args:
        entry: Mapping for one point.
        index: 0-based position in the file (for default ids and messages).

    Raises:
        ValueError: If coordinates are missing or not finite numbers.
    """
    if not isinstance(entry, dict):
        raise ValueError(f"GCP at index {index} must be a mapping, got {type(entry).__name__}")

    gcp_id = str(entry.get("id", entry.get("name", f"GCP{index + 1}")))
    try:
        if "pixel" in entry:
            pixel, map_ = entry["pixel"], entry["map"]
            if not isinstance(pixel, dict) or not isinstance(map_, dict):
                raise ValueError("'pixel' and 'map' must be mappings with u/v and x/y keys")
            return GCP.create(gcp_id, pixel["u"], pixel["v"], map_["x"], map_["y"])
        return GCP.create(
            gcp_id, entry["pixel_u"], entry["pixel_v"], entry["map_x"], entry["map_y"]
        )
    except KeyError as e:
        raise ValueError(f"GCP '{gcp_id}' (index {index}) missing required field {e}") from e
    except ValueError as e:
        raise ValueError(f"GCP '{gcp_id}' (index {index}): {e}") from e


def load_gcps_from_yaml(yaml_path: Path) -> list[GCP]:
    """
    Load GCPs from a YAML file.

    Args:
        yaml_path: Path to YAML file with a top-level ``gcps`` list

    Returns:
        List of GCPs in file order

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is malformed
    """
    with Path(yaml_path).open() as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse GCP file {yaml_path}: {e}") from e

    if not isinstance(data, dict) or "gcps" not in data:
        raise ValueError(f"GCP file {yaml_path} must contain a top-level 'gcps' list")
    if not isinstance(data["gcps"], list):
        raise ValueError(f"'gcps' in {yaml_path} must be a list, got {type(data['gcps']).__name__}")

    gcps = [gcp_from_mapping(entry, i) for i, entry in enumerate(data["gcps"])]
    logger.info(f"Loaded {len(gcps)} GCPs from {yaml_path}")
    return gcps


def dump_gcps_to_yaml(gcps: list[GCP], yaml_path: Path) -> None:
    """Write GCPs in the nested format read by ``load_gcps_from_yaml``."""
    with Path(yaml_path).open("w") as f:
        yaml.safe_dump({"gcps": [g.to_dict() for g in gcps]}, f, sort_keys=False)
