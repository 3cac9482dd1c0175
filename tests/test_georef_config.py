#!/usr/bin/env python3
"""
Unit tests for GeorefConfig loading and validation.
"""

import os
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from georef_overlay.georef_config import GeorefConfig, get_default_config


class TestGeorefConfigDefaults(unittest.TestCase):
    """Default values."""

    def test_defaults(self):
        config = get_default_config()
        self.assertEqual(config.pixel_duplicate_tolerance, 1.0)
        self.assertEqual(config.map_duplicate_tolerance, 0.01)
        self.assertEqual(config.min_triangle_area, 1.0)
        self.assertEqual(config.max_scale_ratio, 10.0)
        self.assertEqual(config.max_gcp_count, 1000)
        self.assertEqual(config.shear_tolerance, 0.01)
        self.assertEqual(config.parallelogram_tolerance, 1e-3)
        self.assertEqual(config.opacity, 1.0)
        self.assertIsNone(config.max_workers)
        self.assertEqual(config.rows_per_task, 32)

    def test_to_dict_round_trip(self):
        config = GeorefConfig(opacity=0.4, max_workers=2)
        self.assertEqual(GeorefConfig.from_dict(config.to_dict()), config)


class TestGeorefConfigFromDict(unittest.TestCase):
    """Dictionary loading and value validation."""

    def test_partial_override(self):
        config = GeorefConfig.from_dict({"opacity": 0.5, "rows_per_task": 8})
        self.assertEqual(config.opacity, 0.5)
        self.assertEqual(config.rows_per_task, 8)
        self.assertEqual(config.max_scale_ratio, 10.0)

    def test_unknown_key(self):
        with self.assertRaisesRegex(ValueError, "Unknown georef configuration option"):
            GeorefConfig.from_dict({"opacityy": 0.5})

    def test_not_a_dict(self):
        with self.assertRaises(ValueError):
            GeorefConfig.from_dict(["opacity"])  # type: ignore[arg-type]

    def test_string_exponent_coerced(self):
        config = GeorefConfig.from_dict({"parallelogram_tolerance": "1e-4"})
        self.assertEqual(config.parallelogram_tolerance, 1e-4)

    def test_non_numeric_string(self):
        with self.assertRaisesRegex(ValueError, "must be a number"):
            GeorefConfig.from_dict({"opacity": "high"})

    def test_invalid_values(self):
        invalid = [
            {"opacity": 1.5},
            {"opacity": -0.1},
            {"max_scale_ratio": 0.5},
            {"pixel_duplicate_tolerance": -1.0},
            {"max_gcp_count": 2},
            {"rows_per_task": 0},
            {"max_workers": 0},
        ]
        for values in invalid:
            with self.subTest(values=values):
                with self.assertRaises(ValueError):
                    GeorefConfig.from_dict(values)


class TestGeorefConfigFromYAML(unittest.TestCase):
    """YAML file loading."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.dir = Path(self.temp_dir.name)

    def tearDown(self):
        self.temp_dir.cleanup()

    def _write(self, text):
        path = self.dir / "georef.yaml"
        path.write_text(text)
        return str(path)

    def test_load(self):
        path = self._write(
            "georef:\n"
            "  opacity: 0.8\n"
            "  parallelogram_tolerance: 1e-3\n"
            "  max_workers: 4\n"
        )
        config = GeorefConfig.from_yaml(path)
        self.assertEqual(config.opacity, 0.8)
        self.assertEqual(config.parallelogram_tolerance, 1e-3)
        self.assertEqual(config.max_workers, 4)

    def test_empty_section_uses_defaults(self):
        config = GeorefConfig.from_yaml(self._write("georef:\n"))
        self.assertEqual(config, get_default_config())

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            GeorefConfig.from_yaml(str(self.dir / "missing.yaml"))

    def test_empty_file(self):
        with self.assertRaisesRegex(ValueError, "empty"):
            GeorefConfig.from_yaml(self._write(""))

    def test_missing_section(self):
        with self.assertRaisesRegex(ValueError, "missing 'georef' section"):
            GeorefConfig.from_yaml(self._write("overlay:\n  opacity: 0.5\n"))

    def test_malformed_yaml(self):
        with self.assertRaisesRegex(ValueError, "Failed to parse"):
            GeorefConfig.from_yaml(self._write("georef: [unclosed\n"))


if __name__ == "__main__":
    unittest.main()
