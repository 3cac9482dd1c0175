#!/usr/bin/env python3
"""
Unit tests for GCP (Ground Control Point) validation functions.

Tests verify duplicate detection on both the pixel and map axes, the
collinearity check on the first three points, the scale-ratio warning,
pixel bounds checking and the overall validation result.
"""

import os
import sys
import unittest

# Add parent directory to path to import modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from georef_overlay.errors import ValidationFailure
from georef_overlay.gcp_validation import (
    MAX_GCP_COUNT,
    ValidationResult,
    _get_gcp_description,
    _validate_image_dimension,
    detect_duplicate_gcps,
    triangle_area_measure,
    validate_gcps,
)
from georef_overlay.points import GCP


def _good_gcps():
    return [
        GCP.create("GCP1", 0, 0, 100, 100),
        GCP.create("GCP2", 10, 0, 110, 100),
        GCP.create("GCP3", 0, 10, 100, 90),
        GCP.create("GCP4", 10, 10, 110, 90),
    ]


class TestGCPDescription(unittest.TestCase):
    """Test the message labels used for GCPs."""

    def test_description_uses_one_based_index_and_id(self):
        gcp = GCP.create("bridge", 0, 0, 0, 0)
        self.assertEqual(_get_gcp_description(gcp, 1), "GCP 2 ('bridge')")

    def test_empty_id_falls_back_to_index(self):
        gcp = GCP.create("", 0, 0, 0, 0)
        self.assertEqual(_get_gcp_description(gcp, 4), "GCP 5 ('index 4')")

    def test_control_characters_removed_and_long_ids_truncated(self):
        gcp = GCP.create("a\nb" + "x" * 300, 0, 0, 0, 0)
        description = _get_gcp_description(gcp, 0)
        self.assertNotIn("\n", description)
        self.assertIn("...", description)


class TestValidateImageDimension(unittest.TestCase):
    """Test image dimension parameter validation."""

    def test_none_passes_through(self):
        self.assertIsNone(_validate_image_dimension(None, "image_width"))

    def test_float_is_truncated_to_int(self):
        self.assertEqual(_validate_image_dimension(640.0, "image_width"), 640)

    def test_zero_raises(self):
        with self.assertRaisesRegex(ValueError, "image_width must be positive"):
            _validate_image_dimension(0, "image_width")

    def test_non_numeric_raises(self):
        with self.assertRaisesRegex(ValueError, "must be a positive integer"):
            _validate_image_dimension("640", "image_height")

    def test_nan_raises(self):
        with self.assertRaisesRegex(ValueError, "NaN and Infinity"):
            _validate_image_dimension(float("nan"), "image_height")

    def test_too_large_raises(self):
        with self.assertRaisesRegex(ValueError, "exceeds maximum"):
            _validate_image_dimension(10**7, "image_width")


class TestTriangleAreaMeasure(unittest.TestCase):
    """Test the collinearity measure."""

    def test_right_triangle(self):
        gcps = _good_gcps()
        self.assertAlmostEqual(triangle_area_measure(gcps[0], gcps[1], gcps[2]), 100.0)

    def test_collinear_points_are_zero(self):
        p = [GCP.create(str(i), i, 2 * i, 0, 0) for i in range(3)]
        self.assertEqual(triangle_area_measure(*p), 0.0)


class TestDetectDuplicateGCPs(unittest.TestCase):
    """Test duplicate detection on pixel and map coordinates."""

    def test_no_duplicates_passes(self):
        self.assertEqual(detect_duplicate_gcps(_good_gcps()), [])

    def test_pixel_duplicate_reported(self):
        gcps = [
            GCP.create("A", 5.0, 5.0, 0, 0),
            GCP.create("B", 5.5, 5.0, 50, 50),
        ]
        errors = detect_duplicate_gcps(gcps)
        self.assertEqual(len(errors), 1)
        self.assertIn("duplicate pixel coordinates", errors[0])
        self.assertIn("GCP 1 ('A')", errors[0])
        self.assertIn("GCP 2 ('B')", errors[0])

    def test_map_duplicate_reported(self):
        gcps = [
            GCP.create("A", 0, 0, 100.0, 100.0),
            GCP.create("B", 50, 50, 100.005, 100.0),
        ]
        errors = detect_duplicate_gcps(gcps)
        self.assertEqual(len(errors), 1)
        self.assertIn("duplicate map coordinates", errors[0])

    def test_both_axes_duplicate_reports_two_errors(self):
        gcps = [
            GCP.create("A", 0, 0, 100, 100),
            GCP.create("B", 0, 0, 100, 100),
        ]
        self.assertEqual(len(detect_duplicate_gcps(gcps)), 2)

    def test_exactly_at_tolerance_is_not_duplicate(self):
        gcps = [
            GCP.create("A", 0, 0, 0, 0),
            GCP.create("B", 1.0, 0, 10, 10),
        ]
        self.assertEqual(detect_duplicate_gcps(gcps), [])

    def test_custom_tolerances(self):
        gcps = [
            GCP.create("A", 0, 0, 0, 0),
            GCP.create("B", 3, 0, 10, 10),
        ]
        self.assertEqual(len(detect_duplicate_gcps(gcps, pixel_tolerance=5.0)), 1)

    def test_empty_and_single_lists_pass(self):
        self.assertEqual(detect_duplicate_gcps([]), [])
        self.assertEqual(detect_duplicate_gcps(_good_gcps()[:1]), [])


class TestValidateGCPs(unittest.TestCase):
    """Test overall correspondence set validation."""

    def test_valid_set_passes(self):
        result = validate_gcps(_good_gcps())
        self.assertIsInstance(result, ValidationResult)
        self.assertTrue(result.valid)
        self.assertEqual(result.errors, ())
        self.assertEqual(result.warnings, ())
        result.raise_for_errors()

    def test_fewer_than_three_is_the_only_error(self):
        result = validate_gcps(_good_gcps()[:2])
        self.assertFalse(result.valid)
        self.assertEqual(len(result.errors), 1)
        self.assertIn("At least 3 GCPs", result.errors[0])

    def test_too_many_gcps(self):
        gcps = [
            GCP.create(f"G{i}", i % 100, i // 100, i % 100, i // 100)
            for i in range(MAX_GCP_COUNT + 1)
        ]
        result = validate_gcps(gcps)
        self.assertFalse(result.valid)
        self.assertIn("Too many GCPs", result.errors[0])

    def test_custom_max_count(self):
        result = validate_gcps(_good_gcps(), max_gcp_count=3)
        self.assertFalse(result.valid)

    def test_duplicate_ids_are_errors(self):
        gcps = _good_gcps()
        gcps[3] = GCP.create("GCP1", 10, 10, 110, 90)
        result = validate_gcps(gcps)
        self.assertFalse(result.valid)
        self.assertTrue(any("reuses an existing id" in e for e in result.errors))

    def test_duplicate_pixel_is_error(self):
        gcps = _good_gcps()
        gcps.append(GCP.create("GCP5", 10.5, 10.0, 130, 70))
        result = validate_gcps(gcps)
        self.assertFalse(result.valid)
        self.assertTrue(any("duplicate pixel" in e for e in result.errors))

    def test_nearly_collinear_first_three_is_error(self):
        gcps = [
            GCP.create("A", 0, 0, 0, 0),
            GCP.create("B", 10, 0, 10, 0),
            GCP.create("C", 20, 0.01, 20, 5),
            GCP.create("D", 0, 30, 0, 30),
        ]
        result = validate_gcps(gcps)
        self.assertFalse(result.valid)
        self.assertTrue(any("nearly collinear" in e for e in result.errors))

    def test_collinear_map_points_is_error(self):
        """Spread pixels but collinear map points give a singular transform."""
        gcps = [
            GCP.create("A", 0, 0, 0, 0),
            GCP.create("B", 10, 0, 10, 10),
            GCP.create("C", 0, 10, 20, 20),
        ]
        result = validate_gcps(gcps)
        self.assertFalse(result.valid)
        self.assertTrue(any("valid affine transform" in e for e in result.errors))

    def test_scale_ratio_warning_does_not_block(self):
        gcps = [
            GCP.create("A", 0, 0, 0, 0),
            GCP.create("B", 100, 0, 1000, 0),
            GCP.create("C", 0, 100, 0, -10),
        ]
        with self.assertLogs("georef_overlay.gcp_validation", level="WARNING"):
            result = validate_gcps(gcps)
        self.assertTrue(result.valid)
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("100.0:1", result.warnings[0])

    def test_scale_ratio_threshold_configurable(self):
        gcps = [
            GCP.create("A", 0, 0, 0, 0),
            GCP.create("B", 100, 0, 300, 0),
            GCP.create("C", 0, 100, 0, -100),
        ]
        self.assertEqual(validate_gcps(gcps).warnings, ())
        self.assertEqual(len(validate_gcps(gcps, max_scale_ratio=2.0).warnings), 1)

    def test_pixel_outside_bounds(self):
        gcps = _good_gcps()
        result = validate_gcps(gcps, image_width=5, image_height=20)
        self.assertFalse(result.valid)
        self.assertTrue(any("outside image width [0, 5]" in e for e in result.errors))

    def test_pixel_on_bounds_passes(self):
        result = validate_gcps(_good_gcps(), image_width=10, image_height=10)
        self.assertTrue(result.valid)

    def test_invalid_dimension_raises(self):
        with self.assertRaises(ValueError):
            validate_gcps(_good_gcps(), image_width=-1)

    def test_raise_for_errors(self):
        result = validate_gcps(_good_gcps()[:1])
        with self.assertRaises(ValidationFailure) as ctx:
            result.raise_for_errors()
        self.assertIs(ctx.exception.result, result)
        self.assertIn("At least 3 GCPs", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
