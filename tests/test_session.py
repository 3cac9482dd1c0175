#!/usr/bin/env python3
"""
Test suite for GeorefSession lifecycle and render bookkeeping.

Tests:
    - Creation from GCPs with validation (errors block, warnings need acknowledgement)
    - Atomic transform replacement
    - Generation counter: stale renders are discarded, latest always commits
    - Clearing releases the raster
"""

import os
import sys
import threading
import unittest

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from georef_overlay.affine import AffineMatrix
from georef_overlay.errors import SessionClearedError, ValidationFailure
from georef_overlay.fit_report import FitStatus
from georef_overlay.footprint import MapExtent
from georef_overlay.georef_config import GeorefConfig
from georef_overlay.points import GCP
from georef_overlay.raster import SourceRaster
from georef_overlay.session import GeorefSession
from georef_overlay.warp import render

EXTENT = MapExtent(90, 80, 120, 110)


def _raster(width=10, height=10):
    return SourceRaster.from_array(np.full((height, width, 3), 200, dtype=np.uint8))


def _gcps():
    return [
        GCP.create("p1", 0, 0, 100, 100),
        GCP.create("p2", 10, 0, 110, 100),
        GCP.create("p3", 0, 10, 100, 90),
    ]


class TestSessionCreate(unittest.TestCase):
    """GeorefSession.create."""

    def test_create_from_gcps(self):
        session = GeorefSession.create(_raster(), _gcps())

        self.assertAlmostEqual(session.affine.tx, 100.0)
        self.assertAlmostEqual(session.affine.d, -1.0)
        self.assertEqual(session.footprint.bounding_box.to_tuple(), (100.0, 90.0, 110.0, 100.0))
        self.assertEqual(len(session.gcps), 3)
        self.assertTrue(session.validation.valid)
        self.assertEqual(session.generation, 0)
        self.assertEqual(session.opacity, 1.0)
        self.assertIsNone(session.displayed)

    def test_three_point_fit_is_unverifiable(self):
        session = GeorefSession.create(_raster(), _gcps())
        self.assertEqual(session.fit_report().status, FitStatus.UNVERIFIABLE)

    def test_decompose_uses_raster_size(self):
        params = GeorefSession.create(_raster(), _gcps()).decompose()
        self.assertEqual(params.center, (105.0, 95.0))
        self.assertTrue(params.flipped)

    def test_validation_errors_block(self):
        with self.assertRaises(ValidationFailure) as ctx:
            GeorefSession.create(_raster(), _gcps()[:2])
        self.assertFalse(ctx.exception.result.valid)

    def test_gcps_outside_raster_rejected(self):
        gcps = _gcps() + [GCP.create("p4", 50, 5, 150, 95)]
        with self.assertRaises(ValidationFailure):
            GeorefSession.create(_raster(), gcps)

    def test_sub_pixel_overshoot_rejected(self):
        gcps = _gcps() + [GCP.create("p4", -0.25, 5, 99.75, 95)]
        with self.assertRaises(ValidationFailure) as ctx:
            GeorefSession.create(_raster(), gcps)
        self.assertIn("outside image width", str(ctx.exception))

    def test_unacknowledged_warnings_block(self):
        gcps = [
            GCP.create("A", 0, 0, 0, 0),
            GCP.create("B", 100, 0, 1000, 0),
            GCP.create("C", 0, 100, 0, -10),
        ]
        raster = _raster(100, 100)
        with self.assertRaises(ValidationFailure) as ctx:
            GeorefSession.create(raster, gcps, acknowledge_warnings=False)
        self.assertTrue(ctx.exception.result.valid)
        self.assertIn("scale ratio", str(ctx.exception))

        session = GeorefSession.create(raster, gcps)
        self.assertEqual(len(session.validation.warnings), 1)

    def test_opacity_from_config(self):
        session = GeorefSession.create(_raster(), _gcps(), config=GeorefConfig(opacity=0.25))
        self.assertEqual(session.opacity, 0.25)


class TestSessionMutation(unittest.TestCase):
    """Transform replacement, opacity and clearing."""

    def setUp(self):
        self.session = GeorefSession.create(_raster(), _gcps())

    def test_replace_transform_updates_state_atomically(self):
        new = AffineMatrix(a=2.0, b=0.0, tx=0.0, c=0.0, d=-2.0, ty=0.0)
        old_gcps = self.session.gcps

        state = self.session.replace_transform(new)

        self.assertIs(self.session.state, state)
        self.assertIs(state.affine, new)
        self.assertEqual(state.footprint.corners[2], (20.0, -20.0))
        self.assertEqual(state.gcps, old_gcps)
        self.assertEqual(self.session.generation, 1)

    def test_replace_transform_with_gcps(self):
        gcps = [GCP.create("x", 1, 1, 1, 1)]
        state = self.session.replace_transform(AffineMatrix.identity(), gcps=gcps)
        self.assertEqual(state.gcps, tuple(gcps))

    def test_set_opacity(self):
        self.session.set_opacity(0.5)
        self.assertEqual(self.session.opacity, 0.5)
        self.assertEqual(self.session.generation, 1)

    def test_set_opacity_out_of_range(self):
        for value in (-0.1, 1.5):
            with self.assertRaises(ValueError):
                self.session.set_opacity(value)
        self.assertEqual(self.session.generation, 0)

    def test_clear(self):
        self.session.clear()
        self.assertTrue(self.session.is_cleared)
        with self.assertRaises(SessionClearedError):
            _ = self.session.raster
        with self.assertRaises(SessionClearedError):
            self.session.submit_render(EXTENT, (8, 8))
        with self.assertRaises(SessionClearedError):
            self.session.replace_transform(AffineMatrix.identity())


class TestRenderGenerations:
    """Stale render detection."""

    def test_older_request_is_discarded(self):
        session = GeorefSession.create(_raster(), _gcps())
        first = session.submit_render(EXTENT, (4, 4))
        second = session.submit_render(EXTENT, (4, 4))
        assert second.generation == first.generation + 1

        stale = np.ones((4, 4, 4), dtype=np.uint8)
        fresh = np.full((4, 4, 4), 7, dtype=np.uint8)

        assert session.commit_render(second, fresh)
        assert not session.commit_render(first, stale)
        assert session.displayed is fresh
        assert session.displayed_generation == second.generation

    def test_transform_change_invalidates_in_flight_request(self):
        session = GeorefSession.create(_raster(), _gcps())
        request = session.submit_render(EXTENT, (4, 4))
        session.replace_transform(AffineMatrix.identity())
        assert not session.is_current(request)
        assert not session.commit_render(request, np.zeros((4, 4, 4), dtype=np.uint8))
        assert session.displayed is None

    def test_snapshot_does_not_bump_generation(self):
        session = GeorefSession.create(_raster(), _gcps())
        request = session.snapshot_request(EXTENT, (4, 4))
        assert request.generation == session.generation == 0
        assert request.affine is session.affine

    @pytest.mark.parametrize("size", [(0, 4), (4, -1), (4,)])
    def test_invalid_output_size(self, size):
        session = GeorefSession.create(_raster(), _gcps())
        with pytest.raises(ValueError):
            session.submit_render(EXTENT, size)

    def test_render_commits(self):
        session = GeorefSession.create(_raster(), _gcps())
        rgba, committed = render(session, EXTENT, (16, 16))
        assert committed
        assert session.displayed is rgba

    def test_concurrent_renders_latest_wins(self):
        session = GeorefSession.create(_raster(), _gcps())
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            for _ in range(5):
                render(session, EXTENT, (12, 12))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert session.displayed is not None
        assert session.displayed_generation == session.generation == 40
