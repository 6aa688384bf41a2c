"""
Tests for the DLT homography solver.

Covers exact recovery of known transforms, the round-trip self check,
degenerate point configurations and projections near the horizon.
"""

import numpy as np
import pytest

from sprint_analysis.calibration.homography import (
    Homography,
    solve_homography,
    solve_linear_system,
)
from sprint_analysis.errors import CalibrationError, ProjectionError
from tests.conftest import CAMERA, project


UNIT_SQUARE = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]


class TestLinearSystem:
    """Gaussian elimination with partial pivoting"""

    def test_solves_small_system(self):
        a = np.array([[2.0, 1.0], [1.0, 3.0]])
        b = np.array([3.0, 5.0])
        x = solve_linear_system(a, b)
        assert np.allclose(a @ x, b)

    def test_needs_row_swap(self):
        """Zero on the diagonal is handled by pivoting"""
        a = np.array([[0.0, 1.0], [1.0, 0.0]])
        b = np.array([2.0, 3.0])
        assert np.allclose(solve_linear_system(a, b), [3.0, 2.0])

    def test_singular_raises(self):
        a = np.array([[1.0, 2.0], [2.0, 4.0]])
        with pytest.raises(CalibrationError):
            solve_linear_system(a, np.array([1.0, 2.0]))


class TestHomographySolve:
    """Solving from four correspondences"""

    def test_scaling_transform(self):
        world = [(2 * x, 2 * y) for x, y in UNIT_SQUARE]
        h = solve_homography(UNIT_SQUARE, world)
        assert np.allclose(h.matrix, np.diag([2.0, 2.0, 1.0]), atol=1e-9)

    def test_h33_is_one(self):
        pixels = [project(x, y) for x, y in [(0, 0), (0, 1.22), (5, 0), (5, 1.22)]]
        h = Homography.from_points(pixels, [(0, 0), (0, 1.22), (5, 0), (5, 1.22)])
        assert h.matrix[2, 2] == pytest.approx(1.0)

    def test_recovers_known_camera(self):
        """Solved transform is the inverse of the synthetic camera"""
        world = [(0.0, 0.0), (0.0, 1.22), (5.0, 0.0), (5.0, 1.22)]
        pixels = [project(x, y) for x, y in world]
        h = Homography.from_points(pixels, world)

        expected = np.linalg.inv(CAMERA)
        expected = expected / expected[2, 2]
        assert np.allclose(h.matrix, expected, rtol=1e-6, atol=1e-9)

    def test_round_trip_on_source_points(self):
        world = [(10.0, 0.0), (10.0, 1.22), (20.0, 0.0), (20.0, 1.22)]
        pixels = [(120.0, 700.0), (180.0, 420.0), (900.0, 690.0), (850.0, 410.0)]
        h = Homography.from_points(pixels, world)
        assert h.round_trip_error(pixels, world) < 1e-6

    def test_projects_points_between_cones(self):
        world = [(0.0, 0.0), (0.0, 1.22), (5.0, 0.0), (5.0, 1.22)]
        h = Homography.from_points([project(x, y) for x, y in world], world)
        x, y = h.apply(*project(2.5, 0.3))
        assert x == pytest.approx(2.5, abs=1e-6)
        assert y == pytest.approx(0.3, abs=1e-6)

    def test_inverse_maps_back_to_pixels(self):
        world = [(0.0, 0.0), (0.0, 1.22), (5.0, 0.0), (5.0, 1.22)]
        pixels = [project(x, y) for x, y in world]
        h = Homography.from_points(pixels, world)
        back = h.inverse().apply_many(world)
        assert np.allclose(back, pixels, atol=1e-6)


class TestDegenerateConfigurations:
    """Invalid point sets raise CalibrationError"""

    def test_collinear_pixels(self):
        pixels = [(0.0, 0.0), (1.0, 1.0), (2.0, 2.0), (3.0, 3.0)]
        with pytest.raises(CalibrationError):
            Homography.from_points(pixels, UNIT_SQUARE)

    def test_duplicate_pixels(self):
        pixels = [(0.0, 0.0), (0.0, 0.0), (1.0, 1.0), (0.0, 1.0)]
        with pytest.raises(CalibrationError):
            Homography.from_points(pixels, UNIT_SQUARE)

    def test_all_points_coincide(self):
        pixels = [(5.0, 5.0)] * 4
        with pytest.raises(CalibrationError):
            Homography.from_points(pixels, UNIT_SQUARE)

    def test_non_finite_pixels(self):
        pixels = [(0.0, 0.0), (1.0, 0.0), (float("nan"), 1.0), (0.0, 1.0)]
        with pytest.raises(CalibrationError):
            Homography.from_points(pixels, UNIT_SQUARE)

    def test_wrong_point_count(self):
        with pytest.raises(ValueError):
            Homography.from_points(UNIT_SQUARE[:3], UNIT_SQUARE[:3])


class TestProjection:
    """Projection edge cases"""

    def test_horizon_raises_projection_error(self):
        h = Homography(matrix=np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 0.0, 0.0]]))
        with pytest.raises(ProjectionError):
            h.apply(0.0, 5.0)

    def test_projection_error_is_calibration_error(self):
        assert issubclass(ProjectionError, CalibrationError)

    def test_singular_matrix_is_invalid(self):
        h = Homography(matrix=np.array([[1.0, 2.0, 3.0], [2.0, 4.0, 6.0], [0.0, 0.0, 1.0]]))
        assert not h.is_valid()
        with pytest.raises(CalibrationError):
            h.inverse()

    def test_from_list_rejects_bad_shape(self):
        with pytest.raises(CalibrationError):
            Homography.from_list([[1.0, 0.0], [0.0, 1.0]])

    def test_to_list_round_trip(self):
        h = solve_homography(UNIT_SQUARE, [(2 * x, 3 * y) for x, y in UNIT_SQUARE])
        assert np.allclose(Homography.from_list(h.to_list()).matrix, h.matrix)
