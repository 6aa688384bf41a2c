"""Planar homography solved with the Direct Linear Transform."""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from sprint_analysis.errors import CalibrationError, ProjectionError

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

PIVOT_EPSILON = 1e-10
DETERMINANT_EPSILON = 1e-9
MATRIX_DETERMINANT_EPSILON = 1e-15
W_EPSILON = 1e-12
ROUND_TRIP_TOLERANCE = 1e-6


def solve_linear_system(
    a: np.ndarray,
    b: np.ndarray,
    epsilon: float = PIVOT_EPSILON,
) -> np.ndarray:
    """
    Solve a square linear system by Gaussian elimination with partial pivoting.

    Args:
        a: Coefficient matrix of shape (n, n).
        b: Right-hand side of shape (n,).
        epsilon: Smallest pivot magnitude accepted.

    Returns:
        Solution vector of shape (n,).

    Raises:
        CalibrationError: If a pivot falls below epsilon.
    """
    a = np.array(a, dtype=float)
    b = np.array(b, dtype=float)
    n = b.shape[0]

    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(a[col:, col])))
        pivot = a[pivot_row, col]
        if abs(pivot) < epsilon:
            raise CalibrationError(
                f"Near-singular calibration system (pivot {abs(pivot):.3e} at column {col}); "
                "points may be collinear or duplicated"
            )

        if pivot_row != col:
            a[[col, pivot_row]] = a[[pivot_row, col]]
            b[[col, pivot_row]] = b[[pivot_row, col]]

        factors = a[col + 1:, col] / a[col, col]
        a[col + 1:, col:] -= np.outer(factors, a[col, col:])
        b[col + 1:] -= factors * b[col]

    x = np.zeros(n)
    for row in range(n - 1, -1, -1):
        x[row] = (b[row] - a[row, row + 1:] @ x[row + 1:]) / a[row, row]
    return x


def _normalization_transform(points: np.ndarray) -> np.ndarray:
    """Similarity moving the centroid to the origin with mean distance sqrt(2)."""
    centroid = points.mean(axis=0)
    mean_distance = float(np.mean(np.linalg.norm(points - centroid, axis=1)))
    if mean_distance < PIVOT_EPSILON:
        raise CalibrationError("Calibration points all coincide")

    scale = np.sqrt(2.0) / mean_distance
    return np.array([
        [scale, 0.0, -scale * centroid[0]],
        [0.0, scale, -scale * centroid[1]],
        [0.0, 0.0, 1.0],
    ])


def _as_points(points: Sequence[Point], label: str) -> np.ndarray:
    array = np.asarray(points, dtype=float)
    if array.shape != (4, 2):
        raise ValueError(f"Expected 4 {label} points, got shape {array.shape}")
    if not np.all(np.isfinite(array)):
        raise CalibrationError(f"Non-finite {label} coordinates: {array.tolist()}")
    return array


@dataclass(frozen=True, eq=False)
class Homography:
    """
    3x3 projective transform from image pixels to the ground plane.

    Attributes:
        matrix: Homography matrix, scaled so that h33 == 1.
    """
    matrix: np.ndarray

    @classmethod
    def from_points(
        cls,
        pixel_points: Sequence[Point],
        world_points: Sequence[Point],
    ) -> "Homography":
        """
        Solve the homography from four pixel/world correspondences.

        The eight free entries are found from the 8x8 DLT system (h33 fixed
        to 1) after conditioning both point sets with a similarity
        transform, so the pivot threshold does not depend on pixel scale.

        Args:
            pixel_points: Four (x, y) pixel coordinates.
            world_points: Four (x, y) ground coordinates in meters.

        Returns:
            Solved Homography.

        Raises:
            CalibrationError: For degenerate configurations or a failed
                round-trip self check.
        """
        pixels = _as_points(pixel_points, "pixel")
        world = _as_points(world_points, "world")

        t_pixel = _normalization_transform(pixels)
        t_world = _normalization_transform(world)
        norm_pixels = (t_pixel @ np.column_stack([pixels, np.ones(4)]).T).T[:, :2]
        norm_world = (t_world @ np.column_stack([world, np.ones(4)]).T).T[:, :2]

        a = np.zeros((8, 8))
        b = np.zeros(8)
        for i, ((x, y), (wx, wy)) in enumerate(zip(norm_pixels, norm_world)):
            a[2 * i] = [x, y, 1.0, 0.0, 0.0, 0.0, -wx * x, -wx * y]
            a[2 * i + 1] = [0.0, 0.0, 0.0, x, y, 1.0, -wy * x, -wy * y]
            b[2 * i] = wx
            b[2 * i + 1] = wy

        h = solve_linear_system(a, b)
        normalized = np.append(h, 1.0).reshape(3, 3)
        if abs(np.linalg.det(normalized)) < DETERMINANT_EPSILON:
            raise CalibrationError("Solved homography is singular")

        matrix = np.linalg.inv(t_world) @ normalized @ t_pixel
        if abs(matrix[2, 2]) < W_EPSILON:
            raise CalibrationError("Homography cannot be scaled to h33 = 1")
        matrix = matrix / matrix[2, 2]

        homography = cls(matrix=matrix)
        error = homography.round_trip_error(pixels, world)
        if not np.isfinite(error) or error > ROUND_TRIP_TOLERANCE:
            raise CalibrationError(f"Homography round-trip error too large: {error:.3e} m")

        logger.debug(f"Solved homography with round-trip error {error:.2e} m")
        return homography

    @classmethod
    def from_list(cls, values: Sequence[Sequence[float]]) -> "Homography":
        """Build from a nested 3x3 list."""
        matrix = np.asarray(values, dtype=float)
        if matrix.shape != (3, 3) or not np.all(np.isfinite(matrix)):
            raise CalibrationError(f"Invalid homography matrix: {values}")
        return cls(matrix=matrix)

    def apply(self, x: float, y: float) -> Point:
        """
        Project a pixel onto the ground plane.

        Raises:
            ProjectionError: If the homogeneous scale is close to zero.
        """
        u, v, w = self.matrix @ np.array([x, y, 1.0])
        if abs(w) < W_EPSILON:
            raise ProjectionError(f"Pixel ({x:.1f}, {y:.1f}) projects to infinity (w={w:.3e})")
        return float(u / w), float(v / w)

    def apply_many(self, points: Sequence[Point]) -> np.ndarray:
        """Project several pixels, returning an (N, 2) array."""
        return np.array([self.apply(x, y) for x, y in points])

    def inverse(self) -> "Homography":
        """Ground-to-image transform."""
        if abs(np.linalg.det(self.matrix)) < MATRIX_DETERMINANT_EPSILON:
            raise CalibrationError("Homography is not invertible")
        inverse = np.linalg.inv(self.matrix)
        return Homography(matrix=inverse / inverse[2, 2])

    def round_trip_error(self, pixel_points: Sequence[Point], world_points: Sequence[Point]) -> float:
        """Largest distance between projected pixels and their world points."""
        projected = self.apply_many(pixel_points)
        return float(np.max(np.linalg.norm(projected - np.asarray(world_points, dtype=float), axis=1)))

    def is_valid(self) -> bool:
        """Whether the matrix is finite and non-singular."""
        return bool(
            self.matrix.shape == (3, 3)
            and np.all(np.isfinite(self.matrix))
            and abs(np.linalg.det(self.matrix)) > MATRIX_DETERMINANT_EPSILON
        )

    def to_list(self) -> List[List[float]]:
        """Convert to a nested list."""
        return self.matrix.tolist()


def solve_homography(pixel_points: Sequence[Point], world_points: Sequence[Point]) -> Homography:
    """Shorthand for Homography.from_points."""
    return Homography.from_points(pixel_points, world_points)
