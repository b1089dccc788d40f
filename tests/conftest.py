"""
Pytest configuration and shared fixtures.
"""

import logging
import tempfile
from pathlib import Path

import cv2
import numpy as np
import pytest

from chesscal.types import BoardGeometry, CameraModel, DetectionResult


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that's cleaned up after test."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def board():
    """Standard 9x6 inner-corner chessboard."""
    return BoardGeometry(width=9, height=6)


@pytest.fixture
def sample_intrinsics_matrix():
    """Camera matrix for a 640x480 sensor."""
    return np.array([
        [800.0, 0.0, 320.0],
        [0.0, 800.0, 240.0],
        [0.0, 0.0, 1.0],
    ], dtype=np.float64)


def render_chessboard(board, square_px=30, margin_px=60):
    """Grayscale image of a flat chessboard facing the camera."""
    squares_x = board.width + 1
    squares_y = board.height + 1

    image = np.full(
        (squares_y * square_px + 2 * margin_px, squares_x * square_px + 2 * margin_px),
        255,
        dtype=np.uint8,
    )
    for row in range(squares_y):
        for col in range(squares_x):
            if (row + col) % 2 == 0:
                top = margin_px + row * square_px
                left = margin_px + col * square_px
                image[top:top + square_px, left:left + square_px] = 0

    return cv2.GaussianBlur(image, (3, 3), 0)


@pytest.fixture
def chessboard_image(board):
    return render_chessboard(board)


def synthetic_poses(count, distance):
    """Varied board poses; the board stays roughly centered in front of the camera."""
    poses = []
    for i in range(count):
        rvec = np.array([
            0.3 * np.sin(i + 0.5),
            0.3 * np.cos(1.3 * i),
            0.1 * np.sin(0.7 * i),
        ], dtype=np.float64)
        tvec = np.array([
            -120.0 + 20.0 * np.cos(i),
            -75.0 + 15.0 * np.sin(i),
            distance + 0.1 * distance * np.sin(0.5 * i),
        ], dtype=np.float64)
        poses.append((rvec, tvec))
    return poses


def project_views(
    object_points, poses, matrix, distortion=None, model=CameraModel.PINHOLE, xi=None
):
    """Project board points for every pose; returns a list of (n, 2) float32 arrays."""
    views = []
    for rvec, tvec in poses:
        if model is CameraModel.MEI:
            projected, _ = cv2.omnidir.projectPoints(
                object_points.reshape(1, -1, 3).astype(np.float64),
                np.asarray(rvec, dtype=np.float64).reshape(3, 1),
                np.asarray(tvec, dtype=np.float64).reshape(3, 1),
                matrix,
                float(xi),
                np.zeros((1, 4)) if distortion is None else distortion.reshape(1, 4),
            )
        elif model is CameraModel.KANNALA_BRANDT:
            projected, _ = cv2.fisheye.projectPoints(
                object_points.reshape(-1, 1, 3).astype(np.float64),
                rvec.reshape(3, 1),
                tvec.reshape(3, 1),
                matrix,
                np.zeros((4, 1)) if distortion is None else distortion.reshape(4, 1),
            )
        else:
            projected, _ = cv2.projectPoints(
                object_points.astype(np.float64),
                rvec,
                tvec,
                matrix,
                np.zeros(5) if distortion is None else distortion,
            )
        views.append(projected.reshape(-1, 2).astype(np.float32))
    return views


@pytest.fixture
def pinhole_views(board, sample_intrinsics_matrix):
    """Twelve noise-free pinhole views of a 9x6 board with 30 mm squares."""
    from chesscal.calibration.chessboard import board_object_points

    object_points = board_object_points(board, 30.0)
    return project_views(object_points, synthetic_poses(12, 600.0), sample_intrinsics_matrix)


MEI_MATRIX = np.array([
    [400.0, 0.0, 320.0],
    [0.0, 400.0, 240.0],
    [0.0, 0.0, 1.0],
])
MEI_XI = 1.0


def tilted_poses(count, distance):
    """Close, strongly tilted board poses for wide-angle models."""
    poses = []
    for i in range(count):
        rvec = np.array([
            0.5 * np.sin(i + 0.5),
            0.5 * np.cos(1.3 * i),
            0.2 * np.sin(0.7 * i),
        ], dtype=np.float64)
        tvec = np.array([
            -120.0 + 30.0 * np.cos(i),
            -75.0 + 25.0 * np.sin(i),
            distance + 0.15 * distance * np.sin(0.5 * i),
        ], dtype=np.float64)
        poses.append((rvec, tvec))
    return poses


@pytest.fixture
def mei_views(board):
    """Twenty noise-free Mei views (xi = 1, f = 400) of a 9x6 board with 30 mm squares."""
    from chesscal.calibration.chessboard import board_object_points

    object_points = board_object_points(board, 30.0)
    return project_views(
        object_points,
        tilted_poses(20, 300.0),
        MEI_MATRIX,
        model=CameraModel.MEI,
        xi=MEI_XI,
    )


def write_gray_image(path, value, size=(640, 480)):
    """Write a uniform grayscale image whose pixel value identifies it."""
    width, height = size
    cv2.imwrite(str(path), np.full((height, width), value, dtype=np.uint8))


class TableDetector:
    """
    Detector that looks up its answer from the image's pixel value.

    table maps pixel value -> (n, 2) corners, or None for "not found".
    """

    def __init__(self, table):
        self.table = table
        self.calls = []

    def __call__(self, image, board, use_alternate_backend=False):
        value = int(np.asarray(image).ravel()[0])
        self.calls.append((value, use_alternate_backend))
        corners = self.table.get(value)
        if corners is None:
            return DetectionResult(found=False)
        return DetectionResult(found=True, corners=corners, sketch=None)


class FakeViewer:
    """Viewer that records calls instead of opening windows."""

    def __init__(self):
        self.events = []

    def show(self, window, image):
        self.events.append(("show", window, image.copy()))

    def wait(self, delay_ms):
        self.events.append(("wait", delay_ms))
        return -1

    def close(self, window):
        self.events.append(("close", window))

    def of_kind(self, kind):
        return [event for event in self.events if event[0] == kind]


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers installed by CLI runs so they don't outlive the test."""
    yield
    logger = logging.getLogger("chesscal")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
