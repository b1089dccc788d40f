"""
Calibration objects that accumulate chessboard samples.

CameraCalibration and StereoCameraCalibration own the correspondence sample
set of a session. The session adds one sample per successful detection,
then calls calibrate() once and persists the outcome. The numerical work is
delegated to the pure functions in intrinsic.py and stereo.py.
"""

from __future__ import annotations

import logging
from pathlib import Path

import cv2
import numpy as np

from ..config import (
    write_camera_params,
    write_chessboard_data,
    write_stereo_params,
)
from ..types import (
    BoardGeometry,
    BoardPose,
    CameraIntrinsics,
    CameraModel,
    CaptureRequest,
    StereoExtrinsics,
)
from .chessboard import board_object_points, to_bgr
from .intrinsic import calibrate_intrinsics, compute_reprojection_error, project_points
from .stereo import stereo_calibrate_pair

logger = logging.getLogger(__name__)

OBSERVED_COLOR = (0, 255, 0)
REPROJECTED_COLOR = (0, 0, 255)
TEXT_COLOR = (255, 255, 255)


# ============================================================================
# Drawing
# ============================================================================


def _pixel(point: np.ndarray) -> tuple[int, int]:
    return (int(round(float(point[0]))), int(round(float(point[1]))))


def draw_sample(
    image: np.ndarray,
    observed: np.ndarray,
    pose: BoardPose | None,
    intrinsics: CameraIntrinsics,
    object_points: np.ndarray,
) -> np.ndarray:
    """
    Draw observed (green) and reprojected (red) corners on a copy of image.

    Samples the solver dropped (pose is None) only get observed corners.

    Returns:
        BGR image
    """
    canvas = to_bgr(image)

    for point in observed.reshape(-1, 2):
        cv2.circle(canvas, _pixel(point), 5, OBSERVED_COLOR, 1, cv2.LINE_AA)

    if pose is None:
        return canvas

    projected = project_points(object_points, pose, intrinsics)
    for point in projected[np.all(np.isfinite(projected), axis=1)]:
        cv2.circle(canvas, _pixel(point), 2, REPROJECTED_COLOR, -1, cv2.LINE_AA)

    error = compute_reprojection_error(observed, object_points, pose, intrinsics)
    cv2.putText(
        canvas,
        f"Reprojection error: {error:.3f} px",
        (10, canvas.shape[0] - 10),
        cv2.FONT_HERSHEY_COMPLEX,
        0.5,
        TEXT_COLOR,
        1,
        cv2.LINE_AA,
    )
    return canvas


# ============================================================================
# Single Camera
# ============================================================================


class CameraCalibration:
    """Chessboard samples and calibration result for one camera."""

    def __init__(
        self,
        model: CameraModel,
        camera_name: str,
        frame_size: tuple[int, int],
        board: BoardGeometry,
        square_size: float,
        verbose: bool = False,
    ):
        self.model = model
        self.camera_name = camera_name
        self.frame_size = frame_size
        self.board = board
        self.square_size = square_size
        self.verbose = verbose

        self.intrinsics: CameraIntrinsics | None = None
        self.poses: list[BoardPose | None] = []
        self._image_points: list[np.ndarray] = []

    @property
    def image_points(self) -> list[np.ndarray]:
        return list(self._image_points)

    @property
    def object_points(self) -> np.ndarray:
        return board_object_points(self.board, self.square_size)

    def add_sample(self, corners: np.ndarray) -> None:
        corners = np.asarray(corners, dtype=np.float32).reshape(-1, 2)
        if len(corners) != self.board.corner_count:
            raise ValueError(
                f"Expected {self.board.corner_count} corners, got {len(corners)}"
            )
        self._image_points.append(corners)

    def sample_count(self) -> int:
        return len(self._image_points)

    def calibrate(self) -> CameraIntrinsics:
        self.intrinsics, self.poses = calibrate_intrinsics(
            self._image_points,
            self.board,
            self.square_size,
            self.model,
            self.frame_size,
            self.camera_name,
        )

        if self.verbose:
            logger.info(
                "%s: reprojection error %.4f px over %d samples",
                self.camera_name,
                self.intrinsics.error,
                self.intrinsics.sample_count,
            )

        return self.intrinsics

    def write_params(self, path: Path) -> None:
        write_camera_params(path, self._calibrated())

    def write_raw_samples(self, path: Path) -> None:
        write_chessboard_data(path, self._image_points, self.object_points)

    def draw_results(self, images: list[np.ndarray]) -> list[np.ndarray]:
        """
        Overlay observed and reprojected corners, one image per sample.

        images must be the sample images in accumulation order.
        """
        intrinsics = self._calibrated()
        if len(images) != len(self._image_points):
            raise ValueError(
                f"Expected {len(self._image_points)} images, got {len(images)}"
            )

        object_points = self.object_points
        return [
            draw_sample(image, observed, pose, intrinsics, object_points)
            for image, observed, pose in zip(images, self._image_points, self.poses)
        ]

    def _calibrated(self) -> CameraIntrinsics:
        if self.intrinsics is None:
            raise RuntimeError(f"{self.camera_name} has not been calibrated")
        return self.intrinsics


# ============================================================================
# Stereo Rig
# ============================================================================


class StereoCameraCalibration:
    """Synchronized chessboard samples and calibration result for two cameras."""

    def __init__(
        self,
        model: CameraModel,
        left_name: str,
        right_name: str,
        frame_size: tuple[int, int],
        board: BoardGeometry,
        square_size: float,
        verbose: bool = False,
    ):
        self.left = CameraCalibration(model, left_name, frame_size, board, square_size, verbose)
        self.right = CameraCalibration(model, right_name, frame_size, board, square_size, verbose)
        self.extrinsics: StereoExtrinsics | None = None
        self.verbose = verbose

    def add_sample(self, corners_left: np.ndarray, corners_right: np.ndarray) -> None:
        self.left.add_sample(corners_left)
        self.right.add_sample(corners_right)

    def sample_count(self) -> int:
        return self.left.sample_count()

    def calibrate(self) -> StereoExtrinsics:
        self.left.calibrate()
        self.right.calibrate()

        self.extrinsics = stereo_calibrate_pair(
            self.left.image_points,
            self.right.image_points,
            self.left.intrinsics,
            self.right.intrinsics,
            self.left.poses,
            self.right.poses,
            self.left.board,
            self.left.square_size,
        )

        if self.verbose:
            logger.info(
                "Stereo reprojection error %.4f px, baseline %.3f",
                self.extrinsics.error,
                float(np.linalg.norm(self.extrinsics.translation)),
            )

        return self.extrinsics

    def write_params(self, directory: Path) -> list[Path]:
        if self.extrinsics is None:
            raise RuntimeError("Stereo rig has not been calibrated")
        return write_stereo_params(
            directory, self.left.intrinsics, self.right.intrinsics, self.extrinsics
        )

    def draw_results(
        self,
        left_images: list[np.ndarray],
        right_images: list[np.ndarray],
    ) -> tuple[list[np.ndarray], list[np.ndarray]]:
        return self.left.draw_results(left_images), self.right.draw_results(right_images)


def create_calibration(
    request: CaptureRequest,
    frame_size: tuple[int, int],
) -> CameraCalibration | StereoCameraCalibration:
    """Create the calibration object matching the number of cameras in request."""
    if request.is_stereo:
        left, right = request.cameras
        return StereoCameraCalibration(
            request.camera_model,
            left.camera_name,
            right.camera_name,
            frame_size,
            request.board,
            request.square_size,
            request.verbose,
        )

    return CameraCalibration(
        request.camera_model,
        request.cameras[0].camera_name,
        frame_size,
        request.board,
        request.square_size,
        request.verbose,
    )
