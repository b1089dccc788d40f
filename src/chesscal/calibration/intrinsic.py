"""
Intrinsic camera calibration.

Pure functions - no threading, no state. Caller manages sample collection.
"""

from __future__ import annotations

import cv2
import numpy as np

from ..types import BoardGeometry, BoardPose, CameraIntrinsics, CameraModel
from .chessboard import board_object_points


CALIBRATION_CRITERIA = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 100, 1e-6)


# ============================================================================
# Calibration
# ============================================================================


def calibrate_intrinsics(
    image_points: list[np.ndarray],
    board: BoardGeometry,
    square_size: float,
    model: CameraModel,
    resolution: tuple[int, int],
    camera_name: str,
) -> tuple[CameraIntrinsics, list[BoardPose | None]]:
    """
    Calibrate camera intrinsics from accumulated chessboard corners.

    Args:
        image_points: One (n, 2) corner array per sample, row-major board order
        board: Inner-corner counts
        square_size: Square edge length (sets the units of translations)
        model: Projection model to fit
        resolution: (width, height) of the images
        camera_name: Name stored with the result

    Returns:
        (intrinsics, poses) where poses[i] is the board pose for sample i,
        or None if the solver dropped that sample

    Raises:
        ValueError: If there are no samples
    """
    if not image_points:
        raise ValueError("Cannot calibrate without chessboard samples")

    object_points = board_object_points(board, square_size)

    if model is CameraModel.PINHOLE:
        calibrate = _calibrate_pinhole
    elif model is CameraModel.KANNALA_BRANDT:
        calibrate = _calibrate_kannala_brandt
    else:
        calibrate = _calibrate_mei

    error, matrix, distortion, xi, poses = calibrate(image_points, object_points, resolution)

    intrinsics = CameraIntrinsics(
        camera_name=camera_name,
        model=model,
        resolution=resolution,
        matrix=matrix,
        distortion=distortion,
        error=round(float(error), 4),
        sample_count=len(image_points),
        xi=xi,
    )
    return intrinsics, poses


def _calibrate_pinhole(image_points, object_points, resolution):
    obj = [object_points for _ in image_points]
    img = [p.reshape(-1, 1, 2).astype(np.float32) for p in image_points]

    # Radial-tangential with k1, k2, p1, p2
    error, matrix, dist, rvecs, tvecs = cv2.calibrateCamera(
        obj,
        img,
        resolution,
        None,
        None,
        flags=cv2.CALIB_FIX_K3,
        criteria=CALIBRATION_CRITERIA,
    )

    poses = [BoardPose(rvec=r.ravel(), tvec=t.ravel()) for r, t in zip(rvecs, tvecs)]
    return error, matrix, dist.ravel(), None, poses


def fisheye_flag(name: str) -> int:
    """
    Look up a cv2.fisheye calibration flag.

    OpenCV 5 moved these flags from cv2.fisheye to the top-level cv2 module.
    """
    flag = getattr(cv2.fisheye, name, None)
    if flag is None:
        flag = getattr(cv2, name)
    return flag


def _calibrate_kannala_brandt(image_points, object_points, resolution):
    obj = [object_points.reshape(1, -1, 3).astype(np.float64) for _ in image_points]
    img = [p.reshape(1, -1, 2).astype(np.float64) for p in image_points]

    flags = fisheye_flag("CALIB_RECOMPUTE_EXTRINSIC") | fisheye_flag("CALIB_FIX_SKEW")
    error, matrix, dist, rvecs, tvecs = cv2.fisheye.calibrate(
        obj,
        img,
        resolution,
        np.zeros((3, 3)),
        np.zeros((4, 1)),
        flags=flags,
        criteria=CALIBRATION_CRITERIA,
    )

    poses = [BoardPose(rvec=r.ravel(), tvec=t.ravel()) for r, t in zip(rvecs, tvecs)]
    return error, matrix, dist.ravel(), None, poses


def _calibrate_mei(image_points, object_points, resolution):
    if not hasattr(cv2, "omnidir"):
        raise RuntimeError(
            "The Mei camera model needs cv2.omnidir; install opencv-contrib-python"
        )

    obj = [object_points.reshape(1, -1, 3).astype(np.float64) for _ in image_points]
    img = [p.reshape(1, -1, 2).astype(np.float64) for p in image_points]

    try:
        error, matrix, xi, dist, rvecs, tvecs, idx = cv2.omnidir.calibrate(
            obj,
            img,
            resolution,
            np.zeros((3, 3)),
            np.zeros((1, 1)),
            np.zeros((1, 4)),
            cv2.omnidir.CALIB_FIX_SKEW,
            CALIBRATION_CRITERIA,
        )
    except cv2.error as e:
        # Raised when no sample survives initialization
        raise ValueError("omnidir could not initialize any sample") from e

    # omnidir may drop samples it cannot initialize; idx lists the ones it kept
    used = [] if idx is None else np.asarray(idx).ravel().tolist()
    if not used:
        raise ValueError("omnidir could not initialize any sample")

    poses: list[BoardPose | None] = [None] * len(image_points)
    for sample_index, rvec, tvec in zip(used, rvecs, tvecs):
        poses[int(sample_index)] = BoardPose(
            rvec=np.asarray(rvec).ravel(), tvec=np.asarray(tvec).ravel()
        )

    return error, matrix, dist.ravel(), float(np.asarray(xi).ravel()[0]), poses


# ============================================================================
# Projection
# ============================================================================


def project_points(
    object_points: np.ndarray,
    pose: BoardPose,
    intrinsics: CameraIntrinsics,
) -> np.ndarray:
    """
    Project board points into the image with the calibrated model.

    Args:
        object_points: (n, 3) points in the board frame
        pose: Board pose in the camera frame
        intrinsics: Calibrated camera

    Returns:
        (n, 2) image coordinates
    """
    rvec = np.asarray(pose.rvec, dtype=np.float64).reshape(3, 1)
    tvec = np.asarray(pose.tvec, dtype=np.float64).reshape(3, 1)
    matrix = np.asarray(intrinsics.matrix, dtype=np.float64)
    distortion = np.asarray(intrinsics.distortion, dtype=np.float64)

    if intrinsics.model is CameraModel.PINHOLE:
        projected, _ = cv2.projectPoints(
            object_points.astype(np.float64), rvec, tvec, matrix, distortion
        )
    elif intrinsics.model is CameraModel.KANNALA_BRANDT:
        projected, _ = cv2.fisheye.projectPoints(
            object_points.reshape(-1, 1, 3).astype(np.float64),
            rvec,
            tvec,
            matrix,
            distortion.reshape(4, 1),
        )
    else:
        projected, _ = cv2.omnidir.projectPoints(
            object_points.reshape(1, -1, 3).astype(np.float64),
            rvec,
            tvec,
            matrix,
            float(intrinsics.xi),
            distortion.reshape(1, 4),
        )

    return projected.reshape(-1, 2)


def compute_reprojection_error(
    image_points: np.ndarray,
    object_points: np.ndarray,
    pose: BoardPose,
    intrinsics: CameraIntrinsics,
) -> float:
    """
    Compute reprojection error for a single sample.

    Returns:
        RMS distance in pixels between observed and reprojected corners
    """
    projected = project_points(object_points, pose, intrinsics)
    residuals = image_points.reshape(-1, 2) - projected
    return float(np.sqrt(np.mean(np.sum(residuals**2, axis=1))))
