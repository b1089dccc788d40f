"""
Stereo extrinsic calibration.

Pure functions - no classes, no state.

Intrinsics of both cameras are calibrated first and held fixed here. The
left-to-right transform is initialized from per-sample board poses and then
refined jointly with the left board poses by least squares over the
reprojection residuals of both cameras.
"""

from __future__ import annotations

import cv2
import numpy as np
from scipy.optimize import least_squares
from scipy.sparse import lil_matrix

from ..types import BoardGeometry, BoardPose, CameraIntrinsics, StereoExtrinsics
from .chessboard import board_object_points
from .intrinsic import project_points


POSE_PARAM_COUNT = 6


# ============================================================================
# Pose Helpers
# ============================================================================


def pose_to_matrix(pose: BoardPose) -> tuple[np.ndarray, np.ndarray]:
    """(3x3 rotation, (3,) translation) from a Rodrigues pose."""
    rotation = cv2.Rodrigues(np.asarray(pose.rvec, dtype=np.float64).reshape(3, 1))[0]
    return rotation, np.asarray(pose.tvec, dtype=np.float64).ravel()


def compose_pose(
    pose: BoardPose,
    rotation: np.ndarray,
    translation: np.ndarray,
) -> BoardPose:
    """Board pose in the right camera given its pose in the left camera."""
    r_left, t_left = pose_to_matrix(pose)
    r_right = rotation @ r_left
    t_right = rotation @ t_left + translation
    return BoardPose(rvec=cv2.Rodrigues(r_right)[0].ravel(), tvec=t_right)


def average_rotation(rotations: list[np.ndarray]) -> np.ndarray:
    """Closest rotation matrix to the mean of the given rotations."""
    u, _, vt = np.linalg.svd(np.sum(rotations, axis=0))
    rotation = u @ vt
    if np.linalg.det(rotation) < 0:
        u[:, -1] *= -1
        rotation = u @ vt
    return rotation


def compute_initial_extrinsics(
    left_poses: list[BoardPose],
    right_poses: list[BoardPose],
) -> tuple[np.ndarray, np.ndarray]:
    """
    Estimate the left-to-right transform from board poses seen by both cameras.

    Each sample gives R = R_r @ R_l^T and t = t_r - R @ t_l; rotations are
    averaged on SO(3) and translations by median.
    """
    rotations = []
    translations = []

    for pose_l, pose_r in zip(left_poses, right_poses):
        r_left, t_left = pose_to_matrix(pose_l)
        r_right, t_right = pose_to_matrix(pose_r)

        r_rel = r_right @ r_left.T
        rotations.append(r_rel)
        translations.append(t_right - r_rel @ t_left)

    rotation = average_rotation(rotations)
    translation = np.median(np.array(translations), axis=0)
    return rotation, translation


# ============================================================================
# Refinement
# ============================================================================


def _get_sparsity_pattern(n_samples: int, n_corners: int) -> lil_matrix:
    """
    Build sparse Jacobian pattern for least_squares.

    Residual layout per sample: left (x, y) for every corner, then right.
    Parameter layout: relative pose, then one board pose per sample.
    """
    rows_per_camera = n_corners * 2
    m = n_samples * rows_per_camera * 2
    n = POSE_PARAM_COUNT * (n_samples + 1)

    A = lil_matrix((m, n), dtype=int)

    for s in range(n_samples):
        start = s * rows_per_camera * 2
        pose_cols = slice(POSE_PARAM_COUNT * (s + 1), POSE_PARAM_COUNT * (s + 2))

        # Board pose affects both cameras
        A[start:start + rows_per_camera * 2, pose_cols] = 1

        # Relative pose affects the right camera only
        A[start + rows_per_camera:start + rows_per_camera * 2, 0:POSE_PARAM_COUNT] = 1

    return A


def _stereo_reprojection_error(
    params: np.ndarray,
    object_points: np.ndarray,
    left_points: list[np.ndarray],
    right_points: list[np.ndarray],
    left: CameraIntrinsics,
    right: CameraIntrinsics,
) -> np.ndarray:
    rotation = cv2.Rodrigues(params[0:3].reshape(3, 1))[0]
    translation = params[3:6]

    residuals = []
    for s, (obs_left, obs_right) in enumerate(zip(left_points, right_points)):
        offset = POSE_PARAM_COUNT * (s + 1)
        pose = BoardPose(rvec=params[offset:offset + 3], tvec=params[offset + 3:offset + 6])

        projected_left = project_points(object_points, pose, left)
        projected_right = project_points(
            object_points, compose_pose(pose, rotation, translation), right
        )

        residuals.append((projected_left - obs_left.reshape(-1, 2)).ravel())
        residuals.append((projected_right - obs_right.reshape(-1, 2)).ravel())

    return np.concatenate(residuals)


def stereo_calibrate_pair(
    left_points: list[np.ndarray],
    right_points: list[np.ndarray],
    left: CameraIntrinsics,
    right: CameraIntrinsics,
    left_poses: list[BoardPose | None],
    right_poses: list[BoardPose | None],
    board: BoardGeometry,
    square_size: float,
) -> StereoExtrinsics:
    """
    Calibrate the transform between two cameras from synchronized samples.

    Args:
        left_points: (n, 2) corners per sample from the left camera
        right_points: (n, 2) corners per sample from the right camera
        left: Calibrated left intrinsics
        right: Calibrated right intrinsics
        left_poses: Board poses from the left intrinsic calibration
        right_poses: Board poses from the right intrinsic calibration
        board: Inner-corner counts
        square_size: Square edge length

    Returns:
        StereoExtrinsics taking left camera coordinates to the right camera

    Raises:
        ValueError: If no sample has a board pose in both cameras
    """
    shared = [
        i
        for i, (pose_l, pose_r) in enumerate(zip(left_poses, right_poses))
        if pose_l is not None and pose_r is not None
    ]

    if not shared:
        raise ValueError("No sample has a board pose in both cameras")

    rotation, translation = compute_initial_extrinsics(
        [left_poses[i] for i in shared],
        [right_poses[i] for i in shared],
    )

    object_points = board_object_points(board, square_size).astype(np.float64)
    obs_left = [left_points[i] for i in shared]
    obs_right = [right_points[i] for i in shared]

    initial_params = np.hstack(
        [cv2.Rodrigues(rotation)[0].ravel(), translation]
        + [
            np.hstack([np.ravel(left_poses[i].rvec), np.ravel(left_poses[i].tvec)])
            for i in shared
        ]
    ).astype(np.float64)

    sparsity = _get_sparsity_pattern(len(shared), len(object_points))

    result = least_squares(
        _stereo_reprojection_error,
        initial_params,
        jac_sparsity=sparsity,
        verbose=0,
        x_scale="jac",
        loss="linear",
        ftol=1e-8,
        method="trf",
        args=(object_points, obs_left, obs_right, left, right),
    )

    final_error = result.fun.reshape(-1, 2)
    rmse = float(np.sqrt(np.mean(np.sum(final_error**2, axis=1))))

    return StereoExtrinsics(
        rotation=cv2.Rodrigues(result.x[0:3].reshape(3, 1))[0],
        translation=result.x[3:6].copy(),
        error=round(rmse, 4),
    )
