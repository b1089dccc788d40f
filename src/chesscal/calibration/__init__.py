"""
Calibration module for chesscal.

Detection and the numerical routines are pure functions - they take
dataclasses and arrays and return dataclasses. The engine classes only hold
the accumulated samples of a session.
"""

from .chessboard import (
    board_object_points,
    detect_chessboard,
)

from .intrinsic import (
    calibrate_intrinsics,
    compute_reprojection_error,
    project_points,
)

from .stereo import (
    compute_initial_extrinsics,
    stereo_calibrate_pair,
)

from .engine import (
    CameraCalibration,
    StereoCameraCalibration,
    create_calibration,
)

__all__ = [
    # Chessboard
    "board_object_points",
    "detect_chessboard",
    # Intrinsic
    "calibrate_intrinsics",
    "compute_reprojection_error",
    "project_points",
    # Stereo
    "compute_initial_extrinsics",
    "stereo_calibrate_pair",
    # Engine
    "CameraCalibration",
    "StereoCameraCalibration",
    "create_calibration",
]
