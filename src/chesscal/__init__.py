# chesscal - Camera calibration sessions from chessboard images

__version__ = "0.1.0"

# Core types
from chesscal.types import (
    BoardGeometry,
    BoardPose,
    CameraIntrinsics,
    CameraModel,
    CameraRole,
    CandidateImage,
    CaptureRequest,
    DetectionResult,
    SessionResult,
    StereoExtrinsics,
    StereoPair,
)

# Errors
from chesscal.errors import (
    CalibrationSessionError,
    InputDirectoryNotFound,
    InsufficientSamples,
    InvalidArguments,
    NoImagesFound,
    PairCountMismatch,
    StereoPairMismatch,
    UnknownCameraModel,
)

# Configuration
from chesscal.config import (
    load_capture_request,
    save_capture_request,
    read_camera_params,
    write_camera_params,
    read_chessboard_data,
    write_chessboard_data,
)

# Discovery
from chesscal.discovery import (
    resolve_images,
    match_stereo_pairs,
)

# Session
from chesscal.session import (
    MIN_SAMPLE_COUNT,
    run_session,
)

__all__ = [
    # Core types
    "BoardGeometry",
    "BoardPose",
    "CameraIntrinsics",
    "CameraModel",
    "CameraRole",
    "CandidateImage",
    "CaptureRequest",
    "DetectionResult",
    "SessionResult",
    "StereoExtrinsics",
    "StereoPair",
    # Errors
    "CalibrationSessionError",
    "InputDirectoryNotFound",
    "InsufficientSamples",
    "InvalidArguments",
    "NoImagesFound",
    "PairCountMismatch",
    "StereoPairMismatch",
    "UnknownCameraModel",
    # Configuration
    "load_capture_request",
    "save_capture_request",
    "read_camera_params",
    "write_camera_params",
    "read_chessboard_data",
    "write_chessboard_data",
    # Discovery
    "resolve_images",
    "match_stereo_pairs",
    # Session
    "MIN_SAMPLE_COUNT",
    "run_session",
]
