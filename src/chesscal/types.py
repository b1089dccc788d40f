"""
Core data structures for chesscal.

All types are frozen dataclasses for immutability.
Logic is in separate pure functions - these are data containers only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import numpy as np

from .errors import UnknownCameraModel


# ============================================================================
# Board and Camera Model
# ============================================================================


@dataclass(frozen=True, slots=True)
class BoardGeometry:
    """
    Inner-corner counts of a chessboard pattern.

    A board with 10x7 squares has 9x6 inner corners.
    """

    width: int = 9
    height: int = 6

    @property
    def corner_count(self) -> int:
        return self.width * self.height

    @property
    def pattern_size(self) -> tuple[int, int]:
        """(columns, rows) as OpenCV expects it."""
        return (self.width, self.height)


class CameraModel(Enum):
    """Projection model family used for calibration."""

    KANNALA_BRANDT = "kannala-brandt"
    MEI = "mei"
    PINHOLE = "pinhole"

    @classmethod
    def from_name(cls, name: str) -> CameraModel:
        for model in cls:
            if model.value == name:
                return model
        raise UnknownCameraModel(f"Unknown camera model: {name}")

    @property
    def display_name(self) -> str:
        return {
            CameraModel.KANNALA_BRANDT: "Kannala-Brandt",
            CameraModel.MEI: "Mei",
            CameraModel.PINHOLE: "Pinhole",
        }[self]


# ============================================================================
# Capture Request
# ============================================================================


@dataclass(frozen=True, slots=True)
class CameraRole:
    """
    One camera taking part in a session.

    role is "camera" for a single camera, "left" / "right" for a stereo rig.
    """

    role: str
    camera_name: str
    prefix: str = ""


MONO_CAMERAS = (CameraRole(role="camera", camera_name="camera", prefix="image"),)

STEREO_CAMERAS = (
    CameraRole(role="left", camera_name="camera_left", prefix="left"),
    CameraRole(role="right", camera_name="camera_right", prefix="right"),
)


@dataclass(frozen=True, slots=True)
class CaptureRequest:
    """
    Everything a calibration session needs to know.

    Built once from the command line (and optional TOML file), then passed
    explicitly through the pipeline.
    """

    board: BoardGeometry = field(default_factory=BoardGeometry)
    square_size: float = 120.0  # mm
    input_dir: Path = Path("images")
    output_dir: Path = Path(".")
    extension: str = ".bmp"
    camera_model: CameraModel = CameraModel.MEI
    cameras: tuple[CameraRole, ...] = MONO_CAMERAS
    use_alternate_detector: bool = False
    view_results: bool = False
    verbose: bool = False

    @property
    def is_stereo(self) -> bool:
        return len(self.cameras) == 2


# ============================================================================
# Images and Detections
# ============================================================================


@dataclass(frozen=True, slots=True)
class CandidateImage:
    """A resolved image path and the camera role it belongs to."""

    path: Path
    role: str


@dataclass(frozen=True, slots=True)
class StereoPair:
    """Left/right images assumed to be captured at the same instant."""

    left: Path
    right: Path
    matched: bool


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """
    Chessboard detection outcome for one image.

    corners is (n, 2) float32 in row-major board order when found.
    sketch is a BGR copy of the image with the detected corners drawn.
    """

    found: bool
    corners: np.ndarray | None = None
    sketch: np.ndarray | None = None


# ============================================================================
# Calibration Outcome
# ============================================================================


@dataclass(frozen=True, slots=True)
class CameraIntrinsics:
    """
    Intrinsic parameters for a camera.

    distortion layout depends on the model:
    pinhole (k1, k2, p1, p2, k3), kannala-brandt (k1, k2, k3, k4),
    mei (k1, k2, p1, p2) with the mirror parameter in xi.
    """

    camera_name: str
    model: CameraModel
    resolution: tuple[int, int]  # (width, height)
    matrix: np.ndarray  # 3x3 camera matrix
    distortion: np.ndarray
    error: float  # RMSE of reprojection
    sample_count: int  # Number of boards used in calibration
    xi: float | None = None  # Mei only


@dataclass(frozen=True, slots=True)
class BoardPose:
    """Pose of the board in a camera frame for one sample."""

    rvec: np.ndarray  # (3,) Rodrigues rotation
    tvec: np.ndarray  # (3,) translation


@dataclass(frozen=True, slots=True)
class StereoExtrinsics:
    """
    Transform taking points from the left camera frame to the right one.

    x_right = rotation @ x_left + translation
    """

    rotation: np.ndarray  # 3x3 rotation matrix
    translation: np.ndarray  # (3,) translation vector
    error: float  # RMSE over both cameras


# ============================================================================
# Session Result
# ============================================================================


@dataclass(frozen=True, slots=True)
class SessionResult:
    """Summary of a completed calibration session."""

    sample_count: int
    found_flags: list[tuple[bool, ...]]  # per candidate, one flag per camera
    outputs: list[Path]
    elapsed: float  # seconds spent in calibrate()
