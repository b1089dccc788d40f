"""
Chessboard corner detection.

Pure functions - no classes, no state.
"""

from __future__ import annotations

import cv2
import numpy as np

from ..types import BoardGeometry, DetectionResult


# Sub-pixel refinement for the classic detector
SUBPIX_WINDOW = (11, 11)
SUBPIX_CRITERIA = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 30, 0.01)


# ============================================================================
# Board Geometry
# ============================================================================


def board_object_points(board: BoardGeometry, square_size: float) -> np.ndarray:
    """
    Get the 3D positions of the inner corners on the board plane.

    Row-major, matching the order OpenCV reports detected corners in.

    Args:
        board: Inner-corner counts
        square_size: Edge length of one square (output units)

    Returns:
        (n, 3) float32 array with z = 0
    """
    grid = np.zeros((board.corner_count, 3), dtype=np.float32)
    grid[:, :2] = np.mgrid[0:board.width, 0:board.height].T.reshape(-1, 2)
    return grid * np.float32(square_size)


# ============================================================================
# Detection
# ============================================================================


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert a BGR/BGRA/gray image to 8-bit grayscale."""
    if image.ndim == 2:
        gray = image
    elif image.shape[2] == 4:
        gray = cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    else:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

    if gray.dtype != np.uint8:
        gray = cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)

    return gray


def to_bgr(image: np.ndarray) -> np.ndarray:
    """Return a BGR copy of image, suitable for color drawing."""
    if image.ndim == 2:
        return cv2.cvtColor(to_gray(image), cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image.copy()


def detect_chessboard(
    image: np.ndarray,
    board: BoardGeometry,
    use_alternate_backend: bool = False,
) -> DetectionResult:
    """
    Detect the inner corners of a chessboard in a single image.

    The default backend is OpenCV's sector-based detector, which is sub-pixel
    accurate on its own. The alternate backend is the classic detector
    followed by cornerSubPix.

    Args:
        image: Gray or BGR image
        board: Expected inner-corner counts
        use_alternate_backend: Use the classic OpenCV detector

    Returns:
        DetectionResult, with corners and sketch only when found
    """
    gray = to_gray(image)

    if use_alternate_backend:
        found, corners = _find_corners_classic(gray, board)
    else:
        found, corners = _find_corners_sector_based(gray, board)

    if not found or corners is None or len(corners) != board.corner_count:
        return DetectionResult(found=False)

    sketch = to_bgr(image)
    cv2.drawChessboardCorners(sketch, board.pattern_size, corners.reshape(-1, 1, 2), True)

    return DetectionResult(
        found=True,
        corners=corners.reshape(-1, 2).astype(np.float32),
        sketch=sketch,
    )


def _find_corners_sector_based(
    gray: np.ndarray,
    board: BoardGeometry,
) -> tuple[bool, np.ndarray | None]:
    flags = cv2.CALIB_CB_NORMALIZE_IMAGE | cv2.CALIB_CB_ACCURACY
    found, corners = cv2.findChessboardCornersSB(gray, board.pattern_size, flags=flags)
    return bool(found), corners


def _find_corners_classic(
    gray: np.ndarray,
    board: BoardGeometry,
) -> tuple[bool, np.ndarray | None]:
    flags = (
        cv2.CALIB_CB_ADAPTIVE_THRESH
        | cv2.CALIB_CB_NORMALIZE_IMAGE
        | cv2.CALIB_CB_FAST_CHECK
    )
    found, corners = cv2.findChessboardCorners(gray, board.pattern_size, flags=flags)

    if not found:
        return False, None

    corners = cv2.cornerSubPix(gray, corners, SUBPIX_WINDOW, (-1, -1), SUBPIX_CRITERIA)
    return True, corners
