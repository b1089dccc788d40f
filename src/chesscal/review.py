"""
Visual review of detections and calibration results.

Display goes through a small Viewer protocol so the pipeline stays testable
without a window system. OpenCVViewer is the HighGUI implementation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Protocol, Sequence

import cv2
import numpy as np

from .types import CandidateImage


PREVIEW_DELAY_MS = 50

MONO_WINDOWS = ("Image",)
STEREO_WINDOWS = ("Image - Left", "Image - Right")


class Viewer(Protocol):
    def show(self, window: str, image: np.ndarray) -> None: ...

    def wait(self, delay_ms: int) -> int: ...

    def close(self, window: str) -> None: ...


class OpenCVViewer:
    """Viewer backed by cv2.imshow / cv2.waitKey."""

    def show(self, window: str, image: np.ndarray) -> None:
        cv2.imshow(window, image)

    def wait(self, delay_ms: int) -> int:
        """Wait for a key press; delay_ms == 0 blocks until one arrives."""
        return cv2.waitKey(delay_ms)

    def close(self, window: str) -> None:
        cv2.destroyWindow(window)


def window_names(camera_count: int) -> tuple[str, ...]:
    return STEREO_WINDOWS if camera_count == 2 else MONO_WINDOWS


def preview_detection(
    viewer: Viewer,
    sketches: Sequence[np.ndarray],
    windows: Sequence[str],
) -> None:
    """Flash detected-corner sketches, then dismiss them."""
    for window, sketch in zip(windows, sketches):
        viewer.show(window, sketch)

    viewer.wait(PREVIEW_DELAY_MS)

    for window in windows:
        viewer.close(window)


def annotate_filename(image: np.ndarray, path: Path) -> np.ndarray:
    """Write the source path in the top-left corner of image (in place)."""
    cv2.putText(
        image,
        str(path),
        (10, 20),
        cv2.FONT_HERSHEY_COMPLEX,
        0.5,
        (255, 255, 255),
        1,
        cv2.LINE_AA,
    )
    return image


def review_results(
    candidates: Sequence[tuple[CandidateImage, ...]],
    found_flags: Sequence[tuple[bool, ...]],
    calibration,
    viewer: Viewer,
    loader: Callable[[Path], np.ndarray],
) -> int:
    """
    Show observed vs. reprojected corners for every fully detected candidate.

    Images are re-loaded from disk, drawn by the calibration object, labelled
    with their filename and shown one candidate at a time. Each candidate
    waits for a key press before the next one.

    Args:
        candidates: One tuple of images per candidate (one per camera)
        found_flags: Detection flags per candidate, one per camera
        calibration: Calibrated CameraCalibration or StereoCameraCalibration
        viewer: Display backend
        loader: Image loader

    Returns:
        Number of candidates shown
    """
    selected = [
        images for images, flags in zip(candidates, found_flags) if all(flags)
    ]
    if not selected:
        return 0

    # One image stream per camera
    streams = [
        [loader(images[camera].path) for images in selected]
        for camera in range(len(selected[0]))
    ]

    drawn = calibration.draw_results(*streams)
    if len(streams) == 1:
        drawn = (drawn,)

    windows = window_names(len(streams))
    for index, images in enumerate(selected):
        for window, stream, image in zip(windows, drawn, images):
            viewer.show(window, annotate_filename(stream[index], image.path))
        viewer.wait(0)

    return len(selected)
