"""
Calibration session pipeline.

One pipeline for one or two cameras:

    resolve images -> pair left/right (stereo) -> detect chessboards
    -> sufficiency gate -> calibrate + persist -> optional review

Every stage completes before the next begins; any failure ends the session.
Collaborators (detector, calibration factory, image loader, viewer) are
passed in so the control flow can be exercised without real images.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Sequence

import cv2
import numpy as np

from .calibration.chessboard import detect_chessboard
from .calibration.engine import create_calibration
from .config import camera_params_filename, chessboard_data_filename
from .discovery import check_input_dir, match_stereo_pairs, resolve_images
from .errors import InsufficientSamples
from .review import Viewer, preview_detection, review_results, window_names
from .types import (
    BoardGeometry,
    CandidateImage,
    CaptureRequest,
    DetectionResult,
    SessionResult,
)

logger = logging.getLogger(__name__)

MIN_SAMPLE_COUNT = 10

Detector = Callable[[np.ndarray, BoardGeometry, bool], DetectionResult]
Loader = Callable[[Path], np.ndarray]


# ============================================================================
# Image Loading
# ============================================================================


def load_image(path: Path) -> np.ndarray:
    """
    Read an image unchanged (keeps bit depth and channel count).

    Raises:
        OSError: If the file cannot be decoded
    """
    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise OSError(f"Cannot read image {path}")
    return image


def frame_size(image: np.ndarray) -> tuple[int, int]:
    """(width, height) of an image array."""
    return (image.shape[1], image.shape[0])


# ============================================================================
# Pipeline Stages
# ============================================================================


def resolve_candidates(request: CaptureRequest) -> list[tuple[CandidateImage, ...]]:
    """
    Resolve the images of every camera into candidates.

    A candidate holds one image per camera, tagged with the camera role. In stereo mode the two image lists
    are paired by filename; any unmatched pair fails the session.
    """
    check_input_dir(request.input_dir)

    image_sets = [
        resolve_images(request.input_dir, camera.prefix, request.extension, request.verbose)
        for camera in request.cameras
    ]

    if request.is_stereo:
        left, right = request.cameras
        pairs = match_stereo_pairs(
            image_sets[0], image_sets[1], left.prefix, right.prefix, request.verbose
        )
        candidates = [
            (CandidateImage(pair.left, left.role), CandidateImage(pair.right, right.role))
            for pair in pairs
        ]
    else:
        role = request.cameras[0].role
        candidates = [(CandidateImage(path, role),) for path in image_sets[0]]

    if request.verbose:
        logger.info("# images: %d", len(candidates))

    return candidates


def detect_samples(
    candidates: Sequence[tuple[CandidateImage, ...]],
    request: CaptureRequest,
    calibration,
    detector: Detector = detect_chessboard,
    loader: Loader = load_image,
    viewer: Viewer | None = None,
) -> list[tuple[bool, ...]]:
    """
    Run chessboard detection on every candidate and accumulate samples.

    A sample is added only when the board is found by every camera of the
    candidate. Misses are final; nothing is retried.

    Returns:
        Found flags per candidate, one per camera
    """
    windows = window_names(len(request.cameras))
    found_flags = []

    for number, images in enumerate(candidates, start=1):
        results = [
            detector(loader(image.path), request.board, request.use_alternate_detector)
            for image in images
        ]
        flags = tuple(result.found for result in results)

        if all(flags):
            if request.verbose:
                logger.info("Detected chessboard in image %d", number)

            calibration.add_sample(*(result.corners for result in results))

            if viewer is not None and all(r.sketch is not None for r in results):
                preview_detection(viewer, [result.sketch for result in results], windows)
        elif request.verbose:
            logger.info("Did not detect chessboard in image %d", number)

        found_flags.append(flags)

    return found_flags


def check_sufficiency(sample_count: int) -> None:
    """
    Raises:
        InsufficientSamples: If fewer than MIN_SAMPLE_COUNT samples were collected
    """
    if sample_count < MIN_SAMPLE_COUNT:
        raise InsufficientSamples(
            f"Insufficient number of detected chessboards ({sample_count}, need {MIN_SAMPLE_COUNT})."
        )


def run_calibration(calibration, request: CaptureRequest) -> tuple[list[Path], float]:
    """
    Calibrate once and write the results.

    Mono writes <name>_camera_calib.yaml and <name>_chessboard_data.dat into
    the output directory; stereo lets the calibration object write its files
    into the output directory.

    Returns:
        (written paths, seconds spent calibrating)
    """
    if request.verbose:
        logger.info("Calibrating...")

    start = time.perf_counter()
    calibration.calibrate()
    elapsed = time.perf_counter() - start

    if request.verbose:
        logger.info("Calibration took a total time of %.3f sec.", elapsed)

    if request.is_stereo:
        outputs = calibration.write_params(request.output_dir)

        if request.verbose:
            logger.info("Wrote calibration files to %s", request.output_dir.resolve())
    else:
        camera_name = request.cameras[0].camera_name
        request.output_dir.mkdir(parents=True, exist_ok=True)

        params_path = request.output_dir / camera_params_filename(camera_name)
        data_path = request.output_dir / chessboard_data_filename(camera_name)
        calibration.write_params(params_path)
        calibration.write_raw_samples(data_path)
        outputs = [params_path, data_path]

        if request.verbose:
            logger.info("Wrote calibration file to %s", params_path)

    return outputs, elapsed


# ============================================================================
# Session
# ============================================================================


def run_session(
    request: CaptureRequest,
    detector: Detector = detect_chessboard,
    calibration_factory=create_calibration,
    loader: Loader = load_image,
    viewer: Viewer | None = None,
) -> SessionResult:
    """
    Turn a directory of chessboard images into calibration files.

    Args:
        request: Session configuration
        detector: Chessboard detector
        calibration_factory: Builds the calibration object from
            (request, frame_size)
        loader: Image loader
        viewer: Display backend for live previews and the review stage;
            nothing is displayed when None

    Returns:
        SessionResult

    Raises:
        CalibrationSessionError: On any failed precondition
    """
    logger.info("Camera model: %s", request.camera_model.display_name)

    candidates = resolve_candidates(request)

    size = frame_size(loader(candidates[0][0].path))
    calibration = calibration_factory(request, size)

    found_flags = detect_samples(candidates, request, calibration, detector, loader, viewer)

    check_sufficiency(calibration.sample_count())

    outputs, elapsed = run_calibration(calibration, request)

    if request.view_results and viewer is not None:
        review_results(candidates, found_flags, calibration, viewer, loader)

    return SessionResult(
        sample_count=calibration.sample_count(),
        found_flags=found_flags,
        outputs=outputs,
        elapsed=elapsed,
    )
