"""
Image discovery for calibration sessions.

Pure functions - resolve candidate images in a directory and pair up
left/right captures of a stereo rig by filename.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import (
    InputDirectoryNotFound,
    NoImagesFound,
    PairCountMismatch,
    StereoPairMismatch,
)
from .types import StereoPair

logger = logging.getLogger(__name__)


# ============================================================================
# Image Set Resolver
# ============================================================================


def check_input_dir(input_dir: Path) -> None:
    """Raise InputDirectoryNotFound unless input_dir is an existing directory."""
    if not input_dir.is_dir():
        raise InputDirectoryNotFound(f"Cannot find input directory {input_dir}.")


def is_candidate_name(filename: str, prefix: str, extension: str) -> bool:
    """
    Check a bare filename against prefix and extension.

    Both are exact, case-sensitive comparisons at fixed offsets. Prefix and
    extension must not overlap, so names shorter than both together never match.
    """
    if len(filename) < len(prefix) + len(extension):
        return False
    if prefix and not filename.startswith(prefix):
        return False
    return filename.endswith(extension)


def resolve_images(
    input_dir: Path,
    prefix: str,
    extension: str,
    verbose: bool = False,
) -> list[Path]:
    """
    List the regular files in input_dir matching prefix and extension.

    Args:
        input_dir: Directory to scan (not recursive)
        prefix: Required filename prefix, empty to accept any
        extension: Required filename ending, e.g. ".bmp"
        verbose: Log one line per accepted file

    Returns:
        Matching paths sorted by full path

    Raises:
        InputDirectoryNotFound: If input_dir is not a directory
        NoImagesFound: If nothing matches
    """
    check_input_dir(input_dir)

    images = sorted(
        entry
        for entry in input_dir.iterdir()
        if entry.is_file() and is_candidate_name(entry.name, prefix, extension)
    )

    if verbose:
        for path in images:
            logger.info("Adding %s", path)

    if not images:
        raise NoImagesFound("No chessboard images found.")

    return images


# ============================================================================
# Pair Matcher
# ============================================================================


def filename_tail(path: Path, prefix: str) -> str:
    """Filename with the first len(prefix) characters removed."""
    return path.name[len(prefix):]


def match_stereo_pairs(
    left_images: list[Path],
    right_images: list[Path],
    prefix_left: str,
    prefix_right: str,
    verbose: bool = False,
) -> list[StereoPair]:
    """
    Pair left and right images by sorted position and check their names.

    Both sides are sorted independently; the pair at index i matches when the
    left filename after prefix_left equals the right filename after
    prefix_right. Every pair is checked before failing.

    Raises:
        PairCountMismatch: If the sides differ in length
        StereoPairMismatch: If any pair fails the name check
    """
    if len(left_images) != len(right_images):
        raise PairCountMismatch(
            "# chessboard images from left and right cameras do not match."
        )

    pairs = []
    for left, right in zip(sorted(left_images), sorted(right_images)):
        matched = filename_tail(left, prefix_left) == filename_tail(right, prefix_right)
        if not matched and verbose:
            logger.error("Filenames do not match: %s %s", left, right)
        pairs.append(StereoPair(left=left, right=right, matched=matched))

    mismatched = sum(1 for pair in pairs if not pair.matched)
    if mismatched:
        raise StereoPairMismatch(
            f"{mismatched} of {len(pairs)} stereo image pairs have mismatched filenames."
        )

    return pairs
