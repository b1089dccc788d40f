#!/usr/bin/env python3
"""
chesscal CLI - camera calibration from chessboard images.

Usage:
    chesscal intrinsic [options]  - Calibrate a single camera
    chesscal stereo [options]     - Calibrate a stereo camera pair
    chesscal --help               - Show this help

Run 'chesscal intrinsic --help' or 'chesscal stereo --help' for options.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import rtoml

from .config import load_request_data, merge_request_data, parse_capture_request
from .errors import CalibrationSessionError, InvalidArguments
from .log import setup_logging
from .review import OpenCVViewer
from .session import run_session
from .types import CaptureRequest

logger = logging.getLogger(__name__)


class ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises InvalidArguments instead of exiting."""

    def error(self, message):
        raise InvalidArguments(message)


def build_parser(stereo: bool) -> ArgumentParser:
    """
    Build the option parser for the intrinsic or stereo driver.

    Options default to SUPPRESS so only explicitly given ones reach the
    namespace and can override a --config file. -h is the board height;
    help is --help only.
    """
    parser = ArgumentParser(
        prog="chesscal stereo" if stereo else "chesscal intrinsic",
        description="Stereo Calibration" if stereo else "Intrinsic Calibration",
        add_help=False,
        argument_default=argparse.SUPPRESS,
    )
    flag = {"action": "store_true"}

    parser.add_argument("--help", help="Print help message", **flag)
    parser.add_argument("--config", type=Path, help="TOML file with session options")
    parser.add_argument("-w", "--width", type=int,
                        help="Number of inner corners on the chessboard pattern in x direction (default: 9)")
    parser.add_argument("-h", "--height", type=int,
                        help="Number of inner corners on the chessboard pattern in y direction (default: 6)")
    parser.add_argument("-s", "--size", type=float, help="Size of one square in mm (default: 120.0)")
    parser.add_argument("-i", "--input", help="Input directory containing chessboard images (default: images)")

    if stereo:
        parser.add_argument("-o", "--output", help="Output directory for calibration data (default: .)")
        parser.add_argument("--prefix-l", help="Prefix of images from left camera (default: left)")
        parser.add_argument("--prefix-r", help="Prefix of images from right camera (default: right)")
    else:
        parser.add_argument("-p", "--prefix", help="Prefix of images (default: image)")

    parser.add_argument("-e", "--file-extension", help="File extension of images (default: .bmp)")
    parser.add_argument("--camera-model",
                        help="Camera model: kannala-brandt | mei | pinhole (default: mei)")

    if stereo:
        parser.add_argument("--camera-name-l", help="Name of left camera (default: camera_left)")
        parser.add_argument("--camera-name-r", help="Name of right camera (default: camera_right)")
    else:
        parser.add_argument("--camera-name", help="Name of camera (default: camera)")

    parser.add_argument("--opencv", help="Use the classic OpenCV corner detector", **flag)
    parser.add_argument("--view-results", help="View results", **flag)
    parser.add_argument("-v", "--verbose", help="Verbose output", **flag)

    return parser


def args_to_request_data(args: dict, stereo: bool) -> dict:
    """Translate parsed options into the TOML layout used by config.py."""
    data = {}

    board = {
        key: args[name]
        for name, key in (("width", "width"), ("height", "height"), ("size", "square_size"))
        if name in args
    }
    if board:
        data["board"] = board

    for name, key in (
        ("input", "input"),
        ("output", "output"),
        ("file_extension", "extension"),
        ("camera_model", "camera_model"),
        ("opencv", "opencv"),
        ("view_results", "view_results"),
        ("verbose", "verbose"),
    ):
        if name in args:
            data[key] = args[name]

    if stereo:
        camera_options = [("prefix_l", "camera_name_l"), ("prefix_r", "camera_name_r")]
    else:
        camera_options = [("prefix", "camera_name")]

    cameras = []
    for prefix_name, camera_name in camera_options:
        camera = {}
        if prefix_name in args:
            camera["prefix"] = args[prefix_name]
        if camera_name in args:
            camera["name"] = args[camera_name]
        cameras.append(camera)

    if any(cameras):
        data["cameras"] = cameras

    return data


def build_request(args: dict, stereo: bool) -> CaptureRequest:
    """
    Combine an optional --config file with command-line options.

    Raises:
        InvalidArguments: If the config file is missing or not valid TOML
        UnknownCameraModel: If the camera model name is not recognized
    """
    data = {}
    config_path = args.get("config")

    if config_path is not None:
        if not config_path.is_file():
            raise InvalidArguments(f"Cannot find config file {config_path}")
        try:
            data = load_request_data(config_path)
        except rtoml.TomlParsingError as e:
            raise InvalidArguments(f"Cannot parse config file {config_path}: {e}") from e

    data = merge_request_data(data, args_to_request_data(args, stereo))
    return parse_capture_request(data, stereo=stereo)


def run_driver(argv: list[str], stereo: bool) -> int:
    """Parse options, run one calibration session and return the exit code."""
    parser = build_parser(stereo)

    try:
        args = vars(parser.parse_args(argv))
    except InvalidArguments as e:
        setup_logging()
        logger.error("%s", e)
        parser.print_usage(sys.stderr)
        return e.exit_code

    if args.get("help"):
        parser.print_help()
        return 0

    setup_logging()

    try:
        request = build_request(args, stereo)
        viewer = OpenCVViewer() if request.view_results else None
        run_session(request, viewer=viewer)
    except CalibrationSessionError as e:
        logger.error("%s", e)
        return e.exit_code

    return 0


def intrinsic_main(argv: list[str] | None = None) -> int:
    return run_driver(sys.argv[1:] if argv is None else argv, stereo=False)


def stereo_main(argv: list[str] | None = None) -> int:
    return run_driver(sys.argv[1:] if argv is None else argv, stereo=True)


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv

    if not argv or argv[0] in ("-h", "--help"):
        print(__doc__)
        return 0

    command, rest = argv[0], argv[1:]

    if command == "intrinsic":
        return intrinsic_main(rest)

    elif command == "stereo":
        return stereo_main(rest)

    else:
        print(f"Unknown command: {command}")
        print("Run 'chesscal --help' for usage")
        return InvalidArguments.exit_code


if __name__ == "__main__":
    sys.exit(main())
