"""
Configuration loading/saving.

Pure functions operating on dataclasses.
- TOML for capture requests (session configuration)
- OpenCV YAML for calibrated camera parameters
- Raw binary file for accumulated chessboard correspondences
"""

from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np
import rtoml

from .errors import InvalidArguments
from .types import (
    MONO_CAMERAS,
    STEREO_CAMERAS,
    BoardGeometry,
    CameraIntrinsics,
    CameraModel,
    CameraRole,
    CaptureRequest,
    StereoExtrinsics,
)


# ============================================================================
# TOML Capture Request
# ============================================================================


def parse_capture_request(data: dict, stereo: bool = False) -> CaptureRequest:
    """
    Build a CaptureRequest from a plain dict (TOML layout).

    Missing keys fall back to the defaults of the mono or stereo driver.
    The camera model name is validated here, before anything touches disk.

    Raises:
        UnknownCameraModel: If camera_model is not a known model name
        InvalidArguments: If a board setting is not a number
    """
    defaults = STEREO_CAMERAS if stereo else MONO_CAMERAS
    board_data = data.get("board", {})
    cameras_data = list(data.get("cameras", []))
    cameras_data += [{}] * (len(defaults) - len(cameras_data))

    cameras = tuple(
        CameraRole(
            role=default.role,
            camera_name=str(cam_data.get("name", default.camera_name)),
            prefix=str(cam_data.get("prefix", default.prefix)),
        )
        for default, cam_data in zip(defaults, cameras_data)
    )

    base = CaptureRequest()

    return CaptureRequest(
        board=BoardGeometry(
            width=_board_value(board_data, "width", base.board.width, int),
            height=_board_value(board_data, "height", base.board.height, int),
        ),
        square_size=_board_value(board_data, "square_size", base.square_size, float),
        input_dir=Path(data.get("input", base.input_dir)),
        output_dir=Path(data.get("output", base.output_dir)),
        extension=str(data.get("extension", base.extension)),
        camera_model=CameraModel.from_name(data.get("camera_model", base.camera_model.value)),
        cameras=cameras,
        use_alternate_detector=bool(data.get("opencv", False)),
        view_results=bool(data.get("view_results", False)),
        verbose=bool(data.get("verbose", False)),
    )


def _board_value(board_data: dict, key: str, default, kind):
    value = board_data.get(key, default)
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise InvalidArguments(f"Invalid board {key}: {value!r}") from e


def merge_request_data(base: dict, overrides: dict) -> dict:
    """
    Overlay overrides onto base, recursing into tables and camera lists.

    Used to let explicit command-line options win over a TOML file.
    """
    merged = dict(base)

    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_request_data(merged[key], value)
        elif key == "cameras" and isinstance(merged.get(key), list):
            cameras = [dict(cam) for cam in merged[key]]
            for i, cam in enumerate(value):
                if i < len(cameras):
                    cameras[i].update(cam)
                else:
                    cameras.append(dict(cam))
            merged[key] = cameras
        else:
            merged[key] = value

    return merged


def load_request_data(path: Path) -> dict:
    """Load the raw TOML table of a capture request file."""
    return rtoml.load(path)


def load_capture_request(path: Path, stereo: bool = False) -> CaptureRequest:
    """
    Load a capture request from a TOML file.

    Args:
        path: Path to the TOML file
        stereo: Apply stereo driver defaults for missing keys

    Returns:
        CaptureRequest dataclass
    """
    return parse_capture_request(load_request_data(path), stereo=stereo)


def capture_request_to_dict(request: CaptureRequest) -> dict:
    return {
        "board": {
            "width": request.board.width,
            "height": request.board.height,
            "square_size": request.square_size,
        },
        "input": str(request.input_dir),
        "output": str(request.output_dir),
        "extension": request.extension,
        "camera_model": request.camera_model.value,
        "cameras": [
            {"name": cam.camera_name, "prefix": cam.prefix} for cam in request.cameras
        ],
        "opencv": request.use_alternate_detector,
        "view_results": request.view_results,
        "verbose": request.verbose,
    }


def save_capture_request(request: CaptureRequest, path: Path) -> None:
    """
    Save a capture request to a TOML file.

    Args:
        request: CaptureRequest dataclass
        path: Path to save the TOML file
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        rtoml.dump(capture_request_to_dict(request), f)


# ============================================================================
# Camera Parameters (OpenCV YAML)
# ============================================================================


def camera_params_filename(camera_name: str) -> str:
    return f"{camera_name}_camera_calib.yaml"


def chessboard_data_filename(camera_name: str) -> str:
    return f"{camera_name}_chessboard_data.dat"


def write_camera_params(path: Path, intrinsics: CameraIntrinsics) -> None:
    """
    Write calibrated intrinsics to an OpenCV YAML file.

    Args:
        path: Destination file
        intrinsics: CameraIntrinsics dataclass
    """
    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_WRITE)
    if not fs.isOpened():
        raise OSError(f"Cannot open {path} for writing")

    fs.write("model_type", intrinsics.model.name)
    fs.write("camera_name", intrinsics.camera_name)
    fs.write("image_width", int(intrinsics.resolution[0]))
    fs.write("image_height", int(intrinsics.resolution[1]))
    fs.write("camera_matrix", np.asarray(intrinsics.matrix, dtype=np.float64))
    fs.write(
        "distortion_coefficients",
        np.asarray(intrinsics.distortion, dtype=np.float64).reshape(1, -1),
    )
    if intrinsics.xi is not None:
        fs.write("xi", float(intrinsics.xi))
    fs.write("reprojection_error", float(intrinsics.error))
    fs.write("sample_count", int(intrinsics.sample_count))
    fs.release()


def read_camera_params(path: Path) -> CameraIntrinsics:
    """
    Read intrinsics written by write_camera_params.

    Raises:
        OSError: If the file cannot be opened
    """
    if not Path(path).is_file():
        raise OSError(f"Cannot find {path}")

    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
    if not fs.isOpened():
        raise OSError(f"Cannot open {path} for reading")

    xi_node = fs.getNode("xi")

    intrinsics = CameraIntrinsics(
        camera_name=fs.getNode("camera_name").string(),
        model=CameraModel[fs.getNode("model_type").string()],
        resolution=(
            int(fs.getNode("image_width").real()),
            int(fs.getNode("image_height").real()),
        ),
        matrix=fs.getNode("camera_matrix").mat(),
        distortion=fs.getNode("distortion_coefficients").mat().ravel(),
        error=fs.getNode("reprojection_error").real(),
        sample_count=int(fs.getNode("sample_count").real()),
        xi=None if xi_node.empty() else xi_node.real(),
    )
    fs.release()

    return intrinsics


def write_stereo_params(
    directory: Path,
    left: CameraIntrinsics,
    right: CameraIntrinsics,
    extrinsics: StereoExtrinsics,
) -> list[Path]:
    """
    Write both cameras' intrinsics and the left-to-right transform.

    Args:
        directory: Output directory, created if missing
        left: Left camera intrinsics
        right: Right camera intrinsics
        extrinsics: Transform from the left to the right camera frame

    Returns:
        Paths of the written files
    """
    directory.mkdir(parents=True, exist_ok=True)

    left_path = directory / camera_params_filename(left.camera_name)
    right_path = directory / camera_params_filename(right.camera_name)
    extrinsics_path = directory / "extrinsics.yaml"

    write_camera_params(left_path, left)
    write_camera_params(right_path, right)

    fs = cv2.FileStorage(str(extrinsics_path), cv2.FILE_STORAGE_WRITE)
    if not fs.isOpened():
        raise OSError(f"Cannot open {extrinsics_path} for writing")

    rotation = np.asarray(extrinsics.rotation, dtype=np.float64)
    fs.write("left_camera", left.camera_name)
    fs.write("right_camera", right.camera_name)
    fs.write("rotation", rotation)
    fs.write("rodrigues", cv2.Rodrigues(rotation)[0])
    fs.write(
        "translation",
        np.asarray(extrinsics.translation, dtype=np.float64).reshape(3, 1),
    )
    fs.write("reprojection_error", float(extrinsics.error))
    fs.release()

    return [left_path, right_path, extrinsics_path]


def read_stereo_extrinsics(path: Path) -> StereoExtrinsics:
    """Read the transform written by write_stereo_params."""
    if not Path(path).is_file():
        raise OSError(f"Cannot find {path}")

    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
    if not fs.isOpened():
        raise OSError(f"Cannot open {path} for reading")

    extrinsics = StereoExtrinsics(
        rotation=fs.getNode("rotation").mat(),
        translation=fs.getNode("translation").mat().ravel(),
        error=fs.getNode("reprojection_error").real(),
    )
    fs.release()

    return extrinsics


# ============================================================================
# Raw Chessboard Data
# ============================================================================


def write_chessboard_data(
    path: Path,
    image_points: list[np.ndarray],
    object_points: np.ndarray,
) -> None:
    """
    Write accumulated correspondences to a raw binary file.

    Layout: int32 (sample_count, corner_count), then float64 image points
    (samples, n, 2), then float64 object points (samples, n, 3).

    Args:
        path: Destination file
        image_points: One (n, 2) corner array per sample
        object_points: (n, 3) board points shared by every sample
    """
    n_samples = len(image_points)
    n_corners = len(object_points) if n_samples else 0

    image = np.asarray(image_points, dtype=np.float64).reshape(n_samples, n_corners, 2)
    obj = np.broadcast_to(
        np.asarray(object_points, dtype=np.float64).reshape(-1, 3)[:n_corners],
        (n_samples, n_corners, 3),
    )

    with open(path, "wb") as f:
        np.array([n_samples, n_corners], dtype=np.int32).tofile(f)
        np.ascontiguousarray(image).tofile(f)
        np.ascontiguousarray(obj).tofile(f)


def read_chessboard_data(path: Path) -> tuple[np.ndarray, np.ndarray]:
    """
    Read a file written by write_chessboard_data.

    Returns:
        (image_points (samples, n, 2), object_points (samples, n, 3))
    """
    with open(path, "rb") as f:
        n_samples, n_corners = (int(v) for v in np.fromfile(f, dtype=np.int32, count=2))
        image = np.fromfile(f, dtype=np.float64, count=n_samples * n_corners * 2)
        obj = np.fromfile(f, dtype=np.float64, count=n_samples * n_corners * 3)

    return (
        image.reshape(n_samples, n_corners, 2),
        obj.reshape(n_samples, n_corners, 3),
    )
