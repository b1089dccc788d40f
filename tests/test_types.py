"""
Tests for chesscal.types dataclasses.
"""

from pathlib import Path

import numpy as np
import pytest

from chesscal.errors import UnknownCameraModel
from chesscal.types import (
    MONO_CAMERAS,
    STEREO_CAMERAS,
    BoardGeometry,
    CameraIntrinsics,
    CameraModel,
    CaptureRequest,
    StereoPair,
)


class TestBoardGeometry:
    def test_defaults(self):
        board = BoardGeometry()
        assert board.width == 9
        assert board.height == 6
        assert board.corner_count == 54
        assert board.pattern_size == (9, 6)

    def test_frozen(self):
        board = BoardGeometry()
        with pytest.raises(AttributeError):
            board.width = 7


class TestCameraModel:
    @pytest.mark.parametrize("name,model,display", [
        ("kannala-brandt", CameraModel.KANNALA_BRANDT, "Kannala-Brandt"),
        ("mei", CameraModel.MEI, "Mei"),
        ("pinhole", CameraModel.PINHOLE, "Pinhole"),
    ])
    def test_from_name(self, name, model, display):
        assert CameraModel.from_name(name) is model
        assert model.display_name == display

    def test_unknown_name(self):
        with pytest.raises(UnknownCameraModel, match="fisheye"):
            CameraModel.from_name("fisheye")

    def test_names_are_case_sensitive(self):
        with pytest.raises(UnknownCameraModel):
            CameraModel.from_name("Pinhole")


class TestCaptureRequest:
    def test_defaults_match_mono_driver(self):
        request = CaptureRequest()
        assert request.board == BoardGeometry(9, 6)
        assert request.square_size == 120.0
        assert request.input_dir == Path("images")
        assert request.output_dir == Path(".")
        assert request.extension == ".bmp"
        assert request.camera_model is CameraModel.MEI
        assert request.cameras == MONO_CAMERAS
        assert request.cameras[0].prefix == "image"
        assert request.cameras[0].camera_name == "camera"
        assert request.is_stereo is False

    def test_stereo(self):
        request = CaptureRequest(cameras=STEREO_CAMERAS)
        assert request.is_stereo is True
        assert [c.prefix for c in request.cameras] == ["left", "right"]
        assert [c.camera_name for c in request.cameras] == ["camera_left", "camera_right"]

    def test_frozen(self):
        request = CaptureRequest()
        with pytest.raises(AttributeError):
            request.verbose = True


class TestOutcomeTypes:
    def test_intrinsics_xi_defaults_to_none(self, sample_intrinsics_matrix):
        intrinsics = CameraIntrinsics(
            camera_name="cam",
            model=CameraModel.PINHOLE,
            resolution=(640, 480),
            matrix=sample_intrinsics_matrix,
            distortion=np.zeros(5),
            error=0.1,
            sample_count=12,
        )
        assert intrinsics.xi is None
        assert intrinsics.resolution == (640, 480)

    def test_stereo_pair(self):
        pair = StereoPair(left=Path("left_1.bmp"), right=Path("right_1.bmp"), matched=True)
        assert pair.matched is True
