"""
Tests for chesscal.calibration.stereo.
"""

import cv2
import numpy as np
import pytest

from conftest import project_views, synthetic_poses

from chesscal.calibration.chessboard import board_object_points
from chesscal.calibration.intrinsic import calibrate_intrinsics
from chesscal.calibration.stereo import (
    average_rotation,
    compose_pose,
    compute_initial_extrinsics,
    pose_to_matrix,
    stereo_calibrate_pair,
)
from chesscal.types import BoardPose, CameraModel


RIG_ROTATION = cv2.Rodrigues(np.array([0.0, 0.05, 0.01]))[0]
RIG_TRANSLATION = np.array([-100.0, 2.0, 1.0])


@pytest.fixture
def rig_views(board, sample_intrinsics_matrix):
    """Synchronized left/right views of a rig with a 100 mm baseline."""
    object_points = board_object_points(board, 30.0)
    left_poses = synthetic_poses(12, 600.0)

    right_poses = []
    for rvec, tvec in left_poses:
        pose = compose_pose(BoardPose(rvec=rvec, tvec=tvec), RIG_ROTATION, RIG_TRANSLATION)
        right_poses.append((pose.rvec, pose.tvec))

    left = project_views(object_points, left_poses, sample_intrinsics_matrix)
    right = project_views(object_points, right_poses, sample_intrinsics_matrix)
    return left, right


class TestPoseHelpers:
    def test_compose_with_identity(self):
        pose = BoardPose(rvec=np.array([0.1, -0.2, 0.3]), tvec=np.array([1.0, 2.0, 3.0]))
        composed = compose_pose(pose, np.eye(3), np.zeros(3))

        np.testing.assert_allclose(composed.rvec, pose.rvec, atol=1e-12)
        np.testing.assert_allclose(composed.tvec, pose.tvec)

    def test_compose_translation_only(self):
        pose = BoardPose(rvec=np.zeros(3), tvec=np.array([0.0, 0.0, 500.0]))
        composed = compose_pose(pose, np.eye(3), np.array([-100.0, 0.0, 0.0]))

        np.testing.assert_allclose(composed.tvec, [-100.0, 0.0, 500.0])

    def test_pose_to_matrix(self):
        rotation, translation = pose_to_matrix(
            BoardPose(rvec=np.zeros(3), tvec=np.array([1.0, 2.0, 3.0]))
        )
        np.testing.assert_allclose(rotation, np.eye(3))
        np.testing.assert_allclose(translation, [1.0, 2.0, 3.0])

    def test_average_of_identical_rotations(self):
        np.testing.assert_allclose(average_rotation([RIG_ROTATION] * 4), RIG_ROTATION, atol=1e-12)

    def test_average_is_a_rotation(self):
        rotations = [cv2.Rodrigues(np.array([0.0, a, 0.0]))[0] for a in (0.1, 0.2, 0.3)]
        average = average_rotation(rotations)

        np.testing.assert_allclose(average @ average.T, np.eye(3), atol=1e-12)
        assert np.linalg.det(average) == pytest.approx(1.0)
        angle = np.linalg.norm(cv2.Rodrigues(average)[0])
        assert angle == pytest.approx(0.2, abs=1e-3)

    def test_initial_extrinsics_from_exact_poses(self):
        left = [BoardPose(rvec=r, tvec=t) for r, t in synthetic_poses(5, 600.0)]
        right = [compose_pose(p, RIG_ROTATION, RIG_TRANSLATION) for p in left]

        rotation, translation = compute_initial_extrinsics(left, right)

        np.testing.assert_allclose(rotation, RIG_ROTATION, atol=1e-9)
        np.testing.assert_allclose(translation, RIG_TRANSLATION, atol=1e-6)


class TestStereoCalibratePair:
    def test_recovers_rig_transform(self, board, rig_views):
        left_points, right_points = rig_views

        left, left_poses = calibrate_intrinsics(
            left_points, board, 30.0, CameraModel.PINHOLE, (640, 480), "left"
        )
        right, right_poses = calibrate_intrinsics(
            right_points, board, 30.0, CameraModel.PINHOLE, (640, 480), "right"
        )

        extrinsics = stereo_calibrate_pair(
            left_points, right_points, left, right, left_poses, right_poses, board, 30.0
        )

        np.testing.assert_allclose(extrinsics.rotation, RIG_ROTATION, atol=1e-3)
        np.testing.assert_allclose(extrinsics.translation, RIG_TRANSLATION, atol=1.0)
        assert extrinsics.error < 0.1

    def test_requires_shared_poses(self, board, rig_views):
        left_points, right_points = rig_views
        left, left_poses = calibrate_intrinsics(
            left_points, board, 30.0, CameraModel.PINHOLE, (640, 480), "left"
        )

        with pytest.raises(ValueError, match="both cameras"):
            stereo_calibrate_pair(
                left_points,
                right_points,
                left,
                left,
                left_poses,
                [None] * len(left_poses),
                board,
                30.0,
            )
