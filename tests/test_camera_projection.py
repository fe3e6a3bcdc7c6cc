"""相机投影：深度/距离过滤、图像边界、确定性与配置校验。"""

from __future__ import annotations

import unittest

import numpy as np

from _fixtures import IMAGE_H, IMAGE_W, R_PCD_TO_CAM, make_model
from fuse3d.errors import CameraConfigError
from fuse3d.geometry.camera import CameraModel, CameraSetup
from fuse3d.geometry.extrinsics import parse_extrinsics, pose_from_matrix, pose_from_quaternion
from fuse3d.io.pointcloud import decode_point_cloud, encode_point_cloud
from fuse3d.models import PointRef


class TestProjection(unittest.TestCase):
    def test_point_on_optical_axis_hits_principal_point(self) -> None:
        cam = make_model()
        idx, uv = cam.project_positions(np.array([[5.0, 0.0, 0.0]]))
        self.assertEqual(idx.tolist(), [0])
        self.assertTrue(np.allclose(uv[0], [IMAGE_W / 2.0, IMAGE_H / 2.0], atol=1e-9))

    def test_pinhole_offsets(self) -> None:
        cam = make_model()
        # 点云 y 向左 -> 图像 u 减小；点云 z 向上 -> 图像 v 减小
        idx, uv = cam.project_positions(np.array([[5.0, 1.0, 0.0], [5.0, 0.0, 1.0]]))
        self.assertEqual(idx.tolist(), [0, 1])
        self.assertTrue(np.allclose(uv, [[220.0, 240.0], [320.0, 140.0]], atol=1e-9))

    def test_points_behind_or_too_close_are_dropped(self) -> None:
        cam = make_model()
        pts = np.array(
            [
                [-5.0, 0.0, 0.0],  # 相机后方
                [0.0, 5.0, 0.0],  # 与光心共面，深度 0
                [0.5, 0.0, 0.0],  # 近场（< 1m）
                [5.0, 0.0, 0.0],
            ]
        )
        idx, uv = cam.project_positions(pts)
        self.assertEqual(idx.tolist(), [3])
        self.assertEqual(uv.shape, (1, 2))

        X_c = cam.to_camera(pts[idx])
        self.assertTrue(np.all(X_c[:, 2] > 0.0))

    def test_out_of_image_points_are_dropped(self) -> None:
        cam = make_model()
        idx, _ = cam.project_positions(np.array([[5.0, 10.0, 0.0], [5.0, 0.0, -10.0]]))
        self.assertEqual(idx.size, 0)

    def test_image_bounds_are_inclusive(self) -> None:
        K = np.array([[500.0, 0.0, 0.0], [0.0, 500.0, 0.0], [0.0, 0.0, 1.0]])
        cam = CameraModel(
            name="corner",
            image_height=IMAGE_H,
            image_width=IMAGE_W,
            camera_matrix=K,
            dist_coeffs=[],
            rotation=R_PCD_TO_CAM,
            translation=np.zeros(3),
        )
        idx, uv = cam.project_positions(np.array([[5.0, 0.0, 0.0]]))
        self.assertEqual(idx.tolist(), [0])
        self.assertTrue(np.allclose(uv[0], [0.0, 0.0]))

    def test_all_projected_points_are_in_bounds(self) -> None:
        rng = np.random.default_rng(0)
        pts = rng.uniform(-30.0, 30.0, size=(2000, 3))
        cam = make_model()
        idx, uv = cam.project_positions(pts)

        self.assertGreater(idx.size, 0)
        self.assertTrue(np.all((uv[:, 0] >= 0) & (uv[:, 0] <= IMAGE_W)))
        self.assertTrue(np.all((uv[:, 1] >= 0) & (uv[:, 1] <= IMAGE_H)))
        self.assertTrue(np.all(cam.to_camera(pts[idx])[:, 2] > 0.0))

    def test_projection_is_deterministic(self) -> None:
        rng = np.random.default_rng(1)
        pts = np.concatenate([rng.uniform(-20.0, 20.0, size=(500, 3)), np.ones((500, 1))], axis=1)
        frame = decode_point_cloud(encode_point_cloud(pts))
        cam = make_model()

        a = cam.project(frame)
        b = cam.project(frame)
        self.assertTrue(np.array_equal(a.point_indices, b.point_indices))
        self.assertTrue(np.array_equal(a.img_points, b.img_points))

    def test_projected_points_reference_the_frame(self) -> None:
        frame = decode_point_cloud(encode_point_cloud([[5.0, 0.0, 0.0, 7.0], [-5.0, 0.0, 0.0, 8.0]]))
        proj = make_model().project(frame)

        items = list(proj)
        self.assertEqual(len(items), 1)
        ref, (u, v) = items[0]
        self.assertIsInstance(ref, PointRef)
        self.assertIs(ref.frame, frame)
        self.assertEqual(ref.intensity, 7.0)
        self.assertAlmostEqual(u, 320.0)
        self.assertAlmostEqual(v, 240.0)

    def test_radial_distortion_keeps_principal_point(self) -> None:
        K = np.array([[500.0, 0.0, 320.0], [0.0, 500.0, 240.0], [0.0, 0.0, 1.0]])
        cam = CameraModel(
            name="fisheye-ish",
            image_height=IMAGE_H,
            image_width=IMAGE_W,
            camera_matrix=K,
            dist_coeffs=[-0.3, 0.1, 0.0, 0.0, 0.0],
            rotation=R_PCD_TO_CAM,
            translation=np.zeros(3),
        )
        idx, uv = cam.project_positions(np.array([[5.0, 0.0, 0.0], [5.0, 1.0, 0.0]]))
        self.assertEqual(idx.tolist(), [0, 1])
        self.assertTrue(np.allclose(uv[0], [320.0, 240.0]))
        # 桶形畸变把离轴点拉向中心
        self.assertGreater(uv[1, 0], 220.0)


class TestCameraConfig(unittest.TestCase):
    def _kwargs(self, **overrides):
        kw = dict(
            name="cam",
            image_height=IMAGE_H,
            image_width=IMAGE_W,
            camera_matrix=np.array([[500.0, 0.0, 320.0], [0.0, 500.0, 240.0], [0.0, 0.0, 1.0]]),
            dist_coeffs=np.zeros(5),
            rotation=np.eye(3),
            translation=np.zeros(3),
        )
        kw.update(overrides)
        return kw

    def test_invalid_models_raise(self) -> None:
        bad = [
            {"image_height": 0},
            {"camera_matrix": np.eye(2)},
            {"camera_matrix": np.diag([-1.0, 500.0, 1.0])},
            {"dist_coeffs": [0.1, 0.2, 0.3]},
            {"dist_coeffs": ["k1", "k2", "p1", "p2", "k3"]},
            {"dist_coeffs": [0.0, np.inf, 0.0, 0.0, 0.0]},
            {"rotation": np.eye(3) * 2.0},
            {"rotation": np.diag([1.0, 1.0, -1.0])},
            {"translation": [0.0, np.nan, 0.0]},
            {"min_depth_m": 0.0},
        ]
        for override in bad:
            with self.subTest(override=list(override)):
                with self.assertRaises(CameraConfigError):
                    CameraModel(**self._kwargs(**override))

    def test_model_is_read_only(self) -> None:
        cam = CameraModel(**self._kwargs())
        with self.assertRaises(ValueError):
            cam.camera_matrix[0, 0] = 1.0

    def test_detection_scale(self) -> None:
        setup = CameraSetup(model=CameraModel(**self._kwargs()), detection_hw=(240, 320))
        self.assertEqual(setup.detection_scale_hw, (2.0, 2.0))
        self.assertEqual(CameraSetup(model=CameraModel(**self._kwargs())).detection_scale_hw, (1.0, 1.0))

        with self.assertRaises(CameraConfigError):
            CameraSetup(model=CameraModel(**self._kwargs()), detection_hw=(0, 320))


class TestExtrinsics(unittest.TestCase):
    def test_quaternion_and_matrix_agree(self) -> None:
        R_q, t_q = pose_from_quaternion([0.5, 0.5, -0.5, 0.5], [0.1, 0.2, 0.3])
        R_m, t_m = pose_from_matrix(R_PCD_TO_CAM, [0.1, 0.2, 0.3])
        self.assertTrue(np.allclose(R_q, R_m, atol=1e-9))
        self.assertTrue(np.allclose(t_q, t_m))

    def test_parse_extrinsics_infers_type(self) -> None:
        R1, _ = parse_extrinsics({"rot_wijk": [1.0, 0.0, 0.0, 0.0], "trans_xyz": [0.0, 0.0, 0.0]})
        R2, t2 = parse_extrinsics({"rot": np.eye(3).tolist(), "trans": [1.0, 2.0, 3.0]})
        self.assertTrue(np.allclose(R1, np.eye(3)))
        self.assertTrue(np.allclose(R2, np.eye(3)))
        self.assertEqual(t2.tolist(), [1.0, 2.0, 3.0])

    def test_quaternion_is_normalized(self) -> None:
        R, _ = pose_from_quaternion([2.0, 0.0, 0.0, 0.0], [0.0, 0.0, 0.0])
        self.assertTrue(np.allclose(R, np.eye(3)))

    def test_invalid_extrinsics(self) -> None:
        bad = [
            {"type": "euler", "rpy": [0, 0, 0]},
            {"type": "quaternion", "rot_wijk": [0, 0, 0, 0], "trans_xyz": [0, 0, 0]},
            {"type": "quaternion", "rot_wijk": [1, 0, 0], "trans_xyz": [0, 0, 0]},
            {"type": "matrix", "rot": [[1, 0, 0], [0, 1, 0], [0, 0, 2]], "trans": [0, 0, 0]},
            {"type": "matrix", "rot": np.eye(3).tolist(), "trans": [0, 0]},
        ]
        for data in bad:
            with self.subTest(data=data):
                with self.assertRaises(CameraConfigError):
                    parse_extrinsics(data)


if __name__ == "__main__":
    unittest.main()
