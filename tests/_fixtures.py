"""测试共用的相机与消息构造函数。

约定的“前视相机”：
- 相机坐标系：x 右、y 下、z 前；点云坐标系：x 前、y 左、z 上。
- 640x480，fx=fy=500，主点在图像中心，无畸变，外参只有旋转。
这样点云中 (d, 0, 0) 的点投影到图像中心 (320, 240)。
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from fuse3d.geometry.camera import CameraModel, CameraSetup
from fuse3d.io.pointcloud import encode_point_cloud
from fuse3d.messages import BoundingBox, DetectionMessage, ImageMessage, PointCloudMessage

IMAGE_H = 480
IMAGE_W = 640
FX = 500.0

# 点云 -> 相机：X_c = -Y, Y_c = -Z, Z_c = X
R_PCD_TO_CAM = np.array(
    [
        [0.0, -1.0, 0.0],
        [0.0, 0.0, -1.0],
        [1.0, 0.0, 0.0],
    ],
    dtype=np.float64,
)


def make_model(name: str = "front", *, rotation: np.ndarray | None = None, **kwargs) -> CameraModel:
    K = np.array([[FX, 0.0, IMAGE_W / 2.0], [0.0, FX, IMAGE_H / 2.0], [0.0, 0.0, 1.0]])
    return CameraModel(
        name=name,
        image_height=IMAGE_H,
        image_width=IMAGE_W,
        camera_matrix=K,
        dist_coeffs=np.zeros(5),
        rotation=R_PCD_TO_CAM if rotation is None else rotation,
        translation=np.zeros(3),
        **kwargs,
    )


def make_setups(*names: str) -> dict[str, CameraSetup]:
    names = names or ("front",)
    return {n: CameraSetup(model=make_model(n)) for n in names}


def point_cloud(points: Sequence[Sequence[float]]) -> PointCloudMessage:
    return encode_point_cloud(points)


def bgr_image(camera: str = "front", *, height: int = IMAGE_H, width: int = IMAGE_W, fill: int = 0) -> ImageMessage:
    data = np.full((height, width, 3), fill, dtype=np.uint8).tobytes()
    return ImageMessage(camera=camera, data=data, height=height, width=width, encoding="bgr8", step=width * 3)


def detections(camera: str, *corners: tuple[float, float, float, float]) -> DetectionMessage:
    return DetectionMessage.from_corners(camera, corners)


def box(cx: float, cy: float, sx: float, sy: float) -> BoundingBox:
    return BoundingBox(center_x=cx, center_y=cy, size_x=sx, size_y=sy)
