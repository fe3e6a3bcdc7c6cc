"""相机模型与点云投影（高内聚：只做几何）。

核心目标：
- 输入：一帧点云（点云坐标系）
- 输出：落在图像范围内的点及其像素坐标 (u, v)

投影步骤（对每个点独立，整体用 numpy 向量化）：
1) 外参变换：X_c = R @ X + t
2) 丢弃相机坐标深度 z <= min_depth_m 的点（在相机后方或与光心共面，投影无定义），
   以及到点云原点距离 < min_range_m 的近场噪声点
3) 针孔模型 + 径向/切向畸变（cv2.projectPoints）
4) 丢弃像素坐标落在 [0, width] x [0, height] 之外的点
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

import cv2
import numpy as np

from fuse3d.errors import CameraConfigError
from fuse3d.models import PointCloudFrame, PointRef

_VALID_DIST_LENGTHS = (4, 5, 8, 12, 14)


@dataclass(frozen=True, eq=False)
class ProjectedPoints:
    """一次投影的结果：点索引与像素坐标一一对应。"""

    frame: PointCloudFrame
    point_indices: np.ndarray
    img_points: np.ndarray

    def __len__(self) -> int:
        return int(self.point_indices.shape[0])

    def __iter__(self) -> Iterator[tuple[PointRef, tuple[float, float]]]:
        for idx, (u, v) in zip(self.point_indices, self.img_points):
            yield PointRef(self.frame, int(idx)), (float(u), float(v))


def _as_matrix(x: Any, shape: tuple[int, ...], what: str) -> np.ndarray:
    try:
        arr = np.asarray(x, dtype=np.float64).reshape(shape)
    except (TypeError, ValueError) as exc:
        raise CameraConfigError(f"{what} must have shape {shape}") from exc
    if not np.all(np.isfinite(arr)):
        raise CameraConfigError(f"{what} contains non-finite values")
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class CameraModel:
    """单相机的内外参（构造后不可变）。

    Attributes:
        name: 相机名。
        image_height / image_width: 图像尺寸（像素）。
        camera_matrix: 3x3 内参矩阵 K。
        dist_coeffs: OpenCV 顺序的畸变系数 (k1, k2, p1, p2[, k3, ...])。
        rotation / translation: 点云坐标系 -> 相机坐标系。
        min_depth_m: 相机坐标系下的最小深度。
        min_range_m: 到点云原点的最小距离。
    """

    name: str
    image_height: int
    image_width: int
    camera_matrix: np.ndarray
    dist_coeffs: np.ndarray
    rotation: np.ndarray
    translation: np.ndarray
    min_depth_m: float = 1e-3
    min_range_m: float = 1.0
    _rvec: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if int(self.image_height) <= 0 or int(self.image_width) <= 0:
            raise CameraConfigError(
                f"camera '{self.name}': image size must be positive, got {self.image_width}x{self.image_height}"
            )
        object.__setattr__(self, "image_height", int(self.image_height))
        object.__setattr__(self, "image_width", int(self.image_width))

        K = _as_matrix(self.camera_matrix, (3, 3), f"camera '{self.name}' camera_matrix")
        if K[0, 0] <= 0 or K[1, 1] <= 0:
            raise CameraConfigError(f"camera '{self.name}': focal lengths must be positive")
        object.__setattr__(self, "camera_matrix", K)

        dist = _as_matrix(self.dist_coeffs, (-1,), f"camera '{self.name}' dist_coeffs")
        if dist.size == 0:
            dist = np.zeros(5, dtype=np.float64)
        if dist.size not in _VALID_DIST_LENGTHS:
            raise CameraConfigError(
                f"camera '{self.name}': distortion coefficients must have one of {_VALID_DIST_LENGTHS} values, got {dist.size}"
            )
        object.__setattr__(self, "dist_coeffs", _as_matrix(dist, (dist.size,), f"camera '{self.name}' dist_coeffs"))

        R = _as_matrix(self.rotation, (3, 3), f"camera '{self.name}' rotation")
        if abs(float(np.linalg.det(R)) - 1.0) > 1e-3 or not np.allclose(R @ R.T, np.eye(3), atol=1e-3):
            raise CameraConfigError(f"camera '{self.name}': rotation must be orthonormal with det=+1")
        object.__setattr__(self, "rotation", R)
        object.__setattr__(self, "translation", _as_matrix(self.translation, (3,), f"camera '{self.name}' translation"))

        if not float(self.min_depth_m) > 0.0:
            raise CameraConfigError(f"camera '{self.name}': min_depth_m must be positive")
        if float(self.min_range_m) < 0.0:
            raise CameraConfigError(f"camera '{self.name}': min_range_m must be >= 0")

        # 点在投影前已经变换到相机坐标系，projectPoints 只需零位姿。
        object.__setattr__(self, "_rvec", np.zeros(3, dtype=np.float64))

    @property
    def image_hw(self) -> tuple[int, int]:
        return (self.image_height, self.image_width)

    def to_camera(self, positions: np.ndarray) -> np.ndarray:
        """点云坐标系 -> 相机坐标系，positions 形状 (N, 3)。"""

        X = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        return X @ self.rotation.T + self.translation.reshape(1, 3)

    def project_positions(self, positions: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """投影一组 3D 位置。

        Returns:
            (indices, img_points)：保留下来的输入行号 (M,) 与像素坐标 (M, 2)。
        """

        X = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        if X.shape[0] == 0:
            return np.empty(0, dtype=np.int64), np.empty((0, 2), dtype=np.float64)

        X_c = self.to_camera(X)
        rng = np.linalg.norm(X, axis=1)
        keep = np.isfinite(X_c).all(axis=1) & (X_c[:, 2] > float(self.min_depth_m)) & (rng >= float(self.min_range_m))

        idx = np.flatnonzero(keep).astype(np.int64)
        if idx.size == 0:
            return idx, np.empty((0, 2), dtype=np.float64)

        uv, _ = cv2.projectPoints(
            X_c[idx].reshape(-1, 1, 3),
            self._rvec.copy(),
            self._rvec.copy(),
            np.array(self.camera_matrix),
            np.array(self.dist_coeffs),
        )
        uv = uv.reshape(-1, 2).astype(np.float64)

        u = uv[:, 0]
        v = uv[:, 1]
        in_img = (
            np.isfinite(uv).all(axis=1)
            & (u >= 0.0)
            & (u <= float(self.image_width))
            & (v >= 0.0)
            & (v <= float(self.image_height))
        )
        return idx[in_img], uv[in_img]

    def project(self, frame: PointCloudFrame) -> ProjectedPoints:
        """投影整帧点云；结果中的每个点都是对原帧的引用。"""

        idx, uv = self.project_positions(frame.positions)
        idx.setflags(write=False)
        uv.setflags(write=False)
        return ProjectedPoints(frame=frame, point_indices=idx, img_points=uv)


@dataclass(frozen=True)
class CameraSetup:
    """单相机的静态运行配置：相机模型 + 图像变换 + 检测器分辨率。"""

    model: CameraModel
    rotate_180: bool = False
    # 检测器输入分辨率 (h, w)；None 表示与图像同分辨率。
    detection_hw: Optional[tuple[int, int]] = None

    def __post_init__(self) -> None:
        if self.detection_hw is not None:
            h, w = int(self.detection_hw[0]), int(self.detection_hw[1])
            if h <= 0 or w <= 0:
                raise CameraConfigError(f"camera '{self.model.name}': detection_hw must be positive")
            object.__setattr__(self, "detection_hw", (h, w))

    @property
    def name(self) -> str:
        return self.model.name

    @property
    def detection_scale_hw(self) -> tuple[float, float]:
        """检测框坐标 -> 图像坐标的缩放比例 (scale_h, scale_w)。"""

        if self.detection_hw is None:
            return (1.0, 1.0)
        det_h, det_w = self.detection_hw
        return (self.model.image_height / float(det_h), self.model.image_width / float(det_w))
