"""融合缓存：保存各传感器的最新值，并按依赖增量重算点 <-> 检测框关联。

状态由“当前已知哪些输入”隐式决定，三类输入消息驱动状态转移：

| 输入              | 重算                                                         |
|-------------------|--------------------------------------------------------------|
| 点云              | 替换点云；对每个已配置相机，用其当前检测集合（可能尚无）重算关联 |
| 相机 C 的图像     | 只替换 C 的图像；不重算关联（像素不影响几何）                   |
| 相机 C 的检测集合 | 重建 C 的空间索引；若已有点云，重算 C 的关联                    |

约定：
- 更新 X 只重算依赖 X 的派生状态，不会波及无关相机。
- 依赖缺失（例如还没有点云）时重算是 no-op，不是错误。
- 每个更新先完成解码与校验，再整体替换状态；失败的消息不会改动缓存。
- 该对象只被单个 worker 线程持有与修改，因此不加锁。
"""

from __future__ import annotations

from typing import Mapping, Optional

import numpy as np

from fuse3d.errors import UnknownCameraError
from fuse3d.geometry.camera import CameraSetup
from fuse3d.geometry.rect_index import RectIndex
from fuse3d.io.detections import decode_detection_set
from fuse3d.io.image import decode_camera_frame
from fuse3d.io.pointcloud import decode_point_cloud
from fuse3d.messages import (
    CameraViewMessage,
    DetectionMessage,
    ImageMessage,
    InputMessage,
    OutputMessage,
    PointCloudMessage,
    SceneMessage,
)
from fuse3d.models import AssociationSet, CameraFrame, DetectionSet, PointCloudFrame


class FusionCache:
    """单个场景的融合状态。

    Args:
        setups: 相机名 -> CameraSetup；输出中相机的顺序即该映射的顺序。
    """

    def __init__(self, setups: Mapping[str, CameraSetup]):
        for name, setup in setups.items():
            if str(name) != setup.name:
                raise ValueError(f"camera key '{name}' does not match camera model name '{setup.name}'")

        self._setups: dict[str, CameraSetup] = {str(k): v for k, v in setups.items()}

        self._points: Optional[PointCloudFrame] = None
        self._images: dict[str, CameraFrame] = {}
        self._detections: dict[str, DetectionSet] = {}
        self._indexes: dict[str, RectIndex] = {}
        self._assocs: dict[str, AssociationSet] = {}
        self._recompute_counts: dict[str, int] = {k: 0 for k in self._setups}

    # ------------------------------------------------------------------
    # 只读访问
    # ------------------------------------------------------------------

    @property
    def cameras(self) -> list[str]:
        return list(self._setups.keys())

    @property
    def points(self) -> Optional[PointCloudFrame]:
        return self._points

    def setup(self, camera: str) -> CameraSetup:
        try:
            return self._setups[str(camera)]
        except KeyError:
            raise UnknownCameraError(f"camera '{camera}' is not configured") from None

    def image(self, camera: str) -> Optional[CameraFrame]:
        return self._images.get(str(camera))

    def detections(self, camera: str) -> Optional[DetectionSet]:
        return self._detections.get(str(camera))

    def associations(self, camera: str) -> Optional[AssociationSet]:
        return self._assocs.get(str(camera))

    def recompute_count(self, camera: str) -> int:
        """该相机的关联被重算的次数（诊断用）。"""

        return int(self._recompute_counts.get(str(camera), 0))

    # ------------------------------------------------------------------
    # 状态转移
    # ------------------------------------------------------------------

    def handle(self, msg: InputMessage) -> list[OutputMessage]:
        """处理一条输入消息，返回本次更新产生的输出（场景消息在前，相机视图在后）。

        Raises:
            FusionInputError: 消息非法；缓存保持不变。
            TypeError: 未知的消息类型（编程错误）。
        """

        if isinstance(msg, PointCloudMessage):
            self.update_points(msg)
            outs: list[OutputMessage] = []
            scene = self._scene_message()
            if scene is not None:
                outs.append(scene)
            outs.extend(self._view_message(cam) for cam in self._setups)
            return outs

        if isinstance(msg, ImageMessage):
            camera = self.update_image(msg)
            return [self._view_message(camera)]

        if isinstance(msg, DetectionMessage):
            camera = self.update_detections(msg)
            outs = []
            scene = self._scene_message()
            if scene is not None:
                outs.append(scene)
            outs.append(self._view_message(camera))
            return outs

        raise TypeError(f"unknown input message type: {type(msg).__name__}")

    def update_points(self, msg: PointCloudMessage) -> None:
        frame = decode_point_cloud(msg)
        self._points = frame
        for camera in self._setups:
            self._recompute(camera)

    def update_image(self, msg: ImageMessage) -> str:
        setup = self.setup(msg.camera)
        frame = decode_camera_frame(msg, expected_hw=setup.model.image_hw, rotate_180=setup.rotate_180)
        self._images[setup.name] = frame
        return setup.name

    def update_detections(self, msg: DetectionMessage) -> str:
        setup = self.setup(msg.camera)
        det_set = decode_detection_set(msg, scale_hw=setup.detection_scale_hw)
        index = RectIndex(det_set)

        self._detections[setup.name] = det_set
        self._indexes[setup.name] = index
        self._recompute(setup.name)
        return setup.name

    def _recompute(self, camera: str) -> None:
        """用当前点云与检测集合重算某相机的关联；没有点云时什么也不做。"""

        frame = self._points
        if frame is None:
            return

        setup = self._setups[camera]
        projected = setup.model.project(frame)

        index = self._indexes.get(camera)
        if index is not None:
            det_idx = index.find_indices(projected.img_points)
        else:
            det_idx = np.full(len(projected), -1, dtype=np.int64)

        self._assocs[camera] = AssociationSet(
            camera=camera,
            frame=frame,
            point_indices=projected.point_indices,
            img_points=projected.img_points,
            detection_indices=det_idx,
            detections=self._detections.get(camera),
        )
        self._recompute_counts[camera] += 1

    # ------------------------------------------------------------------
    # 输出
    # ------------------------------------------------------------------

    def _scene_message(self) -> Optional[SceneMessage]:
        if self._points is None:
            return None
        return SceneMessage(points=self._points, associations=dict(self._assocs))

    def _view_message(self, camera: str) -> CameraViewMessage:
        return CameraViewMessage(
            camera=camera,
            image=self._images.get(camera),
            detections=self._detections.get(camera),
            associations=self._assocs.get(camera),
        )
