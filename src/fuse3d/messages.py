"""输入/输出消息定义（封闭的 tagged union）。

输入来自外部传输层（ROS 话题、网络服务等，均不在本包范围内）：
- PointCloudMessage：原始点云字节 + 字段描述 + 每点步长
- ImageMessage：原始图像字节 + 尺寸 + 编码 + 行步长
- DetectionMessage：某相机的一组 (center_x, center_y, size_x, size_y, class_id)

输出交给外部渲染器：
- SceneMessage：3D 场景（点云 + 各相机关联）
- CameraViewMessage：单相机视图（图像 + 检测框 + 关联）
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence, Union

from fuse3d.models import AssociationSet, CameraFrame, DetectionSet, PointCloudFrame

# sensor_msgs/PointField 的 datatype 编号
POINT_FIELD_INT8 = 1
POINT_FIELD_UINT8 = 2
POINT_FIELD_INT16 = 3
POINT_FIELD_UINT16 = 4
POINT_FIELD_INT32 = 5
POINT_FIELD_UINT32 = 6
POINT_FIELD_FLOAT32 = 7
POINT_FIELD_FLOAT64 = 8


@dataclass(frozen=True)
class PointField:
    name: str
    offset: int
    datatype: int
    count: int = 1


@dataclass(frozen=True)
class PointCloudMessage:
    data: bytes
    fields: Sequence[PointField]
    point_step: int
    is_bigendian: bool = False


@dataclass(frozen=True)
class ImageMessage:
    camera: str
    data: bytes
    height: int
    width: int
    encoding: str
    step: int
    is_bigendian: bool = False


@dataclass(frozen=True)
class BoundingBox:
    """检测框（中心点 + 尺寸），坐标系为检测器输入分辨率。"""

    center_x: float
    center_y: float
    size_x: float
    size_y: float
    class_id: Optional[str] = None


@dataclass(frozen=True)
class DetectionMessage:
    camera: str
    boxes: Sequence[BoundingBox] = ()

    @classmethod
    def from_corners(cls, camera: str, rows: Iterable[Sequence[float]]) -> "DetectionMessage":
        """由检测器原生的 (x1, y1, x2, y2[, class]) 行构造消息。"""

        boxes: list[BoundingBox] = []
        for row in rows:
            x1, y1, x2, y2 = (float(v) for v in row[:4])
            class_id = str(row[4]) if len(row) > 4 and row[4] is not None else None
            size_x = x2 - x1
            size_y = y2 - y1
            boxes.append(
                BoundingBox(
                    center_x=x1 + size_x / 2.0,
                    center_y=y1 + size_y / 2.0,
                    size_x=size_x,
                    size_y=size_y,
                    class_id=class_id,
                )
            )
        return cls(camera=str(camera), boxes=tuple(boxes))


InputMessage = Union[PointCloudMessage, ImageMessage, DetectionMessage]


@dataclass(frozen=True, eq=False)
class SceneMessage:
    points: PointCloudFrame
    associations: Mapping[str, AssociationSet] = field(default_factory=dict)


@dataclass(frozen=True, eq=False)
class CameraViewMessage:
    camera: str
    image: Optional[CameraFrame] = None
    detections: Optional[DetectionSet] = None
    associations: Optional[AssociationSet] = None


OutputMessage = Union[SceneMessage, CameraViewMessage]


def message_kind(msg: object) -> str:
    """输入消息的类型名（用于日志与计数）。"""

    if isinstance(msg, PointCloudMessage):
        return "point_cloud"
    if isinstance(msg, ImageMessage):
        return "image"
    if isinstance(msg, DetectionMessage):
        return "detections"
    raise TypeError(f"unknown input message type: {type(msg).__name__}")
