"""fuse3d 公共数据模型（高内聚：只放数据结构定义）。

说明：
- 点云、图像、检测框、关联结果都会在 worker 与多个消费者之间共享。
- 所有缓冲区发布后只读（numpy `writeable=False`），只会被整体替换，不会原地修改；
  因此可以在任意多个关联/输出消息之间按引用共享，而不需要拷贝。
- `PointRef` 是“元素级子引用”：它持有父帧对象本身，Python 引用计数保证父缓冲区存活。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional

import numpy as np


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class PointCloudFrame:
    """一帧解码后的点云。

    data 形状为 (N, 4)，dtype float32，列依次为 x, y, z, intensity。
    """

    data: np.ndarray

    def __post_init__(self) -> None:
        arr = np.asarray(self.data, dtype=np.float32)
        if arr.ndim != 2 or arr.shape[1] != 4:
            raise ValueError(f"point cloud data must be (N,4), got {arr.shape}")
        if arr.flags.writeable:
            arr = _readonly(arr)
        object.__setattr__(self, "data", arr)

    def __len__(self) -> int:
        return int(self.data.shape[0])

    def __iter__(self) -> Iterator["PointRef"]:
        for i in range(len(self)):
            yield PointRef(self, i)

    def __getitem__(self, index: int) -> "PointRef":
        n = len(self)
        i = int(index)
        if i < 0:
            i += n
        if not 0 <= i < n:
            raise IndexError(index)
        return PointRef(self, i)

    @property
    def positions(self) -> np.ndarray:
        """(N, 3) 只读视图。"""

        return self.data[:, :3]

    @property
    def intensities(self) -> np.ndarray:
        return self.data[:, 3]


@dataclass(frozen=True, slots=True)
class PointRef:
    """指向 PointCloudFrame 中单个点的引用（不拷贝点数据）。"""

    frame: PointCloudFrame
    index: int

    @property
    def x(self) -> float:
        return float(self.frame.data[self.index, 0])

    @property
    def y(self) -> float:
        return float(self.frame.data[self.index, 1])

    @property
    def z(self) -> float:
        return float(self.frame.data[self.index, 2])

    @property
    def intensity(self) -> float:
        return float(self.frame.data[self.index, 3])

    @property
    def position(self) -> np.ndarray:
        return self.frame.data[self.index, :3]

    def as_tuple(self) -> tuple[float, float, float, float]:
        row = self.frame.data[self.index]
        return (float(row[0]), float(row[1]), float(row[2]), float(row[3]))


@dataclass(frozen=True, eq=False)
class CameraFrame:
    """单相机的一帧图像。

    pixels 为 (H, W, 3) uint8，通道顺序为 OpenCV 的 BGR。
    source_* 记录解码前（旋转前）的原始尺寸与编码。
    """

    camera: str
    pixels: np.ndarray
    source_height: int
    source_width: int
    source_encoding: str

    def __post_init__(self) -> None:
        if self.pixels.flags.writeable:
            _readonly(self.pixels)

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    def rgb(self) -> np.ndarray:
        """返回 RGB 通道顺序的视图（不拷贝）。"""

        return self.pixels[:, :, ::-1]


@dataclass(frozen=True)
class Detection:
    """单个检测框：左上角 (x, y) + 宽高，像素坐标系。"""

    x: float
    y: float
    width: float
    height: float
    class_id: Optional[str] = None

    @property
    def corners(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def contains(self, u: float, v: float) -> bool:
        x1, y1, x2, y2 = self.corners
        return x1 <= float(u) <= x2 and y1 <= float(v) <= y2


@dataclass(frozen=True)
class DetectionSet:
    """某相机的一组检测框（有序），替换该相机上一组。"""

    camera: str
    detections: tuple[Detection, ...] = ()

    def __len__(self) -> int:
        return len(self.detections)

    def __iter__(self) -> Iterator[Detection]:
        return iter(self.detections)

    def __getitem__(self, index: int) -> Detection:
        return self.detections[index]


@dataclass(frozen=True, slots=True)
class Association:
    """一个 3D 点、它在某相机像平面上的投影点、以及（可选）包含该投影点的检测框。"""

    point: PointRef
    img_point: tuple[float, float]
    detection: Optional[Detection]


@dataclass(frozen=True, eq=False)
class AssociationSet:
    """某相机的全部关联结果（按列存储）。

    - point_indices: (M,) int64，指向 frame 中的点
    - img_points: (M, 2) float64，像素坐标 (u, v)
    - detection_indices: (M,) int64，指向 detections 中的检测框；-1 表示没有包含它的检测框
    - detections: 计算时使用的检测集合；尚无检测结果时为 None

    该对象是派生数据：依赖变化时整体重算，从不原地修改。
    """

    camera: str
    frame: PointCloudFrame
    point_indices: np.ndarray
    img_points: np.ndarray
    detection_indices: np.ndarray
    detections: Optional[DetectionSet] = None
    _len: int = field(init=False, repr=False, default=0)

    def __post_init__(self) -> None:
        n = int(self.point_indices.shape[0])
        if self.img_points.shape != (n, 2) or self.detection_indices.shape != (n,):
            raise ValueError("association arrays have inconsistent shapes")
        for arr in (self.point_indices, self.img_points, self.detection_indices):
            if arr.flags.writeable:
                _readonly(arr)
        object.__setattr__(self, "_len", n)

    def __len__(self) -> int:
        return self._len

    def __iter__(self) -> Iterator[Association]:
        for i in range(self._len):
            yield self[i]

    def __getitem__(self, i: int) -> Association:
        det_idx = int(self.detection_indices[i])
        det = None
        if det_idx >= 0 and self.detections is not None:
            det = self.detections[det_idx]
        u, v = self.img_points[i]
        return Association(
            point=PointRef(self.frame, int(self.point_indices[i])),
            img_point=(float(u), float(v)),
            detection=det,
        )

    @property
    def num_with_detection(self) -> int:
        return int(np.count_nonzero(self.detection_indices >= 0))
