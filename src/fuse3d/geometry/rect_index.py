"""检测框空间索引：回答“哪个检测框包含像素 (u, v)”。

实现说明：
- 每次检测集合替换时用 shapely.STRtree 批量建树一次（昂贵步骤），之后对大量像素点复用。
- 包含关系对边界闭合（边界上的点视为包含），与 Detection.contains 一致。
- 多个检测框重叠时，返回树查询结果中该像素的第一个命中，顺序由 STRtree 内部决定，不做优先级约定。
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import shapely
from shapely.strtree import STRtree

from fuse3d.models import Detection, DetectionSet


class RectIndex:
    """基于 STRtree 的矩形索引（构造后只读）。"""

    def __init__(self, detection_set: DetectionSet):
        self.detection_set = detection_set

        boxes = [shapely.box(*d.corners) for d in detection_set.detections]
        self._tree: STRtree | None = STRtree(boxes) if boxes else None

    def __len__(self) -> int:
        return len(self.detection_set)

    def find_index(self, u: float, v: float) -> int:
        """返回包含 (u, v) 的检测框序号；没有则返回 -1。"""

        if self._tree is None:
            return -1
        hits = self._tree.query(shapely.Point(float(u), float(v)), predicate="intersects")
        if len(hits) == 0:
            return -1
        return int(hits[0])

    def find(self, u: float, v: float) -> Optional[Detection]:
        """返回包含 (u, v) 的任意一个检测框；不在任何框内时返回 None（不是错误）。"""

        i = self.find_index(u, v)
        if i < 0:
            return None
        return self.detection_set[i]

    def find_indices(self, img_points: np.ndarray) -> np.ndarray:
        """批量查询：img_points 形状 (M, 2)，返回 (M,) int64，-1 表示未命中。"""

        pts = np.asarray(img_points, dtype=np.float64).reshape(-1, 2)
        out = np.full(pts.shape[0], -1, dtype=np.int64)
        if self._tree is None or pts.shape[0] == 0:
            return out

        geoms = shapely.points(pts)
        # 返回 2xK：第 0 行为输入点序号，第 1 行为树中几何序号
        pairs = self._tree.query(geoms, predicate="intersects")
        if pairs.shape[1] == 0:
            return out

        point_idx = pairs[0]
        tree_idx = pairs[1]
        # 每个输入点取第一个命中
        uniq, first = np.unique(point_idx, return_index=True)
        out[uniq] = tree_idx[first]
        return out
