"""检测消息 -> DetectionSet。

检测器可能运行在比相机图像更小的输入分辨率上；scale_hw 把检测框从检测器坐标系
缩放回相机图像坐标系：scale_hw = (image_h / det_h, image_w / det_w)。
"""

from __future__ import annotations

import math

from fuse3d.errors import SchemaMismatchError
from fuse3d.messages import DetectionMessage
from fuse3d.models import Detection, DetectionSet


def decode_detection_set(msg: DetectionMessage, *, scale_hw: tuple[float, float] = (1.0, 1.0)) -> DetectionSet:
    scale_h, scale_w = float(scale_hw[0]), float(scale_hw[1])

    dets: list[Detection] = []
    for i, box in enumerate(msg.boxes):
        vals = (float(box.center_x), float(box.center_y), float(box.size_x), float(box.size_y))
        if not all(math.isfinite(v) for v in vals):
            raise SchemaMismatchError(f"detection #{i} of camera '{msg.camera}' has non-finite values")
        cx, cy, sx, sy = vals
        if sx < 0 or sy < 0:
            raise SchemaMismatchError(f"detection #{i} of camera '{msg.camera}' has negative size")

        dets.append(
            Detection(
                x=(cx - sx / 2.0) * scale_w,
                y=(cy - sy / 2.0) * scale_h,
                width=sx * scale_w,
                height=sy * scale_h,
                class_id=None if box.class_id is None else str(box.class_id),
            )
        )

    return DetectionSet(camera=str(msg.camera), detections=tuple(dets))
