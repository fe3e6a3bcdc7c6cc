"""几何：相机模型/投影、外参解析、检测框空间索引。"""

from .camera import CameraModel, CameraSetup, ProjectedPoints
from .extrinsics import parse_extrinsics, pose_from_matrix, pose_from_quaternion
from .rect_index import RectIndex

__all__ = [
    "CameraModel",
    "CameraSetup",
    "ProjectedPoints",
    "RectIndex",
    "parse_extrinsics",
    "pose_from_matrix",
    "pose_from_quaternion",
]
