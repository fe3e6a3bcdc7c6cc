"""外参解析：点云坐标系 -> 相机坐标系的刚体变换。

支持两种写法（与标定工具输出保持一致）：
- quaternion：{"type": "quaternion", "rot_wijk": [w, i, j, k], "trans_xyz": [x, y, z]}
- matrix：{"type": "matrix", "rot": [[...], [...], [...]], "trans": [x, y, z]}

约定：X_c = R @ X_pcd + t。
"""

from __future__ import annotations

from typing import Any, Mapping

import numpy as np
from scipy.spatial.transform import Rotation

from fuse3d.errors import CameraConfigError


def _as_vec(x: Any, n: int, what: str) -> np.ndarray:
    try:
        arr = np.asarray(x, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError) as exc:
        raise CameraConfigError(f"{what} must be {n} numbers") from exc
    if arr.shape != (n,) or not np.all(np.isfinite(arr)):
        raise CameraConfigError(f"{what} must be {n} finite numbers, got {arr.tolist()}")
    return arr


def pose_from_quaternion(rot_wijk: Any, trans_xyz: Any) -> tuple[np.ndarray, np.ndarray]:
    """由 (w, i, j, k) 四元数与平移构造 (R, t)。四元数会被归一化。"""

    q = _as_vec(rot_wijk, 4, "rot_wijk")
    if float(np.linalg.norm(q)) < 1e-12:
        raise CameraConfigError("rot_wijk must be a non-zero quaternion")
    # scipy 的四元数顺序为 (x, y, z, w)
    R = Rotation.from_quat([q[1], q[2], q[3], q[0]]).as_matrix()
    t = _as_vec(trans_xyz, 3, "trans_xyz")
    return R.astype(np.float64), t


def pose_from_matrix(rot: Any, trans: Any) -> tuple[np.ndarray, np.ndarray]:
    """由 3x3 旋转矩阵与平移构造 (R, t)。

    输入矩阵会投影到最近的旋转矩阵（消除标定文件中的数值误差），
    但偏离正交过多时直接报错。
    """

    R_in = _as_vec(rot, 9, "rot").reshape(3, 3)
    if abs(float(np.linalg.det(R_in)) - 1.0) > 1e-3 or not np.allclose(R_in @ R_in.T, np.eye(3), atol=1e-3):
        raise CameraConfigError("rot must be a proper rotation matrix (orthonormal, det=+1)")
    R = Rotation.from_matrix(R_in).as_matrix()
    t = _as_vec(trans, 3, "trans")
    return R.astype(np.float64), t


def parse_extrinsics(data: Mapping[str, Any]) -> tuple[np.ndarray, np.ndarray]:
    """解析外参字典；未写 type 时按字段名推断。"""

    if not isinstance(data, Mapping):
        raise CameraConfigError("extrinsics must be an object")

    kind = str(data.get("type", "")).strip().lower()
    if not kind:
        kind = "quaternion" if "rot_wijk" in data else "matrix"

    if kind == "quaternion":
        return pose_from_quaternion(data.get("rot_wijk"), data.get("trans_xyz"))
    if kind == "matrix":
        return pose_from_matrix(data.get("rot"), data.get("trans"))

    raise CameraConfigError(f"unknown extrinsics type: {kind} (expected: quaternion|matrix)")
