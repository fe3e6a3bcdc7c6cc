"""点云帧解码：原始字节 + 字段描述 -> PointCloudFrame。

约束（不满足即失败，调用方丢弃该帧并保留上一帧）：
- 前 4 个字段依次为 x, y, z, intensity，且均为单值 float32，偏移依次为 0, 4, 8, 12；
- 每点步长 point_step >= 16，只读取每点前 16 字节（小端 float32 x4），其余字节视为填充；
- 只支持小端数据。
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from fuse3d.errors import InvalidStrideError, SchemaMismatchError, SizeMismatchError, UnsupportedByteOrderError
from fuse3d.messages import POINT_FIELD_FLOAT32, PointCloudMessage, PointField
from fuse3d.models import PointCloudFrame

REQUIRED_FIELDS = ("x", "y", "z", "intensity")
MIN_POINT_STEP = 16


def check_point_fields(fields: Sequence[PointField]) -> None:
    """校验字段描述；不合法时抛 SchemaMismatchError。"""

    if len(fields) < len(REQUIRED_FIELDS):
        raise SchemaMismatchError(
            f"point cloud must declare at least {len(REQUIRED_FIELDS)} fields, got {len(fields)}"
        )

    names = tuple(str(f.name) for f in fields[: len(REQUIRED_FIELDS)])
    if names != REQUIRED_FIELDS:
        raise SchemaMismatchError(f"point cloud fields must start with {REQUIRED_FIELDS}, got {names}")

    for i, f in enumerate(fields[: len(REQUIRED_FIELDS)]):
        if int(f.datatype) != POINT_FIELD_FLOAT32 or int(f.count) != 1:
            raise SchemaMismatchError(
                f"field '{f.name}' must be a single float32 value (datatype={f.datatype}, count={f.count})"
            )
        if int(f.offset) != 4 * i:
            raise SchemaMismatchError(f"field '{f.name}' must be at offset {4 * i}, got {f.offset}")


def decode_point_cloud(msg: PointCloudMessage) -> PointCloudFrame:
    """把点云消息解码为 PointCloudFrame（纯函数，只分配新内存）。"""

    if msg.is_bigendian:
        raise UnsupportedByteOrderError("big-endian point cloud data is not supported")

    check_point_fields(msg.fields)

    step = int(msg.point_step)
    if step < MIN_POINT_STEP:
        raise InvalidStrideError(f"point_step must be >= {MIN_POINT_STEP}, got {step}")

    raw = np.frombuffer(msg.data, dtype=np.uint8)
    if raw.size % step != 0:
        raise SizeMismatchError(f"point cloud data length {raw.size} is not a multiple of point_step {step}")

    n = raw.size // step
    # 只取每点前 16 字节；ascontiguousarray 产生独立缓冲区，之后按小端 float32 解释（位级精确）。
    head = np.ascontiguousarray(raw.reshape(n, step)[:, :MIN_POINT_STEP])
    data = head.view("<f4").reshape(n, 4).astype(np.float32, copy=False)

    return PointCloudFrame(data=data)


def encode_point_cloud(points: Sequence[Sequence[float]], *, point_step: int = MIN_POINT_STEP) -> PointCloudMessage:
    """把 (x, y, z, intensity) 列表打包为点云消息（用于回放与测试）。"""

    if int(point_step) < MIN_POINT_STEP:
        raise ValueError(f"point_step must be >= {MIN_POINT_STEP}")

    arr = np.asarray(points, dtype="<f4").reshape(-1, 4)
    buf = np.zeros((arr.shape[0], int(point_step)), dtype=np.uint8)
    buf[:, :MIN_POINT_STEP] = arr.view(np.uint8).reshape(arr.shape[0], MIN_POINT_STEP)

    fields = [PointField(name=name, offset=4 * i, datatype=POINT_FIELD_FLOAT32) for i, name in enumerate(REQUIRED_FIELDS)]
    return PointCloudMessage(data=buf.tobytes(), fields=fields, point_step=int(point_step))
