"""融合核心的错误分类。

约定：
- `FusionInputError` 及其子类都是“单条消息级别、可恢复”的错误：
  调用方丢弃该消息、记录日志，缓存保持上一次的有效状态，继续处理下一条。
- `CameraConfigError` 属于构造期错误：相机配置非法时无法正确运行，
  必须在流水线启动前抛给调用方。
"""

from __future__ import annotations


class FusionInputError(RuntimeError):
    """单条输入消息无法处理（可恢复）。"""

    kind: str = "FusionInput"


class FrameDecodeError(FusionInputError):
    """帧解码失败的公共基类。"""

    kind = "FrameDecode"


class SchemaMismatchError(FrameDecodeError):
    kind = "SchemaMismatch"


class InvalidStrideError(FrameDecodeError):
    kind = "InvalidStride"


class SizeMismatchError(FrameDecodeError):
    kind = "SizeMismatch"


class UnsupportedEncodingError(FrameDecodeError):
    kind = "UnsupportedEncoding"


class UnsupportedByteOrderError(FrameDecodeError):
    kind = "UnsupportedByteOrder"


class DimensionMismatchError(FusionInputError):
    """图像尺寸与该相机配置的尺寸不一致。"""

    kind = "DimensionMismatch"


class UnknownCameraError(FusionInputError):
    """消息指向了未配置的相机。"""

    kind = "UnknownCamera"


class CameraConfigError(RuntimeError):
    """相机配置非法（构造期硬错误）。"""
