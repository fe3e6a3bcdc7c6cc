"""图像帧解码：原始字节 -> (H, W, 3) uint8 BGR。

支持的编码：
- bgr8：直接 reshape
- rgb8：交换通道
- uyvy：4:2:2 打包格式，每 4 字节为 U Y0 V Y1，两个像素共享一对色度；
  使用 ITU-R BT.709 limited-range 矩阵转换到 RGB。

说明：
- 输出统一为 OpenCV 的 BGR 排列，与 cv2 的其它调用保持一致。
- cv2.cvtColor 的 UYVY 转换使用 BT.601 系数，这里需要 BT.709，所以用 numpy 向量化实现。
"""

from __future__ import annotations

import cv2
import numpy as np

from fuse3d.errors import (
    DimensionMismatchError,
    SizeMismatchError,
    UnsupportedByteOrderError,
    UnsupportedEncodingError,
)
from fuse3d.messages import ImageMessage
from fuse3d.models import CameraFrame

_BYTES_PER_PIXEL = {
    "bgr8": 3,
    "rgb8": 3,
    "uyvy": 2,
}

# BT.709 limited range: Y∈[16,235]，Cb/Cr∈[16,240]
_Y_SCALE = 255.0 / 219.0
_CR_TO_R = 1.792741
_CB_TO_G = -0.213249
_CR_TO_G = -0.532909
_CB_TO_B = 2.112402


def ycbcr709_to_rgb(y: np.ndarray, cb: np.ndarray, cr: np.ndarray) -> np.ndarray:
    """BT.709 limited-range YCbCr -> RGB（uint8，四舍五入并截断到 [0,255]）。

    输入为同形状数组，输出在最后追加一维 (..., 3)，通道顺序 R, G, B。
    """

    yf = (np.asarray(y, dtype=np.float32) - 16.0) * _Y_SCALE
    cbf = np.asarray(cb, dtype=np.float32) - 128.0
    crf = np.asarray(cr, dtype=np.float32) - 128.0

    r = yf + _CR_TO_R * crf
    g = yf + _CB_TO_G * cbf + _CR_TO_G * crf
    b = yf + _CB_TO_B * cbf

    rgb = np.stack([r, g, b], axis=-1)
    return np.clip(np.rint(rgb), 0.0, 255.0).astype(np.uint8)


def _uyvy_to_bgr(raw: np.ndarray, height: int, width: int) -> np.ndarray:
    groups = raw.reshape(height, width // 2, 4)
    u = groups[:, :, 0]
    y0 = groups[:, :, 1]
    v = groups[:, :, 2]
    y1 = groups[:, :, 3]

    rgb = np.empty((height, width // 2, 2, 3), dtype=np.uint8)
    rgb[:, :, 0, :] = ycbcr709_to_rgb(y0, u, v)
    rgb[:, :, 1, :] = ycbcr709_to_rgb(y1, u, v)
    rgb = rgb.reshape(height, width, 3)
    return np.ascontiguousarray(rgb[:, :, ::-1])


def decode_image(msg: ImageMessage) -> np.ndarray:
    """把图像消息解码为 (H, W, 3) uint8 BGR 数组（新分配的内存）。"""

    if msg.is_bigendian:
        raise UnsupportedByteOrderError("big-endian image data is not supported")

    encoding = str(msg.encoding).strip().lower()
    bpp = _BYTES_PER_PIXEL.get(encoding)
    if bpp is None:
        raise UnsupportedEncodingError(f"unsupported image encoding: {msg.encoding}")

    height = int(msg.height)
    width = int(msg.width)
    step = int(msg.step)

    if step != width * bpp:
        raise SizeMismatchError(f"row step {step} != width {width} x {bpp} bytes for {encoding}")

    raw = np.frombuffer(msg.data, dtype=np.uint8)
    if raw.size != step * height:
        raise SizeMismatchError(f"image data length {raw.size} != step {step} x height {height}")

    if encoding == "bgr8":
        return raw.reshape(height, width, 3).copy()
    if encoding == "rgb8":
        return np.ascontiguousarray(raw.reshape(height, width, 3)[:, :, ::-1])

    if width % 2 != 0:
        raise SizeMismatchError(f"uyvy image width must be even, got {width}")
    return _uyvy_to_bgr(raw, height, width)


def decode_camera_frame(
    msg: ImageMessage,
    *,
    expected_hw: tuple[int, int],
    rotate_180: bool = False,
) -> CameraFrame:
    """校验尺寸、解码，并按相机静态配置做几何变换。"""

    exp_h, exp_w = int(expected_hw[0]), int(expected_hw[1])
    if int(msg.height) != exp_h or int(msg.width) != exp_w:
        raise DimensionMismatchError(
            f"camera '{msg.camera}' expects {exp_w}x{exp_h} images, got {int(msg.width)}x{int(msg.height)}"
        )

    pixels = decode_image(msg)
    if rotate_180:
        pixels = cv2.rotate(pixels, cv2.ROTATE_180)

    return CameraFrame(
        camera=str(msg.camera),
        pixels=pixels,
        source_height=int(msg.height),
        source_width=int(msg.width),
        source_encoding=str(msg.encoding),
    )
