"""图像解码：三种编码统一为 BGR、行步长校验、BT.709 UYVY 转换与相机级变换。"""

from __future__ import annotations

import numpy as np
import pytest

from fuse3d.errors import (
    DimensionMismatchError,
    SizeMismatchError,
    UnsupportedByteOrderError,
    UnsupportedEncodingError,
)
from fuse3d.io.image import decode_camera_frame, decode_image, ycbcr709_to_rgb
from fuse3d.messages import ImageMessage


def _msg(data: bytes, height: int, width: int, encoding: str, step: int, **kwargs) -> ImageMessage:
    return ImageMessage(camera="front", data=data, height=height, width=width, encoding=encoding, step=step, **kwargs)


def _bt709(y: int, cb: int, cr: int) -> tuple[float, float, float]:
    yf = 1.164383 * (y - 16)
    r = yf + 1.792741 * (cr - 128)
    g = yf - 0.213249 * (cb - 128) - 0.532909 * (cr - 128)
    b = yf + 2.112402 * (cb - 128)
    return tuple(float(min(max(c, 0.0), 255.0)) for c in (r, g, b))  # type: ignore[return-value]


def test_uyvy_two_pixels_match_bt709() -> None:
    u, y0, v, y1 = 90, 120, 200, 60
    pixels = decode_image(_msg(bytes([u, y0, v, y1]), 1, 2, "uyvy", 4))

    assert pixels.shape == (1, 2, 3)
    rgb = pixels[:, :, ::-1].astype(np.float64)
    assert np.allclose(rgb[0, 0], _bt709(y0, u, v), atol=1.0)
    assert np.allclose(rgb[0, 1], _bt709(y1, u, v), atol=1.0)


def test_uyvy_limited_range_extremes() -> None:
    pixels = decode_image(_msg(bytes([128, 16, 128, 235]), 1, 2, "UYVY", 4))
    assert pixels[0, 0].tolist() == [0, 0, 0]
    assert pixels[0, 1].tolist() == [255, 255, 255]


def test_ycbcr709_to_rgb_broadcasts() -> None:
    out = ycbcr709_to_rgb(np.array([16, 235]), np.array([128, 128]), np.array([128, 128]))
    assert out.dtype == np.uint8
    assert out.tolist() == [[0, 0, 0], [255, 255, 255]]


def test_rgb8_and_bgr8_normalize_to_bgr() -> None:
    rgb = decode_image(_msg(bytes([10, 20, 30]), 1, 1, "rgb8", 3))
    bgr = decode_image(_msg(bytes([30, 20, 10]), 1, 1, "bgr8", 3))
    assert rgb.tolist() == [[[30, 20, 10]]]
    assert np.array_equal(rgb, bgr)


def test_row_step_must_match_width() -> None:
    with pytest.raises(SizeMismatchError):
        decode_image(_msg(bytes(8), 1, 2, "bgr8", 8))


def test_data_length_must_match_rows() -> None:
    with pytest.raises(SizeMismatchError):
        decode_image(_msg(bytes(5), 1, 2, "bgr8", 6))


def test_uyvy_width_must_be_even() -> None:
    with pytest.raises(SizeMismatchError):
        decode_image(_msg(bytes(6), 1, 3, "uyvy", 6))


def test_unknown_encoding() -> None:
    with pytest.raises(UnsupportedEncodingError) as ei:
        decode_image(_msg(bytes(2), 1, 2, "mono8", 2))
    assert ei.value.kind == "UnsupportedEncoding"


def test_big_endian_is_rejected() -> None:
    with pytest.raises(UnsupportedByteOrderError):
        decode_image(_msg(bytes(3), 1, 1, "bgr8", 3, is_bigendian=True))


def test_camera_frame_checks_dimensions_before_decoding() -> None:
    # 数据本身也非法，但尺寸不符先被发现
    msg = _msg(bytes(1), 2, 2, "bgr8", 6)
    with pytest.raises(DimensionMismatchError):
        decode_camera_frame(msg, expected_hw=(4, 4))


def test_camera_frame_rotate_180() -> None:
    src = np.arange(2 * 3 * 3, dtype=np.uint8).reshape(2, 3, 3)
    msg = _msg(src.tobytes(), 2, 3, "bgr8", 9)

    frame = decode_camera_frame(msg, expected_hw=(2, 3), rotate_180=True)
    assert (frame.height, frame.width) == (2, 3)
    assert np.array_equal(frame.pixels, src[::-1, ::-1])
    assert (frame.source_height, frame.source_width, frame.source_encoding) == (2, 3, "bgr8")
    assert np.array_equal(frame.rgb(), frame.pixels[:, :, ::-1])

    with pytest.raises(ValueError):
        frame.pixels[0, 0, 0] = 1
