"""帧解码（FrameCodec）：把线上的原始字节转换为类型化的内存数据。"""

from .detections import decode_detection_set
from .image import decode_camera_frame, decode_image, ycbcr709_to_rgb
from .pointcloud import check_point_fields, decode_point_cloud, encode_point_cloud

__all__ = [
    "check_point_fields",
    "decode_camera_frame",
    "decode_detection_set",
    "decode_image",
    "decode_point_cloud",
    "encode_point_cloud",
    "ycbcr709_to_rgb",
]
