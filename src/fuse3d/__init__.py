"""fuse3d：点云 + 相机图像 + 2D 检测框的实时融合库。

说明：
- 编解码（io）把传输层消息转换为内部帧类型；
- 几何（geometry）负责相机投影与检测框空间索引；
- 融合（fusion）维护每路相机的最新状态并增量重算关联；
- 流水线（pipeline）用有界通道把上游、worker 与下游连接起来。

对外推荐从 `fuse3d.api` 导入少量稳定入口函数，避免外部项目依赖内部目录结构。
"""

from fuse3d.api import build_pipeline_from_config
from fuse3d.fusion import FusionCache
from fuse3d.pipeline import FusionPipeline

__all__ = [
    "FusionCache",
    "FusionPipeline",
    "build_pipeline_from_config",
]
