"""融合缓存：最新点云/图像/检测集合 + 增量重算的关联结果。"""

from .cache import FusionCache

__all__ = ["FusionCache"]
