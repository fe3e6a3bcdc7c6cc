"""融合流水线：有界通道 + 合并线程 + 单 worker。"""

from .channel import Channel, ChannelClosed
from .core import SCENE_SINK, VIEWS_SINK, iter_fusion_outputs, run_worker, sink_for
from .runtime import FusionPipeline
from .sources import forward_sources
from .stats import PipelineStats, StatsSnapshot, format_status_line

__all__ = [
    "Channel",
    "ChannelClosed",
    "FusionPipeline",
    "PipelineStats",
    "SCENE_SINK",
    "StatsSnapshot",
    "VIEWS_SINK",
    "format_status_line",
    "forward_sources",
    "iter_fusion_outputs",
    "run_worker",
    "sink_for",
]
