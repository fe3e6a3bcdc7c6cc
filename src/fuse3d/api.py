"""对外稳定入口。

外部项目只需要：
    pipeline = build_pipeline_from_config("fusion.yaml")
    pipeline.start([lidar_source, camera_source, detection_source])
    for scene in pipeline.scene: ...
"""

from __future__ import annotations

from pathlib import Path

from fuse3d.config import build_camera_setups, load_fusion_config
from fuse3d.logging_utils import get_logger, set_console_level
from fuse3d.pipeline import FusionPipeline


def build_pipeline_from_config(path: Path | str) -> FusionPipeline:
    """读取配置文件并构造（未启动的）流水线。

    Raises:
        CameraConfigError: 相机内外参非法。
        RuntimeError: 配置文件不可读或结构错误。
    """

    cfg = load_fusion_config(Path(path))
    setups = build_camera_setups(cfg)
    logger = get_logger(console_level=cfg.log_level)
    set_console_level(logger, cfg.log_level)
    logger.info("loaded fusion config: %s (cameras=%s)", path, list(setups))

    return FusionPipeline(
        setups,
        inbound_capacity=cfg.inbound_capacity,
        outbound_capacity=cfg.outbound_capacity,
        status_interval_s=cfg.status_interval_s,
        logger=logger,
    )
