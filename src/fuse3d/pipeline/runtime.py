"""流水线运行时：线程与通道的 wiring。

结构：
    sources (每路一个线程) --> inbound Channel(容量小，默认 2)
        --> worker 线程（独占 FusionCache 与所有 CameraModel）
        --> outbound Channel: "scene" / "views"（每个消费者一个，有界）

说明：
- FusionCache 在构造时创建、只交给 worker 线程使用，外部不持有它，因此无需加锁。
- 构造期错误（相机配置非法）在这里直接抛出，不会启动任何线程。
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Mapping, Sequence

from fuse3d.fusion.cache import FusionCache
from fuse3d.geometry.camera import CameraSetup
from fuse3d.logging_utils import get_logger
from fuse3d.messages import CameraViewMessage, InputMessage, SceneMessage

from .channel import Channel
from .core import SCENE_SINK, VIEWS_SINK, run_worker
from .sources import forward_sources, source_names
from .stats import PipelineStats


class FusionPipeline:
    """有界通道的 producer / worker / consumer 流水线。

    Args:
        setups: 相机名 -> CameraSetup。
        inbound_capacity: 入口通道容量。
        outbound_capacity: 每个 sink 的容量。
        sinks: 需要的 sink 名（"scene"、"views" 的子集）；没有消费者的输出类型直接跳过。
        status_interval_s: 周期性状态日志间隔（秒，0 关闭）。
        logger: 日志对象；None 时使用 get_logger()。
    """

    def __init__(
        self,
        setups: Mapping[str, CameraSetup],
        *,
        inbound_capacity: int = 2,
        outbound_capacity: int = 2,
        sinks: Sequence[str] = (SCENE_SINK, VIEWS_SINK),
        status_interval_s: float = 0.0,
        logger: logging.Logger | None = None,
    ):
        unknown = [s for s in sinks if s not in (SCENE_SINK, VIEWS_SINK)]
        if unknown:
            raise ValueError(f"unknown sinks: {unknown} (expected: {SCENE_SINK}|{VIEWS_SINK})")
        if int(inbound_capacity) < 1 or int(outbound_capacity) < 1:
            raise ValueError("channel capacities must be >= 1")

        self._cache = FusionCache(setups)
        self._inbound_capacity = int(inbound_capacity)
        self._outbound: dict[str, Channel] = {str(s): Channel(int(outbound_capacity)) for s in sinks}
        self._status_interval_s = float(status_interval_s)
        self._logger = logger or get_logger()

        self.stats = PipelineStats()

        self._inbound: Channel | None = None
        self._producers: list[threading.Thread] = []
        self._worker: threading.Thread | None = None

    @property
    def cameras(self) -> list[str]:
        return self._cache.cameras

    @property
    def scene(self) -> "Channel[SceneMessage]":
        return self.receiver(SCENE_SINK)

    @property
    def views(self) -> "Channel[CameraViewMessage]":
        return self.receiver(VIEWS_SINK)

    def receiver(self, name: str) -> Channel:
        try:
            return self._outbound[str(name)]
        except KeyError:
            raise KeyError(f"sink '{name}' is not enabled") from None

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self, sources: Sequence[Iterable[InputMessage]], *, names: Sequence[str] | None = None) -> None:
        """启动合并线程与 worker 线程；只能调用一次。"""

        if self._worker is not None:
            raise RuntimeError("pipeline already started")

        # names 必须在任何线程启动之前校验
        names = source_names(sources, names)

        inbound: Channel = Channel(self._inbound_capacity, senders=max(1, len(sources)))
        if not sources:
            inbound.close_sender()
        self._inbound = inbound

        self._worker = threading.Thread(
            target=run_worker,
            args=(inbound, self._cache, dict(self._outbound)),
            kwargs={
                "logger": self._logger,
                "stats": self.stats,
                "status_interval_s": self._status_interval_s,
            },
            name="fuse3d-worker",
            daemon=True,
        )
        self._worker.start()

        self._producers = forward_sources(sources, inbound, logger=self._logger, names=names)

    def join(self, timeout: float | None = None) -> bool:
        """等待 worker 退出；返回 worker 是否已结束。"""

        if self._worker is None:
            return True
        self._worker.join(timeout)
        return not self._worker.is_alive()

    def close(self, timeout: float | None = 2.0) -> bool:
        """断开所有消费者端与入口接收端，让 worker 尽快退出（上游空闲时也一样）。"""

        for ch in self._outbound.values():
            ch.close_receiver()
        if self._inbound is not None:
            self._inbound.close_receiver()
        return self.join(timeout)

    def __enter__(self) -> "FusionPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
