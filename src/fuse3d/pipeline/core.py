"""融合流水线核心：输入消息 -> FusionCache -> 输出消息 -> 各 sink。

本模块分两层：
- `iter_fusion_outputs`：无框架依赖的生成器（不涉及线程/通道），
  只依赖一个输入迭代器与一个 FusionCache，便于离线回放与测试；
- `run_worker`：在其之上加通道语义（按到达顺序取入口通道、按类型投递到 sink、
  感知 sink 断开），是 worker 线程的主循环。

错误处理：
- FusionInputError（解码失败、尺寸不符、未知相机）是单条消息级别的可恢复错误：
  记录日志并丢弃该消息，缓存保持原状，继续处理下一条。
- 其它异常属于编程错误，直接向上传播。
"""

from __future__ import annotations

import logging
import time
from typing import Iterable, Iterator, Mapping

from fuse3d.errors import FusionInputError
from fuse3d.fusion.cache import FusionCache
from fuse3d.messages import CameraViewMessage, InputMessage, OutputMessage, SceneMessage, message_kind

from .channel import Channel, ChannelClosed
from .stats import PipelineStats, format_status_line

SCENE_SINK = "scene"
VIEWS_SINK = "views"


def sink_for(msg: OutputMessage) -> str:
    """输出消息 -> sink 名。"""

    if isinstance(msg, SceneMessage):
        return SCENE_SINK
    if isinstance(msg, CameraViewMessage):
        return VIEWS_SINK
    raise TypeError(f"unknown output message type: {type(msg).__name__}")


def iter_fusion_outputs(
    messages: Iterable[InputMessage],
    cache: FusionCache,
    *,
    logger: logging.Logger | None = None,
    stats: PipelineStats | None = None,
) -> Iterator[OutputMessage]:
    """按顺序处理输入消息，逐条产出输出消息。

    Args:
        messages: 输入消息迭代器（按到达顺序）。
        cache: 融合缓存；本函数是它唯一的修改者。
        logger: 记录被丢弃的消息；None 时使用 `fuse3d` logger。
        stats: 可选计数器。

    Yields:
        每条输入产生的 0..N 条输出，顺序与 FusionCache.handle 一致。
    """

    log = logger or logging.getLogger("fuse3d")

    for msg in messages:
        kind = message_kind(msg)
        if stats is not None:
            stats.count_in(kind)

        try:
            outs = cache.handle(msg)
        except FusionInputError as exc:
            log.warning("Unable to process an input message (%s, %s): %s", kind, exc.kind, exc)
            if stats is not None:
                stats.count_dropped(exc.kind)
            continue

        yield from outs


def _iter_inbound(inbound: Channel, live: Mapping[str, Channel], poll_s: float) -> Iterator[InputMessage]:
    """逐条取入口通道；空闲等待期间也检查 sink 是否已全部断开。"""

    while True:
        try:
            yield inbound.recv(timeout=poll_s)
        except TimeoutError:
            if live and all(ch.receiver_closed for ch in live.values()):
                return
        except ChannelClosed:
            return


def run_worker(
    inbound: Channel,
    cache: FusionCache,
    sinks: Mapping[str, Channel],
    *,
    logger: logging.Logger,
    stats: PipelineStats,
    status_interval_s: float = 0.0,
    idle_poll_s: float = 0.1,
) -> None:
    """worker 主循环。

    - 严格按入口通道的到达顺序处理；
    - 每条输出阻塞投递到对应 sink（sink 满时等待，不丢弃、不重排）；
    - 某个 sink 的接收端断开后不再向它投递；所有 sink 都断开时整体退出，
      上游空闲时也会在 idle_poll_s 内发现；
    - 入口通道所有发送端关闭且已取空，或入口接收端被关闭（FusionPipeline.close）时退出。

    退出时关闭入口通道的接收端（通知上游停止）以及各 sink 的发送端（通知下游结束）。
    """

    live: dict[str, Channel] = dict(sinks)
    last_status_t = time.monotonic()
    last_snapshot = None

    logger.info("fusion worker started: cameras=%s sinks=%s", cache.cameras, list(live))
    try:
        if not live:
            return

        messages = _iter_inbound(inbound, live, float(idle_poll_s))
        for out in iter_fusion_outputs(messages, cache, logger=logger, stats=stats):
            name = sink_for(out)
            ch = live.get(name)
            if ch is not None:
                try:
                    ch.send(out)
                    stats.count_out(name)
                except ChannelClosed:
                    logger.info("sink '%s' disconnected; stop forwarding to it", name)
                    del live[name]

            if not live:
                logger.info("all sinks disconnected; fusion worker stops")
                break

            if float(status_interval_s) > 0:
                now = time.monotonic()
                if (now - last_status_t) >= float(status_interval_s):
                    snap = stats.snapshot()
                    logger.info(format_status_line(snap, last_snapshot))
                    last_snapshot = snap
                    last_status_t = now
        else:
            if live and all(ch.receiver_closed for ch in live.values()):
                logger.info("all sinks disconnected while idle; fusion worker stops")
    finally:
        inbound.close_receiver()
        for ch in sinks.values():
            ch.close_sender()
        snap = stats.snapshot()
        logger.info(
            "fusion worker stopped: in=%d out=%d dropped=%d",
            snap.total_in,
            snap.total_out,
            snap.total_dropped,
        )
