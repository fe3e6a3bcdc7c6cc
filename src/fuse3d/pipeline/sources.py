"""合并阶段：把多路上游输入源并入同一个有界入口通道。

每个上游源（一路传感器）一个线程：
- 逐条把消息送入入口通道；通道满时阻塞（背压），上游暂无数据时在自己的迭代器里等待；
- 多路之间按到达顺序交错，不按类型重排；
- 源耗尽或出错时关闭自己的发送端；入口通道的接收端（worker）断开时停止转发。

说明：
- 上游源可以是任意可迭代对象：生成器、离线回放列表，或者另一个 Channel。
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Sequence

from fuse3d.messages import InputMessage

from .channel import Channel, ChannelClosed


def _forward_one(source: Iterable[InputMessage], inbound: Channel, logger: logging.Logger, name: str) -> None:
    n = 0
    try:
        for msg in source:
            inbound.send(msg)
            n += 1
    except ChannelClosed:
        logger.debug("source %s: inbound channel closed after %d messages", name, n)
    except Exception:
        logger.exception("source %s failed after %d messages", name, n)
    else:
        logger.debug("source %s exhausted after %d messages", name, n)
    finally:
        inbound.close_sender()


def source_names(sources: Sequence[Iterable[InputMessage]], names: Sequence[str] | None = None) -> list[str]:
    """为每个源确定线程名；names 与 sources 长度不一致时抛 ValueError。"""

    if names is None:
        return [f"source{i}" for i in range(len(sources))]
    if len(names) != len(sources):
        raise ValueError("names and sources must have the same length")
    return [str(n) for n in names]


def forward_sources(
    sources: Sequence[Iterable[InputMessage]],
    inbound: Channel,
    *,
    logger: logging.Logger,
    names: Sequence[str] | None = None,
) -> list[threading.Thread]:
    """为每个源启动一个转发线程。

    约定：inbound 必须以 senders=len(sources) 创建，每个线程结束时关闭一个发送端。

    Returns:
        已启动的线程列表。
    """

    names = source_names(sources, names)

    threads: list[threading.Thread] = []
    for source, name in zip(sources, names):
        t = threading.Thread(
            target=_forward_one,
            args=(source, inbound, logger, str(name)),
            name=f"fuse3d-{name}",
            daemon=True,
        )
        t.start()
        threads.append(t)
    return threads
