"""有界通道：在 queue.Queue 之上补充“断开”语义。

queue.Queue 本身不知道对端是否还存在，这里增加两个标志：
- 接收端关闭：send() 立即抛 ChannelClosed，发送方据此停止向该 sink 投递；
- 所有发送端关闭：recv() 取完剩余元素后抛 ChannelClosed，接收方据此退出循环；
  接收端自己关闭后，正在等待的 recv() 也抛 ChannelClosed。

阻塞操作以 poll_s 为周期轮询，保证对端断开后能在一个周期内被感知。
"""

from __future__ import annotations

import queue
import threading
from typing import Generic, Iterator, TypeVar

T = TypeVar("T")


class ChannelClosed(RuntimeError):
    """通道对端已断开。"""


class Channel(Generic[T]):
    """多发送端、单接收端的有界 FIFO 通道。

    Args:
        capacity: 缓冲容量（>=1）。
        senders: 初始发送端数量；每个发送端结束时调用一次 close_sender()。
        poll_s: 阻塞等待时检查对端状态的周期（秒）。
    """

    def __init__(self, capacity: int, *, senders: int = 1, poll_s: float = 0.05):
        if int(capacity) < 1:
            raise ValueError("channel capacity must be >= 1")
        if int(senders) < 1:
            raise ValueError("channel needs at least one sender")

        self._q: "queue.Queue[T]" = queue.Queue(maxsize=int(capacity))
        self._lock = threading.Lock()
        self._senders = int(senders)
        self._receiver_closed = threading.Event()
        self._senders_done = threading.Event()
        self._poll_s = float(poll_s)

    @property
    def capacity(self) -> int:
        return int(self._q.maxsize)

    def qsize(self) -> int:
        return self._q.qsize()

    @property
    def receiver_closed(self) -> bool:
        return self._receiver_closed.is_set()

    @property
    def senders_closed(self) -> bool:
        return self._senders_done.is_set()

    def add_sender(self) -> None:
        with self._lock:
            if self._senders_done.is_set():
                raise ChannelClosed("all senders already closed")
            self._senders += 1

    def close_sender(self) -> None:
        """一个发送端结束；最后一个发送端结束后接收端会在取空后收到 ChannelClosed。"""

        with self._lock:
            if self._senders_done.is_set():
                return
            self._senders -= 1
            if self._senders <= 0:
                self._senders_done.set()

    def close_receiver(self) -> None:
        """接收端断开：后续 send() 抛 ChannelClosed，缓冲中的元素被丢弃。"""

        self._receiver_closed.set()
        while True:
            try:
                self._q.get_nowait()
            except queue.Empty:
                break

    def send(self, item: T) -> None:
        """阻塞发送；缓冲满时等待（背压）。

        Raises:
            ChannelClosed: 接收端已断开。
        """

        while True:
            if self._receiver_closed.is_set():
                raise ChannelClosed("receiver disconnected")
            try:
                self._q.put(item, timeout=self._poll_s)
                return
            except queue.Full:
                continue

    def recv(self, timeout: float | None = None) -> T:
        """阻塞接收。

        Raises:
            ChannelClosed: 接收端已被关闭，或所有发送端已断开且缓冲已空。
            TimeoutError: 超过 timeout 秒仍未收到数据。
        """

        waited = 0.0
        while True:
            if self._receiver_closed.is_set():
                raise ChannelClosed("receiver closed")
            try:
                return self._q.get(timeout=self._poll_s)
            except queue.Empty:
                pass
            if self._senders_done.is_set() and self._q.empty():
                raise ChannelClosed("all senders disconnected")
            waited += self._poll_s
            if timeout is not None and waited >= float(timeout):
                raise TimeoutError(f"no item received within {float(timeout):.3f}s")

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.recv()
            except ChannelClosed:
                return
