"""流水线计数与速率统计（线程安全）。

worker 线程写入，外部线程（状态输出、测试）读取快照。
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import dataclass, field


@dataclass(frozen=True)
class StatsSnapshot:
    messages_in: dict[str, int]
    dropped: dict[str, int]
    outputs: dict[str, int]
    t_monotonic: float

    @property
    def total_in(self) -> int:
        return int(sum(self.messages_in.values()))

    @property
    def total_dropped(self) -> int:
        return int(sum(self.dropped.values()))

    @property
    def total_out(self) -> int:
        return int(sum(self.outputs.values()))


@dataclass
class PipelineStats:
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _in: Counter = field(default_factory=Counter)
    _dropped: Counter = field(default_factory=Counter)
    _out: Counter = field(default_factory=Counter)

    def count_in(self, kind: str) -> None:
        with self._lock:
            self._in[str(kind)] += 1

    def count_dropped(self, error_kind: str) -> None:
        with self._lock:
            self._dropped[str(error_kind)] += 1

    def count_out(self, sink: str) -> None:
        with self._lock:
            self._out[str(sink)] += 1

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                messages_in=dict(self._in),
                dropped=dict(self._dropped),
                outputs=dict(self._out),
                t_monotonic=time.monotonic(),
            )


def format_status_line(cur: StatsSnapshot, prev: StatsSnapshot | None) -> str:
    """格式化一行状态：累计值 + 相对上一快照的速率。"""

    line = f"status: in={cur.total_in} out={cur.total_out} dropped={cur.total_dropped}"
    if prev is None:
        return line

    dt_s = max(cur.t_monotonic - prev.t_monotonic, 1e-9)
    in_fps = float(cur.total_in - prev.total_in) / dt_s
    out_fps = float(cur.total_out - prev.total_out) / dt_s
    return f"{line} in_rate~{in_fps:.2f}/s out_rate~{out_fps:.2f}/s"
