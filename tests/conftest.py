"""pytest 运行期配置。

该仓库采用 src-layout（包代码在 ./src 下）。
为了在仓库根目录直接执行 `python -m pytest` 时也能导入 `fuse3d`，
这里在测试收集阶段把 ./src 注入到 sys.path；同时提供几个测试共用的小工具。

注意：这只是测试侧的便捷配置，不影响正式打包安装后的导入行为。
"""

from __future__ import annotations

import sys
from pathlib import Path


def _ensure_src_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src_str = str(repo_root / "src")
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_src_on_syspath()
