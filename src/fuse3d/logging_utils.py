"""fuse3d 日志工具。

约定：
    - 统一格式 `[时间][级别][logger 名] 消息`
    - 支持控制台输出与可选文件输出
    - 同名 logger 多次获取时不重复添加 handler
"""

from __future__ import annotations

import logging
from pathlib import Path

LOGGER_NAME = "fuse3d"


def get_logger(
    name: str = LOGGER_NAME,
    *,
    console_output: bool = True,
    file_output: bool = False,
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    log_file: str | Path | None = None,
) -> logging.Logger:
    """创建或获取一个 logger。

    Args:
        name: logger 名称。
        console_output: 是否输出到控制台。
        file_output: 是否输出到文件。
        console_level: 控制台日志级别（字符串）。
        file_level: 文件日志级别（字符串）。
        log_file: 日志文件路径；为 None 时写到 `logs/<name>.log`。

    Returns:
        logging.Logger: 配置完成的 logger。
    """

    logger = logging.getLogger(name)

    if getattr(logger, "_fuse3d_configured", False):
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    fmt = logging.Formatter(
        fmt="[%(asctime)s][%(levelname)s][%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    if console_output:
        ch = logging.StreamHandler()
        ch.setLevel(parse_level(console_level))
        ch.setFormatter(fmt)
        logger.addHandler(ch)

    if file_output:
        path = Path(log_file or Path("logs") / f"{name}.log")
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(parse_level(file_level))
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    setattr(logger, "_fuse3d_configured", True)
    return logger


def set_console_level(logger: logging.Logger, level: str) -> None:
    """调整已配置 logger 的控制台级别（配置文件里的 log_level 在 logger 创建之后才读到）。"""

    lv = parse_level(level)
    for h in logger.handlers:
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler):
            h.setLevel(lv)


def parse_level(level: str) -> int:
    """解析日志级别字符串；无法识别时回退到 INFO。"""

    value = logging.getLevelName(str(level).upper())
    if isinstance(value, int):
        return value
    return logging.INFO
