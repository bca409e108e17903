"""proc-capture 环境变量配置管理。

环境变量:
    PROC_CAPTURE_TEE: 命令行默认的 tee 模式
        - none = 只捕获，不回显 (默认)
        - stdout = 回显 stdout
        - stderr = 回显 stderr
        - both = 两个流都回显

    PROC_CAPTURE_ENCODING: 子进程输出的解码编码
        - 默认使用 locale 首选编码

    PROC_CAPTURE_ERRORS: 解码错误处理方式
        - 默认 replace

    PROC_CAPTURE_POLL_INTERVAL: 等待子进程退出时检查中断的间隔（秒）
        - 默认 0.1 秒，限制在 0.01-5 秒范围

    PROC_CAPTURE_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)
"""

from __future__ import annotations

import locale
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

__all__ = ["Config", "TeeMode", "load_config", "get_config", "reload_config"]

DEFAULT_POLL_INTERVAL = 0.1


class TeeMode(Enum):
    """回显模式。

    - NONE: 只捕获
    - STDOUT: stdout 同时回显到调用方 stdout
    - STDERR: stderr 同时回显到调用方 stderr
    - BOTH: 两个流都回显
    """

    NONE = "none"
    STDOUT = "stdout"
    STDERR = "stderr"
    BOTH = "both"

    @classmethod
    def from_string(cls, value: str) -> "TeeMode":
        """从字符串解析模式，无效值返回 NONE。"""
        value = value.lower().strip()
        for mode in cls:
            if mode.value == value:
                return mode
        return cls.NONE

    @property
    def tee_stdout(self) -> bool:
        return self in (TeeMode.STDOUT, TeeMode.BOTH)

    @property
    def tee_stderr(self) -> bool:
        return self in (TeeMode.STDERR, TeeMode.BOTH)


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_tee_mode(value: str | None) -> TeeMode:
    if not value:
        return TeeMode.NONE
    return TeeMode.from_string(value)


def _parse_poll_interval(value: str | None) -> float:
    """解析轮询间隔环境变量。"""
    if not value:
        return DEFAULT_POLL_INTERVAL
    try:
        interval = float(value)
        return max(0.01, min(interval, 5.0))
    except ValueError:
        return DEFAULT_POLL_INTERVAL


def _default_encoding() -> str:
    return locale.getpreferredencoding(False) or "utf-8"


def _generate_log_file_path() -> str:
    """生成临时目录下带时间戳的日志文件路径。"""
    log_dir = Path(tempfile.gettempdir()) / "proc-capture"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"proc_capture_{timestamp}.log"

    return str(log_file.resolve())


@dataclass
class Config:
    """proc-capture 配置。

    Attributes:
        tee_mode: 命令行默认的回显模式
        encoding: 子进程输出编码
        errors: 解码错误处理方式
        poll_interval: 等待退出时检查中断的间隔（秒）
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    tee_mode: TeeMode = TeeMode.NONE
    encoding: str = "utf-8"
    errors: str = "replace"
    poll_interval: float = DEFAULT_POLL_INTERVAL
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(tee_mode={self.tee_mode.value}, "
            f"encoding={self.encoding}, "
            f"errors={self.errors}, "
            f"poll_interval={self.poll_interval}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("PROC_CAPTURE_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        tee_mode=_parse_tee_mode(os.environ.get("PROC_CAPTURE_TEE")),
        encoding=os.environ.get("PROC_CAPTURE_ENCODING") or _default_encoding(),
        errors=os.environ.get("PROC_CAPTURE_ERRORS") or "replace",
        poll_interval=_parse_poll_interval(os.environ.get("PROC_CAPTURE_POLL_INTERVAL")),
        log_debug=log_debug,
        log_file=log_file,
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
