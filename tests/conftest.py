"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# 测试用子进程脚本
CHATTY_CLI = Path(__file__).parent / "fixtures" / "chatty_cli.py"


@pytest.fixture
def chatty() -> Callable[..., list[str]]:
    """构建运行 chatty_cli.py 的命令行。

    用法: chatty("--stdout-lines", "3", "--exit-code", "2")
    """

    def build(*args: str) -> list[str]:
        return [sys.executable, str(CHATTY_CLI), *args]

    return build


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch: pytest.MonkeyPatch):
    """每个测试使用干净的全局配置。"""
    from proc_capture import config

    for key in (
        "PROC_CAPTURE_TEE",
        "PROC_CAPTURE_ENCODING",
        "PROC_CAPTURE_ERRORS",
        "PROC_CAPTURE_POLL_INTERVAL",
        "PROC_CAPTURE_LOG_DEBUG",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config, "_config", None)
    yield
