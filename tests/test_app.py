"""命令行入口测试。"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from unittest import mock

import pytest

from proc_capture.app import (
    EXIT_LAUNCH_FAILED,
    _exit_code,
    build_parser,
    configure_logging,
    run,
)
from proc_capture.config import TeeMode, load_config


class TestRun:
    """测试 run() 执行命令。"""

    def test_exit_code_propagated(self, chatty):
        """返回子进程退出码。"""
        assert run(["--", *chatty("--exit-code", "3")]) == 3

    def test_without_separator(self, chatty):
        """不带 -- 时从第一个位置参数开始都是命令。"""
        assert run(chatty("--exit-code", "4")) == 4

    def test_capture_only_by_default(self, chatty, capsys):
        """默认只捕获，不回显。"""
        run(["--", *chatty("--stdout-lines", "2")])
        assert capsys.readouterr().out == ""

    def test_tee_both(self, chatty, capsys):
        """--tee 同时回显 stdout 和 stderr。"""
        run(["--tee", "--", *chatty("--stdout-lines", "2", "--stderr-lines", "1")])
        captured = capsys.readouterr()
        assert captured.out == "out-1\nout-2\n"
        assert "err-1\n" in captured.err

    def test_tee_stdout(self, chatty, capsys):
        """--tee-stdout 只回显 stdout。"""
        run(["--tee-stdout", "--", *chatty("--stdout-lines", "2", "--stderr-lines", "1")])
        captured = capsys.readouterr()
        assert captured.out == "out-1\nout-2\n"
        assert "err-1" not in captured.err

    def test_tee_stderr(self, chatty, capsys):
        """--tee-stderr 只回显 stderr。"""
        run(["--tee-stderr", "--", *chatty("--stdout-lines", "1", "--stderr-lines", "1")])
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "err-1\n" in captured.err

    def test_tee_from_environment(self, chatty, capsys):
        """PROC_CAPTURE_TEE 作为默认回显模式。"""
        with mock.patch.dict(os.environ, {"PROC_CAPTURE_TEE": "stdout"}):
            run(["--", *chatty("--stdout-lines", "1")])
        assert capsys.readouterr().out == "out-1\n"

    def test_dump(self, chatty, capsys):
        """--dump 在结束后输出捕获内容。"""
        run(["--dump", "--", *chatty("--stdout-lines", "1", "--stderr-lines", "1")])
        captured = capsys.readouterr()
        assert captured.out == "out-1\n\n"
        assert "err-1\n" in captured.err

    def test_async(self, chatty, capsys):
        """--async 走事件循环路径。"""
        code = run(["--async", "--tee", "--", *chatty("--stdout-lines", "2", "--exit-code", "5")])
        assert code == 5
        assert capsys.readouterr().out == "out-1\nout-2\n"

    def test_launch_failure(self, tmp_path: Path, caplog):
        """启动失败返回 127 并记录错误。"""
        with caplog.at_level(logging.ERROR, logger="proc_capture"):
            code = run(["--", str(tmp_path / "missing")])
        assert code == EXIT_LAUNCH_FAILED
        assert any("failed to launch" in r.getMessage() for r in caplog.records)

    def test_empty_command(self):
        """缺少命令时参数错误退出。"""
        with pytest.raises(SystemExit) as exc_info:
            run(["--"])
        assert exc_info.value.code == 2


class TestHelpers:
    """测试辅助函数。"""

    @pytest.mark.parametrize("returncode,expected", [(0, 0), (3, 3), (-9, 137), (-15, 143)])
    def test_exit_code(self, returncode: int, expected: int):
        """信号终止转换为 128 + 信号值。"""
        assert _exit_code(returncode) == expected

    def test_tee_flags_exclusive(self):
        """回显选项互斥。"""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--tee-stdout", "--tee-stderr", "echo"])

    def test_tee_flag_takes_no_value(self):
        """--tee 不带参数，后续内容都属于命令。"""
        args = build_parser().parse_args(["--tee", "echo", "both"])
        assert args.tee == TeeMode.BOTH
        assert args.command == ["echo", "both"]


class TestConfigureLogging:
    """测试日志配置。"""

    @pytest.fixture
    def basic_config_calls(self, monkeypatch: pytest.MonkeyPatch):
        """拦截 logging.basicConfig，避免修改 root logger。"""
        calls: list[dict] = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
        pkg_logger = logging.getLogger("proc_capture")
        level = pkg_logger.level
        yield calls
        for kwargs in calls:
            for handler in kwargs.get("handlers", []):
                handler.close()
        pkg_logger.setLevel(level)

    def test_stderr_mode(self, basic_config_calls):
        """默认输出到 stderr，INFO 级别。"""
        configure_logging(load_config())

        (kwargs,) = basic_config_calls
        (handler,) = kwargs["handlers"]
        assert type(handler) is logging.StreamHandler
        assert kwargs["level"] == logging.WARNING
        assert logging.getLogger("proc_capture").level == logging.INFO

    def test_file_mode(self, basic_config_calls, tmp_path: Path):
        """LOG_DEBUG 模式输出到文件，DEBUG 级别。"""
        config = load_config()
        config.log_debug = True
        config.log_file = str(tmp_path / "debug.log")

        configure_logging(config)

        (kwargs,) = basic_config_calls
        (handler,) = kwargs["handlers"]
        assert isinstance(handler, logging.FileHandler)
        assert handler.baseFilename == config.log_file
        assert logging.getLogger("proc_capture").level == logging.DEBUG
