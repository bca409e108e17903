"""proc-capture 异常类。

所有异常都继承 ProcessCaptureError，同时继承对应的内置异常，
调用方可以按任一类型捕获。
"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "ProcessCaptureError",
    "InvalidCommandError",
    "LaunchError",
    "StreamReadError",
    "ExecutionInterruptedError",
    "ConcurrentExecutionError",
]


class ProcessCaptureError(Exception):
    """proc-capture 基础异常。"""
    pass


class InvalidCommandError(ProcessCaptureError, ValueError):
    """命令行无效（空命令、str 而非序列、非字符串参数）。"""
    pass


class LaunchError(ProcessCaptureError):
    """子进程启动失败（找不到可执行文件、权限不足、资源耗尽）。

    Attributes:
        argv: 启动失败的命令行
        reason: 底层错误描述
    """

    def __init__(self, argv: Sequence[str], reason: str) -> None:
        self.argv = tuple(argv)
        self.reason = reason
        program = self.argv[0] if self.argv else "<empty>"
        super().__init__(f"failed to launch {program}: {reason}")


class StreamReadError(ProcessCaptureError):
    """读取子进程输出流失败。

    只记录日志并保存在 worker 上，不会从 execute() 抛出。

    Attributes:
        stream_name: 出错的流名称（stdout/stderr）
    """

    def __init__(self, stream_name: str, message: str) -> None:
        self.stream_name = stream_name
        super().__init__(f"[{stream_name}] {message}")


class ExecutionInterruptedError(ProcessCaptureError, InterruptedError):
    """等待子进程期间被中断，退出码不可用，已捕获的输出保留。"""
    pass


class ConcurrentExecutionError(ProcessCaptureError, RuntimeError):
    """同一个 ProcessRunner 上已有 execute() 在运行。"""
    pass
