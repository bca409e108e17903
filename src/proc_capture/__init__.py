"""proc-capture - 并发捕获子进程 stdout/stderr 的运行器。

环境变量:
    PROC_CAPTURE_TEE: 命令行默认回显模式 (none/stdout/stderr/both)
    PROC_CAPTURE_ENCODING: 子进程输出编码
    PROC_CAPTURE_LOG_DEBUG: 日志输出到临时文件

用法:
    proc-capture --tee both -- make test
"""

__version__ = "0.1.0"

from .errors import (
    ConcurrentExecutionError,
    ExecutionInterruptedError,
    InvalidCommandError,
    LaunchError,
    ProcessCaptureError,
    StreamReadError,
)
from .runtime import ProcessRunner

__all__ = [
    "__version__",
    "ConcurrentExecutionError",
    "ExecutionInterruptedError",
    "InvalidCommandError",
    "LaunchError",
    "ProcessCaptureError",
    "ProcessRunner",
    "StreamReadError",
]
