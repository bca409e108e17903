"""proc-capture 命令行入口。

运行一条命令，捕获 stdout/stderr，可选回显与转储，并以子进程退出码退出。

用法:
    proc-capture [--tee | --tee-stdout | --tee-stderr] [--dump] [--async] -- CMD [ARGS...]
"""

from __future__ import annotations

import argparse
import logging
import sys

import anyio

from .config import Config, TeeMode, get_config
from .errors import ExecutionInterruptedError, InvalidCommandError, LaunchError
from .runtime import ProcessRunner

__all__ = ["build_parser", "configure_logging", "run", "main"]

logger = logging.getLogger(__name__)

# 与 shell 约定一致的退出码
EXIT_LAUNCH_FAILED = 127
EXIT_INTERRUPTED = 130


def configure_logging(config: Config) -> None:
    """配置日志输出。

    - 默认: stderr, proc_capture 命名空间 INFO
    - LOG_DEBUG 模式: 临时文件, proc_capture 命名空间 DEBUG
    """
    log_handlers: list[logging.Handler] = []
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # root logger 保持 WARNING，减少第三方库噪音
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    logging.getLogger("proc_capture").setLevel(log_level)


def build_parser() -> argparse.ArgumentParser:
    """构建命令行解析器。"""
    parser = argparse.ArgumentParser(
        prog="proc-capture",
        description="Run a command, capturing stdout and stderr concurrently.",
    )
    # 未指定时使用 PROC_CAPTURE_TEE
    tee_group = parser.add_mutually_exclusive_group()
    tee_group.add_argument(
        "--tee",
        dest="tee",
        action="store_const",
        const=TeeMode.BOTH,
        default=None,
        help="Mirror both captured streams to the console",
    )
    tee_group.add_argument(
        "--tee-stdout",
        dest="tee",
        action="store_const",
        const=TeeMode.STDOUT,
        help="Mirror captured stdout only",
    )
    tee_group.add_argument(
        "--tee-stderr",
        dest="tee",
        action="store_const",
        const=TeeMode.STDERR,
        help="Mirror captured stderr only",
    )
    parser.add_argument(
        "--dump",
        action="store_true",
        help="Print captured stdout/stderr after the command finishes",
    )
    parser.add_argument(
        "--async",
        dest="use_async",
        action="store_true",
        help="Drain the streams with event-loop tasks instead of threads",
    )
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command and arguments")
    return parser


def _exit_code(returncode: int) -> int:
    """负数退出码（被信号终止）转换为 128 + 信号值。"""
    if returncode < 0:
        return 128 - returncode
    return returncode


def run(argv: list[str] | None = None) -> int:
    """解析参数并执行命令，返回进程退出码。"""
    config = get_config()
    parser = build_parser()
    args = parser.parse_args(argv)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]

    tee_mode = args.tee if args.tee is not None else config.tee_mode

    try:
        runner = ProcessRunner(command)
    except InvalidCommandError as e:
        parser.error(str(e))

    logger.debug(f"Running {runner!r} tee={tee_mode.value} async={args.use_async}")

    try:
        if args.use_async:
            returncode = anyio.run(
                runner.execute_async, tee_mode.tee_stdout, tee_mode.tee_stderr
            )
        else:
            returncode = runner.execute(tee_mode.tee_stdout, tee_mode.tee_stderr)
    except LaunchError as e:
        logger.error(str(e))
        return EXIT_LAUNCH_FAILED
    except (ExecutionInterruptedError, KeyboardInterrupt):
        logger.info(f"Interrupted: {runner.command}")
        return EXIT_INTERRUPTED

    for error in runner.stream_errors:
        logger.warning(f"Output may be incomplete: {error}")

    if args.dump:
        runner.dump()

    return _exit_code(returncode)


def main() -> None:
    """主入口点。"""
    configure_logging(get_config())
    sys.exit(run())


if __name__ == "__main__":
    main()
