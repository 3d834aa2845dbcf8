"""Shell 命令执行工具: 统一子进程调用

通过 CommandExecutor 协议抽象子进程执行，方便测试替换。
命令本身（Command）由 CmdBuilder 构造，执行器只负责运行：
  - run:     输出直接流向终端，非零退出抛 ExecutionError
  - capture: 缓冲 stdout/stderr 返回，非零退出抛 ExecutionError（携带 stderr）

取消: LocalExecutor 接受一个 threading.Event 作为取消信号，
信号触发时终止正在运行的子进程并抛出 OperationCancelled。
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from dataclasses import dataclass, field
from typing import Protocol

from yippee.core.exceptions import ExecutionError, OperationCancelled

logger = logging.getLogger(__name__)

# 轮询子进程状态 / 取消信号的间隔（秒）
_POLL_INTERVAL = 0.2


# =========================================================================
# 命令与执行结果
# =========================================================================

@dataclass
class Command:
    """待执行命令：参数向量 + 工作目录"""

    argv: list[str]
    cwd: str | None = None
    env: dict[str, str] | None = None

    def __str__(self) -> str:
        return shlex.join(self.argv)


@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议: 抽象子进程调用

    测试时可注入 mock 实现，无需 patch subprocess。
    """

    def run(self, cmd: Command) -> None:
        """执行命令，输出直接展示"""
        ...

    def capture(self, cmd: Command) -> CommandResult:
        """执行命令并缓冲输出"""
        ...


# =========================================================================
# 默认实现: 本地子进程执行器
# =========================================================================

class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def __init__(self, cancel: threading.Event | None = None) -> None:
        self.cancel = cancel

    def _check_cancel(self, cmd: Command) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise OperationCancelled(f"已取消: {cmd}")

    def _wait(self, proc: subprocess.Popen, cmd: Command) -> tuple[str, str]:
        """等待子进程结束；取消信号触发时终止子进程"""
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=_POLL_INTERVAL)
                return stdout or "", stderr or ""
            except subprocess.TimeoutExpired:
                if self.cancel is not None and self.cancel.is_set():
                    logger.warning("取消信号触发，终止子进程: %s", cmd)
                    proc.terminate()
                    try:
                        proc.wait(timeout=5)
                    except subprocess.TimeoutExpired:
                        proc.kill()
                        proc.wait()
                    raise OperationCancelled(f"已取消: {cmd}") from None

    def _spawn(self, cmd: Command, **kwargs) -> subprocess.Popen:
        """启动子进程；可执行文件或工作目录不存在时抛 ExecutionError (rc=127)"""
        try:
            return subprocess.Popen(cmd.argv, cwd=cmd.cwd, env=cmd.env, **kwargs)
        except OSError as e:
            raise ExecutionError(
                f"无法启动命令: {cmd}: {e}", command=str(cmd), returncode=127,
            ) from e

    def run(self, cmd: Command) -> None:
        self._check_cancel(cmd)
        logger.debug("run: %s (cwd=%s)", cmd, cmd.cwd or ".")
        proc = self._spawn(cmd)
        self._wait(proc, cmd)
        if proc.returncode != 0:
            raise ExecutionError(
                f"命令失败 (rc={proc.returncode}): {cmd}",
                command=str(cmd), returncode=proc.returncode,
            )

    def capture(self, cmd: Command) -> CommandResult:
        self._check_cancel(cmd)
        logger.debug("capture: %s (cwd=%s)", cmd, cmd.cwd or ".")
        proc = self._spawn(
            cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True,
        )
        stdout, stderr = self._wait(proc, cmd)
        if proc.returncode != 0:
            raise ExecutionError(
                f"命令失败 (rc={proc.returncode}): {cmd}: {stderr[:500]}",
                command=str(cmd), returncode=proc.returncode, stderr=stderr,
            )
        return CommandResult(returncode=proc.returncode, stdout=stdout, stderr=stderr)


# =========================================================================
# 全局默认执行器（可替换）
# =========================================================================

_default_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    """获取全局默认命令执行器"""
    return _default_executor


def set_executor(executor: CommandExecutor) -> None:
    """替换全局默认命令执行器（用于测试）"""
    global _default_executor  # noqa: PLW0603
    _default_executor = executor
