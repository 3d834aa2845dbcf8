"""测试替身: 命令执行器 / 本地包数据库 / VCS 记录"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable

import pytest

from yippee.core.exceptions import ExecutionError
from yippee.core.models import Reason
from yippee.utils.cmd_builder import CmdBuilder
from yippee.utils.shell import Command, CommandResult


class MockExecutor:
    """记录所有调用的命令执行器

    - packagelists: 构建目录 -> makepkg --packagelist 输出的产物路径
    - 完整构建（带 --noprepare 的 makepkg）会在磁盘上创建该目录声明的产物
    - fail_when: 匹配的命令以非零退出码失败
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Command]] = []
        self.packagelists: dict[str, list[str]] = {}
        self.produce_archives = True
        self.on_run: Callable[[Command], None] | None = None
        self._failures: list[tuple[Callable[[Command], bool], int]] = []
        self._lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0

    # ---- 配置 ----

    def add_packagelist(self, build_dir: str | Path, *paths: str | Path) -> None:
        self.packagelists[str(build_dir)] = [str(p) for p in paths]

    def fail_when(self, predicate: Callable[[Command], bool], returncode: int = 1) -> None:
        self._failures.append((predicate, returncode))

    # ---- 协议实现 ----

    def _maybe_fail(self, cmd: Command) -> None:
        for predicate, rc in self._failures:
            if predicate(cmd):
                raise ExecutionError(
                    f"命令失败 (rc={rc}): {cmd}", command=str(cmd), returncode=rc,
                )

    def run(self, cmd: Command) -> None:
        with self._lock:
            self.calls.append(("run", cmd))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.on_run is not None:
                self.on_run(cmd)
            self._maybe_fail(cmd)
            if self.produce_archives and "--noprepare" in cmd.argv:
                for path in self.packagelists.get(cmd.cwd or "", []):
                    Path(path).touch()
        finally:
            with self._lock:
                self.in_flight -= 1

    def capture(self, cmd: Command) -> CommandResult:
        with self._lock:
            self.calls.append(("capture", cmd))
        self._maybe_fail(cmd)
        if "--packagelist" in cmd.argv:
            return CommandResult(0, "\n".join(self.packagelists.get(cmd.cwd or "", [])) + "\n")
        return CommandResult(0)

    # ---- 断言辅助 ----

    @staticmethod
    def _line(cmd: Command) -> str:
        argv = cmd.argv[1:] if cmd.argv and cmd.argv[0] == "sudo" else cmd.argv
        return " ".join(argv)

    @property
    def lines(self) -> list[str]:
        """全部调用（run 与 capture 按发生顺序），去掉 sudo 前缀"""
        return [self._line(c) for _, c in self.calls]

    @property
    def run_lines(self) -> list[str]:
        return [self._line(c) for kind, c in self.calls if kind == "run"]

    @property
    def capture_lines(self) -> list[str]:
        return [self._line(c) for kind, c in self.calls if kind == "capture"]

    def lines_starting(self, prefix: str) -> list[str]:
        return [line for line in self.lines if line.startswith(prefix)]


class MockDB:
    """内存中的本地包数据库"""

    def __init__(
        self,
        installed: dict[str, str] | None = None,
        reasons: dict[str, Reason] | None = None,
    ) -> None:
        self.installed = dict(installed or {})
        self.reasons = dict(reasons or {})

    def is_correct_version_installed(self, name: str, version: str) -> bool:
        return self.installed.get(name) == version

    def local_install_reason(self, name: str) -> Reason | None:
        return self.reasons.get(name)


class MockVCSStore:
    def __init__(self) -> None:
        self.updates: list[tuple[list, list[str]]] = []

    def update(self, layers: list, failed_bases: list[str]) -> None:
        self.updates.append((layers, list(failed_bases)))


@pytest.fixture()
def executor() -> MockExecutor:
    return MockExecutor()


@pytest.fixture()
def db() -> MockDB:
    return MockDB()


@pytest.fixture()
def vcs() -> MockVCSStore:
    return MockVCSStore()


@pytest.fixture()
def cmd_builder() -> CmdBuilder:
    return CmdBuilder(
        makepkg_bin="makepkg", pacman_bin="pacman",
        pacman_conf="/etc/pacman.conf", sudo_bin="sudo",
    )
