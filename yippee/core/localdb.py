"""本地包数据库查询（PackageDB 协议的默认实现）

通过 `pacman -Q` / `pacman -Qi` 查询已安装包的版本与安装原因。
"""

from __future__ import annotations

import logging
import os

from yippee.core.exceptions import ExecutionError
from yippee.core.models import Reason
from yippee.utils.shell import Command, CommandExecutor

logger = logging.getLogger(__name__)

_EXPLICIT_MARKER = "Explicitly installed"


class PacmanLocalDB:
    """基于 pacman 查询的本地数据库"""

    def __init__(self, executor: CommandExecutor, pacman_bin: str = "pacman") -> None:
        self.executor = executor
        self.pacman_bin = pacman_bin

    def _query(self, *args: str) -> str | None:
        try:
            result = self.executor.capture(Command(
                argv=[self.pacman_bin, *args],
                env={**os.environ, "LC_ALL": "C"},
            ))
        except ExecutionError:
            # 未安装时 pacman 以非零退出
            return None
        return result.stdout

    def installed_version(self, name: str) -> str | None:
        out = self._query("-Q", "--", name)
        if not out:
            return None
        parts = out.split()
        if len(parts) < 2 or parts[0] != name:
            return None
        return parts[1]

    def is_correct_version_installed(self, name: str, version: str) -> bool:
        return self.installed_version(name) == version

    def local_install_reason(self, name: str) -> Reason | None:
        out = self._query("-Qi", "--", name)
        if not out:
            return None
        for line in out.splitlines():
            key, _, value = line.partition(":")
            if key.strip() == "Install Reason":
                return Reason.EXPLICIT if _EXPLICIT_MARKER in value else Reason.DEP
        logger.debug("未在 pacman -Qi 输出中找到安装原因: %s", name)
        return None
