"""pacman 风格调用参数

保存一次调用的操作符（-S / -U / -D ...）、选项与目标列表，
安装器据此派生出各个包管理器命令（复制后增删选项、替换目标）。
命令行解析本身不在这里完成，调用方直接填充 Arguments。
"""

from __future__ import annotations

from yippee.core.models import TargetMode

# 操作符（短 / 长形式）
_OPS = {
    "D": "database", "F": "files", "Q": "query", "R": "remove",
    "S": "sync", "T": "deptest", "U": "upgrade", "V": "version",
    "B": "build", "G": "getpkgbuild", "P": "show", "W": "web", "Y": "yippee",
}
_LONG_OPS = {v: k for k, v in _OPS.items()}

# 所有 pacman 操作共享的全局选项
_GLOBAL_OPTIONS = frozenset({
    "b", "dbpath", "r", "root", "v", "verbose", "arch", "cachedir",
    "color", "config", "debug", "gpgdir", "hookdir", "logfile",
    "noconfirm", "confirm", "disable-download-timeout", "sysroot",
})


def _is_op(name: str) -> bool:
    return name in _OPS or name in _LONG_OPS


def _format_option(name: str) -> str:
    return f"-{name}" if len(name) == 1 else f"--{name}"


class Arguments:
    """调用参数：操作符 + 选项（保持插入顺序）+ 目标"""

    def __init__(self, op: str = "") -> None:
        self.op = _LONG_OPS.get(op, op)
        self.options: dict[str, list[str]] = {}
        self.targets: list[str] = []

    def __repr__(self) -> str:
        return f"Arguments(op={self.op!r}, options={self.options!r}, targets={self.targets!r})"

    # ---- 复制 ----

    def copy(self) -> Arguments:
        cp = Arguments(self.op)
        cp.options = {k: list(v) for k, v in self.options.items()}
        cp.targets = list(self.targets)
        return cp

    def copy_global(self) -> Arguments:
        """只保留全局选项，不带操作符和目标"""
        cp = Arguments()
        cp.options = {
            k: list(v) for k, v in self.options.items() if k in _GLOBAL_OPTIONS
        }
        return cp

    # ---- 选项 ----

    def add_arg(self, *names: str) -> None:
        """添加开关选项；操作符字母（S/U/D...）设置为当前操作"""
        for name in names:
            if _is_op(name):
                self.op = _LONG_OPS.get(name, name)
                continue
            self.options.setdefault(name, [])

    def del_arg(self, *names: str) -> None:
        for name in names:
            self.options.pop(name, None)

    def exists_arg(self, *names: str) -> bool:
        return any(name in self.options for name in names)

    def get_values(self, *names: str) -> list[str]:
        values: list[str] = []
        for name in names:
            values.extend(self.options.get(name, []))
        return values

    def create_or_append_option(self, name: str, *values: str) -> None:
        self.options.setdefault(name, []).extend(values)

    # ---- 目标 ----

    def add_target(self, *targets: str) -> None:
        self.targets.extend(targets)

    def clear_targets(self) -> None:
        self.targets = []

    # ---- 格式化 ----

    def _format(self, names: list[str]) -> list[str]:
        out: list[str] = []
        for name in names:
            flag = _format_option(name)
            values = self.options[name]
            if not values:
                out.append(flag)
                continue
            for value in values:
                out.extend([flag, value])
        return out

    def format_args(self) -> list[str]:
        """操作符 + 非全局选项"""
        out = [_format_option(self.op)] if self.op else []
        names = [n for n in self.options if n not in _GLOBAL_OPTIONS]
        return out + self._format(names)

    def format_globals(self) -> list[str]:
        return self._format([n for n in self.options if n in _GLOBAL_OPTIONS])

    # ---- 权限 ----

    def need_root(self, mode: TargetMode = TargetMode.ANY) -> bool:
        """该操作是否会修改系统（需要提权）"""
        if self.exists_arg("h", "help"):
            return False
        if self.op == "D":
            return not self.exists_arg("k", "check")
        if self.op == "F":
            return self.exists_arg("y", "refresh")
        if self.op == "Q":
            return self.exists_arg("k", "check")
        if self.op == "R":
            return not self.exists_arg("p", "print", "print-format")
        if self.op == "S":
            if self.exists_arg("y", "refresh"):
                return True
            if self.exists_arg(
                "p", "print", "print-format", "s", "search",
                "l", "list", "g", "groups", "i", "info",
            ):
                return False
            if self.exists_arg("c", "clean") and mode is TargetMode.AUR:
                return False
            return True
        return self.op == "U"
