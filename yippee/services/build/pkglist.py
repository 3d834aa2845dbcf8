"""makepkg --packagelist 输出解析

每行一个产物路径，文件名形如 pkgname-pkgver-pkgrel-arch.pkgext，
包名本身可以含 "-"，因此从右侧取最后三段。
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from yippee.core.exceptions import ValidationError

DEBUG_SUFFIX = "-debug"


@dataclass
class PackageArchive:
    """构建工具声明的单个产物"""

    name: str
    version: str   # pkgver-pkgrel（含 epoch）
    arch: str
    path: str

    @property
    def is_debug(self) -> bool:
        return self.name.endswith(DEBUG_SUFFIX)

    @property
    def exists(self) -> bool:
        return os.path.exists(self.path)


def debug_name(name: str) -> str:
    return name + DEBUG_SUFFIX


def parse_package_list(stdout: str) -> dict[str, PackageArchive]:
    """解析产物列表，返回 包名 -> 产物（保持输出顺序）

    异常:
        ValidationError: 某行无法按 name-ver-rel-arch 拆分
    """
    archives: dict[str, PackageArchive] = {}
    for line in stdout.splitlines():
        line = line.strip()
        if not line:
            continue
        parts = os.path.basename(line).split("-")
        if len(parts) < 4:
            raise ValidationError(f"无法从产物路径解析包名: {line}")
        name = "-".join(parts[:-3])
        archives[name] = PackageArchive(
            name=name,
            version=f"{parts[-3]}-{parts[-2]}",
            arch=parts[-1].split(".", 1)[0],
            path=line,
        )
    return archives
