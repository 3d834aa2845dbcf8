"""核心数据模型

安装流水线的数据类集中定义，installer / build driver / downloader 统一从此处导入。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# =========================================================================
# 包来源与安装原因
# =========================================================================


class Source(str, Enum):
    """包来源"""
    AUR = "aur"      # 源码构建
    SYNC = "sync"    # 二进制仓库


class Reason(str, Enum):
    """安装原因"""
    EXPLICIT = "explicit"
    DEP = "dep"
    MAKE_DEP = "makedep"    # 仅构建期依赖
    CHECK_DEP = "checkdep"

    @property
    def is_dep(self) -> bool:
        return self is not Reason.EXPLICIT


class TargetMode(str, Enum):
    """目标来源模式"""
    ANY = "any"
    AUR = "aur"
    REPO = "repo"


class RebuildMode(str, Enum):
    """重建策略

    - no:   产物已存在时跳过构建
    - yes:  始终重建显式目标
    - all:  始终重建所有源码包
    - tree: 同 all，且忽略已安装状态
    """
    NO = "no"
    YES = "yes"
    ALL = "all"
    TREE = "tree"


# =========================================================================
# 安装描述
# =========================================================================


@dataclass
class InstallInfo:
    """单个 (layer, 包名) 的安装描述

    source=AUR 时 srcinfo_path 与 aur_base 必填；
    同一层内共享 aur_base 的拆分包共用一个构建目录。
    """

    source: Source = Source.AUR
    reason: Reason = Reason.EXPLICIT
    version: str = ""
    is_group: bool = False                # 仅二进制仓库
    srcinfo_path: str | None = None
    aur_base: str | None = None
    sync_db_name: str | None = None       # 仅二进制仓库

    @property
    def is_source_build(self) -> bool:
        return self.source is Source.AUR


# 一层：包名 -> 安装描述，层内包之间没有依赖边
Layer = dict[str, InstallInfo]


# =========================================================================
# 构建结果
# =========================================================================


@dataclass
class BuildResult:
    """单个 base 的构建结果"""

    base: str
    build_dir: str = ""
    version: str = ""
    archives: dict[str, str] = field(default_factory=dict)  # 包名 -> 产物路径
    status: str = "pending"  # pending | built | cached | up_to_date

    @property
    def skipped(self) -> bool:
        return self.status in ("cached", "up_to_date")

    @property
    def paths(self) -> list[str]:
        return list(self.archives.values())
