"""领域协议定义

集中定义安装流水线与外部协作方之间的接口契约（Protocol），
installer / build driver 只依赖这些抽象，测试时注入替身即可，无需真实子进程。

使用 typing.Protocol 而非 ABC，使得现有类无需修改继承关系即可满足协议。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Protocol

if TYPE_CHECKING:
    from yippee.core.models import Layer, Reason


# 安装后钩子：无参数，失败时抛异常，由安装器汇总
PostInstallHook = Callable[[], None]


# =========================================================================
# 本地包数据库协议
# =========================================================================

class PackageDB(Protocol):
    """本地包数据库查询协议

    抽象「某包是否已安装为指定版本」「某包当前的安装原因」两类查询，
    使安装器不依赖 pacman / libalpm 具体实现。
    """

    def is_correct_version_installed(self, name: str, version: str) -> bool:
        """name 已安装且版本等于 version"""
        ...

    def local_install_reason(self, name: str) -> Reason | None:
        """已安装包的安装原因，未安装返回 None"""
        ...


# =========================================================================
# VCS 更新记录协议
# =========================================================================

class VCSStore(Protocol):
    """devel 包更新记录协议

    安装完成后由编排层通知，跳过安装失败的 base，避免记录从未成功安装的状态。
    """

    def update(self, layers: list[Layer], failed_bases: list[str]) -> None:
        """按最终目标列表更新记录"""
        ...


class NullVCSStore:
    """不记录任何状态的默认实现"""

    def update(self, layers: list[Layer], failed_bases: list[str]) -> None:
        return None
