"""构建驱动: 单个 base 的 makepkg 流程

流程（每步一次独立的 makepkg 调用）:
  1. 元数据刷新:   makepkg --nobuild -f -C --ignorearch
  2. 产物列表:     makepkg --packagelist（缓冲输出，逐行解析）
  3. 构建或跳过:
       - 完整构建:  makepkg -f -c --noconfirm --noextract --noprepare --holdver --ignorearch
       - 跳过构建:  makepkg -c --nobuild --noextract --ignorearch（仅清理）
  4. 校验:         声明的每个产物必须存在于磁盘

keep_sources 时去掉所有 -c / -C。
产物列表在构建前获取，因为跳过判断需要它；构建后再逐个校验存在性。
"""

from __future__ import annotations

import logging
import threading

from yippee.core.exceptions import (
    BuildError,
    ExecutionError,
    NoPkgDestsFoundError,
    OperationCancelled,
    PkgDestNotFoundError,
    ValidationError,
)
from yippee.core.models import BuildResult
from yippee.core.protocols import PackageDB
from yippee.services.build.pkglist import PackageArchive, parse_package_list
from yippee.utils.cmd_builder import CmdBuilder
from yippee.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


def _clean_flags(flags: list[str], keep_sources: bool) -> list[str]:
    if not keep_sources:
        return flags
    return [f for f in flags if f not in ("-c", "-C")]


class BuildDriver:
    """单个 base 的构建驱动"""

    def __init__(
        self, cmd_builder: CmdBuilder, executor: CommandExecutor, db: PackageDB,
    ) -> None:
        self.cmd_builder = cmd_builder
        self.executor = executor
        self.db = db

    # ---- makepkg 调用 ----

    def _makepkg(self, base: str, build_dir: str, step: str, *flags: str) -> None:
        cmd = self.cmd_builder.build_makepkg_cmd(build_dir, *flags)
        try:
            self.executor.run(cmd)
        except ExecutionError as e:
            raise BuildError(base, f"{step}: {e}") from e

    def refresh_metadata(self, base: str, build_dir: str, keep_sources: bool) -> None:
        flags = _clean_flags(["--nobuild", "-f", "-C", "--ignorearch"], keep_sources)
        self._makepkg(base, build_dir, "刷新依赖信息", *flags)

    def package_list(self, base: str, build_dir: str) -> dict[str, PackageArchive]:
        """查询构建工具声明的产物列表"""
        cmd = self.cmd_builder.build_makepkg_cmd(build_dir, "--packagelist")
        try:
            result = self.executor.capture(cmd)
        except ExecutionError as e:
            raise BuildError(base, f"获取产物列表: {e}") from e
        try:
            archives = parse_package_list(result.stdout)
        except ValidationError as e:
            raise BuildError(base, str(e)) from e
        if not archives:
            raise NoPkgDestsFoundError(base, build_dir)
        return archives

    # ---- 跳过判断 ----

    def _all_installed(
        self, archives: dict[str, PackageArchive], packages: list[str] | None,
        target_version: str,
    ) -> bool:
        names = packages or [a.name for a in archives.values() if not a.is_debug]
        for name in names:
            version = target_version
            if not version and name in archives:
                version = archives[name].version
            if not self.db.is_correct_version_installed(name, version):
                return False
        return True

    @staticmethod
    def _all_built(archives: dict[str, PackageArchive]) -> bool:
        return all(a.exists for a in archives.values() if not a.is_debug)

    # ---- 主流程 ----

    def build(
        self, base: str, build_dir: str, target_version: str, *,
        force_rebuild: bool, keep_sources: bool, needed: bool = False,
        packages: list[str] | None = None,
        cancel: threading.Event | None = None,
    ) -> BuildResult:
        """构建单个 base，返回产物

        参数:
            packages: 本次需要安装的包名（拆分包的子集），needed 判断只看这些包；
                      为空时看产物列表中的全部非调试包

        异常:
            BuildError 及其子类: 构建失败，调用方据此将 base 记为失败
            OperationCancelled: 取消信号已触发
        """
        if cancel is not None and cancel.is_set():
            raise OperationCancelled(f"构建前已取消: {base}")

        self.refresh_metadata(base, build_dir, keep_sources)
        archives = self.package_list(base, build_dir)

        status = "built"
        if not force_rebuild:
            if needed and self._all_installed(archives, packages, target_version):
                status = "up_to_date"
            elif self._all_built(archives):
                status = "cached"

        if status == "built":
            logger.info("构建 %s (%s)", base, target_version or "-")
            flags = ["-f", "-c", "--noconfirm", "--noextract", "--noprepare",
                     "--holdver", "--ignorearch"]
            self._makepkg(base, build_dir, "构建", *_clean_flags(flags, keep_sources))
        else:
            if status == "up_to_date":
                logger.warning("%s 已是最新版本，跳过", base)
            else:
                logger.warning("%s 的产物已存在，跳过构建", base)
            flags = ["-c", "--nobuild", "--noextract", "--ignorearch"]
            self._makepkg(base, build_dir, "清理", *_clean_flags(flags, keep_sources))

        result = BuildResult(
            base=base, build_dir=build_dir, version=target_version, status=status,
        )
        if status == "up_to_date":
            return result

        declared = [a.path for a in archives.values()]
        for archive in archives.values():
            if archive.exists:
                result.archives[archive.name] = archive.path
            elif not archive.is_debug:
                raise PkgDestNotFoundError(base, archive.path, declared)
        return result
