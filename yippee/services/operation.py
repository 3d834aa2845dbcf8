"""安装编排服务

把下载、安装、结果汇总、VCS 记录、安装后钩子串成一次完整运行:

  1. 无任何待安装包: 直接返回
  2. 并发下载所有源码包的源码（失败即终止）
  3. 按配置注册安装后钩子
  4. 分层安装（安装事务失败: 仍执行钩子，随后抛出该错误）
  5. 汇总构建失败的 base
  6. 通知 VCS 记录（仅下载模式除外），跳过失败的 base
  7. 执行钩子，与第 5 步的错误一起以 MultiError 抛出
"""

from __future__ import annotations

import logging
import threading

from yippee.core.arguments import Arguments
from yippee.core.config import Config
from yippee.core.exceptions import MultiError
from yippee.core.models import Layer, Reason
from yippee.core.protocols import NullVCSStore, PackageDB, VCSStore
from yippee.services.download import download_sources
from yippee.services.hooks import clean_build_dirs_hook, clean_make_deps_hook
from yippee.services.installer import Installer
from yippee.utils.cmd_builder import CmdBuilder
from yippee.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

_BUILD_ONLY_REASONS = (Reason.MAKE_DEP, Reason.CHECK_DEP)


class OperationService:
    """一次安装操作的编排入口"""

    def __init__(
        self,
        cfg: Config,
        db: PackageDB,
        executor: CommandExecutor,
        cmd_builder: CmdBuilder | None = None,
        vcs: VCSStore | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self.cfg = cfg
        self.db = db
        self.executor = executor
        self.cmd_builder = cmd_builder or CmdBuilder.from_config(cfg)
        self.vcs = vcs or NullVCSStore()
        self.cancel = cancel

    def manual_confirm_required(self, args: Arguments) -> bool:
        """非系统升级时由 pacman 逐个确认；double_confirm 强制确认"""
        return (not args.exists_arg("u", "sysupgrade") and args.op != "Y") or self.cfg.double_confirm

    def new_installer(self, args: Arguments) -> Installer:
        return Installer(
            self.db, self.cmd_builder, self.executor,
            target_mode=self.cfg.target_mode,
            rebuild_mode=self.cfg.rebuild_mode,
            download_only=args.exists_arg("w", "downloadonly"),
            keep_sources=self.cfg.keep_src,
        )

    def _new_make_deps(self, layers: list[Layer]) -> list[str]:
        """运行前未安装的构建期依赖"""
        return [
            name
            for layer in layers
            for name, info in layer.items()
            if info.reason in _BUILD_ONLY_REASONS and not info.is_group
            and self.db.local_install_reason(name) is None
        ]

    def _register_hooks(
        self, installer: Installer, args: Arguments,
        layers: list[Layer], build_dirs: dict[str, str],
    ) -> None:
        if self.cfg.remove_make == "yes":
            make_deps = self._new_make_deps(layers)
            if make_deps:
                installer.add_post_install_hook(clean_make_deps_hook(
                    self.executor, self.cmd_builder, args, make_deps, self.cfg.target_mode,
                ))
        elif self.cfg.remove_make == "ask":
            logger.debug("remove_make=ask 需要交互确认，本次不卸载构建依赖")

        if self.cfg.clean_after and build_dirs:
            installer.add_post_install_hook(clean_build_dirs_hook(
                self.executor, self.cmd_builder, build_dirs,
            ))

    def run(
        self,
        args: Arguments,
        layers: list[Layer],
        build_dirs: dict[str, str],
        excluded: list[str],
    ) -> Installer | None:
        """执行完整安装流程，返回使用的 Installer（无事可做时返回 None）

        异常:
            MultiError: 源码下载失败，或存在构建失败 / 钩子失败
            InstallError: 某层安装事务失败
        """
        if not any(layers):
            logger.info("没有需要执行的操作")
            return None

        download_sources(
            self.executor, self.cmd_builder, build_dirs,
            self.cfg.keep_src, self.cfg.max_concurrent_downloads, self.cancel,
        )

        installer = self.new_installer(args)
        self._register_hooks(installer, args, layers, build_dirs)

        try:
            installer.install(
                args, layers, build_dirs, excluded,
                self.manual_confirm_required(args), self.cancel,
            )
        except Exception:
            try:
                installer.run_post_install_hooks(self.cancel)
            except MultiError as hook_err:
                logger.error("安装后钩子失败:\n%s", hook_err)
            raise

        errs = MultiError()
        failed, failed_err = installer.compile_failed_and_ignored()
        errs.add(failed_err)

        if not installer.download_only:
            self.vcs.update(layers, failed)

        try:
            installer.run_post_install_hooks(self.cancel)
        except MultiError as hook_err:
            errs.add(hook_err)

        errs.raise_if_any()
        return installer
