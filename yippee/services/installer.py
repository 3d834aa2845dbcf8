"""分层安装器

按依赖顺序（第 0 层最先）逐层安装。每层:
  1. 二进制仓库包: 一次 pacman -S 事务，随后更新安装原因
  2. 源码包: 按 base 逐个调用构建驱动（拆分包共享一次构建）
  3. 本层全部产物: 一次 pacman -U 事务，随后更新安装原因

错误策略:
  - 单个 base 构建失败: 记入 failed_and_ignored，该 base 的所有包退出本层，
    其余包与后续层照常进行；后续层再引用该 base 时同样跳过
  - 安装事务失败: 立即抛出 InstallError，后续层不再执行
  - 安装原因更新失败: 仅告警

失败集合、钩子列表、已构建缓存都属于 Installer 实例，只在 install 的单线程路径上修改。
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from yippee.core.arguments import Arguments
from yippee.core.exceptions import (
    BuildError,
    ExecutionError,
    FailedIgnoredPkgError,
    InstallError,
    MultiError,
    OperationCancelled,
    PkgDestNotFoundError,
    SetPkgReasonError,
)
from yippee.core.models import (
    BuildResult,
    InstallInfo,
    Layer,
    RebuildMode,
    Reason,
    TargetMode,
)
from yippee.core.plan import validate_layers
from yippee.core.protocols import PackageDB, PostInstallHook
from yippee.services.build import BuildCache, BuildDriver
from yippee.services.build.pkglist import debug_name
from yippee.utils.cmd_builder import CmdBuilder
from yippee.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

# pacman -U 不接受 / 不应继承的调用参数
_ARCHIVE_TX_DROPPED = (
    "confirm", "noconfirm", "c", "clean", "i", "install", "q", "quiet",
    "y", "refresh", "u", "sysupgrade", "w", "downloadonly",
    "asdeps", "asexplicit",
)


@dataclass
class _ReasonSet:
    """一次事务后需要设置的安装原因"""

    deps: list[str] = field(default_factory=list)
    explicit: list[str] = field(default_factory=list)

    def add(self, name: str, is_dep: bool) -> None:
        (self.deps if is_dep else self.explicit).append(name)

    def __bool__(self) -> bool:
        return bool(self.deps or self.explicit)


def _check_cancel(cancel: threading.Event | None, where: str) -> None:
    if cancel is not None and cancel.is_set():
        raise OperationCancelled(f"已取消: {where}")


class Installer:
    """分层安装器"""

    def __init__(
        self,
        db: PackageDB,
        cmd_builder: CmdBuilder,
        executor: CommandExecutor,
        *,
        target_mode: TargetMode = TargetMode.ANY,
        rebuild_mode: RebuildMode = RebuildMode.NO,
        download_only: bool = False,
        keep_sources: bool = False,
        driver: BuildDriver | None = None,
    ) -> None:
        self.db = db
        self.cmd_builder = cmd_builder
        self.executor = executor
        self.target_mode = target_mode
        self.rebuild_mode = rebuild_mode
        self.download_only = download_only
        self.keep_sources = keep_sources
        self.driver = driver or BuildDriver(cmd_builder, executor, db)

        self.failed_and_ignored: dict[str, Exception] = {}
        self.post_install_hooks: list[PostInstallHook] = []
        self._built = BuildCache()

    # =====================================================================
    # 公共接口
    # =====================================================================

    def install(
        self,
        args: Arguments,
        layers: list[Layer],
        build_dirs: dict[str, str],
        excluded: list[str],
        manual_confirm: bool,
        cancel: threading.Event | None = None,
    ) -> None:
        """逐层安装

        异常:
            ValidationError: 输入违反前置条件（任何外部调用之前）
            InstallError: 某层安装事务失败，后续层未执行
            OperationCancelled: 取消信号已触发
        """
        validate_layers(layers, build_dirs)
        for idx, layer in enumerate(layers):
            _check_cancel(cancel, f"第 {idx} 层")
            logger.info("安装第 %d/%d 层 (%d 个包)", idx + 1, len(layers), len(layer))
            self._install_layer(
                idx, args, layer, build_dirs, excluded, manual_confirm, cancel,
            )

    def compile_failed_and_ignored(self) -> tuple[list[str], FailedIgnoredPkgError | None]:
        """返回失败的 base 列表，以及汇总错误（无失败时为 None）"""
        if not self.failed_and_ignored:
            return [], None
        return list(self.failed_and_ignored), FailedIgnoredPkgError(self.failed_and_ignored)

    def add_post_install_hook(self, hook: PostInstallHook) -> None:
        self.post_install_hooks.append(hook)

    def run_post_install_hooks(self, cancel: threading.Event | None = None) -> None:
        """按注册顺序执行全部钩子，汇总错误后抛出 MultiError"""
        errs = MultiError()
        for hook in self.post_install_hooks:
            if cancel is not None and cancel.is_set():
                errs.add(OperationCancelled("安装后钩子已取消"))
                break
            try:
                hook()
            except Exception as e:  # noqa: BLE001
                logger.error("安装后钩子失败 %s: %s", getattr(hook, "__name__", hook), e)
                errs.add(e)
        errs.raise_if_any()

    # =====================================================================
    # 单层流程
    # =====================================================================

    def _install_layer(
        self,
        idx: int,
        args: Arguments,
        layer: Layer,
        build_dirs: dict[str, str],
        excluded: list[str],
        manual_confirm: bool,
        cancel: threading.Event | None,
    ) -> None:
        sync_pkgs = {n: i for n, i in layer.items() if not i.is_source_build}
        aur_pkgs = {n: i for n, i in layer.items() if i.is_source_build}

        if sync_pkgs:
            self._install_sync(idx, args, sync_pkgs, excluded, manual_confirm)

        if not aur_pkgs:
            return

        archives: list[str] = []
        reasons = _ReasonSet()
        for base, names in self._group_by_base(aur_pkgs).items():
            if base in self.failed_and_ignored:
                logger.warning("跳过第 %d 层的 %s: 该 base 此前已失败", idx, base)
                continue
            result = self._build_base(
                base, names, layer, args, build_dirs[base], cancel,
            )
            if result is None or result.status == "up_to_date":
                continue
            try:
                paths = self._resolve_archives(result, names, layer, args, reasons)
            except PkgDestNotFoundError as e:
                logger.error("%s", e)
                self.failed_and_ignored[base] = e
                continue
            archives.extend(paths)

        if not archives:
            return
        if self.download_only:
            logger.info("仅下载模式: 第 %d 层的 %d 个产物不安装", idx, len(archives))
            return
        self._install_archives(idx, args, archives, manual_confirm)
        self._set_reasons(args, reasons)

    @staticmethod
    def _group_by_base(aur_pkgs: dict[str, InstallInfo]) -> dict[str, list[str]]:
        groups: dict[str, list[str]] = {}
        for name, info in aur_pkgs.items():
            groups.setdefault(info.aur_base or name, []).append(name)
        return groups

    # ---- 二进制仓库 ----

    def _install_sync(
        self,
        idx: int,
        args: Arguments,
        sync_pkgs: dict[str, InstallInfo],
        excluded: list[str],
        manual_confirm: bool,
    ) -> None:
        sync_args = args.copy()
        sync_args.del_arg("asdeps", "asexplicit")
        sync_args.add_arg("S")
        sync_args.clear_targets()
        if self.target_mode is TargetMode.AUR:
            sync_args.del_arg("u", "upgrades")
        if self.download_only and not sync_args.exists_arg("w", "downloadonly"):
            sync_args.add_arg("w")
        if excluded:
            sync_args.create_or_append_option("ignore", *excluded)

        reasons = _ReasonSet()
        for name, info in sync_pkgs.items():
            if info.is_group or not info.sync_db_name:
                sync_args.add_target(name)
            else:
                sync_args.add_target(f"{info.sync_db_name}/{name}")
            if not info.is_group:
                reasons.add(name, self._wants_dep(args, info))

        cmd = self.cmd_builder.build_pacman_cmd(
            sync_args, self.target_mode, no_confirm=not manual_confirm,
        )
        try:
            self.executor.run(cmd)
        except ExecutionError as e:
            raise InstallError(str(e), layer=idx, phase="sync") from e

        if not self.download_only:
            self._set_reasons(args, reasons)

    # ---- 源码构建 ----

    def _force_rebuild(self, names: list[str], args: Arguments) -> bool:
        if self.rebuild_mode in (RebuildMode.ALL, RebuildMode.TREE):
            return True
        if self.rebuild_mode is RebuildMode.YES:
            return any(name in args.targets for name in names)
        return False

    def _build_base(
        self,
        base: str,
        names: list[str],
        layer: Layer,
        args: Arguments,
        build_dir: str,
        cancel: threading.Event | None,
    ) -> BuildResult | None:
        """构建单个 base；失败时记录并返回 None"""
        cached = self._built.check(base)
        if cached is not None:
            return cached

        _check_cancel(cancel, f"构建 {base}")
        try:
            result = self.driver.build(
                base, build_dir, layer[names[0]].version,
                force_rebuild=self._force_rebuild(names, args),
                keep_sources=self.keep_sources,
                needed=args.exists_arg("needed"),
                packages=names,
                cancel=cancel,
            )
        except BuildError as e:
            logger.error("%s", e)
            self.failed_and_ignored[base] = e
            return None
        # up_to_date 只对本层包名成立，后续层需按自己的包名重新判断
        if result.status != "up_to_date":
            self._built.put(result)
        return result

    def _resolve_archives(
        self,
        result: BuildResult,
        names: list[str],
        layer: Layer,
        args: Arguments,
        reasons: _ReasonSet,
    ) -> list[str]:
        """取出本层需要的产物路径（含调试包），同时登记安装原因"""
        paths: list[str] = []
        pending = _ReasonSet()
        for name in names:
            path = result.archives.get(name)
            if path is None:
                raise PkgDestNotFoundError(result.base, name, result.paths)
            paths.append(path)
            pending.add(name, self._wants_dep(args, layer[name]))

            debug = debug_name(name)
            if debug in result.archives:
                paths.append(result.archives[debug])
                pending.add(debug, True)

        reasons.deps.extend(pending.deps)
        reasons.explicit.extend(pending.explicit)
        return paths

    def _install_archives(
        self, idx: int, args: Arguments, archives: list[str], manual_confirm: bool,
    ) -> None:
        # 调用参数里的 --noconfirm 与其他确认选项一并去掉，按需重新追加
        no_confirm = not manual_confirm or args.exists_arg("noconfirm")
        archive_args = args.copy()
        archive_args.del_arg(*_ARCHIVE_TX_DROPPED)
        archive_args.add_arg("U")
        archive_args.clear_targets()
        archive_args.add_target(*archives)

        cmd = self.cmd_builder.build_pacman_cmd(
            archive_args, self.target_mode, no_confirm=no_confirm,
        )
        try:
            self.executor.run(cmd)
        except ExecutionError as e:
            raise InstallError(str(e), layer=idx, phase="archive") from e

    # ---- 安装原因 ----

    @staticmethod
    def _wants_dep(args: Arguments, info: InstallInfo) -> bool:
        if args.exists_arg("asdeps"):
            return True
        if args.exists_arg("asexplicit"):
            return False
        return info.reason.is_dep

    def _set_reasons(self, args: Arguments, reasons: _ReasonSet) -> None:
        """只为原因不一致的包调用 pacman -D；失败仅告警"""
        if not reasons:
            return
        for explicit, names in ((False, reasons.deps), (True, reasons.explicit)):
            wanted = Reason.EXPLICIT if explicit else Reason.DEP
            pending = [n for n in names if self.db.local_install_reason(n) is not wanted]
            if not pending:
                continue

            reason_args = args.copy_global()
            reason_args.add_arg("q", "D", "asexplicit" if explicit else "asdeps")
            reason_args.add_target(*pending)
            try:
                self.executor.run(self.cmd_builder.build_pacman_cmd(reason_args, self.target_mode))
            except ExecutionError as e:
                logger.warning("%s: %s", SetPkgReasonError(explicit, pending), e)
