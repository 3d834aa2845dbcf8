"""安装后钩子

钩子是无参数的可调用对象，由 OperationService 根据配置注册到 Installer，
在所有层结束后按注册顺序执行，失败以异常抛出、由 Installer 汇总。
"""

from __future__ import annotations

import logging

from yippee.core.arguments import Arguments
from yippee.core.exceptions import ExecutionError, MultiError
from yippee.core.models import TargetMode
from yippee.core.protocols import PostInstallHook
from yippee.utils.cmd_builder import CmdBuilder
from yippee.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


def clean_make_deps_hook(
    executor: CommandExecutor,
    cmd_builder: CmdBuilder,
    args: Arguments,
    make_deps: list[str],
    mode: TargetMode = TargetMode.ANY,
) -> PostInstallHook:
    """卸载本次为构建而安装的依赖（pacman -R -s -u --noconfirm）

    make_deps 应只包含运行前未安装的包，由调用方筛选。
    """
    targets = list(make_deps)

    def remove_make_deps() -> None:
        if not targets:
            return
        remove_args = args.copy_global()
        remove_args.add_arg("R", "s", "u")
        remove_args.add_target(*targets)
        logger.info("卸载构建依赖: %s", " ".join(targets))
        executor.run(cmd_builder.build_pacman_cmd(remove_args, mode, no_confirm=True))

    return remove_make_deps


def clean_build_dirs_hook(
    executor: CommandExecutor,
    cmd_builder: CmdBuilder,
    build_dirs: dict[str, str],
) -> PostInstallHook:
    """重置构建目录（git reset --hard HEAD + git clean），保留已构建的产物"""
    dirs = list(build_dirs.values())

    def clean_build_dirs() -> None:
        errs = MultiError()
        for i, directory in enumerate(dirs, 1):
            logger.info("清理 (%d/%d): %s", i, len(dirs), directory)
            try:
                executor.capture(cmd_builder.build_git_cmd(directory, "reset", "--hard", "HEAD"))
                executor.run(cmd_builder.build_git_cmd(
                    directory, "clean", "-fx", "--exclude", "*.pkg.*",
                ))
            except ExecutionError as e:
                logger.warning("清理失败 %s: %s", directory, e)
                errs.add(e)
        errs.raise_if_any()

    return clean_build_dirs
