"""源码并发下载

在构建之前，对每个构建目录执行 makepkg 的「仅校验/下载源码」模式。
并发度:
  - max_concurrency > 0: 最多同时运行 max_concurrency 个 makepkg
  - max_concurrency <= 0: 不限制，每个目录一个工作线程
单个目录失败不影响其他目录，全部结束后统一以 MultiError 抛出。
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from yippee.core.exceptions import DownloadError, ExecutionError, MultiError, OperationCancelled
from yippee.utils.cmd_builder import CmdBuilder
from yippee.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


def download_flags(keep_sources: bool, makepkg_flags: list[str] | None = None) -> list[str]:
    """--nocheck 已在 makepkg_flags（配置的 mflags）中时不再重复"""
    flags = [] if "--nocheck" in (makepkg_flags or []) else ["--nocheck"]
    flags += ["--verifysource", "--skippgpcheck", "-f"]
    if not keep_sources:
        flags.append("-Cc")
    return flags


def download_sources(
    executor: CommandExecutor,
    cmd_builder: CmdBuilder,
    build_dirs: dict[str, str],
    keep_sources: bool,
    max_concurrency: int,
    cancel: threading.Event | None = None,
) -> None:
    """并发下载所有构建目录的源码

    异常:
        MultiError: 至少一个目录失败，每个失败目录对应一个 DownloadError
    """
    if not build_dirs:
        return

    flags = download_flags(keep_sources, cmd_builder.makepkg_flags)
    failures: dict[str, Exception] = {}
    lock = threading.Lock()

    def _download_one(base: str, directory: str) -> None:
        if cancel is not None and cancel.is_set():
            err: Exception = OperationCancelled(f"下载已取消: {base}")
        else:
            try:
                executor.run(cmd_builder.build_makepkg_cmd(directory, *flags))
                logger.info("源码已下载: %s", base)
                return
            except (ExecutionError, OperationCancelled) as e:
                err = DownloadError(directory, str(e))
                err.__cause__ = e
        with lock:
            failures[base] = err

    items = list(build_dirs.items())
    if len(items) == 1:
        _download_one(*items[0])
    else:
        workers = max_concurrency if max_concurrency > 0 else len(items)
        logger.info("并发下载 %d 个源码目录 (并发度 %d)", len(items), workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(_download_one, base, d) for base, d in items]
            for future in futures:
                future.result()

    # 按输入顺序汇总，输出稳定
    errs = MultiError(failures[base] for base in build_dirs if base in failures)
    for err in errs.errors:
        logger.error("%s", err)
    errs.raise_if_any()
