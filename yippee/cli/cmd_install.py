"""CLI: 安装 / 下载命令

两个命令都读取编排层产出的 YAML 计划文件（见 yippee.core.plan）。
外部命令失败时以其退出码退出，其余错误退出码为 1。
"""

from __future__ import annotations

import click

from yippee.core.arguments import Arguments
from yippee.core.config import Config, init_config
from yippee.core.exceptions import (
    ExecutionError,
    FailedIgnoredPkgError,
    MultiError,
    ValidationError,
    YippeeError,
)
from yippee.core.localdb import PacmanLocalDB
from yippee.core.models import RebuildMode
from yippee.core.plan import load_plan
from yippee.core.protocols import NullVCSStore
from yippee.services.download import download_sources
from yippee.services.operation import OperationService
from yippee.utils.cmd_builder import CmdBuilder
from yippee.utils.shell import get_executor


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(download)


def _exit_code(err: BaseException) -> int:
    """沿异常链查找外部命令的退出码"""
    seen: set[int] = set()
    pending: list[BaseException] = [err]
    while pending:
        e = pending.pop(0)
        if id(e) in seen:
            continue
        seen.add(id(e))
        if isinstance(e, ExecutionError) and e.returncode:
            return e.returncode
        if isinstance(e, MultiError):
            pending.extend(e.errors)
        if isinstance(e, FailedIgnoredPkgError):
            pending.extend(e.pkg_errors.values())
        if e.__cause__ is not None:
            pending.append(e.__cause__)
    return 1


def _fail(err: YippeeError) -> None:
    click.echo(f"错误: {err}", err=True)
    if isinstance(err, ValidationError):
        for detail in err.details:
            click.echo(f"  - {detail}", err=True)
    raise SystemExit(_exit_code(err))


def _load_config(config_path: str, **overrides: object) -> Config:
    cfg = init_config(config_path)
    for key, value in overrides.items():
        if value is not None and value is not False:
            setattr(cfg, key, value)
    cfg.validate()
    return cfg


@click.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "-c", "config_path", default="", help="配置文件路径")
@click.option("--needed", is_flag=True, help="已是目标版本的包不再构建安装")
@click.option("--asdeps", is_flag=True, help="全部标记为依赖安装")
@click.option("--asexplicit", is_flag=True, help="全部标记为显式安装")
@click.option("--downloadonly", "-w", is_flag=True, help="只下载和构建，不安装")
@click.option("--noconfirm", is_flag=True, help="不询问确认")
@click.option("--ignore", multiple=True, help="pacman 忽略的包（可多次指定）")
@click.option(
    "--rebuild", type=click.Choice([m.value for m in RebuildMode]), default=None,
    help="重建策略（覆盖配置）",
)
@click.option("--keepsrc", is_flag=True, help="保留构建源码")
@click.option("--cleanafter", is_flag=True, help="安装后重置构建目录")
@click.option("--max-downloads", type=int, default=None, help="源码下载并发度，0 为不限制")
def install(
    plan_file: str, config_path: str, needed: bool, asdeps: bool, asexplicit: bool,
    downloadonly: bool, noconfirm: bool, ignore: tuple[str, ...], rebuild: str | None,
    keepsrc: bool, cleanafter: bool, max_downloads: int | None,
) -> None:
    """按计划文件分层构建并安装"""
    if asdeps and asexplicit:
        raise click.UsageError("--asdeps 与 --asexplicit 不能同时使用")

    try:
        cfg = _load_config(
            config_path, rebuild=rebuild, keep_src=keepsrc,
            clean_after=cleanafter, max_concurrent_downloads=max_downloads,
        )
        plan = load_plan(plan_file)
    except YippeeError as e:
        _fail(e)
        return

    args = Arguments("S")
    for flag, enabled in (
        ("needed", needed), ("asdeps", asdeps), ("asexplicit", asexplicit),
        ("w", downloadonly), ("noconfirm", noconfirm),
    ):
        if enabled:
            args.add_arg(flag)
    args.add_target(*plan.targets)

    executor = get_executor()
    service = OperationService(
        cfg, PacmanLocalDB(executor, cfg.pacman_bin), executor, vcs=NullVCSStore(),
    )
    try:
        installer = service.run(args, plan.layers, plan.source_build_dirs(), list(ignore))
    except YippeeError as e:
        _fail(e)
        return

    if installer is None:
        click.echo("没有需要执行的操作")
    elif downloadonly:
        click.echo("构建完成（仅下载模式，未安装）")
    else:
        click.echo("安装完成")


@click.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "-c", "config_path", default="", help="配置文件路径")
@click.option("--keepsrc", is_flag=True, help="保留构建源码")
@click.option("--max-downloads", type=int, default=None, help="并发度，0 为不限制")
def download(plan_file: str, config_path: str, keepsrc: bool, max_downloads: int | None) -> None:
    """只下载计划中所有源码包的源码"""
    try:
        cfg = _load_config(config_path, keep_src=keepsrc, max_concurrent_downloads=max_downloads)
        plan = load_plan(plan_file)
        build_dirs = plan.source_build_dirs()
        download_sources(
            get_executor(), CmdBuilder.from_config(cfg), build_dirs,
            cfg.keep_src, cfg.max_concurrent_downloads,
        )
    except YippeeError as e:
        _fail(e)
        return
    click.echo(f"源码已下载: {len(build_dirs)} 个目录")
