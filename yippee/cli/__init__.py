"""yippee 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import click

from yippee import __version__
from yippee.utils.logger import setup_logging_from_env


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """yippee - 从二进制仓库与 AUR 分层构建、安装软件包"""
    setup_logging_from_env()


# 注册各领域子命令
from yippee.cli.cmd_install import register as _reg_install  # noqa: E402

_reg_install(main)
