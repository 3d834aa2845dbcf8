"""外部工具命令构造

makepkg / pacman / git 的命令行统一在此组装，安装器只传入额外参数、
工作目录和目标列表，不关心二进制路径、配置文件、提权等细节。
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from yippee.core.models import TargetMode
from yippee.utils.shell import Command

if TYPE_CHECKING:
    from yippee.core.arguments import Arguments
    from yippee.core.config import Config

logger = logging.getLogger(__name__)


@dataclass
class CmdBuilder:
    """命令构造器"""

    makepkg_bin: str = "makepkg"
    makepkg_conf: str = ""
    makepkg_flags: list[str] = field(default_factory=list)
    pacman_bin: str = "pacman"
    pacman_conf: str = "/etc/pacman.conf"
    sudo_bin: str = "sudo"
    sudo_flags: list[str] = field(default_factory=list)
    git_bin: str = "git"
    git_flags: list[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, cfg: Config) -> CmdBuilder:
        return cls(
            makepkg_bin=cfg.makepkg_bin,
            makepkg_conf=cfg.makepkg_conf,
            makepkg_flags=list(cfg.mflags),
            pacman_bin=cfg.pacman_bin,
            pacman_conf=cfg.pacman_conf,
            sudo_bin=cfg.sudo_bin,
            sudo_flags=list(cfg.sudo_flags),
            git_bin=cfg.git_bin,
            git_flags=list(cfg.git_flags),
        )

    def build_makepkg_cmd(self, build_dir: str, *extra_args: str) -> Command:
        argv = [self.makepkg_bin, *self.makepkg_flags]
        if self.makepkg_conf:
            argv += ["--config", self.makepkg_conf]
        argv += list(extra_args)
        return Command(argv=argv, cwd=build_dir)

    def build_pacman_cmd(
        self, args: Arguments,
        mode: TargetMode = TargetMode.ANY,
        no_confirm: bool = False,
    ) -> Command:
        argv: list[str] = []
        if args.need_root(mode) and os.geteuid() != 0:
            argv += [self.sudo_bin, *self.sudo_flags]
        argv.append(self.pacman_bin)
        argv += args.format_globals()
        argv += args.format_args()
        if no_confirm and not args.exists_arg("noconfirm"):
            argv.append("--noconfirm")
        argv += ["--config", self.pacman_conf, "--"]
        argv += args.targets
        return Command(argv=argv)

    def build_git_cmd(self, directory: str, *extra_args: str) -> Command:
        argv = [self.git_bin, *self.git_flags, *extra_args]
        return Command(argv=argv, cwd=directory)
