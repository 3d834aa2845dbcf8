"""集中配置管理

提供统一的配置入口，支持从 YAML 文件加载 + 编程式覆盖。

配置文件查找顺序:
  1. $XDG_CONFIG_HOME/yippee/config.yml
  2. $HOME/.config/yippee/config.yml
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from yippee.core.exceptions import ConfigError
from yippee.core.models import RebuildMode, TargetMode
from yippee.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.yml"
SYSTEM_CACHE_DIR = "/var/cache/yippee"

_REMOVE_MAKE_CHOICES = ("yes", "no", "ask")


@dataclass
class Config:
    """全局配置"""

    # 外部工具
    makepkg_bin: str = "makepkg"
    makepkg_conf: str = ""
    mflags: list[str] = field(default_factory=list)
    pacman_bin: str = "pacman"
    pacman_conf: str = "/etc/pacman.conf"
    sudo_bin: str = "sudo"
    sudo_flags: list[str] = field(default_factory=list)
    git_bin: str = "git"
    git_flags: list[str] = field(default_factory=list)

    # 目录
    build_dir: str = ""

    # 构建
    keep_src: bool = False
    clean_after: bool = False
    rebuild: str = RebuildMode.NO.value
    mode: str = TargetMode.ANY.value
    max_concurrent_downloads: int = 0   # 0 表示不限制

    # 交互
    double_confirm: bool = False
    remove_make: str = "ask"            # yes | no | ask

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.build_dir:
            self.build_dir = get_cache_home()
        self.validate()

    def validate(self) -> None:
        try:
            RebuildMode(self.rebuild)
        except ValueError:
            raise ConfigError(f"rebuild 取值无效: {self.rebuild}") from None
        try:
            TargetMode(self.mode)
        except ValueError:
            raise ConfigError(f"mode 取值无效: {self.mode}") from None
        if self.remove_make not in _REMOVE_MAKE_CHOICES:
            raise ConfigError(f"remove_make 取值无效: {self.remove_make}")

    @property
    def rebuild_mode(self) -> RebuildMode:
        return RebuildMode(self.rebuild)

    @property
    def target_mode(self) -> TargetMode:
        return TargetMode(self.mode)

    @classmethod
    def from_file(cls, path: str | Path = "") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        path = path or get_config_path()
        data = load_yaml(path, ConfigError) if path else {}
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known and k != "extra"}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件内容无效: {path}: {e}") from e
        cfg.extra = extra
        return cfg


# =========================================================================
# 目录解析
# =========================================================================


def get_config_path() -> str:
    """定位配置文件路径，都不可用时返回空字符串"""
    if config_home := os.getenv("XDG_CONFIG_HOME"):
        return str(Path(config_home) / "yippee" / CONFIG_FILE_NAME)
    if home := os.getenv("HOME"):
        return str(Path(home) / ".config" / "yippee" / CONFIG_FILE_NAME)
    return ""


def get_cache_home() -> str:
    """构建目录根路径

    root 且非 sudo/doas 调用时使用系统缓存目录（由 systemd 负责创建）。
    """
    uid = os.geteuid()
    if uid != 0:
        if cache_home := os.getenv("XDG_CACHE_HOME"):
            return str(Path(cache_home) / "yippee")
        if home := os.getenv("HOME"):
            return str(Path(home) / ".cache" / "yippee")
    elif not os.getenv("SUDO_USER") and not os.getenv("DOAS_USER"):
        return SYSTEM_CACHE_DIR
    return str(Path(os.getenv("TMPDIR", "/tmp")) / "yippee")


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str | Path = "") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path or get_config_path())
    return _current
