"""安装计划: 分层目标 + 构建目录

编排层（依赖解析、PKGBUILD 下载）产出的结果以 YAML 计划文件交给 CLI：

    targets: [yippee]
    build_dirs:
      yippee: /home/user/.cache/yippee/yippee
    layers:                      # 依赖优先：第 0 层最先安装
      - linux:
          source: sync
          reason: dep
          version: 6.8.1-1
          sync_db_name: core
      - yippee:
          source: aur
          reason: explicit
          version: 12.0.4-1
          aur_base: yippee
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from yippee.core.exceptions import ValidationError
from yippee.core.models import InstallInfo, Layer, Reason, Source
from yippee.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

SRCINFO_FILE = ".SRCINFO"


@dataclass
class InstallPlan:
    """一次安装的完整输入"""

    layers: list[Layer] = field(default_factory=list)
    build_dirs: dict[str, str] = field(default_factory=dict)  # aur_base -> 目录
    targets: list[str] = field(default_factory=list)

    def source_build_dirs(self) -> dict[str, str]:
        """计划中实际需要构建的 base -> 目录"""
        bases = {
            info.aur_base
            for layer in self.layers
            for info in layer.values()
            if info.is_source_build and info.aur_base
        }
        return {b: d for b, d in self.build_dirs.items() if b in bases}


def validate_layers(layers: list[Layer], build_dirs: dict[str, str]) -> None:
    """校验分层输入的不变量，违反时抛 ValidationError

    - 源码包必须带 srcinfo_path 与 aur_base
    - 每个被引用的 aur_base 都必须有构建目录
    """
    problems: list[str] = []
    for idx, layer in enumerate(layers):
        for name, info in layer.items():
            if not info.is_source_build:
                continue
            if not info.aur_base:
                problems.append(f"第 {idx} 层 {name}: 缺少 aur_base")
                continue
            if not info.srcinfo_path:
                problems.append(f"第 {idx} 层 {name}: 缺少 srcinfo_path")
            if info.aur_base not in build_dirs:
                problems.append(f"第 {idx} 层 {name}: base {info.aur_base} 没有构建目录")
    if problems:
        raise ValidationError("安装计划无效", details=problems)


def _parse_info(name: str, raw: dict[str, Any], build_dirs: dict[str, str]) -> InstallInfo:
    try:
        source = Source(raw.get("source", Source.AUR.value))
        reason = Reason(raw.get("reason", Reason.EXPLICIT.value))
    except ValueError as e:
        raise ValidationError(f"{name}: {e}") from e

    aur_base = raw.get("aur_base")
    if source is Source.AUR and not aur_base:
        aur_base = name
    srcinfo_path = raw.get("srcinfo_path")
    if source is Source.AUR and not srcinfo_path and aur_base in build_dirs:
        srcinfo_path = str(Path(build_dirs[aur_base]) / SRCINFO_FILE)

    return InstallInfo(
        source=source,
        reason=reason,
        version=str(raw.get("version", "")),
        is_group=bool(raw.get("is_group", False)),
        srcinfo_path=srcinfo_path,
        aur_base=aur_base,
        sync_db_name=raw.get("sync_db_name"),
    )


def parse_plan(data: dict[str, Any]) -> InstallPlan:
    raw_dirs = data.get("build_dirs") or {}
    if not isinstance(raw_dirs, dict):
        raise ValidationError("build_dirs 必须是 base -> 目录 的映射")
    build_dirs = {str(k): str(v) for k, v in raw_dirs.items()}
    raw_layers = data.get("layers") or []
    if not isinstance(raw_layers, list):
        raise ValidationError("layers 必须是列表")

    layers: list[Layer] = []
    for idx, raw_layer in enumerate(raw_layers):
        if not isinstance(raw_layer, dict):
            raise ValidationError(f"第 {idx} 层必须是 包名 -> 描述 的映射")
        layer: Layer = {}
        for name, raw in raw_layer.items():
            if raw is not None and not isinstance(raw, dict):
                raise ValidationError(
                    f"第 {idx} 层 {name}: 安装描述必须是映射，实际为 {type(raw).__name__}"
                )
            layer[str(name)] = _parse_info(str(name), raw or {}, build_dirs)
        layers.append(layer)

    validate_layers(layers, build_dirs)
    targets = [str(t) for t in data.get("targets") or []]
    return InstallPlan(layers=layers, build_dirs=build_dirs, targets=targets)


def load_plan(path: str | Path) -> InstallPlan:
    """从 YAML 文件加载安装计划"""
    if not Path(path).exists():
        raise ValidationError(f"计划文件不存在: {path}")
    plan = parse_plan(load_yaml(path))
    logger.info(
        "计划已加载: %s (%d 层, %d 个构建目录)",
        path, len(plan.layers), len(plan.build_dirs),
    )
    return plan
