"""YAML 文件读取工具

配置文件与安装计划文件统一经由 load_yaml 读取：
统一 encoding="utf-8"、空值保护、大小限制。
格式错误、读取失败、文件过大都转换为项目自身的异常（默认 ValidationError），
调用方可通过 error_cls 指定，例如配置文件使用 ConfigError。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from yippee.core.exceptions import ValidationError, YippeeError

logger = logging.getLogger(__name__)

# YAML 文件最大大小限制 (10MB)
MAX_YAML_SIZE = 10 * 1024 * 1024


def load_yaml(
    path: str | Path, error_cls: type[YippeeError] = ValidationError,
) -> dict[str, Any]:
    """安全读取 YAML 文件

    参数:
        path: YAML 文件路径
        error_cls: 出错时抛出的异常类型

    返回:
        dict: 解析后的字典。文件不存在、为空、或内容不是字典类型时返回空字典

    异常:
        error_cls: YAML 格式错误、读取失败、或文件过大（超过 MAX_YAML_SIZE）
    """
    p = Path(path)
    if not p.exists():
        return {}

    file_size = p.stat().st_size
    if file_size > MAX_YAML_SIZE:
        raise error_cls(
            f"YAML 文件过大: {p} ({file_size} 字节), "
            f"超过限制 {MAX_YAML_SIZE} 字节"
        )

    try:
        with open(p, encoding="utf-8") as f:
            result = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("解析 YAML 文件失败: %s, 错误: %s", path, e)
        raise error_cls(f"YAML 格式错误: {p}: {e}") from e
    except OSError as e:
        logger.error("读取文件失败: %s, 错误: %s", path, e)
        raise error_cls(f"读取文件失败: {p}: {e}") from e

    if result is None:
        return {}
    if not isinstance(result, dict):
        logger.warning(
            "%s 内容不是字典类型 (实际类型: %s)，返回空字典",
            path, type(result).__name__,
        )
        return {}
    return result
