"""已构建 base 缓存

缓存策略:
  - 以 base 为缓存键，作用域为单个 Installer 实例（单次运行）
  - 同一次运行中，后续层再次引用已构建的 base 时直接复用产物，不重复构建
  - 构建失败的 base 不入缓存
  - up_to_date 结果不入缓存: 它只对当时那一层的包名成立
"""

from __future__ import annotations

import logging

from yippee.core.models import BuildResult

logger = logging.getLogger(__name__)


class BuildCache:
    """已构建 base 的结果缓存"""

    def __init__(self) -> None:
        self._cache: dict[str, BuildResult] = {}

    def check(self, base: str) -> BuildResult | None:
        """命中时返回之前的构建结果"""
        cached = self._cache.get(base)
        if cached is not None:
            logger.info("复用本次已构建的 base: %s", base)
        return cached

    def put(self, result: BuildResult) -> None:
        self._cache[result.base] = result
