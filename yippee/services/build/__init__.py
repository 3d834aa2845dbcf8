"""构建服务模块

拆分说明:
- driver.py: 单个 base 的 makepkg 调用流程
- pkglist.py: 产物列表解析
- cache.py: 单次运行内已构建 base 的缓存
"""

from yippee.services.build.cache import BuildCache
from yippee.services.build.driver import BuildDriver
from yippee.services.build.pkglist import PackageArchive, parse_package_list

__all__ = ["BuildDriver", "BuildCache", "PackageArchive", "parse_package_list"]
