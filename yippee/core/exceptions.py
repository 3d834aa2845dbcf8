"""统一异常体系

所有业务异常继承 YippeeError，替代散落的 ValueError / RuntimeError。
CLI 层可据此输出友好提示，并在外部命令失败时透传其退出码。

错误分类（对应安装流水线的各阶段）:
  - BuildError / NoPkgDestsFoundError / PkgDestNotFoundError: 单个 base 构建失败，
    记录后跳过该 base，不中断其他层
  - InstallError: 某层安装事务失败，整个安装流程立即终止
  - SetPkgReasonError: 安装原因更新失败，仅告警
  - DownloadError: 单个目录源码下载失败，汇总为 MultiError
  - FailedIgnoredPkgError: 安装结束后汇总所有被跳过的 base
"""

from __future__ import annotations

from typing import Iterable


class YippeeError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(YippeeError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(YippeeError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class ExecutionError(YippeeError):
    """外部命令以非零退出码结束"""

    code = "EXECUTION_ERROR"

    def __init__(
        self, message: str, *,
        command: str = "", returncode: int = 1, stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class OperationCancelled(YippeeError):
    """取消信号已触发，后续步骤不再执行"""

    code = "CANCELLED"


class BuildError(YippeeError):
    """单个 base 构建失败"""

    code = "BUILD_ERROR"

    def __init__(self, base: str, message: str) -> None:
        super().__init__(f"构建失败 {base}: {message}")
        self.base = base


class NoPkgDestsFoundError(BuildError):
    """构建工具未列出任何产物"""

    code = "NO_PKGDESTS"

    def __init__(self, base: str, build_dir: str) -> None:
        super().__init__(base, f"未找到任何产物 (目录: {build_dir})")
        self.build_dir = build_dir


class PkgDestNotFoundError(BuildError):
    """构建工具声明的产物在磁盘上不存在"""

    code = "PKGDEST_NOT_FOUND"

    def __init__(self, base: str, missing: str, declared: Iterable[str]) -> None:
        self.missing = missing
        self.declared = list(declared)
        super().__init__(
            base,
            f"产物不存在: {missing} (声明的产物: {', '.join(self.declared)})",
        )


class InstallError(YippeeError):
    """某层的包管理器事务失败"""

    code = "INSTALL_ERROR"

    def __init__(self, message: str, *, layer: int = -1, phase: str = "") -> None:
        prefix = f"第 {layer} 层" if layer >= 0 else ""
        if phase:
            prefix = f"{prefix} [{phase}]" if prefix else f"[{phase}]"
        super().__init__(f"{prefix} {message}".strip())
        self.layer = layer
        self.phase = phase


class SetPkgReasonError(YippeeError):
    """安装原因（显式/依赖）更新失败"""

    code = "SET_REASON_ERROR"

    def __init__(self, explicit: bool, names: list[str]) -> None:
        reason = "explicit" if explicit else "dependency"
        super().__init__(f"无法将以下包标记为 {reason}: {' '.join(names)}")
        self.explicit = explicit
        self.names = names


class DownloadError(YippeeError):
    """单个构建目录的源码下载失败"""

    code = "DOWNLOAD_ERROR"

    def __init__(self, directory: str, message: str) -> None:
        super().__init__(f"源码下载失败: {directory}: {message}")
        self.directory = directory


class FailedIgnoredPkgError(YippeeError):
    """安装结束后仍有构建失败、被跳过的 base"""

    code = "FAILED_IGNORED"

    def __init__(self, pkg_errors: dict[str, Exception]) -> None:
        lines = ["以下包安装失败，需要手动处理:"]
        lines.extend(f"  {base} - {err}" for base, err in pkg_errors.items())
        super().__init__("\n".join(lines))
        self.pkg_errors = dict(pkg_errors)


class MultiError(YippeeError):
    """有序错误列表: 汇总多个相互独立的失败，不丢弃任何一个

    用法:
        errs = MultiError()
        errs.add(err1)
        errs.add(None)      # 忽略
        errs.raise_if_any()
    """

    code = "MULTI_ERROR"

    def __init__(self, errors: Iterable[BaseException] | None = None) -> None:
        self.errors: list[BaseException] = [e for e in (errors or []) if e is not None]
        super().__init__("")

    def add(self, err: BaseException | None) -> None:
        if err is None:
            return
        if isinstance(err, MultiError):
            self.errors.extend(err.errors)
        else:
            self.errors.append(err)

    def contains(self, kind: type[BaseException]) -> bool:
        """是否包含指定类型的错误"""
        return any(isinstance(e, kind) for e in self.errors)

    def of_type(self, kind: type[BaseException]) -> list[BaseException]:
        return [e for e in self.errors if isinstance(e, kind)]

    def __bool__(self) -> bool:
        return bool(self.errors)

    def __len__(self) -> int:
        return len(self.errors)

    def __str__(self) -> str:
        return "\n".join(str(e) for e in self.errors)

    def raise_if_any(self) -> None:
        """存在错误时抛出自身"""
        if self.errors:
            raise self
