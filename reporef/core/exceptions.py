"""统一异常体系

所有业务异常继承 RepoRefError，替代散落的 ValueError / RuntimeError。
Web 层据 http_status 自动映射 HTTP 状态码，CLI 层据此输出友好提示。
"""

from __future__ import annotations


class RepoRefError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"
    http_status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(RepoRefError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ResolutionError(RepoRefError):
    """请求路径无法解析为代码仓引用"""

    code = "RESOLUTION_ERROR"
    http_status = 400


class UnsupportedProviderError(ResolutionError):
    """未知或不支持的代码托管平台"""

    code = "UNSUPPORTED_PROVIDER"
    http_status = 404


class MalformedIdentityError(ResolutionError):
    """路径缺少必需字段或字段非法"""

    code = "MALFORMED_IDENTITY"
    http_status = 400


class NotFound(RepoRefError):
    """平台注册表中不存在该 host"""

    code = "NOT_FOUND"
    http_status = 404


class ExecutionError(RepoRefError):
    """外部命令执行失败或超时"""

    code = "EXECUTION_ERROR"

    def __init__(self, message: str, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class SyncFailure(RepoRefError):
    """clone / pull / checkout / 元数据刷新任一步骤失败

    首次同步失败时没有任何可用内容，对外表现为 404。
    """

    code = "SYNC_FAILURE"
    http_status = 404

    def __init__(self, message: str, step: str = "") -> None:
        super().__init__(message)
        self.step = step
