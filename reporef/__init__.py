"""reporef - 固定分支/commit 的代码仓 HTTP 服务"""

__version__ = "0.1.0"
