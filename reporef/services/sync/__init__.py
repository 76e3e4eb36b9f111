"""同步模块

拆分说明：
- git_backend.py: 版本控制能力接口 + git 命令行实现
- engine.py: 同步引擎（过期判断、clone/更新、固定默认分支）
- workspace.py: 本地工作目录布局与清理
"""

from reporef.services.sync.engine import SyncEngine
from reporef.services.sync.git_backend import GitBackend, VcsBackend
from reporef.services.sync.workspace import WorkspaceManager

__all__ = [
    "SyncEngine",
    "GitBackend",
    "VcsBackend",
    "WorkspaceManager",
]
