"""核心数据模型

代码托管平台、代码仓引用标识、路径解析结果、同步结果等值对象集中定义。
可变的代码仓引用记录见 reporef.core.reporef。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

# 完整 40 位小写十六进制 commit hash
COMMIT_HASH_RE = re.compile(r"^[a-f0-9]{40}$")


class RefKind(str, Enum):
    """ref 类型：commit 不可变，branch（含 tag）可变"""

    COMMIT = "commit"
    BRANCH = "branch"

    @classmethod
    def classify(cls, ref: str) -> RefKind:
        return cls.COMMIT if COMMIT_HASH_RE.match(ref) else cls.BRANCH


class SyncOutcome(str, Enum):
    """一次同步的结果（失败以 SyncFailure 抛出，不在此列）"""

    CLONED = "cloned"
    UPDATED = "updated"
    NOT_REQUIRED = "not_required"  # commit 已同步过，无需再联系上游


@dataclass(frozen=True)
class Provider:
    """代码托管平台

    clone_url 为模板，支持 {host} / {owner} / {repo} 占位符。
    """

    host: str
    name: str
    clone_url: str
    default_branch: str = "master"

    def clone_url_for(self, owner: str, repo: str) -> str:
        return self.clone_url.format(host=self.host, owner=owner, repo=repo)


@dataclass(frozen=True)
class RepoIdentity:
    """代码仓引用标识：平台 + 用户 + 仓库 + ref 唯一确定一条缓存"""

    host: str
    owner: str
    repo: str
    ref: str
    ref_kind: RefKind

    @property
    def key(self) -> str:
        """注册表键，例如 github.com/alice/bar@master"""
        return f"{self.host}/{self.owner}/{self.repo}@{self.ref}"

    @property
    def repo_path(self) -> str:
        """上游仓库位置，例如 github.com/alice/bar"""
        return f"{self.host}/{self.owner}/{self.repo}"

    @property
    def is_commit(self) -> bool:
        return self.ref_kind is RefKind.COMMIT

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class ResolvedPath:
    """请求路径解析结果

    prefix 为客户端原样写出的前三段（构造 URL 时使用），
    suffix 为其后的部分（git dumb 协议文件路径等），无则为空串。
    """

    identity: RepoIdentity
    prefix: str
    suffix: str = ""

    @property
    def is_git_request(self) -> bool:
        """是否为 git dumb 协议的文件请求"""
        s = self.suffix
        return (
            s.startswith((".git/", "objects/", "info/"))
            or s in (".git", "HEAD")
        )

    @property
    def git_file(self) -> str:
        """相对 .git 目录的文件路径"""
        s = self.suffix
        if s == ".git":
            return ""
        if s.startswith(".git/"):
            return s[len(".git/"):]
        return s
