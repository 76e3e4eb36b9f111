"""请求路径 → 代码仓引用标识

路径语法: /<host>/<owner>/<repo>[@<ref>][/<suffix>]

  github.com/alice/bar                 -> ref=master (平台默认分支), branch
  github.com/alice/bar@feature-x       -> ref=feature-x, branch
  github.com/alice/bar@<40位hash>      -> ref=<hash>, commit
  github.com/alice/bar@v1/info/refs    -> suffix=info/refs

parse_request_path 只做字段拆分；resolve 额外校验 ref / 仓库名，
调用方应使用 resolve。
"""

from __future__ import annotations

import re

from reporef.core.exceptions import (
    MalformedIdentityError,
    NotFound,
    UnsupportedProviderError,
)
from reporef.core.models import RefKind, RepoIdentity, ResolvedPath
from reporef.core.providers import ProviderRegistry

# git 引用名中不允许出现的字符与序列（git check-ref-format）
_REF_FORBIDDEN_RE = re.compile(r"[\x00-\x20\x7f~^:?*\[\\]|\.\.")
_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")


def _strip_request_path(request_path: str) -> str:
    path = request_path.lstrip("/")
    # 只去掉位置 > 0 的 '?'，开头的 '?' 原样保留
    pos = path.find("?")
    if pos > 0:
        path = path[:pos]
    return path


def _is_valid_ref(ref: str) -> bool:
    # ref 同时作为 git 参数和目录名使用
    if ref.startswith(("-", ".")) or ref.endswith((".", ".lock")):
        return False
    return _REF_FORBIDDEN_RE.search(ref) is None


def parse_request_path(request_path: str, providers: ProviderRegistry) -> ResolvedPath:
    """拆分请求路径为平台 / 用户 / 仓库 / ref，不校验 ref 内容"""
    path = _strip_request_path(request_path)
    if not path:
        raise MalformedIdentityError("请求路径为空")

    fields = path.split("/")
    try:
        provider = providers.lookup(fields[0])
    except NotFound as e:
        raise UnsupportedProviderError(f"未知或不支持的代码托管平台: {fields[0]}") from e

    if len(fields) < 3:
        raise MalformedIdentityError(f"路径缺少必需字段 (需要 host/owner/repo): {path}")

    owner, repo_field = fields[1], fields[2]
    repo, sep, ref = repo_field.rpartition("@")
    if not sep:
        repo, ref = repo_field, provider.default_branch

    identity = RepoIdentity(
        host=provider.host,
        owner=owner,
        repo=repo,
        ref=ref,
        ref_kind=RefKind.classify(ref),
    )
    return ResolvedPath(
        identity=identity,
        prefix="/".join(fields[:3]),
        suffix="/".join(fields[3:]),
    )


def resolve(request_path: str, providers: ProviderRegistry) -> ResolvedPath:
    """解析并校验请求路径

    Raises:
        UnsupportedProviderError: host 未注册
        MalformedIdentityError: 缺少字段、ref 为空或含非法字符
    """
    resolved = parse_request_path(request_path, providers)
    ident = resolved.identity

    if not ident.owner or not _SAFE_NAME_RE.match(ident.owner):
        raise MalformedIdentityError(f"用户名为空或包含非法字符: {ident.owner!r}")
    if not ident.repo or not _SAFE_NAME_RE.match(ident.repo):
        raise MalformedIdentityError(f"仓库名为空或包含非法字符: {ident.repo!r}")
    if ident.owner in (".", "..") or ident.repo in (".", ".."):
        raise MalformedIdentityError(f"路径字段不合法: {resolved.prefix}")
    if not ident.ref:
        raise MalformedIdentityError(f"ref 为空: {resolved.prefix}")
    if not _is_valid_ref(ident.ref):
        raise MalformedIdentityError(f"ref 包含非法字符: {ident.ref!r}")
    return resolved
