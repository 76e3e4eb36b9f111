"""集中配置管理

替代各模块散落的常量，提供统一的配置入口。
支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from reporef.core.exceptions import ConfigError
from reporef.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


def _default_providers() -> dict[str, dict[str, str]]:
    return {
        "github.com": {
            "name": "GitHub",
            "clone_url": "https://github.com/{owner}/{repo}.git",
            "default_branch": "master",
        },
    }


@dataclass
class Config:
    """全局配置"""

    # 目录
    data_dir: str = "data/reporefs"

    # 同步策略（秒）
    branch_ttl: float = 60.0
    refresh_backoff: float = 30.0
    refresh_backoff_max: float = 600.0
    cleanup_failed_clone: bool = True
    pinned_branch: str = "master"

    # git
    git_binary: str = "git"
    git_timeout: float = 600.0

    # 注册表容量，0 表示不限
    max_entries: int = 512

    # 对外地址
    public_host: str = "reporef.org"
    public_scheme: str = "http"
    alias_hosts: list[str] = field(default_factory=lambda: ["reporef.com"])
    home_url: str = "https://github.com/GeertJohan/reporef"

    # 代码托管平台: host -> {name, clone_url, default_branch}
    providers: dict[str, dict[str, str]] = field(default_factory=_default_providers)

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """校验配置取值，非法时抛 ConfigError"""
        for name in ("branch_ttl", "refresh_backoff", "refresh_backoff_max", "git_timeout"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value < 0:
                raise ConfigError(f"配置项 {name} 必须为非负数: {value!r}")
        if not isinstance(self.max_entries, int) or self.max_entries < 0:
            raise ConfigError(f"配置项 max_entries 必须为非负整数: {self.max_entries!r}")
        if not self.pinned_branch:
            raise ConfigError("配置项 pinned_branch 不能为空")
        if not self.providers:
            raise ConfigError("至少需要配置一个代码托管平台 (providers)")
        for host, info in self.providers.items():
            if not isinstance(info, dict) or not info.get("clone_url"):
                raise ConfigError(f"代码托管平台 {host} 缺少 clone_url")

    @classmethod
    def from_file(cls, path: str = "configs/default.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f for f in cls.__dataclass_fields__ if f != "extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI / Web 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/default.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
