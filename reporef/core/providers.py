"""代码托管平台注册表

请求路径第一段为 host，按 host 查找平台；未知 host 拒绝请求。
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping

from reporef.core.exceptions import NotFound
from reporef.core.models import Provider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """host -> Provider 映射（启动后只读）"""

    def __init__(self, providers: list[Provider] | None = None) -> None:
        self._by_host: dict[str, Provider] = {}
        for p in providers or []:
            self.add(p)

    @classmethod
    def from_config(cls, table: Mapping[str, Mapping[str, str]]) -> ProviderRegistry:
        """从配置中的 providers 段构建注册表"""
        registry = cls()
        for host, info in table.items():
            registry.add(Provider(
                host=host,
                name=info.get("name", host),
                clone_url=info["clone_url"],
                default_branch=info.get("default_branch", "master"),
            ))
        return registry

    def add(self, provider: Provider) -> None:
        self._by_host[provider.host] = provider
        logger.debug("代码托管平台已注册: %s (%s)", provider.host, provider.name)

    def lookup(self, host: str) -> Provider:
        """按 host 查找平台，不存在抛 NotFound"""
        provider = self._by_host.get(host)
        if provider is None:
            raise NotFound(f"没有与 host 对应的代码托管平台: {host}")
        return provider

    def hosts(self) -> list[str]:
        return sorted(self._by_host)

    def __contains__(self, host: object) -> bool:
        return host in self._by_host

    def __iter__(self) -> Iterator[Provider]:
        return iter(self._by_host.values())

    def __len__(self) -> int:
        return len(self._by_host)
