"""reporef 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os

import click

from reporef import __version__
from reporef.core.config import init_config
from reporef.core.exceptions import ConfigError
from reporef.services.container import reset_container
from reporef.utils.logger import setup_logging


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "-c", "config_path",
    default=lambda: os.getenv("REPOREF_CONFIG", "configs/default.yml"),
    show_default="configs/default.yml", help="配置文件路径",
)
def main(config_path: str) -> None:
    """reporef - 按分支或 commit 固定代码仓并通过 HTTP 提供服务"""
    setup_logging(
        level=os.getenv("REPOREF_LOG_LEVEL", "INFO"),
        json_output=os.getenv("REPOREF_LOG_JSON", "") == "1",
    )
    try:
        init_config(config_path)
    except ConfigError as e:
        raise click.ClickException(f"[{e.code}] {e}") from e
    reset_container()


# 注册各领域子命令
from reporef.cli.cmd_serve import register as _reg_serve  # noqa: E402
from reporef.cli.cmd_repo import register as _reg_repo  # noqa: E402

_reg_serve(main)
_reg_repo(main)
