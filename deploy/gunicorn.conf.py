"""Gunicorn 生产配置

用法:
  gunicorn --config deploy/gunicorn.conf.py reporef.web.app:app

注册表与同步锁都在进程内，因此只启动一个 worker 进程，并发由线程提供。
"""

import os

# ---------- 网络 ----------
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8080")

# ---------- 并发 ----------
workers = 1
threads = int(os.getenv("GUNICORN_THREADS", "32"))
worker_class = "gthread"
# 首次 clone 大仓库可能较慢，需大于 git_timeout
timeout = int(os.getenv("GUNICORN_TIMEOUT", "900"))

# ---------- 日志 ----------
accesslog = os.getenv("GUNICORN_ACCESS_LOG", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOG", "-")
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")

# ---------- 进程管理 ----------
graceful_timeout = 30
keepalive = 5


def post_worker_init(worker):  # noqa: ARG001
    """worker 加载应用后初始化日志与配置"""
    from reporef.core.config import init_config
    from reporef.utils.logger import setup_logging

    setup_logging(
        level=os.getenv("REPOREF_LOG_LEVEL", "INFO"),
        json_output=os.getenv("REPOREF_LOG_JSON", "") == "1",
    )
    init_config(os.getenv("REPOREF_CONFIG", "configs/default.yml"))
