"""reporef HTTP 服务（基于 Flask）

提供：代码仓引用说明页、go-get 元数据页、git dumb 协议静态文件、统计信息。

请求路径: /<host>/<owner>/<repo>[@<ref>][/<suffix>]
  suffix 为 .git/... / objects/... / info/... / HEAD 时返回工作副本 .git 下的文件
  查询参数 go-get=1 时返回带 go-import meta 的页面

启动方式: reporef serve --port 8080
"""

from __future__ import annotations

import logging
import os
from typing import Any

from flask import Flask, Response, abort, jsonify, redirect, render_template, request, send_file
from werkzeug.exceptions import HTTPException
from werkzeug.security import safe_join

from reporef.core.exceptions import RepoRefError
from reporef.core.reporef import RepositoryReference
from reporef.services.container import get_container

logger = logging.getLogger(__name__)

app = Flask(__name__, static_folder=None)

# git dumb 协议各类文件的 Content-Type
_GIT_CONTENT_TYPES = {
    "info/refs": "text/plain; charset=utf-8",
    "HEAD": "text/plain; charset=utf-8",
    "objects/info/packs": "text/plain; charset=utf-8",
    "objects/info/alternates": "text/plain; charset=utf-8",
    "objects/info/http-alternates": "text/plain; charset=utf-8",
}


def _git_content_type(git_file: str) -> str:
    if git_file in _GIT_CONTENT_TYPES:
        return _GIT_CONTENT_TYPES[git_file]
    if git_file.startswith("objects/pack/") and git_file.endswith(".pack"):
        return "application/x-git-packed-objects"
    if git_file.startswith("objects/pack/") and git_file.endswith(".idx"):
        return "application/x-git-packed-objects-toc"
    if git_file.startswith("objects/"):
        return "application/x-git-loose-object"
    return "application/octet-stream"


# =========================================================================
# 全局错误处理
# =========================================================================


@app.errorhandler(RepoRefError)
def handle_reporef_error(exc: RepoRefError) -> tuple[Response, int]:
    """业务异常按 http_status 返回 JSON"""
    logger.warning("请求失败 %s: [%s] %s", request.path, exc.code, exc)
    return jsonify(error=str(exc), code=exc.code), exc.http_status


@app.errorhandler(HTTPException)
def handle_http_exception(exc: HTTPException) -> tuple[Response, int]:
    """将所有 HTTP 异常统一返回 JSON"""
    return jsonify(error=exc.description), exc.code or 500


@app.errorhandler(Exception)
def handle_generic_exception(exc: Exception) -> tuple[Response, int]:  # noqa: ARG001
    """捕获未处理异常，返回 500 JSON"""
    logger.exception("未处理的异常")
    return jsonify(error="服务器内部错误"), 500


# =========================================================================
# 路由
# =========================================================================


@app.before_request
def redirect_alias_host() -> Any:
    """别名域名统一跳转到对外域名"""
    cfg = get_container().config
    host = request.host.split(":", 1)[0]
    if host in cfg.alias_hosts:
        target = f"{cfg.public_scheme}://{cfg.public_host}{request.full_path.rstrip('?')}"
        return redirect(target, code=302)
    return None


@app.route("/")
def index() -> Response:
    """暂无首页，跳转到项目主页"""
    return redirect(get_container().config.home_url, code=307)


@app.route("/stats")
def stats() -> Response:
    return jsonify(get_container().service.stats())


@app.route("/<path:request_path>")
def reporef_handler(request_path: str) -> Any:  # noqa: ARG001
    resolved, record = get_container().service.acquire(request.full_path)

    if resolved.is_git_request:
        return _serve_git_file(record, resolved.git_file)

    cfg = get_container().config
    page_data = {
        "identifier": resolved.prefix,
        "original_repo_path": resolved.identity.repo_path,
        "ref_type": resolved.identity.ref_kind.value,
        "ref": resolved.identity.ref,
        "commit": record.commit_hash,
        "public_host": cfg.public_host,
        "public_scheme": cfg.public_scheme,
    }
    if request.args.get("go-get") == "1":
        return render_template("goget.html", **page_data)
    return render_template("reporef.html", **page_data)


def _serve_git_file(record: RepositoryReference, git_file: str) -> Response:
    """在读锁内定位并打开文件，同步过程不会与之交错"""
    with record.rw_lock.read():
        target = safe_join(str(record.serving_root), git_file) if git_file else None
        if target is None or not os.path.isfile(target):
            abort(404)
        resp = send_file(target, mimetype=_git_content_type(git_file), conditional=True)
    if not git_file.startswith("objects/") or git_file.startswith("objects/info/"):
        # 引用类文件随分支刷新变化，不允许缓存
        resp.headers["Cache-Control"] = "no-cache"
    return resp


def run_server(port: int = 8080, debug: bool = False, host: str = "127.0.0.1") -> None:
    logger.info("reporef 服务已启动: http://%s:%d", host, port)
    app.run(host=host, port=port, debug=debug, threaded=True)
