"""服务启动命令"""

import click


def register(main: click.Group) -> None:
    main.add_command(serve)


@click.command()
@click.option("--host", default="127.0.0.1", help="监听地址")
@click.option("--port", default=8080, help="监听端口")
@click.option("--debug", is_flag=True, help="Flask 调试模式")
def serve(host: str, port: int, debug: bool) -> None:
    """启动 HTTP 服务（开发用；生产环境使用 gunicorn）"""
    from reporef.web.app import run_server
    run_server(port=port, debug=debug, host=host)
