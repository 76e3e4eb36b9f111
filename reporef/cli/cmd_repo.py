"""代码仓引用命令：resolve / sync / workspaces / clean"""

import click

from reporef.core.exceptions import RepoRefError


def register(main: click.Group) -> None:
    main.add_command(resolve_cmd)
    main.add_command(sync_cmd)
    main.add_command(workspaces)
    main.add_command(clean)


def _container():  # type: ignore[no-untyped-def]
    from reporef.services.container import get_container
    return get_container()


@click.command(name="resolve")
@click.argument("path")
def resolve_cmd(path: str) -> None:
    """解析请求路径，输出标识 / ref 类型 / 本地目录（不执行同步）"""
    c = _container()
    try:
        resolved = c.service.resolve(path)
    except RepoRefError as e:
        raise click.ClickException(f"[{e.code}] {e}") from e
    ident = resolved.identity
    click.echo(f"标识:     {ident.key}")
    click.echo(f"上游:     {ident.repo_path}")
    click.echo(f"ref:      {ident.ref} ({ident.ref_kind.value})")
    click.echo(f"本地目录: {c.workspace.local_directory_for(ident)}")
    if resolved.suffix:
        click.echo(f"后缀:     {resolved.suffix}")


@click.command(name="sync")
@click.argument("path")
def sync_cmd(path: str) -> None:
    """解析并同步代码仓引用，输出固定的 commit"""
    c = _container()
    try:
        _, record = c.service.acquire(path)
    except RepoRefError as e:
        raise click.ClickException(f"[{e.code}] {e}") from e
    click.echo(f"{record.key} -> {record.commit_hash}  {record.local_dir}")


@click.command()
def workspaces() -> None:
    """列出本地已同步的工作目录"""
    wss = _container().workspace.list_workspaces()
    if not wss:
        click.echo("没有已同步的工作目录。")
        return
    for w in wss:
        click.echo(f"  {w['identity']:50s} commit={w['commit'][:12] or '-':12s}  {w['path']}")


@click.command()
@click.argument("identity")
def clean(identity: str) -> None:
    """删除指定标识（host/owner/repo@ref）的本地工作目录"""
    if _container().workspace.clean(identity):
        click.echo(f"已清理: {identity}")
    else:
        click.echo(f"工作目录不存在: {identity}")
