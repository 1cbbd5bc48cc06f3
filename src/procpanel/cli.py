"""CLI commands for procpanel."""

import json
from collections.abc import Callable
from pathlib import Path

import click

from procpanel.config import Config
from procpanel.errors import (
    AccessDeniedError,
    CollectionError,
    NotFoundError,
    ProcessPanelError,
    ValidationError,
)
from procpanel.formatting import describe_command, format_bytes, truncate
from procpanel.logging import configure
from procpanel.models import SORT_DIRECTIONS, SORT_KEYS, ProcessRecord, QuerySpec
from procpanel.service import ProcessService
from procpanel.tree import iter_tree

EXIT_CODES: dict[type[ProcessPanelError], int] = {
    ValidationError: 2,
    NotFoundError: 3,
    AccessDeniedError: 4,
    CollectionError: 5,
}


def _run(operation: Callable[[], None]) -> None:
    """Run an operation, turning procpanel errors into messages and exit codes."""
    try:
        operation()
    except ProcessPanelError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(EXIT_CODES.get(type(e), 1)) from e


def _echo_json(data: object) -> None:
    click.echo(json.dumps(data, indent=2))


def _row(record: ProcessRecord) -> str:
    return (
        f"{record.pid:>7}  {truncate(record.username, 10):10}  {truncate(record.status, 9):9}  "
        f"{record.cpu_percent:5.1f}  {record.memory_percent:5.1f}  "
        f"{format_bytes(record.rss):>7}  {truncate(describe_command(record), 40)}"
    )


HEADER = f"{'PID':>7}  {'USER':10}  {'STATUS':9}  {'CPU%':>5}  {'MEM%':>5}  {'RSS':>7}  COMMAND"


@click.group()
@click.version_option(package_name="procpanel")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.toml",
)
@click.pass_context
def main(ctx: click.Context, config_path: Path | None) -> None:
    """Inspect and control the processes on this host."""
    try:
        config = Config.load(config_path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    configure(config)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["service"] = ProcessService.from_config(config)


@main.command("list")
@click.option("--page", "-p", default=1, help="Page number (1-based)")
@click.option("--limit", "-n", type=int, default=None, help="Processes per page")
@click.option("--sort-by", type=click.Choice(SORT_KEYS), default="pid", help="Sort key")
@click.option("--sort-dir", type=click.Choice(SORT_DIRECTIONS), default="asc", help="Sort direction")
@click.option("--status", default="", help="Only processes in this status")
@click.option("--username", "-u", default="", help="Only processes owned by this user")
@click.option("--search", "-s", default="", help="Match name, command line or PID")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def list_processes(
    ctx: click.Context,
    page: int,
    limit: int | None,
    sort_by: str,
    sort_dir: str,
    status: str,
    username: str,
    search: str,
    as_json: bool,
) -> None:
    """List processes with filters, sorting and pagination."""
    config: Config = ctx.obj["config"]
    service: ProcessService = ctx.obj["service"]
    spec = QuerySpec.from_params(
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_dir=sort_dir,
        status=status,
        username=username,
        search=search,
        default_limit=config.query.default_limit,
    )

    def show() -> None:
        result = service.list(spec)
        if as_json:
            _echo_json(result.to_dict())
            return
        click.echo(HEADER)
        click.echo("-" * 90)
        for record in result.items:
            click.echo(_row(record))
        pages = max((result.total + spec.limit - 1) // spec.limit, 1)
        click.echo(f"\n{result.total} processes, page {spec.page}/{pages}")

    _run(show)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def tree(ctx: click.Context, as_json: bool) -> None:
    """Show the parent-child process tree."""
    service: ProcessService = ctx.obj["service"]

    def show() -> None:
        roots = service.tree()
        if as_json:
            _echo_json([root.to_dict() for root in roots])
            return
        for node in iter_tree(roots):
            indent = "  " * node.level
            click.echo(f"{indent}{node.pid:<7} {truncate(describe_command(node.record), 60)}")

    _run(show)


@main.command()
@click.argument("pid", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def detail(ctx: click.Context, pid: int, as_json: bool) -> None:
    """Show everything known about one process."""
    service: ProcessService = ctx.obj["service"]

    def show() -> None:
        info = service.detail(pid)
        if as_json:
            _echo_json(info.to_dict())
            return
        r = info.record
        click.echo(f"PID:        {r.pid}")
        click.echo(f"Name:       {r.name}")
        click.echo(f"User:       {r.username}")
        click.echo(f"Status:     {r.status}{' (background)' if r.background else ''}")
        click.echo(f"Started:    {r.start_time or '-'}")
        click.echo(f"Threads:    {r.num_threads}")
        click.echo(f"CPU:        {r.cpu_percent:.1f}%")
        click.echo(f"Memory:     {format_bytes(r.rss).strip()} RSS ({r.memory_percent:.1f}%)")
        click.echo(f"Exe:        {r.exe or '-'}")
        click.echo(f"Cwd:        {r.cwd or '-'}")
        click.echo(f"Command:    {' '.join(info.command_line) or '-'}")
        if info.parent is not None:
            click.echo(f"Parent:     {info.parent.pid} ({info.parent.name})")
        else:
            click.echo("Parent:     -")
        if info.children_detail:
            click.echo("Children:")
            for child in info.children_detail:
                click.echo(f"  {child.pid:<7} {truncate(describe_command(child), 60)}")
        if r.unavailable:
            click.echo(f"Unavailable: {', '.join(sorted(r.unavailable))}")

    _run(show)


@main.command()
@click.argument("pid", type=int)
@click.pass_context
def kill(ctx: click.Context, pid: int) -> None:
    """Kill a process immediately."""
    service: ProcessService = ctx.obj["service"]

    def send() -> None:
        service.kill(pid)
        click.echo(f"Killed {pid}")

    _run(send)


@main.command("signal")
@click.argument("pid", type=int)
@click.argument("name")
@click.pass_context
def send_signal(ctx: click.Context, pid: int, name: str) -> None:
    """Send a signal (SIGTERM, SIGHUP, SIGSTOP, ...) to a process."""
    service: ProcessService = ctx.obj["service"]

    def send() -> None:
        service.signal(pid, name.upper())
        click.echo(f"Sent {name.upper()} to {pid}")

    _run(send)


@main.command()
@click.pass_context
def tui(ctx: click.Context) -> None:
    """Launch interactive dashboard."""
    from procpanel.app import ProcPanelApp

    ProcPanelApp(ctx.obj["service"], ctx.obj["config"]).run()
