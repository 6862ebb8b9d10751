"""Typer CLI entrypoint for listing-crawler."""

from __future__ import annotations

import json
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from threading import Event
from typing import List, Optional, Sequence

import typer
import yaml
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import ConfigRepository, CrawlConfig
from .engine import ThreadPoolManager
from .infra import UserAgentPool
from .logging_conf import available_crawl_logs, configure_logging, tail_log
from .orchestrator import CrawlSummary, Orchestrator
from .ui import CrawlProgress

app = typer.Typer(
    help="listing-crawler 分页列表抓取命令行工具",
    no_args_is_help=True,
    rich_markup_mode=None,
)
crawl_app = typer.Typer(
    name="crawl",
    help="抓取任务配置管理命令",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="日志查看命令",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()

_STATUS_STYLES = {"completed": "green", "partial": "yellow", "failed": "red"}


@dataclass
class AppState:
    repository: ConfigRepository
    orchestrator: Orchestrator
    verbose: bool = False


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    global_config = repository.load_global_config()
    thread_pool = ThreadPoolManager(global_config.thread_pool_workers)
    agents = global_config.user_agent_list
    ua_pool = UserAgentPool(agents) if isinstance(agents, list) else None
    configure_logging(verbose=verbose)
    orchestrator = Orchestrator(
        config_repository=repository,
        thread_pool=thread_pool,
        ua_pool=ua_pool,
    )
    return AppState(repository=repository, orchestrator=orchestrator, verbose=verbose)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _report_config_error(name: str, exc: Exception) -> None:
    """Print a config problem as a structured block instead of a traceback."""

    payload: dict = {"crawl": name, "error_kind": "config"}
    if isinstance(exc, ValidationError):
        payload["errors"] = [
            {"loc": ".".join(str(part) for part in error["loc"]), "msg": error["msg"]}
            for error in exc.errors()
        ]
    else:
        payload["error"] = str(exc)
    console.print_json(json.dumps(payload, ensure_ascii=False))


def _render_crawls_table(crawls: Sequence[CrawlConfig]) -> Table:
    table = Table(
        title=f"抓取任务总览 · 共 {len(crawls)} 个",
        box=box.SIMPLE_HEAD,
        show_lines=False,
    )
    table.add_column("名称", style="cyan", no_wrap=True)
    table.add_column("模式", style="magenta")
    table.add_column("输出", style="green")
    table.add_column("入口地址", style="yellow", overflow="fold")
    for crawl in crawls:
        table.add_row(crawl.name, crawl.variant.value, crawl.export.format, crawl.target_url)
    return table


def _render_summary_table(summaries: Sequence[CrawlSummary]) -> Table:
    table = Table(title="抓取结果", box=box.SIMPLE_HEAD)
    table.add_column("名称", style="cyan", no_wrap=True)
    table.add_column("状态")
    table.add_column("页数", justify="right")
    table.add_column("记录", justify="right")
    table.add_column("重复", justify="right")
    table.add_column("跳过", justify="right")
    table.add_column("重试", justify="right")
    table.add_column("输出 / 错误", overflow="fold")
    for summary in summaries:
        style = _STATUS_STYLES.get(summary.status, "white")
        if summary.output_path is not None:
            detail = str(summary.output_path)
            if summary.error_kind:
                detail += f"\n({summary.error_kind}: {summary.error_message})"
        else:
            detail = f"{summary.error_kind}: {summary.error_message}"
        table.add_row(
            summary.crawl,
            f"[{style}]{summary.status}[/{style}]",
            str(summary.pages),
            str(summary.records),
            str(summary.duplicates),
            str(summary.skipped),
            str(summary.retries),
            escape(detail),
        )
    return table


app.add_typer(crawl_app, name="crawl", help="管理抓取任务（list/show/init/remove）")
app.add_typer(log_app, name="log", help="查看日志文件")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="开启调试日志", is_flag=True)
) -> None:
    ctx.obj = build_state(verbose)


@app.command("run", help="立即执行一个或多个抓取任务。")
def run(
    ctx: typer.Context,
    names: List[str] = typer.Argument(..., help="抓取任务名称，可指定多个并发执行。"),
    no_progress: bool = typer.Option(False, "--no-progress", help="关闭进度条显示。", is_flag=True),
    as_json: bool = typer.Option(False, "--json", help="以 JSON 输出结果摘要。", is_flag=True),
) -> None:
    state = _get_state(ctx)
    global_config = state.repository.load_global_config()
    show_progress = global_config.enable_progress_bar and not no_progress and not as_json

    cancel_event = Event()
    interrupted = False
    progress = CrawlProgress(enabled=True, console=console) if show_progress else None
    try:
        with progress if progress is not None else nullcontext():
            futures = state.orchestrator.submit_many(
                names,
                cancel_event=cancel_event,
                observer_factory=progress.reporter if progress is not None else None,
            )
            try:
                summaries = [future.result() for future in futures]
            except KeyboardInterrupt:
                # 通知所有运行中的任务在下一次循环时停止，并等待它们导出已抓取的数据
                interrupted = True
                cancel_event.set()
                console.print("收到中断信号，正在停止抓取…", style="yellow")
                summaries = [future.result() for future in futures]
    finally:
        state.orchestrator.thread_pool.shutdown(wait=False)

    if as_json:
        console.print_json(json.dumps([summary.as_dict() for summary in summaries], ensure_ascii=False))
    else:
        console.print(_render_summary_table(summaries))
    if interrupted:
        raise typer.Exit(code=130)
    if any(summary.failed for summary in summaries):
        raise typer.Exit(code=1)


@crawl_app.command("list", help="查看已配置的抓取任务。")
def crawl_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    files = list(state.repository.list_crawl_files())
    if not files:
        console.print("暂无抓取任务配置，使用 `listing-crawler crawl init` 创建。", style="yellow")
        raise typer.Exit(code=0)
    crawls: list[CrawlConfig] = []
    broken = False
    for path in files:
        try:
            crawls.append(state.repository.load_crawl(path))
        except (ValidationError, ValueError) as exc:
            broken = True
            _report_config_error(path.stem, exc)
    if crawls:
        console.print(_render_crawls_table(crawls))
    if broken:
        raise typer.Exit(code=1)


@crawl_app.command("show", help="显示指定抓取任务的完整配置。")
def crawl_show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="抓取任务名称。"),
) -> None:
    state = _get_state(ctx)
    try:
        config = state.repository.load_crawl(name)
    except (FileNotFoundError, ValidationError, ValueError) as exc:
        _report_config_error(name, exc)
        raise typer.Exit(code=1)
    payload = config.model_dump(mode="json", exclude_none=True)
    console.print(yaml.safe_dump(payload, allow_unicode=True, sort_keys=False), highlight=False, markup=False)


@crawl_app.command("init", help="基于内置模板创建新的抓取任务。")
def crawl_init(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="新抓取任务名称。"),
    template: str = typer.Option("quotes-static", "--template", "-t", help="模板名称。"),
    force: bool = typer.Option(False, "--force", help="覆盖已存在的同名配置。", is_flag=True),
) -> None:
    state = _get_state(ctx)
    templates = state.repository.list_templates()
    if template not in templates:
        console.print(f"未知模板 `{template}`，可用模板：{', '.join(templates)}", style="red")
        raise typer.Exit(code=1)
    if state.repository.crawl_path(name).exists() and not force:
        console.print(f"抓取任务 `{name}` 已存在，使用 --force 覆盖。", style="yellow")
        raise typer.Exit(code=1)
    path = state.repository.init_from_template(template, name)
    console.print(f"已创建抓取任务 `{name}`：{path}", style="green")


@crawl_app.command("templates", help="列出内置配置模板。")
def crawl_templates(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    for template in state.repository.list_templates():
        console.print(f"- {template}")


@crawl_app.command("remove", help="删除抓取任务配置。")
def crawl_remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="抓取任务名称。"),
    yes: bool = typer.Option(False, "--yes", "-y", help="跳过确认。", is_flag=True),
) -> None:
    state = _get_state(ctx)
    if not state.repository.crawl_path(name).exists():
        console.print(f"未找到抓取任务 `{name}`。", style="red")
        raise typer.Exit(code=1)
    if not yes and not typer.confirm(f"确认删除抓取任务 `{name}`？", default=False):
        console.print("已取消删除操作。", style="yellow")
        raise typer.Exit(code=0)
    state.repository.delete_crawl(name)
    console.print(f"抓取任务 `{name}` 已删除。", style="green")


@log_app.command("list", help="列出可用的日志文件。")
def log_list() -> None:
    logs = list(available_crawl_logs())
    console.print("日志文件：", style="cyan")
    if not logs:
        console.print("暂未生成任何抓取任务日志。", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("文件名", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="查看指定日志的最近内容。")
def log_show(
    ctx: typer.Context,
    name: Optional[str] = typer.Option(None, "--crawl", help="抓取任务名称（为空则展示全局日志）。"),
    tail: int = typer.Option(100, "--tail", help="显示最近 N 行内容。"),
) -> None:
    state = _get_state(ctx)
    base_dir: Path = state.repository.locator.logs_dir
    path = base_dir / "crawls" / f"{name}.log" if name else base_dir / "crawler.log"
    lines = tail_log(path, tail)
    if not lines:
        console.print("暂无日志信息，请稍后再试。", style="dim")
        return
    header = f"{'任务日志' if name else '全局日志'} · 最近 {len(lines)} 行"
    console.print(header, style="cyan")
    console.print("".join(lines), highlight=False, markup=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
