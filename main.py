# main.py
"""
Command-line entry point: extraction, scoring, AI configurations, monitoring
and summary generation on top of the JSON vault.
"""
import argparse
import asyncio
import sys
from typing import List

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from research_hub.ai_gateway import ProviderGateway
from research_hub.config import LOGGER, MONITOR_INTERVAL_SECONDS, VAULT_DIR
from research_hub.content_service import ContentService
from research_hub.errors import ResearchHubError
from research_hub.extractor import ContentExtractor
from research_hub.models import PROVIDERS, Workspace, WorkspaceSource
from research_hub.monitor import MonitorScheduler
from research_hub.relevance import score_relevance
from research_hub.storage import VaultStore
from research_hub.summary_service import SummaryOrchestrator
from research_hub.usage import print_usage_table, usage_stats

console = Console()


def _split_keywords(raw: str) -> List[str]:
    return [k.strip() for k in raw.split(",") if k.strip()]


async def cmd_extract(args, store: VaultStore):
    extractor = ContentExtractor()
    extracted = await extractor.extract_from_url(args.url)
    meta = Table.grid(padding=(0, 2))
    meta.add_row("Author", extracted.get("author") or "-")
    published = extracted.get("publishedAt")
    meta.add_row("Published", published.isoformat() if published else "-")
    meta.add_row("Excerpt", extracted.get("excerpt") or "-")
    console.print(Panel(meta, title=extracted["title"]))

    if args.structured:
        gateway = ProviderGateway(store, store)
        structured = await gateway.extract_structured(args.url, extracted["content"], args.user, args.config)
        points = "\n".join(f"- {p}" for p in structured["keyPoints"])
        console.print(Panel(Markdown(f"{structured['summary']}\n\n{points}"), title=structured["title"]))
    else:
        console.print(extracted["content"])


async def cmd_rss(args, store: VaultStore):
    extractor = ContentExtractor()
    if not await extractor.validate_rss_feed(args.url):
        LOGGER.error(f"{args.url} does not look like an RSS or Atom feed")
        return 1
    items = await extractor.extract_rss_items(args.url)
    table = Table(title=args.url)
    table.add_column("Published", style="green")
    table.add_column("Title", style="cyan")
    table.add_column("Link")
    for item in items:
        published = item.get("publishedAt")
        table.add_row(published.date().isoformat() if published else "-", item["title"], item.get("url") or "")
    console.print(table)


async def cmd_score(args, store: VaultStore):
    score = score_relevance(args.title, args.content, _split_keywords(args.keywords), args.purpose)
    console.print(f"Relevance score: [bold]{score}[/bold]")


async def cmd_config(args, store: VaultStore):
    gateway = ProviderGateway(store, store)
    if args.config_command == "add":
        config = await gateway.create_config(
            {
                "userId": args.user,
                "name": args.name,
                "provider": args.provider,
                "model": args.model,
                "apiKey": args.api_key,
                "baseUrl": args.base_url,
                "organizationId": args.organization,
                "projectId": args.project,
                "region": args.region,
                "isDefault": args.default,
            }
        )
        console.print(f"Created configuration [bold]{config['id']}[/bold]")
    elif args.config_command == "list":
        columns = ("id", "provider", "model", "apiKey", "isDefault", "isActive", "usageCount")
        table = Table(title=f"AI configurations for {args.user}")
        for column in columns:
            table.add_column(column)
        for config in await gateway.list_configs(args.user):
            table.add_row(*(str(config.get(column)) for column in columns))
        console.print(table)
    elif args.config_command == "default":
        await gateway.set_default_config(args.user, args.config_id)
        console.print(f"{args.config_id} is now the default configuration")
    elif args.config_command == "delete":
        await gateway.delete_config(args.user, args.config_id)
        console.print(f"Deleted {args.config_id}")
    elif args.config_command == "test":
        result = await gateway.test_config(args.user, args.config_id)
        if result["success"]:
            console.print(f"[green]OK[/green] in {result['responseTimeMs']} ms")
        else:
            console.print(f"[red]Failed[/red]: {result['error']}")
            return 1


async def cmd_workspace(args, store: VaultStore):
    sources: List[WorkspaceSource] = [WorkspaceSource(url=u, kind="rss") for u in args.rss or []]
    sources += [WorkspaceSource(url=u, kind="web") for u in args.web or []]
    workspace = await store.save_workspace(
        Workspace(
            id="",
            userId=args.user,
            name=args.name,
            keywords=_split_keywords(args.keywords),
            purpose=args.purpose,
            sources=sources,
            isArchived=False,
        )
    )
    console.print(f"Created workspace [bold]{workspace['id']}[/bold] with {len(sources)} sources")


def _content_service(store: VaultStore) -> ContentService:
    return ContentService(ContentExtractor(), store, store)


async def cmd_collect(args, store: VaultStore):
    added = await _content_service(store).collect_content(args.workspace_id)
    console.print(f"{added} new items")


async def cmd_monitor(args, store: VaultStore):
    scheduler = MonitorScheduler(_content_service(store), interval=args.interval)
    for workspace_id in args.workspace_ids:
        await scheduler.start_monitoring(workspace_id)
    try:
        if args.duration:
            await asyncio.sleep(args.duration)
        else:
            await asyncio.Event().wait()
    finally:
        await scheduler.stop_all()


async def cmd_summarize(args, store: VaultStore):
    orchestrator = SummaryOrchestrator(ProviderGateway(store, store), store, store, store)
    summary = await orchestrator.generate_summary(
        args.workspace_id, args.user, args.type, focus=args.focus, config_id=args.config
    )
    console.print(Panel(Markdown(summary["content"]), title=summary["title"]))


async def cmd_usage(args, store: VaultStore):
    print_usage_table(await usage_stats(store, args.user, args.timeframe), console)


COMMANDS = {
    "extract": cmd_extract,
    "rss": cmd_rss,
    "score": cmd_score,
    "config": cmd_config,
    "workspace": cmd_workspace,
    "collect": cmd_collect,
    "monitor": cmd_monitor,
    "summarize": cmd_summarize,
    "usage": cmd_usage,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect, score and summarize research content")
    parser.add_argument("--vault", default=VAULT_DIR, help="Vault directory (default: %(default)s)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("extract", help="Extract a web page")
    p.add_argument("url")
    p.add_argument("--structured", action="store_true", help="Also ask the AI for a structured digest")
    p.add_argument("--user", default="local")
    p.add_argument("--config")

    p = sub.add_parser("rss", help="List the items of an RSS/Atom feed")
    p.add_argument("url")

    p = sub.add_parser("score", help="Score a text against keywords")
    p.add_argument("--title", required=True)
    p.add_argument("--content", required=True)
    p.add_argument("--keywords", required=True, help="Comma-separated keywords")
    p.add_argument("--purpose")

    p = sub.add_parser("config", help="Manage AI configurations")
    config_sub = p.add_subparsers(dest="config_command", required=True)
    add = config_sub.add_parser("add")
    add.add_argument("--user", default="local")
    add.add_argument("--name")
    add.add_argument("--provider", required=True, choices=PROVIDERS)
    add.add_argument("--model", required=True)
    add.add_argument("--api-key", required=True)
    add.add_argument("--base-url")
    add.add_argument("--organization")
    add.add_argument("--project")
    add.add_argument("--region")
    add.add_argument("--default", action="store_true")
    lst = config_sub.add_parser("list")
    lst.add_argument("--user", default="local")
    for name in ("default", "delete", "test"):
        c = config_sub.add_parser(name)
        c.add_argument("config_id")
        c.add_argument("--user", default="local")

    p = sub.add_parser("workspace", help="Create a workspace")
    p.add_argument("--user", default="local")
    p.add_argument("--name", required=True)
    p.add_argument("--keywords", required=True, help="Comma-separated keywords")
    p.add_argument("--purpose")
    p.add_argument("--rss", action="append", help="RSS/Atom feed URL (repeatable)")
    p.add_argument("--web", action="append", help="Web page URL (repeatable)")

    p = sub.add_parser("collect", help="Run one collection pass for a workspace")
    p.add_argument("workspace_id")

    p = sub.add_parser("monitor", help="Monitor workspaces until interrupted")
    p.add_argument("workspace_ids", nargs="+")
    p.add_argument("--interval", type=float, default=MONITOR_INTERVAL_SECONDS)
    p.add_argument("--duration", type=float, help="Stop after this many seconds")

    p = sub.add_parser("summarize", help="Generate a summary for a workspace")
    p.add_argument("workspace_id")
    p.add_argument("--user", default="local")
    p.add_argument("--type", choices=("full", "differential"), default="full")
    p.add_argument("--focus")
    p.add_argument("--config")

    p = sub.add_parser("usage", help="Show AI usage statistics")
    p.add_argument("--user", default="local")
    p.add_argument("--timeframe", choices=("day", "week", "month"))
    return parser


async def main(argv: List[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    store = VaultStore(args.vault)
    try:
        result = await COMMANDS[args.command](args, store)
    except ResearchHubError as e:
        LOGGER.error(str(e))
        return 1
    return result or 0


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
