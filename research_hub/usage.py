from datetime import timedelta
from typing import Iterable, Optional

from rich.console import Console
from rich.table import Table

from research_hub.models import AiUsageLogEntry, ProviderUsage, Timeframe, UsageStats
from research_hub.storage import UsageLogStore
from research_hub.utils import utcnow

TIMEFRAMES = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


def aggregate_usage(entries: Iterable[AiUsageLogEntry]) -> UsageStats:
    stats = UsageStats(totalCost=0.0, totalTokens=0, totalCalls=0, byProvider={})
    for entry in entries:
        cost = entry.get("estimatedCost") or 0.0
        tokens = entry.get("tokensUsed") or 0
        stats["totalCalls"] += 1
        stats["totalCost"] += cost
        stats["totalTokens"] += tokens

        provider = entry.get("provider") or "unknown"
        bucket = stats["byProvider"].setdefault(provider, ProviderUsage(cost=0.0, tokens=0, calls=0))
        bucket["cost"] += cost
        bucket["tokens"] += tokens
        bucket["calls"] += 1
    return stats


async def usage_stats(usage_store: UsageLogStore, user_id: str, timeframe: Optional[Timeframe] = None) -> UsageStats:
    since = utcnow() - TIMEFRAMES[timeframe] if timeframe else None
    return aggregate_usage(await usage_store.get_usage_logs(user_id, since))


def print_usage_table(stats: UsageStats, console: Optional[Console] = None):
    console = console or Console()
    table = Table(title="AI Usage Statistics")

    table.add_column("Provider", style="cyan")
    table.add_column("Calls", style="magenta")
    table.add_column("Tokens", style="green")
    table.add_column("Estimated Cost", style="red")

    # Sort providers alphabetically for consistent display
    for provider in sorted(stats["byProvider"]):
        usage = stats["byProvider"][provider]
        table.add_row(provider, str(usage["calls"]), str(usage["tokens"]), f"${usage['cost']:.6f}")

    # Add a summary row
    table.add_row(
        "TOTAL",
        str(stats["totalCalls"]),
        str(stats["totalTokens"]),
        f"${stats['totalCost']:.6f}",
        style="bold",
    )

    console.print(table)
