from datetime import timedelta

import pytest
from rich.console import Console

from research_hub.storage import MemoryStore
from research_hub.usage import aggregate_usage, print_usage_table, usage_stats
from research_hub.utils import utcnow


def entry(provider, tokens, cost, success=True, **extra):
    data = {
        "userId": "user-1",
        "configId": "c",
        "provider": provider,
        "operation": "summarize",
        "tokensUsed": tokens,
        "estimatedCost": cost,
        "responseTimeMs": 10,
        "success": success,
        "errorMessage": None,
    }
    data.update(extra)
    return data


def test_aggregate_groups_by_provider():
    stats = aggregate_usage(
        [
            entry("openai", 1000, 0.5),
            entry("openai", 500, 0.25),
            entry("anthropic", 200, 0.1),
            entry("anthropic", None, None, success=False),
        ]
    )

    assert stats["totalCalls"] == 4
    assert stats["totalTokens"] == 1700
    assert stats["totalCost"] == pytest.approx(0.85)
    assert stats["byProvider"]["openai"] == {"cost": pytest.approx(0.75), "tokens": 1500, "calls": 2}
    assert stats["byProvider"]["anthropic"]["calls"] == 2


def test_aggregate_empty():
    assert aggregate_usage([]) == {"totalCost": 0.0, "totalTokens": 0, "totalCalls": 0, "byProvider": {}}


@pytest.mark.asyncio
async def test_usage_stats_timeframe():
    store = MemoryStore()
    await store.log_ai_usage(entry("openai", 100, 0.1, createdAt=utcnow() - timedelta(days=3)))
    await store.log_ai_usage(entry("gemini", 50, 0.05))

    assert (await usage_stats(store, "user-1"))["totalCalls"] == 2
    assert (await usage_stats(store, "user-1", "week"))["totalCalls"] == 2
    day = await usage_stats(store, "user-1", "day")
    assert list(day["byProvider"]) == ["gemini"]


def test_print_usage_table():
    console = Console(record=True, width=120)
    print_usage_table(aggregate_usage([entry("openai", 1000, 0.5)]), console)
    output = console.export_text()
    assert "openai" in output
    assert "TOTAL" in output
    assert "$0.500000" in output
