# tests/test_storage.py
from datetime import datetime, timedelta

import pytest

from research_hub.storage import MemoryStore, VaultStore
from research_hub.utils import utcnow

from conftest import config_data


@pytest.mark.asyncio
async def test_content_since_is_strictly_after():
    store = MemoryStore()
    cutoff = utcnow() - timedelta(hours=1)
    await store.bulk_add_content_items(
        [
            {"workspaceId": "ws", "title": "at", "content": "c", "url": "u1", "createdAt": cutoff},
            {"workspaceId": "ws", "title": "after", "content": "c", "url": "u2",
             "createdAt": cutoff + timedelta(seconds=1)},
            {"workspaceId": "other", "title": "elsewhere", "content": "c", "url": "u3",
             "createdAt": cutoff + timedelta(seconds=1)},
        ]
    )

    items = await store.get_content_since("ws", cutoff)

    assert [i["title"] for i in items] == ["after"]
    assert await store.has_content_url("ws", "u1")
    assert not await store.has_content_url("ws", "u3")


@pytest.mark.asyncio
async def test_default_config_must_be_active():
    store = MemoryStore()
    inactive = await store.create_ai_model_config(config_data(isActive=False))
    assert await store.get_default_ai_model_config("user-1") is None

    await store.update_ai_model_config(inactive["id"], {"isActive": True})
    default = await store.get_default_ai_model_config("user-1")
    assert default["id"] == inactive["id"]
    assert default["name"] == "openai gpt-4o-mini"


@pytest.mark.asyncio
async def test_returned_records_are_copies():
    store = MemoryStore()
    item = await store.create_content_item({"workspaceId": "ws", "title": "t", "content": "c", "url": "u"})
    item["title"] = "changed"
    assert (await store.get_content_item(item["id"]))["title"] == "t"


@pytest.mark.asyncio
async def test_usage_logs_filter_by_time():
    store = MemoryStore()
    old = utcnow() - timedelta(days=10)
    await store.log_ai_usage(
        {"userId": "user-1", "configId": "c", "operation": "summarize", "tokensUsed": 1,
         "estimatedCost": 0.0, "responseTimeMs": 1, "success": True, "errorMessage": None, "createdAt": old}
    )
    await store.log_ai_usage(
        {"userId": "user-1", "configId": "c", "operation": "extract", "tokensUsed": 2,
         "estimatedCost": 0.0, "responseTimeMs": 1, "success": True, "errorMessage": None}
    )

    assert len(await store.get_usage_logs("user-1")) == 2
    recent = await store.get_usage_logs("user-1", since=utcnow() - timedelta(days=1))
    assert [e["operation"] for e in recent] == ["extract"]
    assert await store.get_usage_logs("someone-else") == []


@pytest.mark.asyncio
async def test_vault_store_round_trip(tmp_path):
    vault = VaultStore(str(tmp_path))
    await vault.save_workspace(
        {"id": "ws", "userId": "user-1", "name": "Vault", "keywords": ["k"], "sources": []}
    )
    item = await vault.create_content_item(
        {"workspaceId": "ws", "title": "t", "content": "c", "url": "u", "publishedAt": utcnow()}
    )
    await vault.add_annotation(item["id"], "user-1", "note")
    config = await vault.create_ai_model_config(config_data())
    await vault.record_config_usage(config["id"])
    await vault.create_summary({"workspaceId": "ws", "title": "S", "content": "body", "type": "full"})

    reloaded = VaultStore(str(tmp_path))

    assert (await reloaded.get_workspace("ws"))["name"] == "Vault"
    loaded_item = await reloaded.get_content_item(item["id"])
    assert isinstance(loaded_item["createdAt"], datetime)
    assert isinstance(loaded_item["publishedAt"], datetime)
    assert loaded_item["createdAt"] == item["createdAt"]
    assert await reloaded.get_annotation_count(item["id"]) == 1
    loaded_config = await reloaded.get_ai_model_config(config["id"])
    assert loaded_config["usageCount"] == 1
    assert isinstance(loaded_config["lastUsed"], datetime)
    assert (await reloaded.get_latest_summary("ws"))["title"] == "S"


@pytest.mark.asyncio
async def test_vault_store_rewrites_only_the_changed_collection(tmp_path):
    vault = VaultStore(str(tmp_path))
    await vault.save_workspace(
        {"id": "ws", "userId": "user-1", "name": "Vault", "keywords": [], "sources": []}
    )

    assert sorted(p.name for p in tmp_path.iterdir()) == ["workspaces.json"]

    workspaces_file = tmp_path / "workspaces.json"
    inode = workspaces_file.stat().st_ino
    await vault.create_content_item({"workspaceId": "ws", "title": "t", "content": "c", "url": "u"})

    assert sorted(p.name for p in tmp_path.iterdir()) == ["content_items.json", "workspaces.json"]
    # a rewrite would swap in a new file through os.replace
    assert workspaces_file.stat().st_ino == inode
    assert not list(tmp_path.glob("*.tmp"))
