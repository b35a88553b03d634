"""
Storage collaborators.

The core only depends on the protocols below. `MemoryStore` implements all of
them in process; `VaultStore` adds JSON persistence under the vault directory.
"""
import copy
import json
import os
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from research_hub.config import LOGGER, VAULT_DIR
from research_hub.models import (
    AiModelConfig,
    AiUsageLogEntry,
    ContentItem,
    Summary,
    Workspace,
)
from research_hub.utils import ensure_dir_exists, utcnow

_DATETIME_FIELDS = ("createdAt", "updatedAt", "publishedAt", "lastUsed")


class WorkspaceStore(Protocol):
    async def get_workspace(self, workspace_id: str) -> Optional[Workspace]: ...

    async def save_workspace(self, workspace: Workspace) -> Workspace: ...


class ContentStore(Protocol):
    async def get_workspace_content(self, workspace_id: str, limit: Optional[int] = None) -> List[ContentItem]: ...

    async def get_content_since(self, workspace_id: str, since: datetime) -> List[ContentItem]: ...

    async def get_content_item(self, content_id: str) -> Optional[ContentItem]: ...

    async def create_content_item(self, item: Dict[str, Any]) -> ContentItem: ...

    async def bulk_add_content_items(self, items: List[Dict[str, Any]]) -> List[ContentItem]: ...

    async def update_content_relevance_score(self, content_id: str, score: int) -> None: ...

    async def has_content_url(self, workspace_id: str, url: str) -> bool: ...

    async def add_annotation(self, content_id: str, user_id: str, text: str) -> Dict[str, Any]: ...

    async def get_annotation_count(self, content_id: str) -> int: ...


class SummaryStore(Protocol):
    async def get_workspace_summaries(self, workspace_id: str) -> List[Summary]: ...

    async def get_latest_summary(self, workspace_id: str) -> Optional[Summary]: ...

    async def get_summary(self, summary_id: str) -> Optional[Summary]: ...

    async def create_summary(self, payload: Dict[str, Any]) -> Summary: ...

    async def update_summary(self, summary_id: str, updates: Dict[str, Any]) -> Summary: ...

    async def delete_summary(self, summary_id: str) -> None: ...


class ConfigStore(Protocol):
    async def get_ai_model_configs(self, user_id: str) -> List[AiModelConfig]: ...

    async def get_ai_model_config(self, config_id: str) -> Optional[AiModelConfig]: ...

    async def get_default_ai_model_config(self, user_id: str) -> Optional[AiModelConfig]: ...

    async def create_ai_model_config(self, data: Dict[str, Any]) -> AiModelConfig: ...

    async def update_ai_model_config(self, config_id: str, updates: Dict[str, Any]) -> AiModelConfig: ...

    async def delete_ai_model_config(self, config_id: str) -> None: ...

    async def record_config_usage(self, config_id: str) -> None: ...


class UsageLogStore(Protocol):
    async def log_ai_usage(self, entry: AiUsageLogEntry) -> AiUsageLogEntry: ...

    async def get_usage_logs(self, user_id: str, since: Optional[datetime] = None) -> List[AiUsageLogEntry]: ...


def _new_id() -> str:
    return str(uuid.uuid4())


def _newest_first(records: List[Any]) -> List[Any]:
    return sorted(records, key=lambda r: r["createdAt"], reverse=True)


class MemoryStore:
    """Dict-backed implementation of every storage protocol."""

    def __init__(self):
        self.workspaces: Dict[str, Workspace] = {}
        self.content_items: Dict[str, ContentItem] = {}
        self.annotations: Dict[str, List[Dict[str, Any]]] = {}
        self.summaries: Dict[str, Summary] = {}
        self.configs: Dict[str, AiModelConfig] = {}
        self.usage_logs: List[AiUsageLogEntry] = []

    def _changed(self, name: str):
        """Hook for persistent subclasses; `name` is the collection attribute that changed."""

    # --- Workspaces ---
    async def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        workspace = self.workspaces.get(workspace_id)
        return copy.deepcopy(workspace) if workspace else None

    async def save_workspace(self, workspace: Workspace) -> Workspace:
        if not workspace.get("id"):
            workspace["id"] = _new_id()
        self.workspaces[workspace["id"]] = copy.deepcopy(workspace)
        self._changed("workspaces")
        return copy.deepcopy(workspace)

    # --- Content ---
    async def get_workspace_content(self, workspace_id: str, limit: Optional[int] = None) -> List[ContentItem]:
        items = _newest_first([i for i in self.content_items.values() if i["workspaceId"] == workspace_id])
        if limit is not None:
            items = items[:limit]
        return [copy.copy(i) for i in items]

    async def get_content_since(self, workspace_id: str, since: datetime) -> List[ContentItem]:
        items = [
            i for i in self.content_items.values()
            if i["workspaceId"] == workspace_id and i["createdAt"] > since
        ]
        return [copy.copy(i) for i in _newest_first(items)]

    async def get_content_item(self, content_id: str) -> Optional[ContentItem]:
        item = self.content_items.get(content_id)
        return copy.copy(item) if item else None

    def _insert_content(self, data: Dict[str, Any]) -> ContentItem:
        item = ContentItem(
            id=data.get("id") or _new_id(),
            workspaceId=data["workspaceId"],
            title=data["title"],
            content=data["content"],
            url=data.get("url"),
            publishedAt=data.get("publishedAt"),
            relevanceScore=data.get("relevanceScore", 0),
            createdAt=data.get("createdAt") or utcnow(),
        )
        self.content_items[item["id"]] = item
        return copy.copy(item)

    async def create_content_item(self, item: Dict[str, Any]) -> ContentItem:
        created = self._insert_content(item)
        self._changed("content_items")
        return created

    async def bulk_add_content_items(self, items: List[Dict[str, Any]]) -> List[ContentItem]:
        created = [self._insert_content(item) for item in items]
        self._changed("content_items")
        return created

    async def update_content_relevance_score(self, content_id: str, score: int) -> None:
        if content_id not in self.content_items:
            raise KeyError(content_id)
        self.content_items[content_id]["relevanceScore"] = score
        self._changed("content_items")

    async def has_content_url(self, workspace_id: str, url: str) -> bool:
        return any(
            i["workspaceId"] == workspace_id and i.get("url") == url
            for i in self.content_items.values()
        )

    async def add_annotation(self, content_id: str, user_id: str, text: str) -> Dict[str, Any]:
        if content_id not in self.content_items:
            raise KeyError(content_id)
        annotation = {
            "id": _new_id(),
            "contentItemId": content_id,
            "userId": user_id,
            "text": text,
            "createdAt": utcnow(),
        }
        self.annotations.setdefault(content_id, []).append(annotation)
        self._changed("annotations")
        return dict(annotation)

    async def get_annotation_count(self, content_id: str) -> int:
        return len(self.annotations.get(content_id, []))

    # --- Summaries ---
    async def get_workspace_summaries(self, workspace_id: str) -> List[Summary]:
        summaries = [
            s for s in self.summaries.values()
            if s["workspaceId"] == workspace_id and not s["isDeleted"]
        ]
        return [copy.deepcopy(s) for s in _newest_first(summaries)]

    async def get_latest_summary(self, workspace_id: str) -> Optional[Summary]:
        summaries = await self.get_workspace_summaries(workspace_id)
        return summaries[0] if summaries else None

    async def get_summary(self, summary_id: str) -> Optional[Summary]:
        summary = self.summaries.get(summary_id)
        return copy.deepcopy(summary) if summary else None

    async def create_summary(self, payload: Dict[str, Any]) -> Summary:
        now = payload.get("createdAt") or utcnow()
        summary = Summary(
            id=_new_id(),
            workspaceId=payload["workspaceId"],
            title=payload["title"],
            content=payload["content"],
            type=payload["type"],
            focus=payload.get("focus"),
            contentItemIds=list(payload.get("contentItemIds", [])),
            version=payload.get("version", 1),
            isDeleted=False,
            createdAt=now,
            updatedAt=now,
        )
        self.summaries[summary["id"]] = summary
        self._changed("summaries")
        return copy.deepcopy(summary)

    async def update_summary(self, summary_id: str, updates: Dict[str, Any]) -> Summary:
        if summary_id not in self.summaries:
            raise KeyError(summary_id)
        summary = self.summaries[summary_id]
        summary.update(updates)  # type: ignore[typeddict-item]
        summary["updatedAt"] = utcnow()
        self._changed("summaries")
        return copy.deepcopy(summary)

    async def delete_summary(self, summary_id: str) -> None:
        await self.update_summary(summary_id, {"isDeleted": True})

    # --- AI configurations ---
    async def get_ai_model_configs(self, user_id: str) -> List[AiModelConfig]:
        configs = [c for c in self.configs.values() if c["userId"] == user_id]
        configs.sort(key=lambda c: c["isDefault"], reverse=True)
        return [copy.copy(c) for c in configs]

    async def get_ai_model_config(self, config_id: str) -> Optional[AiModelConfig]:
        config = self.configs.get(config_id)
        return copy.copy(config) if config else None

    async def get_default_ai_model_config(self, user_id: str) -> Optional[AiModelConfig]:
        for config in self.configs.values():
            if config["userId"] == user_id and config["isDefault"] and config["isActive"]:
                return copy.copy(config)
        return None

    async def create_ai_model_config(self, data: Dict[str, Any]) -> AiModelConfig:
        config = AiModelConfig(
            id=data.get("id") or _new_id(),
            userId=data["userId"],
            name=data.get("name") or f"{data['provider']} {data['model']}",
            provider=data["provider"],
            model=data["model"],
            apiKey=data["apiKey"],
            baseUrl=data.get("baseUrl"),
            organizationId=data.get("organizationId"),
            projectId=data.get("projectId"),
            region=data.get("region"),
            isActive=data.get("isActive", True),
            isDefault=data.get("isDefault", False),
            usageCount=0,
            lastUsed=None,
        )
        self.configs[config["id"]] = config
        self._changed("configs")
        return copy.copy(config)

    async def update_ai_model_config(self, config_id: str, updates: Dict[str, Any]) -> AiModelConfig:
        if config_id not in self.configs:
            raise KeyError(config_id)
        self.configs[config_id].update(updates)  # type: ignore[typeddict-item]
        self._changed("configs")
        return copy.copy(self.configs[config_id])

    async def delete_ai_model_config(self, config_id: str) -> None:
        self.configs.pop(config_id, None)
        self._changed("configs")

    async def record_config_usage(self, config_id: str) -> None:
        config = self.configs.get(config_id)
        if config is None:
            return
        config["usageCount"] += 1
        config["lastUsed"] = utcnow()
        self._changed("configs")

    # --- Usage log ---
    async def log_ai_usage(self, entry: AiUsageLogEntry) -> AiUsageLogEntry:
        logged = AiUsageLogEntry(**entry)
        logged.setdefault("createdAt", utcnow())
        self.usage_logs.append(logged)
        self._changed("usage_logs")
        return dict(logged)  # type: ignore[return-value]

    async def get_usage_logs(self, user_id: str, since: Optional[datetime] = None) -> List[AiUsageLogEntry]:
        return [
            dict(entry)  # type: ignore[misc]
            for entry in self.usage_logs
            if entry["userId"] == user_id and (since is None or entry["createdAt"] >= since)
        ]


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _decode_dates(record: Dict[str, Any]) -> Dict[str, Any]:
    for key in _DATETIME_FIELDS:
        if isinstance(record.get(key), str):
            record[key] = datetime.fromisoformat(record[key])
    return record


class VaultStore(MemoryStore):
    """MemoryStore persisted as one JSON file per collection under `vault_dir`."""

    _COLLECTIONS = ("workspaces", "content_items", "summaries", "configs")

    def __init__(self, vault_dir: str = VAULT_DIR):
        super().__init__()
        self.vault_dir = vault_dir
        ensure_dir_exists(vault_dir)
        self._load()

    def _path(self, name: str) -> str:
        return os.path.join(self.vault_dir, f"{name}.json")

    def _load(self):
        for name in self._COLLECTIONS:
            path = self._path(name)
            if not os.path.exists(path):
                continue
            with open(path, "r", encoding="utf-8") as f:
                records = json.loads(f.read())
            setattr(self, name, {key: _decode_dates(value) for key, value in records.items()})

        annotations_path = self._path("annotations")
        if os.path.exists(annotations_path):
            with open(annotations_path, "r", encoding="utf-8") as f:
                raw = json.loads(f.read())
            self.annotations = {k: [_decode_dates(a) for a in v] for k, v in raw.items()}

        usage_path = self._path("usage_logs")
        if os.path.exists(usage_path):
            with open(usage_path, "r", encoding="utf-8") as f:
                self.usage_logs = [_decode_dates(e) for e in json.loads(f.read())]  # type: ignore[misc]
        LOGGER.debug(f"Loaded vault from {self.vault_dir}")

    def _changed(self, name: str):
        # os.replace leaves the previous file in place if the write fails.
        path = self._path(name)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(json.dumps(getattr(self, name), indent=2, default=_encode))
        os.replace(tmp_path, path)
