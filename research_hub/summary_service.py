from datetime import date
from typing import Any, Dict, List, Optional

from research_hub.ai_gateway import ProviderGateway
from research_hub.config import (
    FULL_SUMMARY_LIMIT,
    LOGGER,
    MAX_TITLE_LENGTH,
    SUMMARY_ITEM_SEPARATOR,
)
from research_hub.errors import NoNewContentError
from research_hub.models import AiRequest, ContentItem, Summary, SummaryType, Workspace
from research_hub.prompts import (
    DIFFERENTIAL_SUMMARY_INPUT,
    FULL_SUMMARY_INPUT,
    SUMMARY_TITLE_PROMPT,
)
from research_hub.storage import ContentStore, SummaryStore, WorkspaceStore
from research_hub.utils import utcnow


def sanitize_title(raw: str, max_length: int = MAX_TITLE_LENGTH) -> str:
    """First non-empty line of a model-generated title, without quotes, bounded in length."""
    lines = [line.strip() for line in raw.replace('"', "").replace("'", "").splitlines()]
    title = next((line for line in lines if line), "")
    title = title.lstrip("#").strip()
    return title[:max_length].strip()


def fallback_title(summary_type: SummaryType, today: Optional[date] = None) -> str:
    label = "Update" if summary_type == "differential" else "Summary"
    return f"{label} - {(today or date.today()).isoformat()}"


def combine_content(items: List[ContentItem]) -> str:
    return SUMMARY_ITEM_SEPARATOR.join(f"{item['title']}\n{item['content']}" for item in items)


class SummaryOrchestrator:
    """
    Builds full and differential summaries for a workspace.

    A full summary covers the newest `FULL_SUMMARY_LIMIT` items. A differential
    summary covers only items ingested after the latest non-deleted summary and
    fails with NoNewContentError when there is no such summary or no such item.
    Either a summary is persisted completely or nothing is persisted.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        workspace_store: WorkspaceStore,
        content_store: ContentStore,
        summary_store: SummaryStore,
        full_summary_limit: int = FULL_SUMMARY_LIMIT,
    ):
        self.gateway = gateway
        self.workspace_store = workspace_store
        self.content_store = content_store
        self.summary_store = summary_store
        self.full_summary_limit = full_summary_limit

    async def _select_content(
        self, workspace_id: str, summary_type: SummaryType
    ) -> tuple[List[ContentItem], Optional[Summary]]:
        if summary_type == "differential":
            latest = await self.summary_store.get_latest_summary(workspace_id)
            if latest is None:
                raise NoNewContentError(
                    workspace_id,
                    summary_type,
                    "No previous summary to compare against. Generate a full summary first.",
                )
            items = await self.content_store.get_content_since(workspace_id, latest["createdAt"])
            if not items:
                raise NoNewContentError(
                    workspace_id,
                    summary_type,
                    f"No new content since the last summary ({latest['createdAt'].isoformat()}).",
                )
            return items, latest

        if summary_type != "full":
            raise ValueError(f"Unknown summary type: {summary_type}")
        items = await self.content_store.get_workspace_content(workspace_id, self.full_summary_limit)
        if not items:
            raise NoNewContentError(workspace_id, summary_type, "No content available for summary generation.")
        return items, None

    @staticmethod
    def build_summary_input(
        workspace: Workspace, items: List[ContentItem], previous: Optional[Summary]
    ) -> str:
        keywords = ", ".join(workspace.get("keywords") or [])
        combined = combine_content(items)
        if previous is not None:
            return DIFFERENTIAL_SUMMARY_INPUT.format(
                keywords=keywords, previous_summary=previous["content"], content=combined
            )
        return FULL_SUMMARY_INPUT.format(keywords=keywords, content=combined)

    async def _generate_title(
        self, summary_text: str, summary_type: SummaryType, user_id: str, config_id: Optional[str]
    ) -> str:
        try:
            response = await self.gateway.generate(
                AiRequest(
                    prompt=SUMMARY_TITLE_PROMPT.format(max_length=MAX_TITLE_LENGTH, summary=summary_text),
                    userId=user_id,
                    operation="extract",
                    configId=config_id,
                )
            )
            title = sanitize_title(response["content"])
        except Exception as e:
            LOGGER.warning(f"Title generation failed, using fallback title: {e}")
            title = ""
        return title or fallback_title(summary_type)

    async def generate_summary(
        self,
        workspace_id: str,
        user_id: str,
        summary_type: SummaryType = "full",
        focus: Optional[str] = None,
        config_id: Optional[str] = None,
    ) -> Summary:
        workspace = await self.workspace_store.get_workspace(workspace_id)
        if workspace is None:
            raise KeyError(f"Workspace not found: {workspace_id}")

        # Items stored while the provider calls run belong to the next summary.
        selected_at = utcnow()
        items, previous = await self._select_content(workspace_id, summary_type)
        LOGGER.info(f"Generating {summary_type} summary for {workspace['name']} from {len(items)} items")

        summary_text = await self.gateway.summarize(
            self.build_summary_input(workspace, items, previous),
            user_id,
            focus=focus,
            config_id=config_id,
        )
        title = await self._generate_title(summary_text, summary_type, user_id, config_id)

        payload: Dict[str, Any] = {
            "workspaceId": workspace_id,
            "title": title,
            "content": summary_text,
            "type": summary_type,
            "focus": focus,
            "contentItemIds": [item["id"] for item in items],
            "version": 1,
            "createdAt": selected_at,
        }
        summary = await self.summary_store.create_summary(payload)
        LOGGER.info(f'Saved {summary_type} summary "{summary["title"]}" ({summary["id"]})')
        return summary

    async def _get_live_summary(self, summary_id: str) -> Summary:
        summary = await self.summary_store.get_summary(summary_id)
        if summary is None or summary["isDeleted"]:
            raise KeyError(f"Summary not found: {summary_id}")
        return summary

    async def update_summary_content(
        self, summary_id: str, content: str, title: Optional[str] = None
    ) -> Summary:
        """Edits bump the version; creation always starts at 1."""
        current = await self._get_live_summary(summary_id)
        updates: Dict[str, Any] = {"content": content, "version": current["version"] + 1}
        if title is not None:
            updates["title"] = title
        return await self.summary_store.update_summary(summary_id, updates)

    async def delete_summary(self, summary_id: str) -> None:
        await self._get_live_summary(summary_id)
        await self.summary_store.delete_summary(summary_id)

    async def duplicate_summary(self, summary_id: str) -> Summary:
        original = await self._get_live_summary(summary_id)
        return await self.summary_store.create_summary(
            {
                "workspaceId": original["workspaceId"],
                "title": f"{original['title']} (Copy)",
                "content": original["content"],
                "type": original["type"],
                "focus": original["focus"],
                "contentItemIds": list(original["contentItemIds"]),
                "version": 1,
            }
        )
