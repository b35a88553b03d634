from typing import Any, Awaitable, Callable, Dict, List, Optional

from research_hub.config import LOGGER, MANUAL_CONTENT_RELEVANCE, RELEVANCE_THRESHOLD
from research_hub.errors import ExtractionError, FetchError
from research_hub.extractor import ContentExtractor
from research_hub.models import ContentItem, ExtractedContent, Workspace, WorkspaceSource
from research_hub.relevance import recalculate_for_annotation_count, score_relevance
from research_hub.storage import ContentStore, WorkspaceStore
from research_hub.utils import utcnow

ItemsAddedCallback = Callable[[Workspace, int], Awaitable[None]]


class ContentService:
    """Collects, scores and stores content for workspaces."""

    def __init__(
        self,
        extractor: ContentExtractor,
        workspace_store: WorkspaceStore,
        content_store: ContentStore,
        relevance_threshold: int = RELEVANCE_THRESHOLD,
        on_items_added: Optional[ItemsAddedCallback] = None,
    ):
        self.extractor = extractor
        self.workspace_store = workspace_store
        self.content_store = content_store
        self.relevance_threshold = relevance_threshold
        self.on_items_added = on_items_added

    async def _extract_source(self, source: WorkspaceSource) -> List[ExtractedContent]:
        if source["kind"] == "rss":
            return await self.extractor.extract_rss_items(source["url"])
        return [await self.extractor.extract_from_url(source["url"])]

    async def collect_content(self, workspace_id: str) -> int:
        """
        One monitoring pass over every source of a workspace.

        Sources that fail to fetch or parse are skipped for this pass only.
        Returns the number of stored items.
        """
        workspace = await self.workspace_store.get_workspace(workspace_id)
        if workspace is None or workspace.get("isArchived"):
            LOGGER.info(f"Skipping collection for missing or archived workspace {workspace_id}")
            return 0

        keywords = workspace.get("keywords") or []
        purpose = workspace.get("purpose")
        new_items: List[Dict[str, Any]] = []
        seen_urls = set()

        for source in workspace.get("sources") or []:
            try:
                extracted_items = await self._extract_source(source)
            except (FetchError, ExtractionError) as e:
                LOGGER.warning(f"Skipping source {source['url']} for workspace {workspace_id}: {e}")
                continue

            for extracted in extracted_items:
                url = extracted.get("url") or source["url"]
                if url in seen_urls or await self.content_store.has_content_url(workspace_id, url):
                    continue
                score = score_relevance(extracted["title"], extracted["content"], keywords, purpose)
                if score < self.relevance_threshold:
                    LOGGER.debug(f"Dropping '{extracted['title']}' (score {score})")
                    continue
                seen_urls.add(url)
                new_items.append(
                    {
                        "workspaceId": workspace_id,
                        "title": extracted["title"],
                        "content": extracted["content"],
                        "url": url,
                        "publishedAt": extracted.get("publishedAt") or utcnow(),
                        "relevanceScore": score,
                    }
                )

        if not new_items:
            return 0

        await self.content_store.bulk_add_content_items(new_items)
        LOGGER.info(f"{len(new_items)} new articles added to {workspace['name']}")
        if self.on_items_added is not None:
            try:
                await self.on_items_added(workspace, len(new_items))
            except Exception as e:
                LOGGER.warning(f"Activity callback failed for workspace {workspace_id}: {e}")
        return len(new_items)

    async def add_content_from_url(
        self,
        workspace_id: str,
        url: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> ContentItem:
        """Manual add: extraction errors propagate so the caller can show them."""
        workspace = await self.workspace_store.get_workspace(workspace_id)
        if workspace is None:
            raise KeyError(f"Workspace not found: {workspace_id}")

        extracted = await self.extractor.extract_from_url(url)
        item = await self.content_store.create_content_item(
            {
                "workspaceId": workspace_id,
                "title": title or extracted["title"],
                "content": content or extracted["content"],
                "url": url,
                "publishedAt": extracted.get("publishedAt") or utcnow(),
                "relevanceScore": MANUAL_CONTENT_RELEVANCE,
            }
        )
        LOGGER.info(f"Added content: {item['title']}")
        return item

    async def recalculate_relevance_scores(self, workspace_id: str) -> int:
        """Rescores every item of a workspace, including the annotation bonus."""
        workspace = await self.workspace_store.get_workspace(workspace_id)
        if workspace is None:
            return 0

        items = await self.content_store.get_workspace_content(workspace_id)
        for item in items:
            base_score = score_relevance(
                item["title"], item["content"], workspace.get("keywords") or [], workspace.get("purpose")
            )
            annotation_count = await self.content_store.get_annotation_count(item["id"])
            score = recalculate_for_annotation_count(base_score, annotation_count)
            await self.content_store.update_content_relevance_score(item["id"], score)
        LOGGER.info(f"Recalculated relevance scores for {len(items)} items in {workspace['name']}")
        return len(items)

    async def annotate(self, workspace_id: str, content_id: str, user_id: str, text: str) -> Dict[str, Any]:
        annotation = await self.content_store.add_annotation(content_id, user_id, text)
        await self.recalculate_relevance_scores(workspace_id)
        return annotation
