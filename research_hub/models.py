from datetime import datetime
from typing import Dict, List, Literal, Optional, TypedDict

from typing_extensions import NotRequired

Provider = Literal["openai", "azure_openai", "anthropic", "vertexai", "gemini"]
Operation = Literal["summarize", "extract", "analyze"]
SummaryType = Literal["full", "differential"]
SourceKind = Literal["rss", "web"]
Timeframe = Literal["day", "week", "month"]

PROVIDERS: tuple = ("openai", "azure_openai", "anthropic", "vertexai", "gemini")


class ExtractedContent(TypedDict):
    """Normalized record produced from a web page or a feed item."""

    title: str
    content: str
    excerpt: NotRequired[Optional[str]]
    publishedAt: NotRequired[Optional[datetime]]
    author: NotRequired[Optional[str]]
    url: NotRequired[Optional[str]]  # Feed items carry their own link


class WorkspaceSource(TypedDict):
    url: str
    kind: SourceKind


class Workspace(TypedDict):
    id: str
    userId: str
    name: str
    keywords: List[str]
    purpose: NotRequired[Optional[str]]
    sources: List[WorkspaceSource]
    isArchived: NotRequired[bool]


class ContentItem(TypedDict):
    id: str
    workspaceId: str
    title: str
    content: str
    url: Optional[str]
    publishedAt: Optional[datetime]
    relevanceScore: int
    createdAt: datetime


class AiModelConfig(TypedDict):
    id: str
    userId: str
    name: NotRequired[str]
    provider: Provider
    model: str
    apiKey: str
    baseUrl: NotRequired[Optional[str]]
    organizationId: NotRequired[Optional[str]]
    projectId: NotRequired[Optional[str]]
    region: NotRequired[Optional[str]]
    isActive: bool
    isDefault: bool
    usageCount: int
    lastUsed: Optional[datetime]


class AiUsageLogEntry(TypedDict):
    """One row per gateway call. Never mutated after it is written."""

    userId: str
    configId: str
    provider: NotRequired[str]
    operation: Operation
    tokensUsed: Optional[int]
    estimatedCost: Optional[float]
    responseTimeMs: int
    success: bool
    errorMessage: Optional[str]
    createdAt: NotRequired[datetime]


class Summary(TypedDict):
    id: str
    workspaceId: str
    title: str
    content: str
    type: SummaryType
    focus: Optional[str]
    contentItemIds: List[str]
    version: int
    isDeleted: bool
    createdAt: datetime
    updatedAt: datetime


class AiRequest(TypedDict):
    prompt: str
    systemPrompt: NotRequired[Optional[str]]
    userId: str
    operation: Operation
    configId: NotRequired[Optional[str]]


class AiResponse(TypedDict):
    content: str
    tokensUsed: Optional[int]
    estimatedCost: float
    responseTimeMs: int


class StructuredExtraction(TypedDict):
    title: str
    summary: str
    keyPoints: List[str]


class ProviderUsage(TypedDict):
    cost: float
    tokens: int
    calls: int


class UsageStats(TypedDict):
    totalCost: float
    totalTokens: int
    totalCalls: int
    byProvider: Dict[str, ProviderUsage]
