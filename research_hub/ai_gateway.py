# ai_gateway.py
import json
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

from anthropic import AsyncAnthropic
from google import genai
from google.genai import types as genai_types
from openai import AsyncAzureOpenAI, AsyncOpenAI

from research_hub.config import (
    AI_REQUEST_TIMEOUT,
    ANTHROPIC_MAX_TOKENS,
    AZURE_OPENAI_API_VERSION,
    DEFAULT_TEMPERATURE,
    LOGGER,
    STRUCTURED_FALLBACK_LENGTH,
    VERTEXAI_DEFAULT_REGION,
)
from research_hub.errors import JsonParseError, NoConfigurationError, ProviderCallError
from research_hub.models import (
    PROVIDERS,
    AiModelConfig,
    AiRequest,
    AiResponse,
    AiUsageLogEntry,
    Operation,
    StructuredExtraction,
)
from research_hub.prompts import (
    CONNECTION_TEST_PROMPT,
    EXTRACT_STRUCTURED_SYSTEM,
    EXTRACT_STRUCTURED_USER,
    SUMMARIZE_USER,
    create_message_entry,
    summarize_system_prompt,
)
from research_hub.storage import ConfigStore, UsageLogStore
from research_hub.utils import mask_api_key, strip_code_fences

# Rough cost per 1K tokens (input + output combined average).
COST_PER_1K_TOKENS: Dict[str, Dict[str, float]] = {
    "openai": {
        "gpt-4o": 0.0075,
        "gpt-4o-mini": 0.00025,
        "gpt-4-turbo": 0.015,
        "gpt-3.5-turbo": 0.002,
    },
    "azure_openai": {
        "gpt-4o": 0.0075,
        "gpt-4o-mini": 0.00025,
        "gpt-4-turbo": 0.015,
        "gpt-35-turbo": 0.002,
    },
    "anthropic": {
        "claude-sonnet-4-20250514": 0.015,
        "claude-3-7-sonnet-20250219": 0.015,
        "claude-3-5-haiku-20241022": 0.0025,
    },
    "gemini": {
        "gemini-2.5-flash": 0.00075,
        "gemini-2.5-pro": 0.0035,
        "gemini-1.5-pro": 0.007,
    },
    "vertexai": {
        "gemini-1.5-pro": 0.007,
        "gemini-1.5-flash": 0.00075,
        "gemini-1.0-pro": 0.005,
    },
}

# Fields that are baked into an SDK client; changing any of them drops the cached client.
CLIENT_FIELDS = ("provider", "apiKey", "baseUrl", "organizationId", "projectId", "region")


def estimate_cost(provider: str, model: str, tokens_used: Optional[int]) -> float:
    """Unknown (provider, model) pairs cost 0 so statistics undercount instead of failing."""
    rate = COST_PER_1K_TOKENS.get(provider, {}).get(model)
    if rate is None or not tokens_used:
        return 0.0
    return (tokens_used / 1000) * rate


def public_config(config: AiModelConfig) -> Dict[str, Any]:
    """Copy of a configuration that is safe to hand to callers."""
    shown: Dict[str, Any] = dict(config)
    shown["apiKey"] = mask_api_key(config.get("apiKey"))
    return shown


def _status_code(error: Exception) -> Optional[int]:
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "code", None)
    return status if isinstance(status, int) else None


class ProviderClient(ABC):
    """One vendor SDK client bound to one configuration."""

    provider: str

    def __init__(self, config: AiModelConfig):
        self.config_id = config["id"]

    @abstractmethod
    async def complete(self, model: str, prompt: str, system_prompt: Optional[str]) -> Tuple[str, Optional[int]]:
        """Returns the completion text and the total token count when the vendor reports it."""


class OpenAIProvider(ProviderClient):
    provider = "openai"

    def __init__(self, config: AiModelConfig):
        super().__init__(config)
        self.client = AsyncOpenAI(
            api_key=config["apiKey"],
            base_url=config.get("baseUrl") or None,
            organization=config.get("organizationId") or None,
            timeout=AI_REQUEST_TIMEOUT,
        )

    async def complete(self, model: str, prompt: str, system_prompt: Optional[str]) -> Tuple[str, Optional[int]]:
        messages = []
        if system_prompt:
            messages.append(create_message_entry("system", system_prompt))
        messages.append(create_message_entry("user", prompt))

        response = await self.client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=DEFAULT_TEMPERATURE,
        )
        content = ""
        if response.choices and response.choices[0].message.content:
            content = response.choices[0].message.content
        tokens = response.usage.total_tokens if response.usage is not None else None
        return content, tokens


class AzureOpenAIProvider(OpenAIProvider):
    """Same wire shape as OpenAI; the endpoint comes from `baseUrl`."""

    provider = "azure_openai"

    def __init__(self, config: AiModelConfig):
        ProviderClient.__init__(self, config)
        if not config.get("baseUrl"):
            raise ProviderCallError(self.provider, "Azure OpenAI configurations require a baseUrl endpoint")
        self.client = AsyncAzureOpenAI(
            api_key=config["apiKey"],
            azure_endpoint=config["baseUrl"],
            api_version=AZURE_OPENAI_API_VERSION,
            organization=config.get("organizationId") or None,
            timeout=AI_REQUEST_TIMEOUT,
        )


class AnthropicProvider(ProviderClient):
    provider = "anthropic"

    def __init__(self, config: AiModelConfig):
        super().__init__(config)
        self.client = AsyncAnthropic(
            api_key=config["apiKey"],
            base_url=config.get("baseUrl") or None,
            timeout=AI_REQUEST_TIMEOUT,
        )

    async def complete(self, model: str, prompt: str, system_prompt: Optional[str]) -> Tuple[str, Optional[int]]:
        kwargs: Dict[str, Any] = {}
        if system_prompt:
            kwargs["system"] = system_prompt
        response = await self.client.messages.create(
            model=model,
            max_tokens=ANTHROPIC_MAX_TOKENS,
            temperature=DEFAULT_TEMPERATURE,
            messages=[{"role": "user", "content": prompt}],
            **kwargs,
        )
        content = next((block.text for block in response.content if block.type == "text"), "")
        tokens = None
        if response.usage is not None:
            tokens = response.usage.input_tokens + response.usage.output_tokens
        return content, tokens


class GeminiProvider(ProviderClient):
    provider = "gemini"

    def __init__(self, config: AiModelConfig):
        super().__init__(config)
        self.client = self._build_client(config)

    @staticmethod
    def _http_options() -> genai_types.HttpOptions:
        return genai_types.HttpOptions(timeout=int(AI_REQUEST_TIMEOUT * 1000))

    def _build_client(self, config: AiModelConfig) -> genai.Client:
        return genai.Client(api_key=config["apiKey"], http_options=self._http_options())

    async def complete(self, model: str, prompt: str, system_prompt: Optional[str]) -> Tuple[str, Optional[int]]:
        response = await self.client.aio.models.generate_content(
            model=model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                system_instruction=system_prompt or None,
                temperature=DEFAULT_TEMPERATURE,
            ),
        )
        usage = response.usage_metadata
        tokens = usage.total_token_count if usage is not None else None
        return response.text or "", tokens


class VertexAIProvider(GeminiProvider):
    """Gemini wire shape served through Vertex AI."""

    provider = "vertexai"

    def _build_client(self, config: AiModelConfig) -> genai.Client:
        # Project-scoped access authenticates with application default credentials;
        # without a project the API key is used in Vertex express mode.
        if config.get("projectId"):
            return genai.Client(
                vertexai=True,
                project=config["projectId"],
                location=config.get("region") or VERTEXAI_DEFAULT_REGION,
                http_options=self._http_options(),
            )
        return genai.Client(vertexai=True, api_key=config["apiKey"], http_options=self._http_options())


def build_provider_client(config: AiModelConfig) -> ProviderClient:
    provider = config["provider"]
    match provider:
        case "openai":
            return OpenAIProvider(config)
        case "azure_openai":
            return AzureOpenAIProvider(config)
        case "anthropic":
            return AnthropicProvider(config)
        case "gemini":
            return GeminiProvider(config)
        case "vertexai":
            return VertexAIProvider(config)
        case _:
            raise ProviderCallError(str(provider), "Unsupported AI provider")


class ClientRegistry:
    """Per-configuration SDK clients, shared by concurrent requests."""

    def __init__(self, factory: Callable[[AiModelConfig], ProviderClient] = build_provider_client):
        self._factory = factory
        self._clients: Dict[str, ProviderClient] = {}
        self._lock = threading.Lock()

    def get(self, config: AiModelConfig) -> ProviderClient:
        with self._lock:
            client = self._clients.get(config["id"])
            if client is None:
                client = self._factory(config)
                self._clients[config["id"]] = client
                LOGGER.debug(f"Created {config['provider']} client for config {config['id']}")
            return client

    def invalidate(self, config_id: str) -> bool:
        with self._lock:
            return self._clients.pop(config_id, None) is not None

    def __contains__(self, config_id: str) -> bool:
        with self._lock:
            return config_id in self._clients

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)


def parse_structured_response(text: str) -> StructuredExtraction:
    """Treats the model output as untrusted JSON; raises JsonParseError when unusable."""
    try:
        parsed = json.loads(strip_code_fences(text))
    except (json.JSONDecodeError, TypeError) as e:
        raise JsonParseError(text, str(e)) from e
    if not isinstance(parsed, dict):
        raise JsonParseError(text, f"expected an object, got {type(parsed).__name__}")

    key_points = parsed.get("keyPoints")
    return StructuredExtraction(
        title=str(parsed.get("title") or "Untitled"),
        summary=str(parsed.get("summary") or ""),
        keyPoints=[str(p) for p in key_points] if isinstance(key_points, list) else [],
    )


class ProviderGateway:
    """
    Routes AI requests to the caller's configured vendor.

    Every call, successful or not, leaves one usage log entry behind. Logging
    problems are reported as warnings and never replace the call's own result.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        usage_store: UsageLogStore,
        client_factory: Callable[[AiModelConfig], ProviderClient] = build_provider_client,
    ):
        self.config_store = config_store
        self.usage_store = usage_store
        self.clients = ClientRegistry(client_factory)

    async def resolve_config(self, user_id: str, config_id: Optional[str] = None) -> AiModelConfig:
        if config_id:
            config = await self.config_store.get_ai_model_config(config_id)
            if not config or config["userId"] != user_id or not config["isActive"]:
                raise NoConfigurationError(user_id, config_id)
            return config

        config = await self.config_store.get_default_ai_model_config(user_id)
        if not config:
            raise NoConfigurationError(user_id)
        return config

    async def generate(self, request: AiRequest) -> AiResponse:
        start_time = time.perf_counter()
        config = await self.resolve_config(request["userId"], request.get("configId"))
        provider = config["provider"]

        try:
            client = self.clients.get(config)
            content, tokens_used = await client.complete(
                config["model"], request["prompt"], request.get("systemPrompt")
            )
        except Exception as e:
            response_time = int((time.perf_counter() - start_time) * 1000)
            error = e if isinstance(e, ProviderCallError) else ProviderCallError(
                provider, str(e) or type(e).__name__, _status_code(e)
            )
            LOGGER.error(f"AI {request['operation']} call via {provider}/{config['model']} failed: {error}")
            await self._log_usage(config, request["operation"], None, None, response_time, False, str(error))
            if error is e:
                raise
            raise error from e

        response_time = int((time.perf_counter() - start_time) * 1000)
        cost = estimate_cost(provider, config["model"], tokens_used)
        await self._log_usage(config, request["operation"], tokens_used, cost, response_time, True)
        LOGGER.info(
            f"AI {request['operation']} via {provider}/{config['model']}: "
            f"{tokens_used if tokens_used is not None else '?'} tokens, ${cost:.6f}, {response_time} ms"
        )
        return AiResponse(
            content=content,
            tokensUsed=tokens_used,
            estimatedCost=cost,
            responseTimeMs=response_time,
        )

    async def _log_usage(
        self,
        config: AiModelConfig,
        operation: Operation,
        tokens_used: Optional[int],
        estimated_cost: Optional[float],
        response_time: int,
        success: bool,
        error_message: Optional[str] = None,
    ):
        entry = AiUsageLogEntry(
            userId=config["userId"],
            configId=config["id"],
            provider=config["provider"],
            operation=operation,
            tokensUsed=tokens_used,
            estimatedCost=estimated_cost,
            responseTimeMs=response_time,
            success=success,
            errorMessage=error_message,
        )
        try:
            await self.usage_store.log_ai_usage(entry)
        except Exception as e:
            LOGGER.warning(f"Failed to log AI usage for config {config['id']}: {e}")
        try:
            await self.config_store.record_config_usage(config["id"])
        except Exception as e:
            LOGGER.warning(f"Failed to update usage count for config {config['id']}: {e}")

    # --- Helper operations ---
    async def summarize(
        self,
        content: str,
        user_id: str,
        focus: Optional[str] = None,
        config_id: Optional[str] = None,
    ) -> str:
        response = await self.generate(
            AiRequest(
                prompt=SUMMARIZE_USER.format(content=content),
                systemPrompt=summarize_system_prompt(focus),
                userId=user_id,
                operation="summarize",
                configId=config_id,
            )
        )
        return response["content"]

    async def extract_structured(
        self,
        url: str,
        content: str,
        user_id: str,
        config_id: Optional[str] = None,
    ) -> StructuredExtraction:
        response = await self.generate(
            AiRequest(
                prompt=EXTRACT_STRUCTURED_USER.format(url=url, content=content),
                systemPrompt=EXTRACT_STRUCTURED_SYSTEM,
                userId=user_id,
                operation="extract",
                configId=config_id,
            )
        )
        try:
            return parse_structured_response(response["content"])
        except JsonParseError as e:
            LOGGER.warning(f"Falling back to raw content for {url}: {e}")
            return StructuredExtraction(
                title="Extracted Content",
                summary=response["content"][:STRUCTURED_FALLBACK_LENGTH],
                keyPoints=[],
            )

    async def test_config(self, user_id: str, config_id: str) -> Dict[str, Any]:
        """Round-trips a tiny prompt; reports failures instead of raising them."""
        try:
            response = await self.generate(
                AiRequest(
                    prompt=CONNECTION_TEST_PROMPT,
                    userId=user_id,
                    operation="analyze",
                    configId=config_id,
                )
            )
        except (NoConfigurationError, ProviderCallError) as e:
            return {"success": False, "error": str(e)}
        return {"success": True, "responseTimeMs": response["responseTimeMs"]}

    # --- Configuration writes ---
    async def _clear_defaults(self, user_id: str, keep_id: Optional[str] = None):
        for config in await self.config_store.get_ai_model_configs(user_id):
            if config["isDefault"] and config["id"] != keep_id:
                await self.config_store.update_ai_model_config(config["id"], {"isDefault": False})

    async def _owned_config(self, user_id: str, config_id: str) -> AiModelConfig:
        config = await self.config_store.get_ai_model_config(config_id)
        if not config or config["userId"] != user_id:
            raise NoConfigurationError(user_id, config_id)
        return config

    async def create_config(self, data: Dict[str, Any]) -> AiModelConfig:
        if data.get("provider") not in PROVIDERS:
            raise ValueError(f"Unsupported AI provider: {data.get('provider')}")
        if data.get("isDefault"):
            await self._clear_defaults(data["userId"])
        config = await self.config_store.create_ai_model_config(data)
        LOGGER.info(f"Created AI configuration {config['id']} ({config['provider']}/{config['model']})")
        return config

    async def update_config(self, user_id: str, config_id: str, updates: Dict[str, Any]) -> AiModelConfig:
        existing = await self._owned_config(user_id, config_id)
        if "provider" in updates and updates["provider"] not in PROVIDERS:
            raise ValueError(f"Unsupported AI provider: {updates['provider']}")
        if updates.get("isDefault"):
            await self._clear_defaults(user_id, keep_id=config_id)
        config = await self.config_store.update_ai_model_config(config_id, updates)
        if any(field in updates and updates[field] != existing.get(field) for field in CLIENT_FIELDS):
            self.clients.invalidate(config_id)
        return config

    async def set_default_config(self, user_id: str, config_id: str) -> AiModelConfig:
        return await self.update_config(user_id, config_id, {"isDefault": True})

    async def delete_config(self, user_id: str, config_id: str) -> None:
        await self._owned_config(user_id, config_id)
        await self.config_store.delete_ai_model_config(config_id)
        self.clients.invalidate(config_id)
        LOGGER.info(f"Deleted AI configuration {config_id}")

    async def list_configs(self, user_id: str) -> List[Dict[str, Any]]:
        return [public_config(c) for c in await self.config_store.get_ai_model_configs(user_id)]
