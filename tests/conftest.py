# tests/conftest.py
"""
Shared fixtures: an in-memory store and a scripted provider client so the
gateway can be exercised without any vendor SDK or network access.
"""
from typing import Any, Dict, List, Optional, Tuple

import pytest

from research_hub.ai_gateway import ProviderClient, ProviderGateway
from research_hub.models import AiModelConfig
from research_hub.storage import MemoryStore


class ProviderScript:
    """Queue of canned replies (strings or exceptions) shared by every client it builds."""

    def __init__(self, tokens: Optional[int] = 1000):
        self.replies: List[Any] = []
        self.calls: List[Tuple[str, str, Optional[str]]] = []
        self.built: List[str] = []
        self.tokens = tokens

    def push(self, *replies):
        self.replies.extend(replies)

    def next_reply(self) -> Tuple[str, Optional[int]]:
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, BaseException):
            raise reply
        return reply, self.tokens

    def factory(self, config: AiModelConfig) -> ProviderClient:
        self.built.append(config["id"])
        return ScriptedClient(config, self)


class ScriptedClient(ProviderClient):
    provider = "scripted"

    def __init__(self, config: AiModelConfig, script: ProviderScript):
        super().__init__(config)
        self.script = script

    async def complete(self, model: str, prompt: str, system_prompt: Optional[str]) -> Tuple[str, Optional[int]]:
        self.script.calls.append((model, prompt, system_prompt))
        return self.script.next_reply()


def config_data(**overrides) -> Dict[str, Any]:
    data = {
        "userId": "user-1",
        "provider": "openai",
        "model": "gpt-4o-mini",
        "apiKey": "sk-test-0123456789abcdef",
        "isDefault": True,
    }
    data.update(overrides)
    return data


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def script():
    return ProviderScript()


@pytest.fixture
def gateway(store, script):
    return ProviderGateway(store, store, client_factory=script.factory)
