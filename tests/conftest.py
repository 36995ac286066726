"""Shared pytest fixtures."""

import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from config.config_loader import AgentConfig, AppConfig, ApiConfig, DefaultsConfig, PromptsConfig, RetryConfig
from geodebate.context import ReferenceContext
from geodebate.endpoints.base import AgentEndpoint
from geodebate.feed import ChatFeed
from geodebate.invoker import AgentInvoker
from geodebate.ledger import ConversationLedger
from geodebate.models import Agent, ChatReply
from geodebate.orchestrator import DebateOrchestrator
from geodebate.output import MarkdownReportSink
from geodebate.registry import AgentRegistry

EXPERT_KEYS = ["general", "geophysical", "geochemical", "achievement"]


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        opening="Q: {question}\n{transcript}",
        host_evaluation="HOST experts={experts}\n{transcript}",
        format_warning="\nWARNING: strict JSON only",
        follow_up="Follow-up: {question}",
        manual_question="Direct: {question}\n{transcript}",
        manual_continue="Continue\n{transcript}",
        intervention="PRIORITY: {instruction}\n{transcript}",
        reference_block="\n\nREF:\n{reference}",
    )


@pytest.fixture
def sample_agent_configs() -> list[AgentConfig]:
    configs = [AgentConfig(key=k, name=k.title(), chat_id=f"chat-{k}") for k in EXPERT_KEYS]
    configs.append(AgentConfig(key="host", name="Host", chat_id="chat-host", is_host=True, style="green"))
    return configs


@pytest.fixture
def sample_app_config(
    tmp_path: Path,
    sample_prompts_config: PromptsConfig,
    sample_agent_configs: list[AgentConfig],
) -> AppConfig:
    return AppConfig(
        api=ApiConfig(base_url="http://ragflow.test/api/v1/chats", token_env="TEST_RAGFLOW_TOKEN", timeout_sec=5),
        retry=RetryConfig(),
        defaults=DefaultsConfig(max_rounds=5, output_dir=tmp_path / "output"),
        agents=sample_agent_configs,
        prompts=sample_prompts_config,
        token_available=True,
    )


class MockEndpoint(AgentEndpoint):
    """Test double endpoint with per-chat scripted replies.

    ``script(chat_id, *items)`` queues replies: a ChatReply, a plain string
    (wrapped in a ChatReply) or an exception instance to raise. Once a
    chat's queue is empty it answers "answer from <chat_id>". Every call is
    recorded in ``calls`` as (chat_id, question, session_id).
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str | None]] = []
        self._scripts: dict[str, list[Any]] = {}
        self._always: dict[str, Any] = {}
        self.create_session = AsyncMock(side_effect=lambda chat_id, name: f"sess-{chat_id}")  # type: ignore[assignment]

    def script(self, chat_id: str, *items: Any) -> None:
        self._scripts.setdefault(chat_id, []).extend(items)

    def always(self, chat_id: str, item: Any) -> None:
        self._always[chat_id] = item

    def calls_to(self, chat_id: str) -> list[str]:
        return [q for c, q, _ in self.calls if c == chat_id]

    async def complete(self, chat_id: str, question: str, session_id: str | None = None) -> ChatReply:
        self.calls.append((chat_id, question, session_id))
        await asyncio.sleep(0)
        queue = self._scripts.get(chat_id)
        item = queue.pop(0) if queue else self._always.get(chat_id, f"answer from {chat_id}")
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, str):
            return ChatReply(answer=item)
        return item

    async def create_session(self, chat_id: str, name: str) -> str:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return f"sess-{chat_id}"


class RecordingSink:
    """Message sink that records everything it is asked to show."""

    def __init__(self) -> None:
        self.turns: list[tuple[str, str | None, str]] = []
        self.references: list[Any] = []
        self.loading: list[tuple[str, str]] = []

    def render_turn(self, content, agent, role, references=None) -> None:
        self.turns.append((role, agent.key if agent else None, content))
        self.references.append(references)

    def show_loading(self, agent: Agent) -> None:
        self.loading.append(("show", agent.key))

    def remove_loading(self, agent: Agent) -> None:
        self.loading.append(("remove", agent.key))

    def notices(self) -> list[str]:
        return [content for role, _, content in self.turns if role == "system"]


@pytest.fixture
def endpoint() -> MockEndpoint:
    return MockEndpoint()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def ledger() -> ConversationLedger:
    return ConversationLedger()


@pytest.fixture
def feed(ledger: ConversationLedger, sink: RecordingSink) -> ChatFeed:
    return ChatFeed(ledger, sink)


@pytest.fixture
def fake_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def registry(sample_agent_configs, endpoint) -> AgentRegistry:
    return AgentRegistry.from_config(sample_agent_configs, endpoint)


@pytest.fixture
def invoker(endpoint, feed, fake_sleep) -> AgentInvoker:
    return AgentInvoker(endpoint, feed, RetryConfig(), sleep=fake_sleep)


@pytest.fixture
def spatial_sink() -> MagicMock:
    return MagicMock()


@pytest.fixture
def orchestrator(registry, invoker, feed, sample_prompts_config, spatial_sink) -> DebateOrchestrator:
    return DebateOrchestrator(
        registry=registry,
        invoker=invoker,
        feed=feed,
        prompts=sample_prompts_config,
        reports=MarkdownReportSink(),
        spatial=spatial_sink,
        context=ReferenceContext(sample_prompts_config.reference_block),
        max_rounds=5,
    )
