"""Single-agent calls with bounded retry and session-handle bookkeeping."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from config.config_loader import RetryConfig
from geodebate.endpoints.base import AgentEndpoint, EndpointError
from geodebate.feed import ChatFeed
from geodebate.models import Agent, AgentReply, ChatReply

logger = logging.getLogger(__name__)

NO_REPLY = "(no reply)"

SleepFn = Callable[[float], Awaitable[Any]]


def _references(raw: Any) -> list[Any] | None:
    """RAGFlow nests citation chunks under ``reference.chunks``."""
    if isinstance(raw, dict):
        raw = raw.get("chunks")
    if isinstance(raw, list) and raw:
        return raw
    return None


class AgentInvoker:
    """Calls one agent, retrying transport and application failures.

    Attempt ``n`` failing waits ``base_delay_sec + n * delay_step_sec``
    before the next attempt. After ``max_attempts`` the last error is
    returned, never raised.
    """

    def __init__(
        self,
        endpoint: AgentEndpoint,
        feed: ChatFeed,
        retry: RetryConfig,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._endpoint = endpoint
        self._feed = feed
        self._retry = retry
        self._sleep = sleep

    def backoff(self, attempt: int) -> float:
        return self._retry.base_delay_sec + attempt * self._retry.delay_step_sec

    async def _attempt(self, agent: Agent, prompt: str) -> ChatReply:
        try:
            return await self._endpoint.complete(agent.chat_id, prompt, agent.session_id)
        except EndpointError:
            raise
        except Exception as exc:
            raise EndpointError(agent.key, f"Unexpected error: {exc}") from exc

    async def invoke(self, agent: Agent, prompt: str, silent: bool = False) -> AgentReply | EndpointError:
        """Send ``prompt`` to ``agent``.

        ``silent`` suppresses feed side effects (loading indicator, answer
        message, failure notice) only; retries and session updates are the
        same either way.
        """
        if not silent:
            self._feed.show_loading(agent)

        start = time.monotonic()
        last_error = EndpointError(agent.key, "No attempt was made")
        max_attempts = self._retry.max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                reply = await self._attempt(agent, prompt)
            except EndpointError as exc:
                last_error = exc
                logger.warning("[Attempt %d/%d] Call %s failed: %s", attempt, max_attempts, agent.key, exc)
                if attempt < max_attempts:
                    await self._sleep(self.backoff(attempt))
                continue

            if reply.session_id:
                agent.session_id = reply.session_id
            result = AgentReply(
                agent_key=agent.key,
                answer=reply.answer or NO_REPLY,
                references=_references(reply.references),
                latency_sec=time.monotonic() - start,
                attempts=attempt,
            )
            logger.info("%s answered in %.2fs (attempt %d)", agent.key, result.latency_sec, attempt)
            if not silent:
                self._feed.remove_loading(agent)
                self._feed.post(result.answer, agent, result.references)
            return result

        if not silent:
            self._feed.remove_loading(agent)
            self._feed.notice(
                f"**{agent.name} is offline.** Reason: {last_error.message}. "
                "Check the backend service or use an intervention to continue."
            )
        return last_error
