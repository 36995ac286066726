"""Agent directory: lookup by key and remote session resets."""

import asyncio
import logging
from collections.abc import Iterable, Iterator
from datetime import datetime

from config.config_loader import AgentConfig
from geodebate.endpoints.base import AgentEndpoint
from geodebate.models import Agent, SessionResetReport

logger = logging.getLogger(__name__)


class AgentNotFoundError(LookupError):
    """Raised when an identifier names no configured agent."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"No agent named {identifier!r}")


def default_session_label() -> str:
    return "Session " + datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class AgentRegistry:
    """Configured agents (experts and the host), in configuration order."""

    def __init__(self, agents: Iterable[Agent], endpoint: AgentEndpoint) -> None:
        self._agents: dict[str, Agent] = {a.key: a for a in agents}
        self._endpoint = endpoint
        hosts = [a for a in self._agents.values() if a.is_host]
        if len(hosts) != 1:
            raise ValueError(f"Exactly one host agent is required, found {len(hosts)}")
        self._host = hosts[0]

    @classmethod
    def from_config(cls, configs: Iterable[AgentConfig], endpoint: AgentEndpoint) -> "AgentRegistry":
        agents = [
            Agent(key=c.key, name=c.name, chat_id=c.chat_id, is_host=c.is_host, style=c.style)
            for c in configs
        ]
        return cls(agents, endpoint)

    @property
    def host(self) -> Agent:
        return self._host

    def experts(self) -> list[Agent]:
        return [a for a in self._agents.values() if not a.is_host]

    def get(self, identifier: str) -> Agent:
        """Case-insensitive lookup. Raises AgentNotFoundError."""
        wanted = identifier.strip().lower()
        for key, agent in self._agents.items():
            if key.lower() == wanted:
                return agent
        raise AgentNotFoundError(identifier)

    def __contains__(self, identifier: object) -> bool:
        if not isinstance(identifier, str):
            return False
        try:
            self.get(identifier)
        except AgentNotFoundError:
            return False
        return True

    def __iter__(self) -> Iterator[Agent]:
        return iter(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)

    async def _reset_one(self, agent: Agent, label: str) -> bool:
        try:
            agent.session_id = await self._endpoint.create_session(agent.chat_id, label)
            return True
        except Exception as exc:
            logger.warning("Could not open a new session for %s: %s", agent.key, exc)
            return False

    async def reset_all_sessions(self, label: str | None = None) -> SessionResetReport:
        """Request a new remote session for every agent in parallel.

        Failures are isolated: an agent whose request fails keeps its old
        handle and is listed in ``failed``.
        """
        label = label or default_session_label()
        agents = list(self._agents.values())
        results = await asyncio.gather(*(self._reset_one(a, label) for a in agents))
        failed = [a.key for a, ok in zip(agents, results) if not ok]
        report = SessionResetReport(
            label=label,
            succeeded=len(agents) - len(failed),
            total=len(agents),
            failed=failed,
        )
        logger.info("Session reset '%s': %d/%d agents", label, report.succeeded, report.total)
        return report
