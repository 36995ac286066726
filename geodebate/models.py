"""Pure dataclasses for the geodebate panel. No logic beyond small helpers, no deps."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class Agent:
    key: str               # "general", "geophysical", ..., "host"
    name: str              # display name
    chat_id: str           # remote chat assistant id
    is_host: bool = False
    style: str = "white"   # rich colour used by the console sink
    session_id: str | None = None


@dataclass(frozen=True)
class Turn:
    role: str              # speaker label: "User" or an agent display name
    agent_key: str | None
    content: str


@dataclass(frozen=True)
class AskCommand:
    target: str
    content: str


@dataclass(frozen=True)
class FinishCommand:
    content: dict[str, Any] | str


Command = AskCommand | FinishCommand


@dataclass
class ChatReply:
    """Raw successful reply from a chat endpoint."""
    answer: str
    session_id: str | None = None
    references: Any = None


@dataclass
class AgentReply:
    agent_key: str
    answer: str
    references: list[Any] | None
    latency_sec: float
    attempts: int


@dataclass
class SessionResetReport:
    label: str
    succeeded: int
    total: int
    failed: list[str] = field(default_factory=list)


class DebateOutcome(str, Enum):
    FINISHED = "finished"
    ABORTED = "aborted"
    EXHAUSTED = "exhausted"    # round cap reached without FINISH
    REJECTED = "rejected"      # a run was already active, or nothing to discuss
