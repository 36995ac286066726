"""Collaborator protocols and the feed that renders turns and records them."""

from typing import Any, Protocol

from geodebate.ledger import ConversationLedger
from geodebate.models import Agent

USER_ROLE = "User"


class MessageSink(Protocol):
    def render_turn(
        self,
        content: str,
        agent: Agent | None,
        role: str,
        references: list[Any] | None = None,
    ) -> None: ...

    def show_loading(self, agent: Agent) -> None: ...

    def remove_loading(self, agent: Agent) -> None: ...


class ReportSink(Protocol):
    def render_report(self, content: dict[str, Any]) -> str: ...


class SpatialSink(Protocol):
    def update_spatial_view(self, content: dict[str, Any]) -> None: ...


class ContextProvider(Protocol):
    def augment(self, base: str) -> str: ...


class ChatFeed:
    """Routes every visible message to the sink.

    User and agent messages also go into the ledger; system notices are
    display-only.
    """

    def __init__(self, ledger: ConversationLedger, sink: MessageSink) -> None:
        self.ledger = ledger
        self.sink = sink

    def post(self, content: Any, agent: Agent | None = None, references: list[Any] | None = None) -> None:
        """Show a message from ``agent`` (or from the user when None) and record it."""
        role = agent.name if agent else USER_ROLE
        kind = "agent" if agent else "user"
        turn = self.ledger.append(role, agent.key if agent else None, content)
        self.sink.render_turn(turn.content, agent, kind, references)

    def notice(self, text: str) -> None:
        self.sink.render_turn(text, None, "system", None)

    def show_loading(self, agent: Agent) -> None:
        self.sink.show_loading(agent)

    def remove_loading(self, agent: Agent) -> None:
        self.sink.remove_loading(agent)
