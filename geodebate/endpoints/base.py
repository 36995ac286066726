"""Abstract base for remote chat endpoints, plus the endpoint error taxonomy."""

from abc import ABC, abstractmethod

from geodebate.models import ChatReply


class EndpointError(Exception):
    """Raised when a call to an agent's endpoint fails."""

    def __init__(self, agent: str, message: str) -> None:
        self.agent = agent
        self.message = message
        super().__init__(f"[{agent}] {message}")


class TransportError(EndpointError):
    """Network failure, timeout, or non-success HTTP status."""


class ApplicationError(EndpointError):
    """The call went through but the remote side signalled an error code."""


class AgentEndpoint(ABC):
    """Abstract base for chat-assistant backends."""

    @abstractmethod
    async def complete(self, chat_id: str, question: str, session_id: str | None = None) -> ChatReply:
        """Ask one chat assistant a question.

        Args:
            chat_id: Remote assistant id.
            question: Full prompt text.
            session_id: Prior session handle, if the agent has one.

        Returns:
            ChatReply with the answer and any new session handle.

        Raises:
            TransportError: On network failure or non-2xx status.
            ApplicationError: When the payload carries a non-zero code.
        """
        ...

    @abstractmethod
    async def create_session(self, chat_id: str, name: str) -> str:
        """Open a fresh remote session and return its handle."""
        ...

    async def aclose(self) -> None:
        """Release any underlying connections."""
