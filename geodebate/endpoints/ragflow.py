"""RAGFlow chat-assistant endpoint over httpx with native async."""

import logging
import time
from typing import Any

import httpx

from config.config_loader import ApiConfig
from geodebate.endpoints.base import AgentEndpoint, ApplicationError, TransportError
from geodebate.models import ChatReply

logger = logging.getLogger(__name__)


class RagflowEndpoint(AgentEndpoint):
    """RAGFlow ``/chats/{chat_id}`` API via httpx.AsyncClient."""

    def __init__(self, config: ApiConfig, token: str, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(
            timeout=config.timeout_sec,
            headers={"Authorization": f"Bearer {token}"},
        )

    async def _post(self, chat_id: str, path: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._config.base_url}/{chat_id}/{path}"
        try:
            response = await self._client.post(url, json=body)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise TransportError(chat_id, f"Request timed out after {self._config.timeout_sec}s") from exc
        except httpx.HTTPStatusError as exc:
            raise TransportError(chat_id, f"HTTP Error: {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(chat_id, f"Request failed: {exc}") from exc
        except ValueError as exc:
            raise TransportError(chat_id, f"Response is not JSON: {exc}") from exc

        if not isinstance(payload, dict) or payload.get("code") != 0 or not payload.get("data"):
            message = payload.get("message") if isinstance(payload, dict) else None
            raise ApplicationError(chat_id, message or "API returned error code")
        return payload["data"]

    async def complete(self, chat_id: str, question: str, session_id: str | None = None) -> ChatReply:
        body: dict[str, Any] = {"question": question, "stream": False}
        if session_id:
            body["session_id"] = session_id

        start = time.monotonic()
        data = await self._post(chat_id, "completions", body)
        logger.debug("Completion from %s in %.2fs", chat_id, time.monotonic() - start)

        return ChatReply(
            answer=data.get("answer") or "",
            session_id=data.get("session_id"),
            references=data.get("reference"),
        )

    async def create_session(self, chat_id: str, name: str) -> str:
        data = await self._post(chat_id, "sessions", {"name": name})
        session_id = data.get("id")
        if not session_id:
            raise ApplicationError(chat_id, "Session response carried no id")
        return str(session_id)

    async def aclose(self) -> None:
        await self._client.aclose()
