"""Append-only conversation record shared by every agent call."""

import json
from collections.abc import Iterator
from typing import Any

from geodebate.models import Turn


def _as_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False, sort_keys=True)


def _render(turn: Turn) -> str:
    id_info = f" (ID: {turn.agent_key})" if turn.agent_key else ""
    return f"[{turn.role}{id_info}]:\n{turn.content}"


class ConversationLedger:
    """Ordered turns plus a checkpoint for incremental readers.

    The checkpoint counts how many turns an incremental reader has already
    consumed; it never exceeds ``len(self)``. The ledger also keeps the last
    structured result the host finished with, so a visualization can be
    refreshed after the debate ends.
    """

    def __init__(self) -> None:
        self._turns: list[Turn] = []
        self._checkpoint = 0
        self.last_result: dict[str, Any] | str | None = None

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def checkpoint(self) -> int:
        return self._checkpoint

    def append(self, role: str, agent_key: str | None, content: Any) -> Turn:
        turn = Turn(role=role, agent_key=agent_key, content=_as_text(content))
        self._turns.append(turn)
        return turn

    def render_turns(self, start: int = 0) -> Iterator[str]:
        """Yield one rendered block per turn from ``start`` on."""
        for turn in self._turns[start:]:
            yield _render(turn)

    def full_transcript(self) -> str:
        return "\n\n".join(self.render_turns())

    def incremental_transcript(self, force_full: bool = False) -> str:
        """Return turns added since the last call and advance the checkpoint.

        With ``force_full`` every turn is returned regardless of the
        checkpoint. Returns "" when there is nothing new.
        """
        start = 0 if force_full else self._checkpoint
        text = "\n\n".join(self.render_turns(start))
        self._checkpoint = len(self._turns)
        return text

    def clear(self) -> None:
        self._turns.clear()
        self._checkpoint = 0
        self.last_result = None
