"""Extract a host command from free-text model output."""

import json
import logging
import re
from typing import Any

from geodebate.models import AskCommand, Command, FinishCommand

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?")
_CITATION_RE = re.compile(r"\[ID:\d+\]")
_ASK_DIRECTIVE_RE = re.compile(r"CMD:\s*ASK\s+(\w+)\s+(.+)", re.IGNORECASE)


def _clean(raw: str) -> str:
    text = _FENCE_RE.sub("", raw)
    text = _CITATION_RE.sub("", text)
    return text.strip()


def _to_command(document: Any) -> Command | None:
    if not isinstance(document, dict):
        return None
    action = document.get("action")
    if not isinstance(action, str):
        return None

    action = action.strip().upper()
    if action == "ASK":
        target, content = document.get("target"), document.get("content")
        if isinstance(target, str) and isinstance(content, str) and target.strip():
            return AskCommand(target=target.strip(), content=content)
    elif action == "FINISH":
        content = document.get("content")
        if isinstance(content, (dict, str)):
            return FinishCommand(content=content)
    return None


def parse_command(raw: str | None) -> Command | None:
    """Parse host output into a Command.

    Tries the JSON object spanning the first ``{`` to the last ``}`` after
    stripping code fences and ``[ID:n]`` citation markers, then falls back to
    a ``CMD: ASK <agent> <question>`` line. Returns None when neither works.
    """
    if not raw:
        return None

    text = _clean(raw)
    first, last = text.find("{"), text.rfind("}")
    if first != -1 and last > first:
        try:
            command = _to_command(json.loads(text[first:last + 1]))
        except json.JSONDecodeError as exc:
            logger.debug("Host JSON did not parse (%s), trying directive fallback", exc)
        else:
            if command is not None:
                return command
            logger.debug("Host JSON is not a valid command, trying directive fallback")

    match = _ASK_DIRECTIVE_RE.search(text)
    if match:
        return AskCommand(target=match.group(1), content=match.group(2).strip())
    return None
