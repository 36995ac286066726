"""User-supplied reference material appended to outgoing prompts."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class ReferenceContext:
    """Holds reference text and appends it to prompts while enabled."""

    def __init__(self, template: str, text: str = "", enabled: bool = False) -> None:
        self._template = template
        self.text = text
        self.enabled = enabled

    def load(self, path: Path) -> None:
        """Read a text file and enable it as reference material."""
        self.text = path.read_text(encoding="utf-8")
        self.enabled = True
        logger.info("Reference material loaded from %s (%d chars)", path, len(self.text))

    def toggle(self, enabled: bool | None = None) -> bool:
        """Flip (or set) the enabled flag. No-op without loaded text."""
        if not self.text:
            return False
        self.enabled = (not self.enabled) if enabled is None else enabled
        return self.enabled

    def augment(self, base: str) -> str:
        if self.enabled and self.text:
            return base + self._template.format(reference=self.text)
        return base
