"""Question files: markdown body with optional YAML frontmatter."""

from dataclasses import dataclass
from pathlib import Path

import frontmatter


@dataclass
class QuestionFile:
    text: str
    rounds: int | None = None
    reference: Path | None = None


def parse_question_file(file_path: Path) -> QuestionFile:
    """Parse a markdown question file.

    Recognised frontmatter keys: ``rounds`` (int) and ``reference`` (path to
    a text file, relative to the question file). Unknown keys are ignored.
    """
    post = frontmatter.load(str(file_path))
    meta = dict(post.metadata)

    reference = None
    if meta.get("reference"):
        reference = Path(str(meta["reference"]))
        if not reference.is_absolute():
            reference = file_path.parent / reference

    return QuestionFile(
        text=post.content.strip(),
        rounds=int(meta["rounds"]) if "rounds" in meta else None,
        reference=reference,
    )
