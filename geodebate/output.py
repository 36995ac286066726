"""Rich console collaborators and markdown transcript export."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from geodebate.ledger import ConversationLedger
from geodebate.models import Agent

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _strip_thinking(text: str) -> str:
    """Drop ``<think>...</think>`` blocks some reasoning models emit."""
    return _THINK_RE.sub("", text).strip()


def _reference_lines(references: list[Any]) -> list[str]:
    lines = []
    for ref in references:
        if not isinstance(ref, dict):
            continue
        doc = ref.get("document_name") or ref.get("doc_name") or "unknown document"
        sim = ref.get("similarity")
        sim_str = f" ({sim * 100:.1f}%)" if isinstance(sim, (int, float)) else ""
        lines.append(f"- {doc}{sim_str}")
    return lines


class ConsoleSink:
    """Message sink that prints each turn as a rich panel."""

    def __init__(self, out: Console = console) -> None:
        self._console = out

    def render_turn(
        self,
        content: str,
        agent: Agent | None,
        role: str,
        references: list[Any] | None = None,
    ) -> None:
        if role == "system":
            self._console.print(Text(_strip_thinking(content), style="dim italic"))
            return

        body = _strip_thinking(content)
        if references:
            lines = _reference_lines(references)
            body += f"\n\n*Cited {len(references)} source(s)*\n" + "\n".join(lines)

        if agent is None:
            title, style = "[bold]User[/bold]", "white"
        else:
            title, style = f"[bold]{agent.name}[/bold] ({agent.key})", agent.style
        self._console.print(Panel(Markdown(body), title=title, border_style=style))

    def show_loading(self, agent: Agent) -> None:
        self._console.print(Text(f"{agent.name} is thinking...", style="dim"))

    def remove_loading(self, agent: Agent) -> None:
        logger.debug("%s finished", agent.key)


class MarkdownReportSink:
    """Renders a finished result as a markdown report card."""

    def render_report(self, content: dict[str, Any]) -> str:
        if "mineralization_probability" in content:
            return "\n".join([
                f"## Evaluation Report (mineralization probability: {content['mineralization_probability']})",
                "",
                "### Favorable location",
                str(content.get("favorable_location") or "Not specified"),
                "",
                "### Interpretation",
                str(content.get("interpretation") or "None"),
                "",
                "### Next steps",
                str(content.get("next_steps") or "None"),
            ])

        summary = content.get("summary") or "None"
        lines = ["## Discussion Summary", "", "### Key conclusion", str(summary)]
        for key, title in (("key_points", "Key points"), ("evidence", "Supporting data")):
            if content.get(key):
                lines += ["", f"### {title}", str(content[key])]
        return "\n".join(lines)


class ConsoleSpatialSink:
    """Prints the spatial fields of a prediction as tables.

    Stands in for the map view: no projection or geometry is computed.
    """

    def __init__(self, out: Console = console) -> None:
        self._console = out
        self.last_view: dict[str, Any] | None = None

    def update_spatial_view(self, content: dict[str, Any]) -> None:
        self.last_view = content

        area = content.get("target_area")
        if isinstance(area, list) and area:
            self._console.print(f"[bold red]Target area[/bold red]: {len(area)}-point polygon")

        sites = content.get("drill_sites")
        if isinstance(sites, list) and sites:
            table = Table(title="Drill sites")
            for col in ("id", "lat", "lng", "depth", "reason"):
                table.add_column(col)
            for site in sites:
                if not isinstance(site, dict):
                    continue
                table.add_row(*(str(site.get(col, "")) for col in ("id", "lat", "lng", "depth", "reason")))
            self._console.print(table)

        for key, title in (("geo_anomalies", "Geophysical anomalies"), ("chem_anomalies", "Geochemical anomalies")):
            anomalies = content.get(key)
            if not isinstance(anomalies, list) or not anomalies:
                continue
            table = Table(title=title)
            for col in ("type", "value", "lat", "lng", "radius", "desc"):
                table.add_column(col)
            for item in anomalies:
                if not isinstance(item, dict):
                    continue
                table.add_row(*(str(item.get(col, "")) for col in ("type", "value", "lat", "lng", "radius", "desc")))
            self._console.print(table)


def save_transcript(
    ledger: ConversationLedger,
    question: str,
    output_dir: Path,
    slug_override: str | None = None,
) -> Path:
    """Save the discussion as a markdown file.

    Args:
        ledger: The conversation to export.
        question: The question that opened the debate, used for the title.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the question text.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(question)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    lines: list[str] = [
        f"# Expert Panel Debate: {question[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Turns:** {len(ledger)}",
        "",
        "---",
        "",
    ]
    for turn in ledger.turns:
        speaker = f"{turn.role} ({turn.agent_key})" if turn.agent_key else turn.role
        lines += [f"### {speaker}", "", turn.content, ""]

    if ledger.last_result is not None:
        lines += ["## Final Result", ""]
        if isinstance(ledger.last_result, dict):
            lines += ["```json", json.dumps(ledger.last_result, ensure_ascii=False, indent=2), "```", ""]
        else:
            lines += [ledger.last_result, ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
