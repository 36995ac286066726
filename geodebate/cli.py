"""Click CLI: config loading, panel wiring, single debates and the interactive console."""

import asyncio
import logging
import os
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config
from geodebate.context import ReferenceContext
from geodebate.endpoints.base import AgentEndpoint
from geodebate.endpoints.ragflow import RagflowEndpoint
from geodebate.feed import ChatFeed, MessageSink
from geodebate.invoker import AgentInvoker
from geodebate.ledger import ConversationLedger
from geodebate.models import DebateOutcome
from geodebate.orchestrator import DebateOrchestrator
from geodebate.output import ConsoleSink, ConsoleSpatialSink, MarkdownReportSink, save_transcript
from geodebate.question import parse_question_file
from geodebate.registry import AgentNotFoundError, AgentRegistry

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

CONSOLE_HELP = """\
Type a question to start a debate (an empty line continues the last one).
  /ask <agent> [question]   call one agent directly
  /intervene <instruction>  send a priority instruction to the host
  /new                      clear the discussion and open new sessions
  /clear                    clear the discussion only
  /reference on|off         toggle the loaded reference material
  /agents                   list agents
  /quit                     exit"""


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def build_orchestrator(
    config: AppConfig,
    endpoint: AgentEndpoint,
    sink: MessageSink | None = None,
    context: ReferenceContext | None = None,
    max_rounds: int | None = None,
) -> DebateOrchestrator:
    """Wire registry, ledger, feed, invoker and sinks into an orchestrator."""
    registry = AgentRegistry.from_config(config.agents, endpoint)
    feed = ChatFeed(ConversationLedger(), sink or ConsoleSink(console))
    invoker = AgentInvoker(endpoint, feed, config.retry)
    return DebateOrchestrator(
        registry=registry,
        invoker=invoker,
        feed=feed,
        prompts=config.prompts,
        reports=MarkdownReportSink(),
        spatial=ConsoleSpatialSink(console),
        context=context or ReferenceContext(config.prompts.reference_block),
        max_rounds=max_rounds if max_rounds is not None else config.defaults.max_rounds,
        host_context=config.defaults.host_context,
    )


def parse_console_line(line: str) -> tuple[str, str]:
    """Split a console line into (command, argument).

    Plain text maps to ("debate", text); "/ask x y" maps to ("ask", "x y").
    """
    line = line.strip()
    if not line.startswith("/"):
        return "debate", line
    command, _, argument = line[1:].partition(" ")
    return command.lower(), argument.strip()


async def handle_console_line(orchestrator: DebateOrchestrator, line: str) -> bool:
    """Run one console command. Returns False when the user asked to quit."""
    command, argument = parse_console_line(line)
    context = orchestrator.context

    if command in ("quit", "exit", "q"):
        return False
    if command == "debate":
        outcome = await orchestrator.run(argument or None)
        if outcome is DebateOutcome.REJECTED:
            console.print("[yellow]Nothing to debate, or a debate is already running.[/yellow]")
    elif command == "ask":
        agent_key, _, question = argument.partition(" ")
        if not agent_key:
            console.print("[red]Usage:[/red] /ask <agent> [question]")
            return True
        try:
            await orchestrator.ask_agent(agent_key, question or None)
        except AgentNotFoundError as exc:
            console.print(f"[red]{exc}[/red]")
    elif command == "intervene":
        if not argument:
            console.print("[red]Usage:[/red] /intervene <instruction>")
            return True
        await orchestrator.intervene(argument)
    elif command == "new":
        await orchestrator.start_new_session()
    elif command == "clear":
        if orchestrator.clear():
            console.print("[dim]Discussion cleared.[/dim]")
    elif command == "reference":
        if not isinstance(context, ReferenceContext) or not context.text:
            console.print("[yellow]No reference material loaded (use --reference).[/yellow]")
            return True
        enabled = context.toggle({"on": True, "off": False}.get(argument.lower()))
        console.print(f"Reference material {'enabled' if enabled else 'disabled'}.")
    elif command == "agents":
        for agent in orchestrator.registry:
            role = "host" if agent.is_host else "expert"
            console.print(f"  [{agent.style}]{agent.key}[/{agent.style}] {agent.name} ({role})")
    else:
        console.print(CONSOLE_HELP)
    return True


async def _run_console(orchestrator: DebateOrchestrator) -> None:
    console.print(CONSOLE_HELP)
    while True:
        try:
            line = await asyncio.to_thread(click.prompt, ">", default="", show_default=False)
        except (EOFError, click.Abort):
            return
        if not await handle_console_line(orchestrator, line):
            return


async def _run_session(
    config: AppConfig,
    token: str,
    question: str | None,
    rounds: int | None,
    context: ReferenceContext,
    reset_sessions: bool,
    save: bool,
    output_dir: Path,
) -> DebateOutcome | None:
    endpoint = RagflowEndpoint(config.api, token)
    try:
        orchestrator = build_orchestrator(config, endpoint, context=context, max_rounds=rounds)
        if reset_sessions:
            report = await orchestrator.start_new_session()
            if report is not None and report.failed:
                console.print(f"[yellow]No new session for:[/yellow] {', '.join(report.failed)}")

        if question is None:
            await _run_console(orchestrator)
            outcome = None
            question = "interactive session"
        else:
            outcome = await orchestrator.run(question)
            console.print(f"\n[dim]Debate {outcome.value} after {orchestrator.session.round} round(s).[/dim]")

        if save and len(orchestrator.ledger):
            saved_path = save_transcript(orchestrator.ledger, question, output_dir)
            console.print(f"[dim]Saved to: {saved_path}[/dim]")
        return outcome
    finally:
        await endpoint.aclose()


@click.command()
@click.argument("question", required=False)
@click.option("--file", "question_file", type=click.Path(exists=True, dir_okay=False),
              help="Read the question from a .md file (frontmatter: rounds, reference)")
@click.option("--reference", "reference_file", type=click.Path(exists=True, dir_okay=False),
              help="Text file appended to every prompt as reference material")
@click.option("--rounds", default=None, type=int, help="Maximum host rounds (default: from config)")
@click.option("--settings", "settings_path", default=None, type=click.Path(dir_okay=False),
              help="Alternate settings.yaml")
@click.option("--save", is_flag=True, default=False, help="Save the transcript as markdown")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--no-reset", is_flag=True, default=False, help="Reuse existing remote sessions")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    question: str | None,
    question_file: str | None,
    reference_file: str | None,
    rounds: int | None,
    settings_path: str | None,
    save: bool,
    output_path: str | None,
    no_reset: bool,
    verbose: bool,
) -> None:
    """geodebate -- expert panel debate moderated by a host agent.

    \b
    Examples:
      geodebate "Where should we drill next in the Tongling district?"
      geodebate --file question.md --save
      geodebate --reference survey_notes.txt
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(Path(settings_path)) if settings_path else load_config()
    except (FileNotFoundError, ValueError, KeyError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if not config.token_available:
        console.print(f"[bold red]Error:[/bold red] Set {config.api.token_env} in .env.")
        sys.exit(1)
    token = os.environ[config.api.token_env].strip()

    context = ReferenceContext(config.prompts.reference_block)
    question_text = question
    effective_rounds = rounds

    if question_file:
        parsed = parse_question_file(Path(question_file))
        question_text = parsed.text
        if effective_rounds is None:
            effective_rounds = parsed.rounds
        if parsed.reference and not reference_file:
            reference_file = str(parsed.reference)

    if reference_file:
        try:
            context.load(Path(reference_file))
        except OSError as exc:
            console.print(f"[bold red]Error:[/bold red] Cannot read reference file: {exc}")
            sys.exit(1)

    effective_output = Path(output_path) if output_path else config.defaults.output_dir

    outcome = asyncio.run(
        _run_session(
            config=config,
            token=token,
            question=question_text,
            rounds=effective_rounds,
            context=context,
            reset_sessions=not no_reset,
            save=save,
            output_dir=effective_output,
        )
    )

    if outcome is DebateOutcome.ABORTED:
        sys.exit(2)


if __name__ == "__main__":
    main()
