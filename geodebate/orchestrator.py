"""Debate orchestration: opening fan-out, host rounds, follow-ups, interventions."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from config.config_loader import PromptsConfig
from geodebate.endpoints.base import EndpointError
from geodebate.feed import ChatFeed, ContextProvider, ReportSink, SpatialSink
from geodebate.invoker import AgentInvoker
from geodebate.ledger import ConversationLedger
from geodebate.models import (
    Agent,
    AgentReply,
    AskCommand,
    Command,
    DebateOutcome,
    FinishCommand,
    SessionResetReport,
)
from geodebate.parser import parse_command
from geodebate.registry import AgentNotFoundError, AgentRegistry

logger = logging.getLogger(__name__)

# Consecutive unparsable host replies tolerated before the run aborts
MAX_PARSE_FAILURES = 2

_SPATIAL_KEYS = ("target_area", "drill_sites")


def has_spatial_fields(content: Any) -> bool:
    return isinstance(content, dict) and any(
        isinstance(content.get(k), list) and content.get(k) for k in _SPATIAL_KEYS
    )


@dataclass
class DebateSession:
    round: int = 0
    parse_failures: int = 0
    running: bool = False

    def reset(self) -> None:
        self.round = 0
        self.parse_failures = 0


class DebateOrchestrator:
    """Drives one debate at a time over the shared ledger.

    States: idle, opening round, host evaluation (1..max_rounds), then
    finished, aborted, or exhausted. ``run`` never raises.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        invoker: AgentInvoker,
        feed: ChatFeed,
        prompts: PromptsConfig,
        reports: ReportSink,
        spatial: SpatialSink,
        context: ContextProvider,
        max_rounds: int = 5,
        host_context: str = "full",
    ) -> None:
        self.registry = registry
        self.invoker = invoker
        self.feed = feed
        self.prompts = prompts
        self.reports = reports
        self.spatial = spatial
        self.context = context
        self.max_rounds = max_rounds
        self.host_context = host_context
        self.session = DebateSession()
        self._host_lock = asyncio.Lock()

    @property
    def ledger(self) -> ConversationLedger:
        return self.feed.ledger

    @property
    def last_result(self) -> dict[str, Any] | str | None:
        return self.ledger.last_result

    # --- prompts ---

    def _opening_prompt(self, user_input: str | None) -> str:
        base = self.prompts.opening.format(
            question=user_input or "Please continue the analysis.",
            transcript=self.ledger.full_transcript(),
        )
        return self.context.augment(base)

    def _host_transcript(self) -> str:
        if self.host_context == "incremental":
            return self.ledger.incremental_transcript(force_full=self.session.round == 1)
        return self.ledger.full_transcript()

    def _host_prompt(self) -> str:
        base = self.prompts.host_evaluation.format(
            experts=", ".join(a.key for a in self.registry.experts()),
            transcript=self._host_transcript(),
        )
        if self.session.parse_failures > 0:
            base += self.prompts.format_warning
        return self.context.augment(base)

    # --- main loop ---

    async def run(self, user_input: str | None = None) -> DebateOutcome:
        """Run one full debate. Returns how it ended."""
        user_input = (user_input or "").strip() or None
        if self.session.running:
            logger.warning("Debate already running, ignoring new request")
            return DebateOutcome.REJECTED
        if user_input is None and len(self.ledger) == 0:
            logger.warning("No question supplied and no prior discussion, nothing to debate")
            return DebateOutcome.REJECTED

        self.session.running = True
        self.session.reset()
        try:
            if user_input:
                self.feed.post(user_input)
            await self._opening_round(user_input)
            return await self._host_loop()
        except Exception as exc:
            logger.exception("Debate flow failed")
            self.feed.notice(f"Debate flow error: {exc}")
            return DebateOutcome.ABORTED
        finally:
            self.session.running = False

    async def _opening_round(self, user_input: str | None) -> None:
        experts = self.registry.experts()
        self.feed.notice("Asking every expert for an independent analysis...")
        prompt = self._opening_prompt(user_input)

        logger.info("Opening round with %d experts", len(experts))
        results = await asyncio.gather(*(self.invoker.invoke(a, prompt) for a in experts))

        answered = sum(1 for r in results if isinstance(r, AgentReply))
        logger.info("Opening round complete: %d/%d experts answered", answered, len(experts))

    async def _host_loop(self) -> DebateOutcome:
        while self.session.round < self.max_rounds:
            self.session.round += 1
            async with self._host_lock:
                outcome = await self._host_round()
            if outcome is not None:
                return outcome

        logger.info("Round cap (%d) reached without a final report", self.max_rounds)
        return DebateOutcome.EXHAUSTED

    async def _call_host(self, prompt: str) -> AgentReply | EndpointError:
        host = self.registry.host
        self.feed.show_loading(host)
        try:
            return await self.invoker.invoke(host, prompt, silent=True)
        finally:
            self.feed.remove_loading(host)

    async def _host_round(self) -> DebateOutcome | None:
        """One host evaluation. Returns an outcome to stop, None to continue."""
        host = self.registry.host
        logger.info("Host evaluation round %d/%d", self.session.round, self.max_rounds)

        reply = await self._call_host(self._host_prompt())
        if isinstance(reply, EndpointError):
            self.feed.notice(f"{host.name} did not respond ({reply.message}). The debate is paused.")
            return DebateOutcome.ABORTED

        command = parse_command(reply.answer)
        if command is None:
            return self._handle_parse_failure(reply.answer)

        self.session.parse_failures = 0
        match command:
            case FinishCommand():
                self._apply_finish(command)
                self.feed.notice("Debate finished.")
                return DebateOutcome.FINISHED
            case AskCommand():
                return await self._handle_ask(command, reply.answer)

    def _handle_parse_failure(self, raw: str) -> DebateOutcome | None:
        logger.warning("Host output is not a command: %r", raw[:200])
        if self.session.parse_failures < MAX_PARSE_FAILURES:
            self.session.parse_failures += 1
            self.session.round -= 1
            self.feed.notice(
                f"(monitor) Host output was malformed, asking it to retry... "
                f"({self.session.parse_failures}/{MAX_PARSE_FAILURES})"
            )
            return None

        self.feed.post(raw, self.registry.host)
        self.feed.notice("Host output could not be read as a command, the debate stopped. Use an intervention to steer it.")
        return DebateOutcome.ABORTED

    async def _handle_ask(self, command: AskCommand, raw: str) -> DebateOutcome | None:
        host = self.registry.host
        try:
            target = self.registry.get(command.target)
        except AgentNotFoundError:
            logger.warning("Host asked unknown agent %r", command.target)
            self.feed.post(raw, host)
            return DebateOutcome.ABORTED

        self.feed.post(f"(follow-up to {target.name}) {command.content}", host)
        prompt = self.context.augment(self.prompts.follow_up.format(question=command.content))
        await self.invoker.invoke(target, prompt)
        return None

    def _apply_finish(self, command: FinishCommand) -> None:
        content = command.content
        self.ledger.last_result = content
        if isinstance(content, dict):
            if has_spatial_fields(content):
                self.feed.notice("Drawing target area and drill sites...")
                self.spatial.update_spatial_view(content)
            self.feed.post(self.reports.render_report(content), self.registry.host)
        else:
            self.feed.post(content, self.registry.host)

    # --- side entries ---

    async def ask_agent(self, identifier: str, question: str | None = None) -> AgentReply | EndpointError:
        """Call one agent directly, outside any debate.

        Raises AgentNotFoundError for an unknown identifier.
        """
        agent = self.registry.get(identifier)
        question = (question or "").strip() or None
        if question:
            self.feed.post(f"(direct) {question}")
            base = self.prompts.manual_question.format(question=question, transcript=self.ledger.full_transcript())
        else:
            base = self.prompts.manual_continue.format(transcript=self.ledger.full_transcript())
        return await self.invoker.invoke(agent, self.context.augment(base))

    async def intervene(self, instruction: str) -> Command | None:
        """Send a priority instruction straight to the host.

        Leaves the round counter and the running flag alone, but waits for
        any host round in progress to finish first.
        """
        instruction = (instruction or "").strip()
        if not instruction:
            return None

        host = self.registry.host
        async with self._host_lock:
            try:
                return await self._intervene_locked(host, instruction)
            except Exception as exc:
                logger.exception("Intervention failed")
                self.feed.notice(f"Intervention failed: {exc}")
                return None

    async def _intervene_locked(self, host: Agent, instruction: str) -> Command | None:
        self.feed.post(f"(intervention) {instruction}")
        base = self.prompts.intervention.format(
            instruction=instruction,
            transcript=self.ledger.full_transcript(),
        )
        reply = await self._call_host(self.context.augment(base))
        if isinstance(reply, EndpointError):
            self.feed.notice(f"{host.name} did not respond to the intervention ({reply.message}).")
            return None

        command = parse_command(reply.answer)
        if isinstance(command, FinishCommand):
            self._apply_finish(command)
        else:
            self.feed.post(reply.answer, host)
        return command

    async def start_new_session(self, label: str | None = None) -> SessionResetReport | None:
        """Forget the discussion and open fresh remote sessions for every agent.

        Returns None without touching anything while a debate is running.
        """
        if not self.clear():
            return None
        report = await self.registry.reset_all_sessions(label)
        self.feed.notice(
            f"**Session reset.** New sessions opened for {report.succeeded} / {report.total} agents "
            f"(name: {report.label})."
        )
        return report

    def clear(self) -> bool:
        """Drop the transcript and counters. Refused while a debate runs."""
        if self.session.running:
            logger.warning("Cannot clear while a debate is running")
            return False
        self.ledger.clear()
        self.session.reset()
        return True
