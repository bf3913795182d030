import asyncio
import json
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping, Protocol, TypeVar

from eddo_agent.actions.registry import ActionRegistry, ResolvedAction
from eddo_agent.config.agent import AgentConfig
from eddo_agent.exceptions import (
    BudgetExceededError,
    EddoAgentError,
    ModelTransportError,
    ReplayError,
    UnknownActionError,
)
from eddo_agent.llm.generator import ResponseGenerator
from eddo_agent.tools.types import CallerContext, FailureCategory, ToolFailure, ToolOutput
from eddo_agent.template import TemplateEnvironment
from eddo_agent.types import ConversationTurn, Role
from eddo_agent.vcr.clock import LogicalClock
from .channel import AgentChannel, LoggingChannel
from .exporter import AgentStateExporter
from .parser import Conversational, ToolInvocation, extract_conversational_part, extract_status_message, parse_response
from .persona import Persona, get_persona
from .prompt import SystemPromptBuilder
from .state import AgentRunResult, AgentState, ToolResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ITERATIONS_MESSAGE = "Process completed but exceeded maximum iterations."
TIME_BUDGET_MESSAGE = "Sorry, that took longer than I am allowed to spend on one request."
COMPLETED_MESSAGE = "Process completed successfully."
FAILURE_REPLY = "Sorry, I ran into a problem while handling your request. Please try again in a moment."
SERVER_UNAVAILABLE_MESSAGE = "tool server unavailable"


class ToolInvoker(Protocol):
    async def invoke(self, action: str, args: Mapping[str, Any], context: CallerContext | None = None) -> ToolOutput: ...


def format_tool_result(tool_name: str, output: ToolOutput) -> str:
    """History text the model sees after a tool ran."""
    if isinstance(output, ToolFailure):
        return f'Tool "{tool_name}" failed: {output.category.value}: {output.message}'
    return f'Tool "{tool_name}" executed successfully. Result: {json.dumps(output.payload(), ensure_ascii=False)}'


def _preview(text: str, limit: int = 200) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class ConversationAgent:
    """Runs one user message to completion against the model and the tool server.

    Each iteration asks the model for the next step. A response with a
    TOOL_CALL line is resolved through the ActionRegistry and executed; the
    result goes back into the history for the next iteration. A response
    without one is the final answer. The run stops early when the iteration
    cap or the wall-clock budget is reached.
    """
    VERSION = "1.0.0"

    def __init__(
            self,
            *,
            generator: ResponseGenerator,
            tool_client: ToolInvoker,
            registry: ActionRegistry,
            persona: Persona,
            max_iterations: int = 10,
            execution_budget_seconds: float = 120.0,
            clock: LogicalClock | None = None,
            template_env: TemplateEnvironment | None = None,
            template_lang: str = "en",
            exporter: AgentStateExporter | None = None,
            typing_interval: float = 4.0,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.generator = generator
        self.tool_client = tool_client
        self.registry = registry
        self.persona = persona
        self.max_iterations = max_iterations
        self.execution_budget_seconds = execution_budget_seconds
        self.clock = clock or LogicalClock()
        self.exporter = exporter
        self.typing_interval = typing_interval
        self.prompt_builder = SystemPromptBuilder(registry, persona, self.clock, template_env, template_lang)

    @classmethod
    def from_config(
            cls,
            config: AgentConfig,
            *,
            generator: ResponseGenerator,
            tool_client: ToolInvoker,
            registry: ActionRegistry,
            clock: LogicalClock | None = None,
    ) -> 'ConversationAgent':
        return cls(
            generator=generator,
            tool_client=tool_client,
            registry=registry,
            persona=get_persona(config.persona),
            max_iterations=config.max_iterations,
            execution_budget_seconds=config.execution_budget_seconds,
            clock=clock,
            template_lang=config.template_lang,
            exporter=AgentStateExporter(config.state_log_dir) if config.state_log_dir else None,
        )

    def status(self) -> dict:
        return {
            "version": self.VERSION,
            "persona": self.persona.id.value,
            "tools_available": len(self.registry.live_actions),
            "tools_live": self.registry.live_available,
        }

    async def process_message(
            self,
            input_text: str,
            user_id: str,
            transport: AgentChannel | None = None,
            *,
            system_prompt: str | None = None,
    ) -> AgentRunResult:
        """Handle one user message.

        Never raises for model, resolution, replay or budget failures; those are
        reported through ``AgentRunResult.error`` and the user always receives a reply.
        ``system_prompt`` replaces the rendered persona prompt for this run.
        """
        channel = transport or LoggingChannel(logger)
        caller = channel.caller_context(user_id)
        state = AgentState(
            input=input_text,
            history=[ConversationTurn(Role.USER, input_text, self.clock.now())],
        )
        deadline = time.monotonic() + self.execution_budget_seconds
        iteration = 0
        error: EddoAgentError | None = None
        logger.info(f"Processing message from {user_id}: {_preview(input_text)}")

        try:
            state.system_prompt = system_prompt or self.prompt_builder.build()
            while not state.done:
                if iteration >= self.max_iterations:
                    raise BudgetExceededError("iterations", self.max_iterations)
                iteration += 1
                await self._run_iteration(state, channel, caller, iteration, deadline)
        except BudgetExceededError as e:
            logger.warning(f"Agent loop stopped after {iteration} iterations: {e}")
            error = e
        except (ModelTransportError, UnknownActionError, ReplayError) as e:
            logger.error(f"Agent run failed ({e.category}): {e}")
            error = e
        finally:
            self._export_state(state, iteration, user_id)

        if error is None:
            result = AgentRunResult(
                success=True,
                final_response=state.output or COMPLETED_MESSAGE,
                tool_results=list(state.tool_results),
                iterations=iteration,
            )
            await self._reply(channel, extract_conversational_part(result.final_response) or result.final_response)
            return result

        if isinstance(error, BudgetExceededError):
            partial = self._partial_output(state, error)
            await self._reply(channel, partial)
        else:
            partial = None
            await self._reply(channel, FAILURE_REPLY)
        return AgentRunResult(
            success=False,
            final_response=partial,
            tool_results=list(state.tool_results),
            error=error,
            iterations=iteration,
        )

    async def _run_iteration(
            self,
            state: AgentState,
            channel: AgentChannel,
            caller: CallerContext,
            iteration: int,
            deadline: float,
    ):
        logger.info(
            f"Iteration {iteration}/{self.max_iterations}: "
            f"{len(state.history)} history entries, {len(state.tool_results)} tool results")
        await self._typing(channel)
        refresher = asyncio.create_task(self._keep_typing(channel))
        try:
            await self._step(state, channel, caller, deadline)
        finally:
            refresher.cancel()

    async def _step(self, state: AgentState, channel: AgentChannel, caller: CallerContext, deadline: float):
        history = list(state.history)
        system_prompt = state.system_prompt or ""
        response = await self._within_budget(lambda: self._generate(history, system_prompt), deadline)
        state.history.append(ConversationTurn(Role.ASSISTANT, response, self.clock.now()))
        logger.debug(f"Model response: {_preview(response)}")

        match parse_response(response):
            case Conversational():
                logger.info("Agent decision: complete, no tool call in response")
                state.done = True
                state.output = response
            case ToolInvocation(name=name, args=args, status=status):
                if status:
                    await self._reply(channel, status)
                action = self.registry.resolve(name)
                logger.info(f"Agent decision: call {action.tool_name} (requested {name}, via {action.source.value})")
                output = await self._within_budget(lambda: self._invoke(action, args, caller), deadline)
                now = self.clock.now()
                state.tool_results.append(ToolResult(action.name, output, now, requested_name=name))
                state.history.append(ConversationTurn(Role.USER, format_tool_result(action.name, output), now))

    async def _generate(self, history: list[ConversationTurn], system_prompt: str) -> str:
        try:
            return await self.generator.generate(history, system_prompt)
        except EddoAgentError:
            raise
        except Exception as e:
            raise ModelTransportError(e) from e

    async def _invoke(self, action: ResolvedAction, args: Mapping[str, Any], caller: CallerContext) -> ToolOutput:
        if not action.executable and not self.registry.live_available:
            logger.warning(f"Skipping {action.tool_name}: tool server unavailable")
            return ToolFailure(category=FailureCategory.TRANSPORT, message=SERVER_UNAVAILABLE_MESSAGE)
        try:
            return await self.tool_client.invoke(action.tool_name, args, caller)
        except Exception as e:
            logger.exception(f"Tool client raised while invoking {action.tool_name}")
            return ToolFailure(category=FailureCategory.TRANSPORT, message=f"{type(e).__name__}: {e}")

    async def _keep_typing(self, channel: AgentChannel):
        while True:
            await asyncio.sleep(self.typing_interval)
            await self._typing(channel)

    async def _within_budget(self, call: Callable[[], Awaitable[T]], deadline: float) -> T:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise BudgetExceededError("time", self.execution_budget_seconds)
        try:
            return await asyncio.wait_for(call(), remaining)
        except asyncio.TimeoutError as e:
            raise BudgetExceededError("time", self.execution_budget_seconds) from e

    @staticmethod
    def _partial_output(state: AgentState, error: BudgetExceededError) -> str:
        for turn in reversed(state.history):
            if turn.role != Role.ASSISTANT:
                continue
            text = extract_conversational_part(turn.content) or extract_status_message(turn.content)
            if text:
                return text
        # the first turn is the user's own message, never echo it back
        if len(state.history) > 1 and state.history[-1].content:
            return state.history[-1].content
        return MAX_ITERATIONS_MESSAGE if error.kind == "iterations" else TIME_BUDGET_MESSAGE

    @staticmethod
    async def _reply(channel: AgentChannel, content: str):
        try:
            await channel.reply(content)
        except Exception as e:
            logger.error(f"Failed to deliver reply: {e}")

    @staticmethod
    async def _typing(channel: AgentChannel):
        try:
            await channel.typing()
        except Exception as e:
            logger.debug(f"Failed to show typing indicator: {e}")

    def _export_state(self, state: AgentState, iterations: int, user_id: str):
        if self.exporter is None:
            return
        run_id = f"{datetime.now():%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:8]}"
        try:
            self.exporter.export(state, iterations, user_id, run_id)
        except OSError as e:
            logger.warning(f"Failed to export agent state: {e}")
