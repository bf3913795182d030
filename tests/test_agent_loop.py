"""Test cases for ConversationAgent.

Covers the behaviour of one ``process_message`` run:

1. Final answers: a response without a tool call ends the run after one model call
2. Tool rounds: resolution, invocation with caller context, results folded into history
3. Recoverable tool failures: the model sees the failure and may still answer, even when the
   tool client raises or the tool server is offline
4. Fatal failures: unknown actions and model errors of any kind end the run with a reply
5. Budgets: iteration cap and wall-clock budget end the run with partial output

The model is scripted and the tool server is an AsyncMock, so no network is involved.
"""

import asyncio
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import yaml
from langchain_core.language_models import BaseChatModel

from eddo_agent.actions import ActionRegistry, DEFAULT_TABLES
from eddo_agent.agent import ConversationAgent, AgentStateExporter, get_persona, format_tool_result
from eddo_agent.agent.loop import FAILURE_REPLY, SERVER_UNAVAILABLE_MESSAGE
from eddo_agent.config import AgentConfig, PersonaId
from eddo_agent.exceptions import BudgetExceededError, ModelTransportError, UnknownActionError
from eddo_agent.llm import ChatModelGenerator
from eddo_agent.tools import CallerContext, FailureCategory, MCPToolClient, RemoteTool, ToolFailure, ToolSuccess
from eddo_agent.types import Role
from eddo_agent.vcr import LogicalClock
from conftest import RecordingChannel, ScriptedGenerator

LIST_CALL = 'TOOL_CALL: {"name": "list_todos", "parameters": {"context": "work"}}'


def make_registry() -> ActionRegistry:
    return ActionRegistry(DEFAULT_TABLES, [
        RemoteTool("eddo_todo_listTodos", "List todos with optional filtering"),
        RemoteTool("eddo_todo_createTodo", "Create a new todo item"),
    ])


class TestConversationAgent(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.tool_client = AsyncMock(spec=MCPToolClient)
        self.tool_client.invoke.return_value = ToolSuccess(blocks=['{"todos": []}'], data={"todos": []})
        self.channel = RecordingChannel()
        self.clock = LogicalClock()
        self.clock.freeze("2024-06-03T09:00:00+00:00")

    def make_agent(self, generator, **kwargs) -> ConversationAgent:
        params = dict(
            generator=generator,
            tool_client=self.tool_client,
            registry=make_registry(),
            persona=get_persona("butler"),
            clock=self.clock,
        )
        params.update(kwargs)
        return ConversationAgent(**params)

    # ------------------------------------------------------------------
    # Final answers
    # ------------------------------------------------------------------

    async def test_plain_answer_completes_in_one_call(self):
        generator = ScriptedGenerator(["Nothing is due today, sir."])
        agent = self.make_agent(generator)

        result = await agent.process_message("what's due today", "u1", self.channel)

        self.assertTrue(result.success)
        self.assertEqual(result.final_response, "Nothing is due today, sir.")
        self.assertEqual(result.tool_results, [])
        self.assertIsNone(result.error)
        self.assertEqual(len(generator.calls), 1)
        self.assertEqual(self.channel.replies, ["Nothing is due today, sir."])
        self.tool_client.invoke.assert_not_awaited()

    async def test_system_prompt_has_persona_tools_and_frozen_time(self):
        generator = ScriptedGenerator(["ok"])
        await self.make_agent(generator).process_message("hi", "u1", self.channel)

        history, system_prompt = generator.calls[0]
        self.assertIn("Mr. Stevens", system_prompt)
        self.assertIn("Current date and time: 2024-06-03T09:00:00+00:00", system_prompt)
        self.assertIn("listTodos: List todos with optional filtering", system_prompt)
        self.assertIn("Todo Management", system_prompt)
        self.assertIn("TOOL_CALL:", system_prompt)
        self.assertEqual([(t.role, t.content) for t in history], [(Role.USER, "hi")])

    async def test_system_prompt_override_replaces_rendered_prompt(self):
        generator = ScriptedGenerator(["ok"])
        await self.make_agent(generator).process_message(
            "hi", "u1", self.channel, system_prompt="You are terse.")

        self.assertEqual(generator.calls[0][1], "You are terse.")

    # ------------------------------------------------------------------
    # Tool rounds
    # ------------------------------------------------------------------

    async def test_tool_call_is_resolved_invoked_and_folded_into_history(self):
        generator = ScriptedGenerator([LIST_CALL, "You have no work todos."])
        agent = self.make_agent(generator)

        result = await agent.process_message("show work todos", "u1", self.channel)

        self.assertTrue(result.success)
        self.tool_client.invoke.assert_awaited_once_with(
            "eddo_todo_listTodos", {"context": "work"}, CallerContext(user_id="u1", username="user-u1"))
        self.assertEqual(len(result.tool_results), 1)
        self.assertEqual(result.tool_results[0].tool_name, "listTodos")
        self.assertEqual(result.tool_results[0].requested_name, "list_todos")
        self.assertEqual(result.iterations, 2)

        second_history, _ = generator.calls[1]
        self.assertEqual([t.role for t in second_history], [Role.USER, Role.ASSISTANT, Role.USER])
        self.assertEqual(second_history[1].content, LIST_CALL)
        self.assertEqual(
            second_history[2].content,
            'Tool "listTodos" executed successfully. Result: {"todos": []}')

    async def test_status_message_is_sent_before_tool_runs(self):
        generator = ScriptedGenerator([
            "STATUS: Checking your list...\n" + LIST_CALL,
            "All clear.",
        ])
        await self.make_agent(generator).process_message("anything due?", "u1", self.channel)
        self.assertEqual(self.channel.replies, ["Checking your list...", "All clear."])
        self.assertEqual(self.channel.typing_count, 2)

    async def test_validation_failure_is_recoverable(self):
        self.tool_client.invoke.return_value = ToolFailure(
            category=FailureCategory.VALIDATION, message="title is required")
        generator = ScriptedGenerator([
            'TOOL_CALL: {"name": "createTodo", "parameters": {}}',
            "What should the todo be called?",
        ])

        result = await self.make_agent(generator).process_message("add a todo", "u1", self.channel)

        self.assertTrue(result.success)
        self.assertEqual(result.final_response, "What should the todo be called?")
        self.assertEqual(len(result.tool_results), 1)
        self.assertTrue(result.tool_results[0].is_error)
        second_history, _ = generator.calls[1]
        self.assertEqual(second_history[-1].content, 'Tool "createTodo" failed: validation: title is required')

    async def test_transport_failure_is_recoverable(self):
        self.tool_client.invoke.return_value = ToolFailure(
            category=FailureCategory.TRANSPORT, message="timed out", timed_out=True)
        generator = ScriptedGenerator([LIST_CALL, "The todo server is not answering right now."])
        result = await self.make_agent(generator).process_message("list", "u1", self.channel)
        self.assertTrue(result.success)
        self.assertTrue(result.tool_results[0].is_error)

    async def test_raising_tool_client_becomes_recoverable_failure(self):
        self.tool_client.invoke.side_effect = ConnectionError("refused")
        generator = ScriptedGenerator([LIST_CALL, "I could not reach your todo list."])

        result = await self.make_agent(generator).process_message("list", "u1", self.channel)

        self.assertTrue(result.success)
        self.assertEqual(result.tool_results[0].result.category, FailureCategory.TRANSPORT)
        self.assertEqual(
            generator.calls[1][0][-1].content, 'Tool "listTodos" failed: transport: ConnectionError: refused')
        self.assertEqual(self.channel.replies, ["I could not reach your todo list."])

    async def test_offline_fallback_action_is_not_sent_to_server(self):
        registry = ActionRegistry(DEFAULT_TABLES, None)
        generator = ScriptedGenerator([LIST_CALL, "The todo server is offline."])

        result = await self.make_agent(generator, registry=registry).process_message("list", "u1", self.channel)

        self.assertTrue(result.success)
        self.tool_client.invoke.assert_not_awaited()
        self.assertEqual(result.tool_results[0].result.category, FailureCategory.TRANSPORT)
        self.assertEqual(result.tool_results[0].result.message, SERVER_UNAVAILABLE_MESSAGE)

    async def test_typing_indicator_is_refreshed_during_slow_tool_calls(self):
        async def slow_invoke(*args):
            await asyncio.sleep(0.2)
            return ToolSuccess(blocks=["{}"], data={})
        self.tool_client.invoke.side_effect = slow_invoke
        generator = ScriptedGenerator([LIST_CALL, "Done."])

        await self.make_agent(generator, typing_interval=0.02).process_message("list", "u1", self.channel)

        self.assertGreater(self.channel.typing_count, 4)

    # ------------------------------------------------------------------
    # Fatal failures
    # ------------------------------------------------------------------

    async def test_unknown_action_fails_the_run(self):
        generator = ScriptedGenerator(['TOOL_CALL: {"name": "launchRocket", "parameters": {}}'])

        result = await self.make_agent(generator).process_message("launch", "u1", self.channel)

        self.assertFalse(result.success)
        self.assertIsInstance(result.error, UnknownActionError)
        self.assertEqual(result.error_category, "tool_resolution")
        self.assertEqual(result.tool_results, [])
        self.assertEqual(self.channel.replies, [FAILURE_REPLY])
        self.tool_client.invoke.assert_not_awaited()

    async def test_model_transport_error_fails_the_run(self):
        chat_llm = MagicMock(spec=BaseChatModel)
        chat_llm.ainvoke = AsyncMock(side_effect=ConnectionError("connection reset"))
        generator = ChatModelGenerator(chat_llm, model_name="test-model")

        result = await self.make_agent(generator).process_message("hi", "u1", self.channel)

        self.assertFalse(result.success)
        self.assertIsInstance(result.error, ModelTransportError)
        self.assertIsInstance(result.error.cause, ConnectionError)
        self.assertIsNone(result.final_response)
        self.assertEqual(self.channel.replies, [FAILURE_REPLY])

    async def test_raw_generator_exception_is_reported_as_model_transport(self):
        class BrokenGenerator:
            model_name = "broken"

            async def generate(self, history, system_prompt):
                raise RuntimeError("httpx.ReadError: connection closed")

        result = await self.make_agent(BrokenGenerator()).process_message("hi", "u1", self.channel)

        self.assertFalse(result.success)
        self.assertIsInstance(result.error, ModelTransportError)
        self.assertIsInstance(result.error.cause, RuntimeError)
        self.assertEqual(result.error_category, "model_transport")
        self.assertEqual(self.channel.replies, [FAILURE_REPLY])

    async def test_reply_delivery_failure_does_not_break_run(self):
        channel = RecordingChannel()
        channel.reply = AsyncMock(side_effect=RuntimeError("chat is down"))
        result = await self.make_agent(ScriptedGenerator(["fine"])).process_message("hi", "u1", channel)
        self.assertTrue(result.success)

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    async def test_iteration_cap_returns_partial_output(self):
        generator = ScriptedGenerator(["STATUS: Still looking...\n" + LIST_CALL] * 5)
        agent = self.make_agent(generator, max_iterations=3)

        result = await agent.process_message("find it", "u1", self.channel)

        self.assertFalse(result.success)
        self.assertIsInstance(result.error, BudgetExceededError)
        self.assertEqual(result.error.kind, "iterations")
        self.assertEqual(result.final_response, "Still looking...")
        self.assertEqual(len(result.tool_results), 3)
        self.assertEqual(len(generator.calls), 3)
        self.assertEqual(self.channel.replies[-1], "Still looking...")

    async def test_iteration_cap_without_text_uses_last_history_entry(self):
        generator = ScriptedGenerator([LIST_CALL] * 3)
        result = await self.make_agent(generator, max_iterations=2).process_message("find it", "u1", self.channel)
        self.assertFalse(result.success)
        self.assertEqual(result.final_response, format_tool_result("listTodos", self.tool_client.invoke.return_value))

    async def test_time_budget_returns_without_raising(self):
        class SlowGenerator:
            model_name = "slow"

            async def generate(self, history, system_prompt):
                await asyncio.sleep(5)
                return "too late"

        agent = self.make_agent(SlowGenerator(), execution_budget_seconds=0.05)
        result = await agent.process_message("hi", "u1", self.channel)

        self.assertFalse(result.success)
        self.assertIsInstance(result.error, BudgetExceededError)
        self.assertEqual(result.error.kind, "time")
        self.assertEqual(result.error_category, "budget_exceeded")
        self.assertTrue(result.final_response)

    # ------------------------------------------------------------------
    # Construction and state export
    # ------------------------------------------------------------------

    async def test_from_config_and_state_export(self):
        with tempfile.TemporaryDirectory() as tmp:
            config = AgentConfig(persona=PersonaId.ZenMaster, max_iterations=4, state_log_dir=tmp)
            agent = ConversationAgent.from_config(
                config,
                generator=ScriptedGenerator([LIST_CALL, "Breathe. Nothing is due."]),
                tool_client=self.tool_client,
                registry=make_registry(),
                clock=self.clock,
            )
            self.assertEqual(agent.max_iterations, 4)
            self.assertIsInstance(agent.exporter, AgentStateExporter)

            result = await agent.process_message("what's due", "user/7", self.channel)

            self.assertTrue(result.success)
            files = list(Path(tmp).glob("agent_state_user_7_*.yaml"))
            self.assertEqual(len(files), 1)
            dumped = yaml.safe_load(files[0].read_text(encoding="utf-8"))
            self.assertEqual(dumped["iterations"], 2)
            self.assertTrue(dumped["state"]["done"])
            self.assertEqual(dumped["state"]["tool_results"][0]["tool_name"], "listTodos")
            self.assertIn("Zen Master", dumped["state"]["system_prompt"])

    def test_status_reports_tools(self):
        agent = self.make_agent(ScriptedGenerator([]))
        status = agent.status()
        self.assertEqual(status["tools_available"], 2)
        self.assertEqual(status["persona"], "butler")


if __name__ == '__main__':
    unittest.main()
