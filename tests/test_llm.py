"""Tests for the model boundary."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from eddo_agent.config.llm import DeepSeekChatConfig, OpenAIChatConfig
from eddo_agent.exceptions import ModelTransportError, NoChatLLMConfigError
from eddo_agent.llm import ChatLLMFactory, ChatModelGenerator, to_chat_messages
from eddo_agent.llm.oai import OpenAIChatLLM
from eddo_agent.types import ConversationTurn, Role

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_history_maps_to_chat_messages():
    history = [
        ConversationTurn(Role.USER, "hi", NOW),
        ConversationTurn(Role.ASSISTANT, "hello", NOW),
        ConversationTurn(Role.USER, 'Tool "listTodos" executed successfully. Result: []', NOW),
    ]
    messages = to_chat_messages(history, "system")
    assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage, HumanMessage]
    assert messages[0].content == "system"


@pytest.mark.asyncio
async def test_generator_returns_model_text():
    generator = ChatModelGenerator(FakeListChatModel(responses=["first", "second"]))
    history = [ConversationTurn(Role.USER, "hi", NOW)]
    assert await generator.generate(history, "system") == "first"
    assert await generator.generate(history, "system") == "second"
    assert generator.model_name == "fake-list-chat-model"


@pytest.mark.asyncio
async def test_generator_wraps_failures():
    chat_llm = MagicMock()
    chat_llm.ainvoke = AsyncMock(side_effect=TimeoutError("read timeout"))
    generator = ChatModelGenerator(chat_llm, model_name="m")
    with pytest.raises(ModelTransportError) as exc_info:
        await generator.generate([], "system")
    assert isinstance(exc_info.value.cause, TimeoutError)
    assert exc_info.value.category == "model_transport"


@pytest.mark.asyncio
async def test_openai_chat_llm_sends_roles_and_params():
    completion = SimpleNamespace(
        model="gpt-test",
        usage=None,
        choices=[SimpleNamespace(message=SimpleNamespace(content="answer"), finish_reason="stop")],
    )
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion)
    chat_llm = OpenAIChatLLM(client=client, model_name="gpt-test", chat_params={"temperature": 0.0})

    generator = ChatModelGenerator(chat_llm)
    reply = await generator.generate([ConversationTurn(Role.USER, "hi", NOW)], "be brief")

    assert reply == "answer"
    assert generator.model_name == "gpt-test"
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "gpt-test"
    assert kwargs["temperature"] == 0.0
    assert kwargs["messages"] == [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "hi"},
    ]


def test_factory_builds_openai_model():
    config = OpenAIChatConfig(type="openai", api_key="sk-test", model="gpt-test", max_tokens=100)
    chat_llm = ChatLLMFactory.build(config)
    assert isinstance(chat_llm, OpenAIChatLLM)
    assert chat_llm.model_name == "gpt-test"
    assert chat_llm.chat_params == {"max_completion_tokens": 100, "temperature": 0.0}


def test_deepseek_uses_legacy_token_parameter():
    config = DeepSeekChatConfig(type="deepseek", api_key="sk-test", model="deepseek-chat")
    assert "max_tokens" in config.chat_params()
    assert "max_completion_tokens" not in config.chat_params()


def test_factory_without_config_or_default():
    with pytest.raises(NoChatLLMConfigError):
        ChatLLMFactory().get(None)
