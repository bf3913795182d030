import logging
from typing import Protocol, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from eddo_agent.exceptions import ModelTransportError
from eddo_agent.types import ConversationTurn, Role

logger = logging.getLogger(__name__)


class ResponseGenerator(Protocol):
    """The model-call boundary: prompt plus history in, text out."""
    model_name: str

    async def generate(self, history: Sequence[ConversationTurn], system_prompt: str) -> str: ...


def to_chat_messages(history: Sequence[ConversationTurn], system_prompt: str) -> list[BaseMessage]:
    messages: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    for turn in history:
        if turn.role == Role.ASSISTANT:
            messages.append(AIMessage(content=turn.content))
        else:
            messages.append(HumanMessage(content=turn.content))
    return messages


class ChatModelGenerator:
    """ResponseGenerator over a langchain chat model.

    Every failure of the underlying call is reported as ModelTransportError;
    retrying is left to the client configured on the model.
    """

    def __init__(self, chat_llm: BaseChatModel, model_name: str | None = None):
        self.chat_llm = chat_llm
        self.model_name = model_name or getattr(chat_llm, "model_name", None) or chat_llm._llm_type

    async def generate(self, history: Sequence[ConversationTurn], system_prompt: str) -> str:
        try:
            response = await self.chat_llm.ainvoke(to_chat_messages(history, system_prompt))
        except Exception as e:
            logger.error(f"Model call to {self.model_name} failed: {e}")
            raise ModelTransportError(e) from e
        content = response.content
        if isinstance(content, list):
            content = "".join(part if isinstance(part, str) else part.get("text", "") for part in content)
        return content
