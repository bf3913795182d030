from typing import Any

from langchain_core.callbacks import AsyncCallbackManagerForLLMRun, CallbackManagerForLLMRun
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from openai import AsyncAzureOpenAI, AsyncOpenAI
from pydantic import ConfigDict, Field

from eddo_agent.config.llm import AzureOpenAIChatConfig, OpenAIChatConfig, DeepSeekChatConfig


def _to_openai_message(message: BaseMessage) -> dict:
    if isinstance(message, SystemMessage):
        role = "system"
    elif isinstance(message, AIMessage):
        role = "assistant"
    elif isinstance(message, HumanMessage):
        role = "user"
    else:
        raise ValueError(f"Unsupported message type: {type(message).__name__}")
    return {"role": role, "content": message.content}


class OpenAIChatLLM(BaseChatModel):
    """Chat model backed by the OpenAI (or Azure OpenAI) async client.

    Only the async path is implemented; the agent never calls the model synchronously.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, protected_namespaces=())

    client: Any = Field(exclude=True)
    model_name: str
    chat_params: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_config(cls, config: AzureOpenAIChatConfig | OpenAIChatConfig | DeepSeekChatConfig) -> 'OpenAIChatLLM':
        if isinstance(config, AzureOpenAIChatConfig):
            client = AsyncAzureOpenAI(
                azure_endpoint=config.endpoint,
                azure_deployment=config.deployment,
                api_version=config.api_version,
                api_key=config.api_key,
                timeout=config.timeout,
            )
        else:
            client = AsyncOpenAI(
                base_url=config.endpoint,
                api_key=config.api_key,
                timeout=config.timeout,
            )
        return cls(client=client, model_name=config.model, chat_params=config.chat_params())

    @property
    def _llm_type(self) -> str:
        return "eddo-openai"

    def _generate(
            self,
            messages: list[BaseMessage],
            stop: list[str] | None = None,
            run_manager: CallbackManagerForLLMRun | None = None,
            **kwargs: Any,
    ) -> ChatResult:
        raise NotImplementedError("OpenAIChatLLM only supports async invocation")

    async def _agenerate(
            self,
            messages: list[BaseMessage],
            stop: list[str] | None = None,
            run_manager: AsyncCallbackManagerForLLMRun | None = None,
            **kwargs: Any,
    ) -> ChatResult:
        params = {**self.chat_params, **kwargs}
        if stop:
            params['stop'] = stop
        resp = await self.client.chat.completions.create(
            messages=[_to_openai_message(m) for m in messages],
            model=self.model_name,
            **params,
        )
        choice = resp.choices[0]
        usage = resp.usage.model_dump() if resp.usage is not None else {}
        return ChatResult(
            generations=[ChatGeneration(
                message=AIMessage(content=choice.message.content or ""),
                generation_info={"finish_reason": choice.finish_reason},
            )],
            llm_output={"model_name": resp.model, "token_usage": usage},
        )
