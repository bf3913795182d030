from langchain_core.language_models import BaseChatModel

from eddo_agent.config.llm import ChatConfig, AzureOpenAIChatConfig, OpenAIChatConfig, DeepSeekChatConfig
from eddo_agent.exceptions import NoChatLLMConfigError


class ChatLLMFactory:
    def __init__(self, default: BaseChatModel | None = None):
        self.default = default

    @classmethod
    def build(cls, config: ChatConfig) -> BaseChatModel:
        if isinstance(config, AzureOpenAIChatConfig | OpenAIChatConfig | DeepSeekChatConfig):
            from .oai import OpenAIChatLLM
            return OpenAIChatLLM.from_config(config)
        raise NoChatLLMConfigError(f'Unexpected Config: {config}')

    def get(self, config: ChatConfig | None = None) -> BaseChatModel:
        if config:
            return self.build(config)
        if self.default:
            return self.default
        raise NoChatLLMConfigError()
