import os
from enum import Enum

from pydantic import BaseModel, Field
from typing_extensions import Annotated, Literal


class ChatLLMType(str, Enum):
    AzureOpenAI = "azure_openai"
    OpenAI = "openai"
    DeepSeek = "deepseek"


class OpenAIChatConfig(BaseModel):
    type: Literal[ChatLLMType.OpenAI]
    endpoint: Annotated[str | None, Field(
        description="The OpenAI compatible endpoint URL, None for the public API",
        default=None,
    )]
    api_key: Annotated[str, Field(
        description="The API key for authentication",
        default_factory=lambda: os.environ["OPENAI_API_KEY"],
    )]
    timeout: Annotated[float, Field(
        description="Request timeout in seconds",
        default=60.0,
    )]
    model: Annotated[str, Field(
        description="The model identifier to use for chat completions",
        default_factory=lambda: os.environ.get("LLM_MODEL", "gpt-4o-mini"),
    )]
    max_tokens: Annotated[int | None, Field(
        description="The maximum number of tokens to generate in the response",
        default=2000,
    )]
    temperature: Annotated[float | None, Field(
        description="Controls randomness in the model's output (0.0 to 2.0)",
        default=0.0,
    )]
    top_p: Annotated[float | None, Field(
        description="Controls diversity via nucleus sampling (0.0 to 1.0)",
        default=None,
    )]

    def chat_params(self) -> dict:
        """Build kwargs for chat completion API calls, omitting unset values."""
        params = {
            'max_completion_tokens': self.max_tokens,
            'temperature': self.temperature,
            'top_p': self.top_p,
        }
        return {k: v for k, v in params.items() if v is not None}


class AzureOpenAIChatConfig(OpenAIChatConfig):
    type: Literal[ChatLLMType.AzureOpenAI]
    endpoint: Annotated[str, Field(
        description="The Azure OpenAI resource endpoint",
    )]
    deployment: Annotated[str, Field(
        description="The deployment name for the chat model",
    )]
    api_key: Annotated[str | None, Field(
        description="The API key for authentication",
        default_factory=lambda: os.environ.get("AZURE_OPENAI_API_KEY"),
    )]
    api_version: Annotated[str, Field(
        description="The Azure OpenAI API version to use",
    )]


class DeepSeekChatConfig(OpenAIChatConfig):
    type: Literal[ChatLLMType.DeepSeek]
    api_key: Annotated[str, Field(
        description="The API key for authentication",
        default_factory=lambda: os.environ["DEEPSEEK_API_KEY"],
    )]
    endpoint: Annotated[str, Field(
        description="The DeepSeek endpoint URL",
        default="https://api.deepseek.com",
    )]

    def chat_params(self) -> dict:
        params = super().chat_params()
        # DeepSeek still expects the legacy parameter name
        if 'max_completion_tokens' in params:
            params['max_tokens'] = params.pop('max_completion_tokens')
        return params


ChatConfig = Annotated[AzureOpenAIChatConfig | OpenAIChatConfig | DeepSeekChatConfig, Field(
    description="Configuration for the chat completion model",
    discriminator="type",
)]
