from .agent import AgentConfig, PersonaId
from .eddo_agent import EddoAgentConfig
from .llm import ChatConfig, ChatLLMType, OpenAIChatConfig, AzureOpenAIChatConfig, DeepSeekChatConfig
from .tool_provider import ToolProviderConfig
from .vcr import ReplayConfig, ReplayMode
