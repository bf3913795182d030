from pydantic import BaseModel, Field
from typing_extensions import Annotated

from eddo_agent.config.agent import AgentConfig
from eddo_agent.config.llm import ChatConfig
from eddo_agent.config.tool_provider import ToolProviderConfig
from eddo_agent.config.vcr import ReplayConfig


class EddoAgentConfig(BaseModel):
    chat_llm: Annotated[ChatConfig | None, Field(default=None)]
    tool_provider: Annotated[ToolProviderConfig, Field(default_factory=ToolProviderConfig)]
    agent: Annotated[AgentConfig, Field(default_factory=AgentConfig)]
    replay: Annotated[ReplayConfig, Field(default_factory=ReplayConfig)]
