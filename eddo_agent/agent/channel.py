import logging
from typing import Protocol

from eddo_agent.tools.types import CallerContext


class AgentChannel(Protocol):
    """Chat transport a conversation is delivered through."""

    async def reply(self, content: str) -> None:
        """Send a message to the user."""
        ...

    async def typing(self) -> None:
        """Show a typing indicator, if the transport has one."""
        pass

    def caller_context(self, user_id: str) -> CallerContext:
        """Identity forwarded to the tool server for this user."""
        return CallerContext(user_id=user_id)


class LoggingChannel(AgentChannel):
    def __init__(self, logger: logging.Logger | None = None) -> None:
        super().__init__()
        self.logger = logger or logging.getLogger(__name__)
        self.replies: list[str] = []

    async def reply(self, content: str) -> None:
        self.replies.append(content)
        self.logger.info(f"Reply: {content}")


class ConsoleChannel(AgentChannel):
    def __init__(self, username: str | None = None, api_key: str | None = None) -> None:
        super().__init__()
        self.username = username
        self.api_key = api_key

    async def reply(self, content: str) -> None:
        print(content)

    def caller_context(self, user_id: str) -> CallerContext:
        return CallerContext(user_id=user_id, username=self.username, api_key=self.api_key)
