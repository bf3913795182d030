import asyncio
import logging
import sys
from argparse import ArgumentParser

from pyaml_env import parse_config as parse_config_with_env

from eddo_agent.actions import ActionRegistry
from eddo_agent.agent import ConsoleChannel, ConversationAgent
from eddo_agent.config import EddoAgentConfig
from eddo_agent.llm import ChatLLMFactory, ChatModelGenerator, ResponseGenerator
from eddo_agent.tools import MCPToolClient
from eddo_agent.vcr import CachedResponseGenerator, CassetteManager, LogicalClock

logger = logging.getLogger(__name__)


def load_config(config_path: str) -> EddoAgentConfig:
    with open(config_path, 'r', encoding='utf-8') as f:
        config = parse_config_with_env(data=f, tag=None)
    return EddoAgentConfig.model_validate(config or {})


async def run(config_path: str, verbosity: int | None, message: str, user_id: str) -> int:
    if not verbosity:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG
    logging.basicConfig(level=level)
    for noisy in ('httpx', 'openai', 'mcp'):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    config = load_config(config_path)
    logger.debug(f"Loaded config: {config}")

    clock = LogicalClock()
    generator: ResponseGenerator = ChatModelGenerator(ChatLLMFactory().get(config.chat_llm))
    manager: CassetteManager | None = None
    if config.replay.cassette:
        manager = CassetteManager.from_config(config.replay, clock)
        manager.load_cassette(config.replay.cassette)
        generator = CachedResponseGenerator(generator, manager)

    try:
        tool_client = MCPToolClient.from_config(config.tool_provider)
        registry = await ActionRegistry.build(tool_client)
        agent = ConversationAgent.from_config(
            config.agent,
            generator=generator,
            tool_client=tool_client,
            registry=registry,
            clock=clock,
        )
        result = await agent.process_message(message, user_id, ConsoleChannel(api_key=config.tool_provider.api_key))
    finally:
        if manager is not None:
            manager.eject_cassette()

    if not result.success:
        logger.warning(f"Run failed ({result.error_category}): {result.error}")
        return 1
    return 0


def main():
    parser = ArgumentParser('Eddo Agent')
    parser.add_argument('--config', required=True, help="Path to the configuration file")
    parser.add_argument('-v', action='count', help="Verbosity level. -v for INFO, -vv for DEBUG")
    parser.add_argument('--user', default='cli', help="User id the message is sent as")
    parser.add_argument('message', help="Message to send to the agent")
    ns = parser.parse_args()
    sys.exit(asyncio.run(run(ns.config, ns.v, ns.message, ns.user)))


if __name__ == "__main__":
    main()
