from .factory import ChatLLMFactory
from .generator import ResponseGenerator, ChatModelGenerator, to_chat_messages
