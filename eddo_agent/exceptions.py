class EddoAgentError(Exception):
    """Base exception for Eddo agent errors"""
    category: str = "internal"

    def __init__(self, msg: str):
        self.msg = msg

    def __str__(self):
        return self.msg


class LLMError(EddoAgentError):
    pass


class NoChatLLMConfigError(LLMError):
    def __init__(self, msg: str | None = None):
        super().__init__(msg or "Can not find available Chat LLM Config")


class ModelTransportError(LLMError):
    """Raised when the language model call fails (network, timeout, provider error)"""
    category = "model_transport"

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Model call failed: {type(cause).__name__}: {cause}")


class ActionError(EddoAgentError):
    """Base exception for action-resolution errors"""
    pass


class UnknownActionError(ActionError):
    """Raised when an action name can not be mapped to any canonical action"""
    category = "tool_resolution"

    def __init__(self, action_name: str, known_actions: list[str]):
        self.action_name = action_name
        self.known_actions = known_actions
        super().__init__(
            f"Unknown action '{action_name}'.\n"
            f"Known actions: {', '.join(known_actions) or '(none)'}"
        )


class ToolProviderUnavailableError(EddoAgentError):
    """Raised when the remote tool provider can not be reached for discovery"""
    category = "transport"

    def __init__(self, server_url: str, reason: str):
        self.server_url = server_url
        self.reason = reason
        super().__init__(f"Tool provider at {server_url} is unavailable: {reason}")


class BudgetExceededError(EddoAgentError):
    """Attached to a run result when the iteration cap or the time budget is hit"""
    category = "budget_exceeded"

    def __init__(self, kind: str, limit: float):
        self.kind = kind
        self.limit = limit
        if kind == "iterations":
            super().__init__(f"Exceeded maximum iterations ({int(limit)})")
        else:
            super().__init__(f"Exceeded execution budget of {limit:g}s")


class ReplayError(EddoAgentError):
    """Base exception for interaction replay errors"""
    category = "replay"


class ReplayMissError(ReplayError):
    """Raised in playback mode when no recorded interaction matches the request"""
    category = "replay_miss"

    def __init__(self, request_hash: str, cursor: int, test_name: str):
        self.request_hash = request_hash
        self.cursor = cursor
        self.test_name = test_name
        super().__init__(
            f"No matching interaction in cassette '{test_name}' at index {cursor} "
            f"(hash {request_hash})"
        )


class CassetteNotFoundError(ReplayError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Cassette not found for playback: {path}")


class NoCassetteLoadedError(ReplayError):
    def __init__(self):
        super().__init__("No cassette loaded. Call load_cassette() first.")
