from .cassette import (
    Cassette,
    LLMInteraction,
    CASSETTE_VERSION,
    compute_request_hash,
    normalize_message_content,
    normalize_system_prompt,
    sanitize_cassette_name,
)
from .clock import LogicalClock
from .manager import CassetteManager, CachedResponseGenerator
