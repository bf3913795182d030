"""Cassette file format and request hashing."""

import hashlib
import json
import re
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated

CASSETTE_VERSION = 1
STORED_MESSAGE_LIMIT = 200

_ISO_DATETIME = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?")
_CURRENT_DATE_LINE = re.compile(r"Current date and time:.*")
_WEEKDAY = re.compile(r"\b(?:Monday|Tuesday|Wednesday|Thursday|Friday|Saturday|Sunday)\b")
_LOCALHOST_PORT = re.compile(r"(localhost|127\.0\.0\.1):\d+")
_VOLATILE_KEYS = r"(?:timestamp|execution_time|id|_id|_rev)"
_VOLATILE_FIELD = re.compile(r'("' + _VOLATILE_KEYS + r'"\s*:\s*)("(?:[^"\\]|\\.)*"|-?\d+(?:\.\d+)?)')
_ESCAPED_VOLATILE_FIELD = re.compile(r'(\\"' + _VOLATILE_KEYS + r'\\"\s*:\s*)(\\"(?:[^"\\]|\\[^"])*\\"|-?\d+(?:\.\d+)?)')
_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_]")


class CassetteModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


class RecordedMessage(CassetteModel):
    role: str
    content: str


class InteractionRequest(CassetteModel):
    model: str
    system_prompt: str
    messages: list[RecordedMessage]


class InteractionMetadata(CassetteModel):
    recorded_at: str
    response_time_ms: float


class LLMInteraction(CassetteModel):
    request_hash: str
    request: InteractionRequest
    response: str
    metadata: InteractionMetadata


class Cassette(CassetteModel):
    version: Annotated[int, Field(default=CASSETTE_VERSION)]
    test_name: str
    created_at: str
    frozen_time: str
    interactions: Annotated[list[LLMInteraction], Field(default_factory=list)]


def normalize_system_prompt(prompt: str) -> str:
    """Blank out the parts of a system prompt that change from run to run."""
    prompt = _CURRENT_DATE_LINE.sub("Current date and time: [NORMALIZED]", prompt)
    prompt = _ISO_DATETIME.sub("[ISO_DATE]", prompt)
    prompt = _WEEKDAY.sub("[DAY]", prompt)
    return _LOCALHOST_PORT.sub(r"\1:[PORT]", prompt)


def normalize_message_content(content: str) -> str:
    content = _ISO_DATETIME.sub("[NORMALIZED]", content)
    content = _VOLATILE_FIELD.sub(r'\1"[NORMALIZED]"', content)
    return _ESCAPED_VOLATILE_FIELD.sub(r'\1\\"[NORMALIZED]\\"', content)


def compute_request_hash(model: str, system_prompt: str, messages: Sequence[Mapping[str, Any]]) -> str:
    payload = {
        "model": model,
        "systemPrompt": normalize_system_prompt(system_prompt),
        "messages": [
            {"role": m["role"], "content": normalize_message_content(m["content"])}
            for m in messages
        ],
    }
    encoded = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()[:16]


def truncate_for_storage(content: str, limit: int = STORED_MESSAGE_LIMIT) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + "..."


def sanitize_cassette_name(name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("_", name)


def load_cassette_file(path: Path) -> Cassette:
    with open(path, "r", encoding="utf-8") as fh:
        return Cassette.model_validate(yaml.safe_load(fh))


def dump_cassette_file(cassette: Cassette, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(
            cassette.model_dump(by_alias=True, mode="json"),
            fh,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )
