"""Parsing of model responses into a conversational answer or a tool invocation.

A tool call is written by the model on its own line::

    STATUS: Looking up your todos...
    TOOL_CALL: {"name": "listTodos", "parameters": {"context": "work"}}

Anything else is a conversational answer.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

TOOL_CALL_MARKER = "TOOL_CALL:"
STATUS_MARKER = "STATUS:"

_TOOL_CALL_LINE = re.compile(r"^\s*TOOL_CALL:\s*", re.MULTILINE)
_STATUS_LINE = re.compile(r"^\s*STATUS:\s*(.+?)\s*$", re.MULTILINE)
_DECODER = json.JSONDecoder()


@dataclass(frozen=True)
class Conversational:
    text: str


@dataclass(frozen=True)
class ToolInvocation:
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    status: str | None = None
    text: str = ""


ModelDirective = Conversational | ToolInvocation


def extract_status_message(response: str) -> str | None:
    match = _STATUS_LINE.search(response)
    return match.group(1) if match else None


def extract_conversational_part(response: str) -> str:
    """The response without TOOL_CALL and STATUS lines."""
    lines = [
        line for line in response.splitlines()
        if not line.strip().startswith((TOOL_CALL_MARKER, STATUS_MARKER))
    ]
    return "\n".join(lines).strip()


def _decode_tool_call(response: str) -> dict | None:
    marker = _TOOL_CALL_LINE.search(response)
    if marker is None:
        return None
    start = response.find("{", marker.end())
    if start < 0:
        logger.warning("TOOL_CALL marker without a JSON object, treating response as conversational")
        return None
    try:
        payload, _ = _DECODER.raw_decode(response, start)
    except json.JSONDecodeError as e:
        logger.warning(f"Malformed TOOL_CALL JSON, treating response as conversational: {e}")
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def parse_response(response: str) -> ModelDirective:
    payload = _decode_tool_call(response)
    if payload is None:
        return Conversational(text=response)
    name = payload.get("name")
    args = payload.get("parameters", payload.get("arguments", {}))
    if not isinstance(name, str) or not name.strip():
        logger.warning(f"TOOL_CALL without a tool name: {payload}")
        return Conversational(text=response)
    if args is None:
        args = {}
    if not isinstance(args, dict):
        logger.warning(f"TOOL_CALL parameters for {name} are not an object: {args!r}")
        return Conversational(text=response)
    return ToolInvocation(
        name=name.strip(),
        args=args,
        status=extract_status_message(response),
        text=extract_conversational_part(response),
    )
