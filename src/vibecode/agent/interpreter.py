"""Classify one chat-completion message into a tool round or a final answer."""

from __future__ import annotations

import json
import re

from vibecode.agent.models import (
    FinalResponse,
    InlineRound,
    StructuredRound,
    ToolCall,
    ToolInvocationBatch,
)
from vibecode.agent.tools import TOOL_NAMES

INLINE_TOOL_PATTERN = re.compile(
    r"<(?P<name>[A-Za-z_][\w-]*)>\s*(?P<arguments>\{.*?\})\s*</(?P=name)>",
    re.DOTALL,
)
TASK_SUMMARY_PATTERN = re.compile(r"<task_summary>.*?</task_summary>", re.DOTALL)


def classify_response(message: dict[str, object]) -> ToolInvocationBatch:
    """Structured tool calls win over inline tags; anything else is final text."""
    content = message_text(message.get("content"))

    structured = structured_tool_calls(message.get("tool_calls"))
    if structured:
        return StructuredRound(content=content, calls=structured)

    inline = inline_tool_calls(content)
    if inline:
        return InlineRound(content=content, calls=inline)
    return FinalResponse(text=content)


def structured_tool_calls(raw_calls: object) -> tuple[ToolCall, ...]:
    if not isinstance(raw_calls, list):
        return ()

    calls: list[ToolCall] = []
    for index, raw_call in enumerate(raw_calls):
        if not isinstance(raw_call, dict):
            continue
        function = raw_call.get("function")
        if not isinstance(function, dict):
            continue
        name = function.get("name")
        if not isinstance(name, str) or not name:
            continue
        call_id = raw_call.get("id")
        if not isinstance(call_id, str) or not call_id:
            call_id = f"call_{index}_{name}"
        calls.append(
            ToolCall(id=call_id, name=name, arguments=_arguments_text(function.get("arguments")))
        )
    return tuple(calls)


def inline_tool_calls(content: str) -> tuple[ToolCall, ...]:
    """Extract ``<toolName>{...}</toolName>`` invocations of registered tools."""
    calls: list[ToolCall] = []
    for match in INLINE_TOOL_PATTERN.finditer(content):
        name = match.group("name")
        if name not in TOOL_NAMES:
            continue
        calls.append(
            ToolCall(
                id=f"inline_{len(calls)}_{name}",
                name=name,
                arguments=match.group("arguments"),
            )
        )
    return tuple(calls)


def extract_summary(text: str) -> str | None:
    match = TASK_SUMMARY_PATTERN.search(text)
    return match.group(0) if match else None


def message_text(content: object) -> str:
    if isinstance(content, str):
        return content
    # Some providers return content as a list of typed parts.
    if isinstance(content, list):
        return "".join(
            part["text"]
            for part in content
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
    return ""


def _arguments_text(arguments: object) -> str:
    if isinstance(arguments, str):
        return arguments
    if isinstance(arguments, dict):
        return json.dumps(arguments)
    return "{}"
