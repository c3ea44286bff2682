"""Data models used by the tool-calling agent loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

Role = Literal["system", "user", "assistant", "tool"]
JobStatus = Literal["pending", "completed", "failed"]
LoopTermination = Literal["final", "exhausted"]


@dataclass(slots=True)
class ToolCall:
    """A model request to invoke one named tool with JSON-encoded arguments."""

    id: str
    name: str
    arguments: str = "{}"

    def to_payload(self) -> dict[str, object]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(slots=True)
class Message:
    """One turn in the chat history."""

    role: Role
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [call.to_payload() for call in self.tool_calls]
        if self.role == "tool":
            payload["tool_call_id"] = self.tool_call_id
        return payload


@dataclass(slots=True, frozen=True)
class ToolDefinition:
    """Static tool schema advertised to the model."""

    name: str
    description: str
    parameters: dict[str, object]

    def to_schema(self) -> dict[str, object]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(slots=True, frozen=True)
class TerminalArgs:
    command: str


@dataclass(slots=True, frozen=True)
class FileEntry:
    path: str
    content: str


@dataclass(slots=True, frozen=True)
class WriteFilesArgs:
    files: tuple[FileEntry, ...]


@dataclass(slots=True, frozen=True)
class ReadFilesArgs:
    paths: tuple[str, ...]


ToolArgs = TerminalArgs | WriteFilesArgs | ReadFilesArgs


@dataclass(slots=True, frozen=True)
class StructuredRound:
    """The response carried well-formed structured tool calls."""

    content: str
    calls: tuple[ToolCall, ...]


@dataclass(slots=True, frozen=True)
class InlineRound:
    """The response embedded tool invocations as inline tags in its text."""

    content: str
    calls: tuple[ToolCall, ...]


@dataclass(slots=True, frozen=True)
class FinalResponse:
    """The response is the final answer."""

    text: str


ToolInvocationBatch = StructuredRound | InlineRound | FinalResponse


@dataclass(slots=True)
class LoopOutcome:
    """Terminal state of one agent loop run."""

    termination: LoopTermination
    output: str
    iterations: int
    summary: str | None = None


@dataclass(slots=True)
class JobRecord:
    """Terminal record written to the result store for one job."""

    status: JobStatus
    output: str | None = None
    summary: str | None = None
    sandbox_url: str | None = None
    sandbox_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"status": self.status}
        if self.output is not None:
            payload["output"] = self.output
        if self.summary is not None:
            payload["summary"] = self.summary
        if self.sandbox_url is not None:
            payload["sandboxUrl"] = self.sandbox_url
        if self.sandbox_id is not None:
            payload["sandboxId"] = self.sandbox_id
        if self.error is not None:
            payload["error"] = self.error
        return payload
