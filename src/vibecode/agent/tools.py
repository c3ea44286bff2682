"""Tool schemas advertised to the model and their sandbox-backed execution."""

from __future__ import annotations

import json
import logging

from vibecode.agent.models import (
    FileEntry,
    ReadFilesArgs,
    TerminalArgs,
    ToolArgs,
    ToolDefinition,
    WriteFilesArgs,
)
from vibecode.errors import ToolArgumentError
from vibecode.sandbox import SandboxSession

LOGGER = logging.getLogger(__name__)

TERMINAL_TOOL = ToolDefinition(
    name="terminal",
    description="Run a shell command inside the sandbox and return stdout, stderr and exit code.",
    parameters={
        "type": "object",
        "properties": {"command": {"type": "string"}},
        "required": ["command"],
    },
)
CREATE_OR_UPDATE_FILES_TOOL = ToolDefinition(
    name="createOrUpdateFiles",
    description="Create or overwrite files in the sandbox.",
    parameters={
        "type": "object",
        "properties": {
            "files": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "path": {"type": "string"},
                        "content": {"type": "string"},
                    },
                    "required": ["path", "content"],
                },
            }
        },
        "required": ["files"],
    },
)
READ_FILES_TOOL = ToolDefinition(
    name="readFiles",
    description="Read files from the sandbox.",
    parameters={
        "type": "object",
        "properties": {"files": {"type": "array", "items": {"type": "string"}}},
        "required": ["files"],
    },
)

TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    TERMINAL_TOOL,
    CREATE_OR_UPDATE_FILES_TOOL,
    READ_FILES_TOOL,
)
TOOL_NAMES = frozenset(tool.name for tool in TOOL_DEFINITIONS)


def decode_arguments(raw_arguments: str | None) -> dict[str, object]:
    """Decode a JSON argument string into an object."""
    if raw_arguments is None or not raw_arguments.strip():
        return {}
    try:
        parsed = json.loads(raw_arguments)
    except json.JSONDecodeError as exc:
        raise ToolArgumentError(f"Tool arguments are not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ToolArgumentError("Tool arguments must be a JSON object")
    return {str(key): value for key, value in parsed.items()}


def parse_tool_args(name: str, arguments: dict[str, object]) -> ToolArgs | None:
    """Validate an argument object against the named tool's shape.

    Returns ``None`` for unknown tool names. Entries of the wrong shape are
    dropped rather than rejected.
    """
    if name == TERMINAL_TOOL.name:
        command = arguments.get("command")
        return TerminalArgs(command=command if isinstance(command, str) else "")

    files = arguments.get("files")
    items = files if isinstance(files, list) else []
    if name == CREATE_OR_UPDATE_FILES_TOOL.name:
        return WriteFilesArgs(
            files=tuple(
                FileEntry(path=item["path"], content=item["content"])
                for item in items
                if isinstance(item, dict)
                and isinstance(item.get("path"), str)
                and isinstance(item.get("content"), str)
            )
        )
    if name == READ_FILES_TOOL.name:
        return ReadFilesArgs(paths=tuple(item for item in items if isinstance(item, str)))
    return None


class ToolExecutor:
    """Executes one named tool call against a sandbox session."""

    def __init__(self, session: SandboxSession) -> None:
        self.session = session

    def execute(self, name: str, raw_arguments: str | None) -> object | None:
        """Run a tool call and return a JSON-serializable result.

        ``None`` means nothing ran (blank command or unknown tool) and no
        result should be reported back to the model.
        """
        try:
            arguments = decode_arguments(raw_arguments)
        except ToolArgumentError as exc:
            LOGGER.warning("tool_arguments_invalid", extra={"tool": name, "error": str(exc)})
            arguments = {}

        args = parse_tool_args(name, arguments)
        if args is None:
            LOGGER.warning("tool_unknown", extra={"tool": name})
            return None

        if isinstance(args, TerminalArgs):
            return self._terminal(args)
        if isinstance(args, WriteFilesArgs):
            return self._create_or_update_files(args)
        return self._read_files(args)

    def _terminal(self, args: TerminalArgs) -> dict[str, object] | None:
        if not args.command.strip():
            LOGGER.info("tool_terminal_skipped_blank_command")
            return None
        return self.session.run_command(args.command).to_tool_result()

    def _create_or_update_files(self, args: WriteFilesArgs) -> list[str]:
        written: list[str] = []
        for entry in args.files:
            self.session.write_file(entry.path, entry.content)
            written.append(entry.path)
        LOGGER.info("tool_files_written", extra={"count": len(written)})
        return written

    def _read_files(self, args: ReadFilesArgs) -> list[dict[str, str]]:
        return [
            {"path": path, "content": self.session.read_file(path)} for path in args.paths
        ]
