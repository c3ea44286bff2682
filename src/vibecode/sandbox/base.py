"""Base sandbox session primitives."""

from __future__ import annotations

import abc
import logging
import re
import time
from dataclasses import dataclass

LOGGER = logging.getLogger(__name__)

_SECRET_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"(--?(?:password|token|secret|api[-_]?key)\s+)([^\s]+)",
        r"((?:password|token|secret|api[-_]?key)\s*=\s*)([^\s]+)",
    )
]


@dataclass(slots=True)
class CommandResult:
    """Result of a command run inside a sandbox."""

    command: str
    stdout: str
    stderr: str
    exit_code: int
    duration_seconds: float = 0.0

    def to_tool_result(self) -> dict[str, object]:
        return {"stdout": self.stdout, "stderr": self.stderr, "exitCode": self.exit_code}


class SandboxSession(abc.ABC):
    """A connected remote execution environment."""

    @property
    @abc.abstractmethod
    def session_id(self) -> str:
        """Identifier that can be used to reconnect to this session."""

    @abc.abstractmethod
    def get_host(self, port: int) -> str:
        """Return the public hostname that forwards to ``port``."""

    @abc.abstractmethod
    def run_command(self, command: str) -> CommandResult:
        """Run a shell command; a non-zero exit is a result, not an error."""

    @abc.abstractmethod
    def write_file(self, path: str, content: str) -> None:
        """Create or overwrite a text file."""

    @abc.abstractmethod
    def read_file(self, path: str) -> str:
        """Return the text content of a file."""

    def public_url(self, port: int) -> str:
        return f"https://{self.get_host(port)}"

    def log_request(self, command: str) -> None:
        LOGGER.info(
            "sandbox_command_request",
            extra={"session_id": self.session_id, "command": sanitize_command(command)},
        )

    def log_result(self, result: CommandResult) -> None:
        LOGGER.info(
            "sandbox_command_result",
            extra={
                "session_id": self.session_id,
                "exit_code": result.exit_code,
                "duration_seconds": round(result.duration_seconds, 4),
                "stdout_length": len(result.stdout),
                "stderr_length": len(result.stderr),
            },
        )

    @staticmethod
    def monotonic_now() -> float:
        return time.monotonic()


class SandboxProvider(abc.ABC):
    """Creates sandboxes and connects to existing ones."""

    @abc.abstractmethod
    def create(self) -> str:
        """Create a new sandbox and return its session id."""

    @abc.abstractmethod
    def connect(self, session_id: str) -> SandboxSession:
        """Connect to an existing sandbox."""


def sanitize_command(command: str) -> str:
    sanitized = command
    for pattern in _SECRET_PATTERNS:
        sanitized = pattern.sub(r"\1***", sanitized)
    return sanitized
