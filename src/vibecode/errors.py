"""Error taxonomy shared by the chat client, sandbox and agent loop."""

from __future__ import annotations


class VibeCodeError(Exception):
    """Base class for every error raised by vibecode."""


class ConfigurationError(VibeCodeError):
    """A required setting (usually a credential) is missing."""


class ValidationError(VibeCodeError):
    """Job input was rejected before any network call."""


class TransportError(VibeCodeError):
    """A chat or sandbox call failed at the transport or HTTP level."""

    def __init__(self, message: str, *, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class ToolArgumentError(VibeCodeError):
    """Tool arguments could not be decoded into an object."""


class SandboxVerificationError(VibeCodeError):
    """The sandbox readiness check exited non-zero."""

    def __init__(self, message: str, *, exit_code: int, stderr: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr
