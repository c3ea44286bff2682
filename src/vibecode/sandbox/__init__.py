"""Sandbox session implementations."""

from vibecode.errors import ConfigurationError

from .base import CommandResult, SandboxProvider, SandboxSession
from .e2b_adapter import E2BSandboxProvider, E2BSandboxSession


def create_sandbox_provider(
    backend: str, *, api_key: str | None, template: str
) -> SandboxProvider:
    normalized = backend.strip().lower()
    if normalized == "e2b":
        return E2BSandboxProvider(api_key=api_key, template=template)
    msg = f"Unsupported sandbox backend: {backend}"
    raise ConfigurationError(msg)


__all__ = [
    "CommandResult",
    "E2BSandboxProvider",
    "E2BSandboxSession",
    "SandboxProvider",
    "SandboxSession",
    "create_sandbox_provider",
]
