"""E2B-backed sandbox implementation."""

from __future__ import annotations

import logging

from e2b import CommandExitException, SandboxException
from e2b_code_interpreter import Sandbox

from vibecode.errors import ConfigurationError, TransportError

from .base import CommandResult, SandboxProvider, SandboxSession

LOGGER = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = (
    "Missing E2B_API_KEY. Create one at https://e2b.dev, add it to your environment,"
    " and restart."
)


class E2BSandboxSession(SandboxSession):
    """Adapter over a connected ``e2b_code_interpreter.Sandbox``."""

    def __init__(self, sandbox: Sandbox) -> None:
        self._sandbox = sandbox

    @property
    def session_id(self) -> str:
        return str(self._sandbox.sandbox_id)

    def get_host(self, port: int) -> str:
        return str(self._sandbox.get_host(port))

    def run_command(self, command: str) -> CommandResult:
        self.log_request(command)
        started = self.monotonic_now()
        try:
            raw = self._sandbox.commands.run(command)
        except CommandExitException as exc:
            # The SDK raises on non-zero exit; the exception carries the output.
            raw = exc
        except SandboxException as exc:
            raise TransportError(f"Sandbox command failed: {exc}") from exc

        result = CommandResult(
            command=command,
            stdout=raw.stdout or "",
            stderr=raw.stderr or "",
            exit_code=int(raw.exit_code),
            duration_seconds=self.monotonic_now() - started,
        )
        self.log_result(result)
        return result

    def write_file(self, path: str, content: str) -> None:
        try:
            self._sandbox.files.write(path, content)
        except SandboxException as exc:
            raise TransportError(f"Sandbox write failed for {path}: {exc}") from exc
        LOGGER.debug(
            "sandbox_file_written",
            extra={"session_id": self.session_id, "path": path, "bytes": len(content)},
        )

    def read_file(self, path: str) -> str:
        try:
            content = self._sandbox.files.read(path)
        except SandboxException as exc:
            raise TransportError(f"Sandbox read failed for {path}: {exc}") from exc
        return content if isinstance(content, str) else str(content)


class E2BSandboxProvider(SandboxProvider):
    """Creates and reconnects E2B sandboxes from a named template."""

    def __init__(self, *, api_key: str | None, template: str) -> None:
        self.api_key = api_key
        self.template = template

    def create(self) -> str:
        self._require_api_key()
        LOGGER.info("sandbox_create_requested", extra={"template": self.template})
        try:
            sandbox = Sandbox.create(self.template, api_key=self.api_key)
        except SandboxException as exc:
            raise TransportError(f"Sandbox creation failed: {exc}") from exc
        LOGGER.info("sandbox_created", extra={"session_id": sandbox.sandbox_id})
        return str(sandbox.sandbox_id)

    def connect(self, session_id: str) -> E2BSandboxSession:
        self._require_api_key()
        try:
            sandbox = Sandbox.connect(session_id, api_key=self.api_key)
        except SandboxException as exc:
            raise TransportError(f"Sandbox connect failed for {session_id}: {exc}") from exc
        return E2BSandboxSession(sandbox)

    def _require_api_key(self) -> None:
        if not self.api_key:
            raise ConfigurationError(MISSING_KEY_MESSAGE)
