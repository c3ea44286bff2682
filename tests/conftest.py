from __future__ import annotations

import pytest

from vibecode.sandbox import CommandResult, SandboxProvider, SandboxSession


class FakeSandboxSession(SandboxSession):
    def __init__(self, session_id: str = "sbx-1", *, readiness_exit_code: int = 0) -> None:
        self._session_id = session_id
        self.readiness_exit_code = readiness_exit_code
        self.commands: list[str] = []
        self.files: dict[str, str] = {}
        self.writes: list[str] = []

    @property
    def session_id(self) -> str:
        return self._session_id

    def get_host(self, port: int) -> str:
        return f"{port}-{self._session_id}.e2b.app"

    def run_command(self, command: str) -> CommandResult:
        self.commands.append(command)
        if command == "echo ready":
            return CommandResult(
                command=command,
                stdout="ready\n" if self.readiness_exit_code == 0 else "",
                stderr="" if self.readiness_exit_code == 0 else "sandbox not ready",
                exit_code=self.readiness_exit_code,
            )
        return CommandResult(command=command, stdout=f"ran {command}", stderr="", exit_code=0)

    def write_file(self, path: str, content: str) -> None:
        self.writes.append(path)
        self.files[path] = content

    def read_file(self, path: str) -> str:
        return self.files.get(path, "")


class FakeSandboxProvider(SandboxProvider):
    def __init__(self, session: FakeSandboxSession) -> None:
        self.session = session
        self.created = 0
        self.connected: list[str] = []

    def create(self) -> str:
        self.created += 1
        return self.session.session_id

    def connect(self, session_id: str) -> FakeSandboxSession:
        self.connected.append(session_id)
        return self.session


@pytest.fixture
def sandbox_session() -> FakeSandboxSession:
    return FakeSandboxSession()


@pytest.fixture
def sandbox_provider(sandbox_session: FakeSandboxSession) -> FakeSandboxProvider:
    return FakeSandboxProvider(sandbox_session)
