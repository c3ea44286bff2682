from __future__ import annotations

import pytest

from vibecode.agent.models import Message
from vibecode.config import AppConfig
from vibecode.errors import TransportError, ValidationError
from vibecode.jobs.functions import (
    CHAT_RUN_EVENT,
    CODE_RUN_EVENT,
    SANDBOX_CREATE_EVENT,
    JobFunctions,
    build_job_functions,
)
from vibecode.jobs.store import InMemoryResultStore
from vibecode.sandbox import E2BSandboxProvider


class FakeChatClient:
    model = "fake/model"

    def __init__(self, reply: str | BaseException = "answer") -> None:
        self.reply = reply
        self.asked: list[tuple[str, str]] = []

    def ask(self, prompt: str, system_prompt: str) -> str:
        self.asked.append((prompt, system_prompt))
        if isinstance(self.reply, BaseException):
            raise self.reply
        return self.reply

    def complete(self, messages: list[Message], tools=None) -> dict[str, object]:
        return {"choices": [{"message": {"content": self.reply}}]}


def _functions(client, provider, store) -> JobFunctions:
    return JobFunctions(client=client, sandbox_provider=provider, store=store)


def test_handlers_cover_every_event(sandbox_provider) -> None:
    functions = _functions(FakeChatClient(), sandbox_provider, InMemoryResultStore())

    assert set(functions.handlers) == {CODE_RUN_EVENT, CHAT_RUN_EVENT, SANDBOX_CREATE_EVENT}


def test_code_run_drives_agent_loop(sandbox_provider) -> None:
    store = InMemoryResultStore()
    functions = _functions(FakeChatClient("final code"), sandbox_provider, store)

    result = functions.run_code_with_sandbox({"eventId": "e1", "value": "fizzbuzz"})

    assert result == {"output": "final code", "sandboxUrl": "https://3000-sbx-1.e2b.app"}
    assert store.poll("e1")["status"] == "completed"


def test_chat_agent_writes_completed_output(sandbox_provider) -> None:
    store = InMemoryResultStore()
    client = FakeChatClient("Paris")
    functions = _functions(client, sandbox_provider, store)

    assert functions.run_chat_agent({"eventId": "e2", "prompt": "capital of France?"}) == {
        "output": "Paris"
    }
    assert store.poll("e2") == {"status": "completed", "output": "Paris"}
    assert client.asked[0][0] == "capital of France?"
    assert sandbox_provider.created == 0


def test_chat_agent_missing_prompt_fails(sandbox_provider) -> None:
    store = InMemoryResultStore()
    client = FakeChatClient()

    with pytest.raises(ValidationError, match="Prompt not found"):
        _functions(client, sandbox_provider, store).run_chat_agent({"eventId": "e3"})

    assert store.poll("e3")["status"] == "failed"
    assert client.asked == []


def test_chat_agent_transport_failure_is_recorded(sandbox_provider) -> None:
    store = InMemoryResultStore()
    client = FakeChatClient(TransportError("OpenRouter API error: 401 unauthorized", status=401))

    with pytest.raises(TransportError):
        _functions(client, sandbox_provider, store).run_chat_agent(
            {"eventId": "e4", "prompt": "hi"}
        )

    assert store.poll("e4") == {
        "status": "failed",
        "error": "OpenRouter API error: 401 unauthorized",
    }


def test_create_sandbox_returns_id_and_url(sandbox_provider) -> None:
    store = InMemoryResultStore()

    result = _functions(FakeChatClient(), sandbox_provider, store).create_sandbox({"eventId": "e5"})

    assert result == {"sandboxId": "sbx-1", "sandboxUrl": "https://3000-sbx-1.e2b.app"}
    assert store.poll("e5") == {
        "status": "completed",
        "sandboxId": "sbx-1",
        "sandboxUrl": "https://3000-sbx-1.e2b.app",
    }


def test_missing_event_id_is_rejected(sandbox_provider) -> None:
    store = InMemoryResultStore()

    with pytest.raises(ValidationError, match="eventId"):
        _functions(FakeChatClient(), sandbox_provider, store).create_sandbox({})

    assert len(store) == 0


def test_build_job_functions_wires_config() -> None:
    config = AppConfig(
        openrouter_api_key="key",
        api_url="https://openrouter.ai/api/v1",
        model="test/model",
        max_tokens=10,
        temperature=0.0,
        referer="http://localhost:3000",
        app_title="vibe-code",
        e2b_api_key="e2b-key",
        sandbox_backend="e2b",
        sandbox_template="codesaas",
        sandbox_port=8080,
        verify_sandbox=False,
        max_iterations=3,
        log_dir=None,
        system_prompt="prompt",
        max_workers=2,
    )

    functions = build_job_functions(config, InMemoryResultStore())

    assert isinstance(functions.sandbox_provider, E2BSandboxProvider)
    assert functions.sandbox_provider.template == "codesaas"
    assert functions.client.model == "test/model"
    assert functions.loop.max_iterations == 3
    assert functions.loop.sandbox_port == 8080
    assert functions.loop.verify_sandbox is False
    assert functions.loop.system_prompt == "prompt"
