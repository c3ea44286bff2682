from __future__ import annotations

import json

import pytest

from vibecode import cli
from vibecode.agent.models import JobRecord
from vibecode.errors import TransportError


class FakeFunctions:
    def __init__(self, store, *, fail: bool = False) -> None:
        self.store = store
        self.fail = fail
        self.calls: list[tuple[str, dict[str, object]]] = []

    @property
    def handlers(self):
        return {
            "ai/code.run": lambda data: self._run("ai/code.run", data),
            "ai/grok.run": lambda data: self._run("ai/grok.run", data),
            "sandbox/create": lambda data: self._run("sandbox/create", data),
        }

    def _run(self, name: str, data: dict[str, object]) -> dict[str, object]:
        self.calls.append((name, data))
        if self.fail:
            self.store.set(data["eventId"], JobRecord(status="failed", error="boom"))
            raise TransportError("boom")
        self.store.set(data["eventId"], JobRecord(status="completed", output="print(1)"))
        return {"output": "print(1)"}


@pytest.fixture(autouse=True)
def no_poll_delay(monkeypatch):
    monkeypatch.setattr(cli, "POLL_INTERVAL_SECONDS", 0)


@pytest.fixture
def fake_functions(monkeypatch):
    created: list[FakeFunctions] = []

    def factory(config, store, *, fail: bool = False):
        functions = FakeFunctions(store, fail=fail)
        created.append(functions)
        return functions

    monkeypatch.setattr(cli, "build_job_functions", factory)
    return created


def test_parser_defaults() -> None:
    args = cli.build_parser().parse_args([])

    assert args.request is None
    assert args.event == "ai/code.run"
    assert args.max_iterations is None


def test_parser_rejects_unknown_event() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["--event", "ai/unknown"])


def test_main_runs_code_job_and_prints_record(fake_functions, capsys) -> None:
    assert cli.main(["write fizzbuzz"]) == 0

    record = json.loads(capsys.readouterr().out)
    assert record == {"status": "completed", "output": "print(1)"}
    assert fake_functions[0].calls == [
        ("ai/code.run", {"eventId": "local", "value": "write fizzbuzz"})
    ]


def test_main_chat_event_sends_prompt(fake_functions) -> None:
    assert cli.main(["--event", "ai/grok.run", "what is a monad"]) == 0

    assert fake_functions[0].calls[0][1] == {"eventId": "local", "prompt": "what is a monad"}


def test_main_sandbox_event_needs_no_request(fake_functions) -> None:
    assert cli.main(["--event", "sandbox/create"]) == 0

    assert fake_functions[0].calls[0] == ("sandbox/create", {"eventId": "local"})


def test_main_rejects_empty_request(fake_functions, monkeypatch, capsys) -> None:
    monkeypatch.setattr("builtins.input", lambda _prompt: "   ")

    assert cli.main([]) == 1
    assert "No request provided." in capsys.readouterr().out
    assert fake_functions == []


def test_main_reports_failed_job(monkeypatch, capsys) -> None:
    monkeypatch.setattr(
        cli,
        "build_job_functions",
        lambda _config, store: FakeFunctions(store, fail=True),
    )

    assert cli.main(["anything"]) == 1
    assert json.loads(capsys.readouterr().out) == {"status": "failed", "error": "boom"}


def test_max_iterations_flag_overrides_config(monkeypatch) -> None:
    captured = {}

    def factory(config, store):
        captured["max_iterations"] = config.max_iterations
        return FakeFunctions(store)

    monkeypatch.setattr(cli, "build_job_functions", factory)

    cli.main(["--max-iterations", "2", "request"])

    assert captured["max_iterations"] == 2


def test_main_submits_through_runner_with_configured_workers(monkeypatch, fake_functions) -> None:
    monkeypatch.setenv("VIBECODE_MAX_WORKERS", "3")
    runners = []

    class RecordingRunner(cli.JobRunner):
        def __init__(self, **kwargs) -> None:
            runners.append(kwargs)
            super().__init__(**kwargs)

    monkeypatch.setattr(cli, "JobRunner", RecordingRunner)

    assert cli.main(["write fizzbuzz"]) == 0
    assert runners[0]["max_workers"] == 3
    assert set(runners[0]["handlers"]) == {"ai/code.run", "ai/grok.run", "sandbox/create"}


def test_main_reports_job_that_never_wrote_a_record(monkeypatch, capsys) -> None:
    class SilentFunctions:
        handlers = {"ai/code.run": lambda data: {"output": "lost"}}

    monkeypatch.setattr(cli, "build_job_functions", lambda _config, _store: SilentFunctions())

    assert cli.main(["anything"]) == 1
    assert json.loads(capsys.readouterr().out) == {"status": "pending"}


def test_main_reports_unsupported_sandbox_backend(monkeypatch, tmp_path, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("VIBECODE_CONFIG_FILE", raising=False)
    monkeypatch.setenv("VIBECODE_SANDBOX_BACKEND", "docker")

    assert cli.main(["anything"]) == 1
    assert json.loads(capsys.readouterr().out) == {
        "status": "failed",
        "error": "Unsupported sandbox backend: docker",
    }
