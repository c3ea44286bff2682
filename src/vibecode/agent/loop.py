"""Tool-calling agent loop that drives a chat model against a sandbox."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from vibecode.agent.interpreter import classify_response, extract_summary
from vibecode.agent.models import (
    FinalResponse,
    InlineRound,
    JobRecord,
    LoopOutcome,
    Message,
    StructuredRound,
    ToolInvocationBatch,
)
from vibecode.agent.tools import TOOL_DEFINITIONS, ToolExecutor
from vibecode.config import DEFAULT_SYSTEM_PROMPT
from vibecode.errors import SandboxVerificationError, ValidationError
from vibecode.jobs.store import ResultStore
from vibecode.llm.client import ChatClient, first_choice_message
from vibecode.sandbox import SandboxProvider, SandboxSession

READINESS_COMMAND = "echo ready"
LOGGER = logging.getLogger(__name__)


def build_user_message(request_value: str) -> str:
    return f"Write the following snippet: {request_value}"


class AgentLoop:
    """Runs the request/interpret/dispatch cycle for one job at a time."""

    def __init__(
        self,
        *,
        client: ChatClient,
        sandbox_provider: SandboxProvider,
        store: ResultStore,
        max_iterations: int = 8,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        sandbox_port: int = 3000,
        verify_sandbox: bool = True,
        log_dir: str | Path | None = None,
    ) -> None:
        self.client = client
        self.sandbox_provider = sandbox_provider
        self.store = store
        self.max_iterations = max_iterations
        self.system_prompt = system_prompt
        self.sandbox_port = sandbox_port
        self.verify_sandbox = verify_sandbox
        self.log_dir = Path(log_dir) if log_dir is not None else None

    def run(self, job_id: str, request_value: object) -> dict[str, object]:
        """Run one job to completion and write exactly one terminal record.

        Failures are recorded as ``failed`` and re-raised for the caller.
        """
        if not isinstance(job_id, str) or not job_id.strip():
            raise ValidationError("Missing 'eventId' in event data")

        LOGGER.info("job_started", extra={"job_id": job_id})
        sandbox_url: str | None = None
        try:
            if not isinstance(request_value, str) or not request_value.strip():
                raise ValidationError("Missing 'value' in event data")

            session = self._provision_sandbox()
            sandbox_url = session.public_url(self.sandbox_port)
            LOGGER.info("sandbox_ready", extra={"job_id": job_id, "sandbox_url": sandbox_url})
            if self.verify_sandbox:
                self._verify_sandbox(session)

            outcome = self.converse(job_id, request_value, session)
        except Exception as exc:
            LOGGER.exception("job_failed", extra={"job_id": job_id})
            self.store.set(
                job_id,
                JobRecord(
                    status="failed",
                    error=str(exc) or exc.__class__.__name__,
                    sandbox_url=sandbox_url,
                ),
            )
            raise

        self.store.set(
            job_id,
            JobRecord(
                status="completed",
                output=outcome.output,
                summary=outcome.summary,
                sandbox_url=sandbox_url,
            ),
        )
        LOGGER.info(
            "job_completed",
            extra={
                "job_id": job_id,
                "termination": outcome.termination,
                "iterations": outcome.iterations,
            },
        )
        result: dict[str, object] = {"output": outcome.output, "sandboxUrl": sandbox_url}
        if outcome.summary is not None:
            result["summary"] = outcome.summary
        return result

    def converse(self, job_id: str, request_value: str, session: SandboxSession) -> LoopOutcome:
        """Alternate chat calls and tool rounds until final text or budget exhaustion."""
        executor = ToolExecutor(session)
        history = [
            Message(role="system", content=self.system_prompt),
            Message(role="user", content=build_user_message(request_value)),
        ]

        iteration = 0
        while iteration < self.max_iterations:
            iteration += 1
            response = self.client.complete(history, TOOL_DEFINITIONS)
            batch = classify_response(first_choice_message(response))

            if isinstance(batch, FinalResponse):
                return self._finish(job_id, iteration, batch)

            executed = self._dispatch_round(batch, history, executor)
            if isinstance(batch, InlineRound) and not executed:
                # Tags that resolve to nothing runnable are part of the answer text.
                return self._finish(job_id, iteration, FinalResponse(text=batch.content))
            self._append_log(job_id, iteration, batch, executed=executed, termination=None)

        LOGGER.warning(
            "iteration_budget_exhausted",
            extra={"job_id": job_id, "max_iterations": self.max_iterations},
        )
        return LoopOutcome(termination="exhausted", output="", iterations=iteration)

    def _finish(self, job_id: str, iteration: int, final: FinalResponse) -> LoopOutcome:
        self._append_log(job_id, iteration, final, executed=[], termination="final")
        return LoopOutcome(
            termination="final",
            output=final.text,
            iterations=iteration,
            summary=extract_summary(final.text),
        )

    @staticmethod
    def _dispatch_round(
        batch: StructuredRound | InlineRound,
        history: list[Message],
        executor: ToolExecutor,
    ) -> list[str]:
        """Execute calls in order, appending each result before the next call.

        Calls that produce no result are dropped from the assistant echo so
        that echoed calls and tool messages always pair up. When nothing runs,
        the echo is withdrawn as well.
        """
        assistant = Message(role="assistant", content=batch.content, tool_calls=list(batch.calls))
        history.append(assistant)

        executed: list[str] = []
        for call in batch.calls:
            result = executor.execute(call.name, call.arguments)
            if result is None:
                assistant.tool_calls.remove(call)
                continue
            history.append(Message(role="tool", content=json.dumps(result), tool_call_id=call.id))
            executed.append(call.name)
            LOGGER.info("tool_call_executed", extra={"tool": call.name, "tool_call_id": call.id})
        if not executed:
            history.pop()
        return executed

    def _provision_sandbox(self) -> SandboxSession:
        session_id = self.sandbox_provider.create()
        return self.sandbox_provider.connect(session_id)

    @staticmethod
    def _verify_sandbox(session: SandboxSession) -> None:
        check = session.run_command(READINESS_COMMAND)
        if check.exit_code != 0:
            raise SandboxVerificationError(
                f"Sandbox readiness check exited with code {check.exit_code}",
                exit_code=check.exit_code,
                stderr=check.stderr,
            )

    def _append_log(
        self,
        job_id: str,
        iteration: int,
        batch: ToolInvocationBatch,
        *,
        executed: list[str],
        termination: str | None,
    ) -> None:
        if self.log_dir is None:
            return
        self.log_dir.mkdir(parents=True, exist_ok=True)
        day_file = self.log_dir / f"jobs-{datetime.now(timezone.utc).date().isoformat()}.log"
        entry = {
            "log_version": 1,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "job_id": job_id,
            "model": getattr(self.client, "model", None),
            "iteration": iteration,
            "max_iterations": self.max_iterations,
            "classification": _classification_name(batch),
            "tool_calls": executed,
            "termination": termination,
        }
        with day_file.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry) + "\n")


def _classification_name(batch: ToolInvocationBatch) -> str:
    if isinstance(batch, StructuredRound):
        return "tool_call_round"
    if isinstance(batch, InlineRound):
        return "inline_tool_call_round"
    return "final"
