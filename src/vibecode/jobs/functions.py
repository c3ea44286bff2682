"""Job functions invoked per event by the orchestrator or the local runner."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from vibecode.agent.loop import AgentLoop
from vibecode.agent.models import JobRecord
from vibecode.config import DEFAULT_SYSTEM_PROMPT, AppConfig
from vibecode.errors import ValidationError
from vibecode.jobs.store import ResultStore
from vibecode.llm.client import ChatClient
from vibecode.sandbox import SandboxProvider, create_sandbox_provider

CODE_RUN_EVENT = "ai/code.run"
CHAT_RUN_EVENT = "ai/grok.run"
SANDBOX_CREATE_EVENT = "sandbox/create"
CHAT_SYSTEM_PROMPT = "You are a helpful assistant. Respond concisely with clear answers."
LOGGER = logging.getLogger(__name__)

EventData = Mapping[str, object]
JobFunction = Callable[[EventData], dict[str, object]]


class JobFunctions:
    """Binds the chat client, sandbox provider and store to each job type."""

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
        log_dir: str | None = None,
    ) -> None:
        self.client = client
        self.sandbox_provider = sandbox_provider
        self.store = store
        self.sandbox_port = sandbox_port
        self.loop = AgentLoop(
            client=client,
            sandbox_provider=sandbox_provider,
            store=store,
            max_iterations=max_iterations,
            sandbox_port=sandbox_port,
            verify_sandbox=verify_sandbox,
            system_prompt=system_prompt,
            log_dir=log_dir,
        )

    @property
    def handlers(self) -> dict[str, JobFunction]:
        return {
            CODE_RUN_EVENT: self.run_code_with_sandbox,
            CHAT_RUN_EVENT: self.run_chat_agent,
            SANDBOX_CREATE_EVENT: self.create_sandbox,
        }

    def run_code_with_sandbox(self, data: EventData) -> dict[str, object]:
        return self.loop.run(_event_id(data), data.get("value"))

    def run_chat_agent(self, data: EventData) -> dict[str, object]:
        event_id = _event_id(data)
        try:
            prompt = data.get("prompt")
            if not isinstance(prompt, str) or not prompt.strip():
                raise ValidationError("Prompt not found in event data")
            output = self.client.ask(prompt, CHAT_SYSTEM_PROMPT)
        except Exception as exc:
            LOGGER.exception("chat_job_failed", extra={"job_id": event_id})
            self.store.set(event_id, JobRecord(status="failed", error=str(exc)))
            raise
        self.store.set(event_id, JobRecord(status="completed", output=output))
        return {"output": output}

    def create_sandbox(self, data: EventData) -> dict[str, object]:
        event_id = _event_id(data)
        try:
            sandbox_id = self.sandbox_provider.create()
            session = self.sandbox_provider.connect(sandbox_id)
            sandbox_url = session.public_url(self.sandbox_port)
        except Exception as exc:
            LOGGER.exception("sandbox_job_failed", extra={"job_id": event_id})
            self.store.set(event_id, JobRecord(status="failed", error=str(exc)))
            raise
        self.store.set(
            event_id,
            JobRecord(status="completed", sandbox_id=sandbox_id, sandbox_url=sandbox_url),
        )
        return {"sandboxId": sandbox_id, "sandboxUrl": sandbox_url}


def build_job_functions(config: AppConfig, store: ResultStore) -> JobFunctions:
    client = ChatClient(
        api_key=config.openrouter_api_key,
        model=config.model,
        api_url=config.api_url,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        referer=config.referer,
        app_title=config.app_title,
    )
    provider = create_sandbox_provider(
        config.sandbox_backend,
        api_key=config.e2b_api_key,
        template=config.sandbox_template,
    )
    return JobFunctions(
        client=client,
        sandbox_provider=provider,
        store=store,
        max_iterations=config.max_iterations,
        system_prompt=config.system_prompt,
        sandbox_port=config.sandbox_port,
        verify_sandbox=config.verify_sandbox,
        log_dir=config.log_dir,
    )


def _event_id(data: EventData) -> str:
    event_id = data.get("eventId")
    if not isinstance(event_id, str) or not event_id.strip():
        raise ValidationError("Missing 'eventId' in event data")
    return event_id
