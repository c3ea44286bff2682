"""Chat-completion client with a one-shot degrade when tools are rejected."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from urllib import request
from urllib.error import HTTPError, URLError

from vibecode.agent.models import Message, ToolDefinition
from vibecode.config import DEFAULT_API_URL, DEFAULT_MODEL
from vibecode.errors import ConfigurationError, TransportError

MISSING_KEY_MESSAGE = (
    "Missing OPENROUTER_API_KEY. Add it to your environment and restart."
    " See https://openrouter.ai/docs#authentication"
)
TOOL_USE_UNSUPPORTED_MARKER = "tool use"
LOGGER = logging.getLogger(__name__)


def normalize_endpoint(api_url: str) -> str:
    """Accept either an API base URL or the full chat-completions endpoint."""
    base = api_url.strip().rstrip("/")
    suffix = "/chat/completions"
    if base.endswith(suffix):
        base = base[: -len(suffix)]
    return f"{base}{suffix}"


class ChatClient:
    """Small HTTP client for OpenAI-compatible chat completions."""

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str = DEFAULT_MODEL,
        api_url: str = DEFAULT_API_URL,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        referer: str = "http://localhost:3000",
        app_title: str = "vibe-code",
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.endpoint = normalize_endpoint(api_url)
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.referer = referer
        self.app_title = app_title
        self.timeout = timeout

    def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] | None = None,
    ) -> dict[str, object]:
        """Send the conversation and return the decoded response body.

        When the endpoint answers 404 because the selected model cannot use
        tools, the request is repeated once without the tool schema. Every
        other failure propagates as ``TransportError``.
        """
        if not self.api_key:
            raise ConfigurationError(MISSING_KEY_MESSAGE)

        try:
            return self._post(self._build_payload(messages, tools))
        except TransportError as exc:
            if not tools or not self._is_tool_use_unsupported(exc):
                raise
            LOGGER.warning(
                "chat_tools_unsupported_retrying",
                extra={"model": self.model, "http_status": exc.status},
            )
        return self._post(self._build_payload(messages, None))

    def ask(self, prompt: str, system_prompt: str) -> str:
        """Single-turn question without tools; returns the reply text."""
        response = self.complete(
            [Message(role="system", content=system_prompt), Message(role="user", content=prompt)]
        )
        content = first_choice_message(response).get("content")
        return content if isinstance(content, str) else ""

    def _build_payload(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] | None,
    ) -> dict[str, object]:
        payload: dict[str, object] = {
            "model": self.model,
            "messages": [message.to_payload() for message in messages],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if tools:
            payload["tools"] = [tool.to_schema() for tool in tools]
        return payload

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.referer,
            "X-Title": self.app_title,
        }

    def _post(self, payload: dict[str, object]) -> dict[str, object]:
        body = json.dumps(payload).encode("utf-8")
        messages = payload.get("messages")
        LOGGER.debug(
            "chat_request_prepared",
            extra={
                "endpoint": self.endpoint,
                "model": self.model,
                "payload_bytes": len(body),
                "messages": len(messages) if isinstance(messages, list) else 0,
                "tools_included": "tools" in payload,
            },
        )

        req = request.Request(self.endpoint, data=body, headers=self._headers(), method="POST")
        try:
            with request.urlopen(req, timeout=self.timeout) as resp:  # noqa: S310
                raw_response = json.loads(resp.read().decode("utf-8"))
        except HTTPError as exc:
            error_body = self._read_error_body(exc)
            LOGGER.error(
                "chat_request_http_error",
                extra={
                    "endpoint": self.endpoint,
                    "model": self.model,
                    "http_status": exc.code,
                    "response_length": len(error_body),
                },
            )
            raise TransportError(
                f"OpenRouter API error: {exc.code} {error_body}",
                status=exc.code,
                body=error_body,
            ) from exc
        except URLError as exc:
            LOGGER.error(
                "chat_request_transport_error",
                extra={"endpoint": self.endpoint, "reason": str(exc.reason)},
            )
            raise TransportError(f"Chat request transport error: {exc.reason}") from exc
        except TimeoutError as exc:
            LOGGER.error(
                "chat_request_timeout",
                extra={"endpoint": self.endpoint, "timeout_seconds": self.timeout},
            )
            raise TransportError(f"Chat request timed out after {self.timeout:.1f}s") from exc
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise TransportError(f"Chat response parsing error: {exc}") from exc

        if not isinstance(raw_response, dict):
            raise TransportError("Chat response parsing error: expected top-level object")
        return {str(key): value for key, value in raw_response.items()}

    @staticmethod
    def _is_tool_use_unsupported(exc: TransportError) -> bool:
        return exc.status == 404 and TOOL_USE_UNSUPPORTED_MARKER in exc.body.lower()

    @staticmethod
    def _read_error_body(exc: HTTPError) -> str:
        if exc.fp is None:
            return ""
        try:
            raw = exc.read()
        except OSError:
            return ""
        return raw.decode("utf-8", errors="replace") if raw else ""


def first_choice_message(response: dict[str, object]) -> dict[str, object]:
    """Return ``choices[0].message`` or an empty dict when absent."""
    choices = response.get("choices")
    if not isinstance(choices, list) or not choices:
        return {}
    choice = choices[0]
    if not isinstance(choice, dict):
        return {}
    message = choice.get("message")
    if not isinstance(message, dict):
        return {}
    return {str(key): value for key, value in message.items()}
