"""Environment-backed application configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_API_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "x-ai/grok-4-fast:free"
DEFAULT_SANDBOX_TEMPLATE = "codesaas"

DEFAULT_SYSTEM_PROMPT = " ".join(
    [
        "You are a senior software engineer working inside a sandboxed Linux machine.",
        (
            "Use the terminal tool to run shell commands, createOrUpdateFiles to write"
            " files and readFiles to inspect existing files."
        ),
        (
            "If you cannot emit structured tool calls, wrap the JSON arguments in a tag"
            ' named after the tool, for example <terminal>{"command": "ls"}</terminal>.'
        ),
        "Write clean, runnable code and verify it by running it when practical.",
        (
            "When the task is done, reply with the final code and a short"
            " <task_summary>...</task_summary> describing what you built."
        ),
    ]
)


def _to_bool(value: str | None, default: bool = False) -> bool:
    """Convert common env var truthy/falsy values into booleans."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(slots=True)
class AppConfig:
    """Runtime settings loaded from environment variables."""

    openrouter_api_key: str | None
    api_url: str
    model: str
    max_tokens: int
    temperature: float
    referer: str
    app_title: str
    e2b_api_key: str | None
    sandbox_backend: str
    sandbox_template: str
    sandbox_port: int
    verify_sandbox: bool
    max_iterations: int
    log_dir: str | None
    system_prompt: str
    max_workers: int

    @classmethod
    def from_env(cls) -> AppConfig:
        file_config = _load_preferred_file_config()
        openrouter_from_file = file_config.get("openrouter")
        openrouter_config = openrouter_from_file if isinstance(openrouter_from_file, dict) else {}
        sandbox_from_file = file_config.get("sandbox")
        sandbox_config = sandbox_from_file if isinstance(sandbox_from_file, dict) else {}

        return cls(
            openrouter_api_key=(
                os.getenv("OPENROUTER_API_KEY")
                or _to_optional_string(openrouter_config.get("api_key"))
            ),
            api_url=(
                os.getenv("OPENROUTER_API_URL")
                or _to_optional_string(openrouter_config.get("api_url"))
                or DEFAULT_API_URL
            ),
            model=(
                os.getenv("VIBECODE_MODEL")
                or _to_optional_string(file_config.get("model"))
                or DEFAULT_MODEL
            ),
            max_tokens=_to_positive_int(
                os.getenv("VIBECODE_MAX_TOKENS") or file_config.get("max_tokens"),
                default=1000,
            ),
            temperature=_to_float(
                os.getenv("VIBECODE_TEMPERATURE") or file_config.get("temperature"),
                default=0.7,
            ),
            referer=(
                os.getenv("OPENROUTER_REFERER")
                or _to_optional_string(openrouter_config.get("referer"))
                or "http://localhost:3000"
            ),
            app_title=(
                os.getenv("OPENROUTER_X_TITLE")
                or _to_optional_string(openrouter_config.get("title"))
                or "vibe-code"
            ),
            e2b_api_key=(
                os.getenv("E2B_API_KEY") or _to_optional_string(sandbox_config.get("api_key"))
            ),
            sandbox_backend=(
                os.getenv("VIBECODE_SANDBOX_BACKEND")
                or _to_optional_string(sandbox_config.get("backend"))
                or "e2b"
            ),
            sandbox_template=(
                os.getenv("VIBECODE_SANDBOX_TEMPLATE")
                or _to_optional_string(sandbox_config.get("template"))
                or DEFAULT_SANDBOX_TEMPLATE
            ),
            sandbox_port=_to_positive_int(
                os.getenv("VIBECODE_SANDBOX_PORT") or sandbox_config.get("port"),
                default=3000,
            ),
            verify_sandbox=_to_bool(
                os.getenv("VIBECODE_VERIFY_SANDBOX"),
                default=bool(sandbox_config.get("verify", True)),
            ),
            max_iterations=_to_positive_int(
                os.getenv("VIBECODE_MAX_ITERATIONS") or file_config.get("max_iterations"),
                default=8,
            ),
            log_dir=_resolve_log_dir(
                os.getenv("VIBECODE_LOG_DIR"),
                file_config.get("log_dir", "logs"),
            ),
            system_prompt=(
                os.getenv("VIBECODE_SYSTEM_PROMPT")
                or _to_optional_string(file_config.get("system_prompt"))
                or DEFAULT_SYSTEM_PROMPT
            ),
            max_workers=_to_positive_int(
                os.getenv("VIBECODE_MAX_WORKERS") or file_config.get("max_workers"),
                default=4,
            ),
        )


def _to_optional_string(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _resolve_log_dir(env_value: str | None, file_value: object) -> str | None:
    """An explicitly empty value (or JSON null) disables transcript logging."""
    if env_value is not None:
        return env_value.strip() or None
    if file_value is None:
        return None
    return _to_optional_string(file_value)


def _load_file_config(path_value: str) -> dict[str, object]:
    path = Path(path_value)
    if not path.exists() or not path.is_file():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            parsed = json.load(fh)
    except (OSError, json.JSONDecodeError):
        return {}
    if isinstance(parsed, dict):
        return parsed
    return {}


def _load_preferred_file_config() -> dict[str, object]:
    explicit_path = os.getenv("VIBECODE_CONFIG_FILE")
    if explicit_path:
        return _load_file_config(explicit_path)

    shared_config = _load_file_config("vibecode.config.json")
    local_override = _load_file_config("vibecode.config.local.json")
    return _merge_dicts(shared_config, local_override)


def _merge_dicts(base: dict[str, object], override: dict[str, object]) -> dict[str, object]:
    merged: dict[str, object] = dict(base)
    for key, value in override.items():
        base_value = merged.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            merged[key] = _merge_dicts(base_value, value)
        else:
            merged[key] = value
    return merged


def _to_positive_int(value: object, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    if isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default


def _to_float(value: object, *, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return default
    return default
