"""Settings dataclass and environment override helpers."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, Mapping

from ..ai.client import ClientSettings

__all__ = [
    "Settings",
    "ENV_PREFIX",
    "load_settings",
    "active_env_overrides",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "CODEK_"
_ENV_OVERRIDES: Mapping[str, str] = {
    "CODEK_API_KEY": "api_key",
    "CODEK_BASE_URL": "base_url",
    "CODEK_MODEL": "model",
    "CODEK_ORGANIZATION": "organization",
    "CODEK_WORKSPACE": "workspace_root",
    "CODEK_CUSTOM_INSTRUCTIONS": "custom_instructions",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "CODEK_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "CODEK_REQUEST_TIMEOUT": "request_timeout",
    "CODEK_TEMPERATURE": "temperature",
    "CODEK_TOOL_TIMEOUT": "tool_timeout",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "CODEK_MAX_RETRIES": "max_retries",
    "CODEK_MAX_TURNS": "max_turns",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class Settings:
    """Runtime configuration for the chat engine and its front end."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    organization: str | None = None
    request_timeout: float = 120.0
    max_retries: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    max_turns: int = 8
    tool_timeout: float | None = None
    workspace_root: str = "."
    custom_instructions: str | None = None
    debug_logging: bool = False
    default_headers: dict[str, str] = field(default_factory=dict)

    def to_client_settings(self) -> ClientSettings:
        return ClientSettings(
            base_url=self.base_url,
            api_key=self.api_key,
            model=self.model,
            organization=self.organization,
            request_timeout=self.request_timeout,
            max_retries=self.max_retries,
            retry_min_seconds=self.retry_min_seconds,
            retry_max_seconds=self.retry_max_seconds,
            default_headers=dict(self.default_headers) or None,
            debug_logging=self.debug_logging,
        )

    def redacted(self) -> Dict[str, Any]:
        """Return a JSON-friendly dict with the API key masked."""
        payload = asdict(self)
        payload["api_key"] = redact_secret(self.api_key)
        return payload


def load_settings(
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Build settings from defaults, ``CODEK_*`` variables and explicit overrides.

    Args:
        env: Environment mapping; defaults to ``os.environ``.
        overrides: Field values applied last, e.g. from ``--set`` flags.

    Raises:
        ValueError: If ``overrides`` names an unknown field.
    """
    settings = _apply_env_overrides(Settings(), os.environ if env is None else env)
    if overrides:
        unknown = sorted(set(overrides) - _field_names())
        if unknown:
            raise ValueError(f"Unknown setting(s): {', '.join(unknown)}")
        settings = _apply_overrides(settings, overrides, source="runtime")
    return settings


def active_env_overrides(env: Mapping[str, str] | None = None) -> list[str]:
    source = os.environ if env is None else env
    return sorted(name for name in source if name.startswith(ENV_PREFIX))


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"


def _field_names() -> set[str]:
    return {item.name for item in fields(Settings)}


def _apply_overrides(
    settings: Settings,
    overrides: Mapping[str, Any],
    *,
    source: str,
) -> Settings:
    allowed = _field_names()
    filtered: Dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in allowed:
            continue
        filtered[key] = value
    if filtered:
        LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
        settings = replace(settings, **filtered)
    return settings


def _apply_env_overrides(settings: Settings, env: Mapping[str, str]) -> Settings:
    overrides: Dict[str, Any] = {}
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value is not None:
            overrides[field_name] = value
    for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value is not None:
            overrides[field_name] = value.strip().lower() in _TRUE_VALUES
    for env_name, field_name in _INT_ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value is None:
            continue
        try:
            overrides[field_name] = int(value, 10)
        except ValueError:
            LOGGER.warning(
                "Environment override %s=%s is not a valid integer",
                env_name,
                value,
            )
    for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value is None:
            continue
        try:
            overrides[field_name] = float(value)
        except ValueError:
            LOGGER.warning(
                "Environment override %s=%s is not a valid float", env_name, value
            )
    if overrides:
        settings = _apply_overrides(settings, overrides, source="environment")
    return settings
