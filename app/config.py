"""Configuration loading for the summarizer app.

Settings are read once, before the identity and summarize components are built,
and passed to them explicitly.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from dotenv import load_dotenv

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.0-flash"


class ConfigurationError(ValueError):
    """Raised when an environment value cannot be parsed."""


def gemini_endpoint(api_key: str, model: str = DEFAULT_MODEL) -> str:
    """Return the generateContent URL for a model, authenticated with a key."""
    return f"{GEMINI_BASE_URL}/models/{model}:generateContent?key={api_key}"


@dataclass
class Settings:
    """Options the identity bootstrap and the summarize service are built from."""

    endpoint_url: str = field(default_factory=lambda: gemini_endpoint(""))
    bootstrap_credential: str | None = None
    provider_config: dict[str, Any] = field(default_factory=dict)
    log_level: str = "info"


def _parse_provider_config(raw: str | None) -> dict[str, Any]:
    if not raw or not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"SUMDLB_FIREBASE_CONFIG is not valid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise ConfigurationError("SUMDLB_FIREBASE_CONFIG must be a JSON object")
    return value


def load_settings(env_file: str | os.PathLike | None = None) -> Settings:
    """Build Settings from the environment, after loading an optional .env file.

    Values already present in the environment take precedence over the file.
    """
    load_dotenv(env_file, override=False)

    endpoint_url = os.getenv("SUMDLB_ENDPOINT_URL", "").strip()
    if not endpoint_url:
        endpoint_url = gemini_endpoint(
            os.getenv("SUMDLB_GEMINI_API_KEY", "").strip(),
            os.getenv("SUMDLB_GEMINI_MODEL", "").strip() or DEFAULT_MODEL,
        )

    return Settings(
        endpoint_url=endpoint_url,
        bootstrap_credential=os.getenv("SUMDLB_INITIAL_AUTH_TOKEN", "").strip() or None,
        provider_config=_parse_provider_config(os.getenv("SUMDLB_FIREBASE_CONFIG")),
        log_level=os.getenv("SUMDLB_LOG_LEVEL", "").strip() or Settings.log_level,
    )


def configure_logging(level: str) -> None:
    """Apply a simple logging configuration for the app."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
