# config.py
# Environment-driven settings. Values only, no client construction here.
#
# Every field falls back to its default when the variable is unset, blank or
# unparseable, so a misconfigured deployment still boots. A missing or
# placeholder credential is tolerated at load time; the gateway refuses to
# call out until it is fixed.

import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKER = "placeholder"

DEFAULT_BASE_URL = "https://api.deepseek.com/v1"
DEFAULT_MODEL = "deepseek-chat"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000
DEFAULT_TIMEOUT = 30.0
DEFAULT_CONFIDENCE_THRESHOLD = 0.8
DEFAULT_MAX_STEPS = 10
DEFAULT_VARIABLE_LIMIT = 20


class Settings(BaseModel):
    """Configuration surface consumed by the gateway, the stages and the API."""

    api_key: str | None = Field(default=None, description="Bearer credential for the completion endpoint.")
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: float = Field(default=DEFAULT_TIMEOUT, description="Outbound call timeout in seconds.")
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    max_steps: int = DEFAULT_MAX_STEPS
    variable_limit: int = DEFAULT_VARIABLE_LIMIT
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    @property
    def credential_usable(self) -> bool:
        return credential_usable(self.api_key)


def credential_usable(api_key: str | None) -> bool:
    return bool(api_key and api_key.strip() and PLACEHOLDER_MARKER not in api_key)


# ---------------------------------------------------------------------------
# Environment helpers
# ---------------------------------------------------------------------------


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    return value


def _env_float(name: str, default: float, low: float | None = None, high: float | None = None) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number, using default %s", name, raw, default)
        return default
    if (low is not None and value < low) or (high is not None and value > high):
        logger.warning("%s=%s is out of range, using default %s", name, value, default)
        return default
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer, using default %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("%s=%s must be positive, using default %s", name, value, default)
        return default
    return value


def load_settings() -> Settings:
    """Read settings from the process environment (and .env, if present)."""
    load_dotenv()

    settings = Settings(
        api_key=os.getenv("DEEPSEEK_API_KEY"),
        base_url=_env_str("DEEPSEEK_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
        model=_env_str("DEEPSEEK_MODEL", DEFAULT_MODEL),
        temperature=_env_float("DEEPSEEK_TEMPERATURE", DEFAULT_TEMPERATURE, low=0.0, high=2.0),
        max_tokens=_env_int("DEEPSEEK_MAX_TOKENS", DEFAULT_MAX_TOKENS),
        timeout=_env_float("DEEPSEEK_TIMEOUT", DEFAULT_TIMEOUT, low=0.0),
        confidence_threshold=_env_float(
            "WORKFLOW_INTENT_CONFIDENCE_THRESHOLD", DEFAULT_CONFIDENCE_THRESHOLD, low=0.0, high=1.0
        ),
        max_steps=_env_int("WORKFLOW_MAX_STEPS", DEFAULT_MAX_STEPS),
        variable_limit=_env_int("WORKFLOW_VARIABLE_LIMIT", DEFAULT_VARIABLE_LIMIT),
        api_host=_env_str("WORKFLOW_API_HOST", "0.0.0.0"),
        api_port=_env_int("WORKFLOW_API_PORT", 8000),
        log_level=_env_str("LOG_LEVEL", "INFO").upper(),
    )

    if not settings.credential_usable:
        logger.warning(
            "DEEPSEEK_API_KEY is not configured; classification and decomposition "
            "will degrade to fallback results until it is set."
        )
    logger.info(
        "Loaded settings: base_url=%s model=%s temperature=%s max_tokens=%s",
        settings.base_url,
        settings.model,
        settings.temperature,
        settings.max_tokens,
    )
    return settings
