"""
CONFIG.PY - SINGLE SOURCE OF TRUTH

This module is the ONLY place allowed to read environment variables.
Values from a project-level .env are loaded first; OS env overrides them.

APPS_SCRIPT_URL is required. Everything else has a default:

    HEADLESS               true
    NAVIGATION_TIMEOUT_MS  60000
    JSON_LOG_FILE          (stderr only)
    LOGIN_EMAIL            (none; CLI default for `login`)
    LOGIN_PASSWORD         (none; CLI default for `login`)

The core flows take their settings as arguments and never import this module,
so the library stays usable without any configuration. Callers read it with:

    from gas_bridge.config import get_config
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).resolve().parents[1]

load_dotenv(PROJECT_ROOT / ".env")

logger = logging.getLogger(__name__)

DEFAULT_HEADLESS = True
DEFAULT_NAVIGATION_TIMEOUT_MS = 60_000

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


def _optional_env(key: str) -> str | None:
    value = os.getenv(key)
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _require_env(key: str) -> str:
    value = _optional_env(key)
    if value is None:
        message = f"Missing required environment variable: {key}"
        logger.error(message)
        raise ConfigError(message)
    return value


def parse_bool(value: str | None, *, key: str, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    message = f"Config key {key} must be a boolean string; got {value!r}"
    logger.error(message)
    raise ConfigError(message)


def parse_positive_int(value: str | None, *, key: str, default: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except (TypeError, ValueError):
        message = f"Config key {key} must be an integer; got {value!r}"
        logger.error(message)
        raise ConfigError(message)
    if parsed <= 0:
        message = f"Config key {key} must be positive; got {parsed}"
        logger.error(message)
        raise ConfigError(message)
    return parsed


def _clean_url(value: str, *, key: str) -> str:
    if not value.startswith(("http://", "https://")):
        message = f"Config key {key} must be an http(s) URL; got {value!r}"
        logger.error(message)
        raise ConfigError(message)
    return value


def json_log_file_from_env() -> str:
    return _optional_env("JSON_LOG_FILE") or ""


@dataclass(slots=True, frozen=True)
class Config:
    apps_script_url: str
    headless: bool = DEFAULT_HEADLESS
    navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    json_log_file: str = ""
    login_email: str | None = None
    login_password: str | None = None

    @classmethod
    def load_from_env(cls) -> Config:
        apps_script_url = _clean_url(_require_env("APPS_SCRIPT_URL"), key="APPS_SCRIPT_URL")
        headless = parse_bool(_optional_env("HEADLESS"), key="HEADLESS", default=DEFAULT_HEADLESS)
        navigation_timeout_ms = parse_positive_int(
            _optional_env("NAVIGATION_TIMEOUT_MS"),
            key="NAVIGATION_TIMEOUT_MS",
            default=DEFAULT_NAVIGATION_TIMEOUT_MS,
        )
        return cls(
            apps_script_url=apps_script_url,
            headless=headless,
            navigation_timeout_ms=navigation_timeout_ms,
            json_log_file=json_log_file_from_env(),
            login_email=_optional_env("LOGIN_EMAIL"),
            # Passwords are not stripped.
            login_password=os.getenv("LOGIN_PASSWORD") or None,
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    return Config.load_from_env()
