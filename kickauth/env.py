from __future__ import annotations

import logging
import os
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv

from .constants import LOGGER


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_scopes_env(key: str) -> list[str]:
    raw = os.getenv(key, "")
    return [item for item in raw.replace(",", " ").split() if item]


def get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a numeric value.")


def get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    load_dotenv(env_path, override=True)


def validate_env() -> None:
    required = ("KICK_CLIENT_ID", "KICK_CLIENT_SECRET")
    missing = [key for key in required if not os.getenv(key, "").strip()]
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    public_url = os.getenv("KICK_PUBLIC_URL", "").strip()
    if public_url:
        parsed_public_url = urlparse(public_url)
        if parsed_public_url.scheme not in {"http", "https"} or not parsed_public_url.netloc:
            raise RuntimeError(
                "KICK_PUBLIC_URL must be an absolute http(s) URL (for example: "
                "https://app.example.com)."
            )
        if parsed_public_url.scheme != "https":
            LOGGER.warning("KICK_PUBLIC_URL is not HTTPS; cookies will not be marked secure.")

    callback_path = os.getenv("KICK_CALLBACK_PATH", "").strip()
    if callback_path and not callback_path.startswith("/"):
        raise RuntimeError("KICK_CALLBACK_PATH must start with '/'.")


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("KICK_AUTH_DEBUG", "0"))
    level = logging.DEBUG if debug_enabled else logging.INFO
    logging.basicConfig(level=level)
    LOGGER.setLevel(level)
    return debug_enabled
