"""Environment-driven settings for the GameHub API.

``load_config()`` reads the process environment once and returns a plain dict
that ``create_app`` merges into ``app.config``.
"""
from __future__ import annotations

import os
import re
from typing import Mapping, Optional

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.I)
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


class ConfigError(Exception):
    """Raised when a setting is missing or malformed."""


def parse_duration(value: str, name: str = "duration") -> int:
    """Parse ``"30"``, ``"30s"``, ``"15m"``, ``"48h"`` or ``"7d"`` into seconds."""
    m = _DURATION_RE.match(str(value))
    if not m:
        raise ConfigError(f"{name} must be seconds or a number with s/m/h/d suffix, got {value!r}")
    return int(m.group(1)) * _UNIT_SECONDS[m.group(2).lower()]


def _env_bool(env: Mapping[str, str], key: str, default: str) -> bool:
    return env.get(key, default).strip().lower() in ("1", "true", "yes", "on")


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None


def load_config(env: Optional[Mapping[str, str]] = None, testing: bool = False) -> dict:
    env = os.environ if env is None else env

    db_path = env.get("DB_PATH", os.path.join(BASE_DIR, "gamehub.db"))
    db_uri = env.get("DATABASE_URL") or f"sqlite:///{db_path}"

    secret = env.get("JWT_SECRET") or env.get("SECRET_KEY")
    if not secret:
        if not testing:
            raise ConfigError("JWT_SECRET environment variable is required")
        secret = "test-secret"

    return {
        "SECRET_KEY": secret,
        "SQLALCHEMY_DATABASE_URI": db_uri,
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "ACCESS_TOKEN_TTL": parse_duration(env.get("JWT_ACCESS_EXPIRATION", "15m"), "JWT_ACCESS_EXPIRATION"),
        "REFRESH_TOKEN_TTL": parse_duration(env.get("JWT_REFRESH_EXPIRATION", "7d"), "JWT_REFRESH_EXPIRATION"),
        "JOIN_TOKEN_TTL": parse_duration(env.get("JOIN_TOKEN_TTL", "30s"), "JOIN_TOKEN_TTL"),
        "BASE_XP_PER_LEVEL": _env_int(env, "BASE_XP_PER_LEVEL", 1000),
        "AUTO_CREATE_TABLES": _env_bool(env, "AUTO_CREATE_TABLES", "1"),
        "LOG_LEVEL": env.get("LOG_LEVEL", "INFO").upper(),
        "SERVER_HOST": env.get("SERVER_HOST", "0.0.0.0"),
        "SERVER_PORT": _env_int(env, "SERVER_PORT", 8080),
    }
