from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_HOURLY_RATE = 25.0
DEFAULT_DATABASE_PATH = "hourbook.db"


@dataclass(frozen=True, slots=True)
class Config:
    discord_token: str
    guild_id: int
    default_hourly_rate: float
    database_path: Path


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value.strip()


def _required_int_env(name: str) -> int:
    value = _required_env(name)
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc

    if parsed <= 0:
        raise ValueError(f"Environment variable {name} must be positive")
    return parsed


def _positive_float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        parsed = float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a number") from exc

    if parsed <= 0:
        raise ValueError(f"Environment variable {name} must be positive")
    return parsed


def load_config() -> Config:
    database_path = os.getenv("DATABASE_PATH", "").strip() or DEFAULT_DATABASE_PATH

    return Config(
        discord_token=_required_env("DISCORD_TOKEN"),
        guild_id=_required_int_env("GUILD_ID"),
        default_hourly_rate=_positive_float_env("HOURLY_RATE", DEFAULT_HOURLY_RATE),
        database_path=Path(database_path),
    )
