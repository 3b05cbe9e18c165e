"""Runtime configuration for the microfeed core."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .credentials import DEFAULT_ROUNDS
from .database import resolve_database_path

CONFIG_ENV_VAR = "MICROFEED_CONFIG"
DB_PATH_ENV_VAR = "MICROFEED_DB_PATH"


@dataclass(frozen=True)
class Settings:
    """Tunables for storage, hashing and output."""

    database_path: Path
    password_rounds: int = DEFAULT_ROUNDS
    busy_timeout: float = 5.0
    feed_page_size: int = 30
    log_level: str = "INFO"

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw mapping data, as loaded from YAML."""

        unknown = set(data.keys()) - {
            "database_path",
            "password_rounds",
            "busy_timeout",
            "feed_page_size",
            "log_level",
        }
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        raw_path = data.get("database_path")
        if raw_path:
            candidate = Path(str(raw_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        password_rounds = _positive_int(data, "password_rounds", DEFAULT_ROUNDS)
        feed_page_size = _positive_int(data, "feed_page_size", 30)

        try:
            busy_timeout = float(data.get("busy_timeout", 5.0))  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise ValueError("busy_timeout must be a number of seconds") from exc
        if busy_timeout < 0:
            raise ValueError("busy_timeout must not be negative")

        log_level = str(data.get("log_level", "INFO")).upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"log_level '{log_level}' is not a recognised logging level")

        return Settings(
            database_path=database_path,
            password_rounds=password_rounds,
            busy_timeout=busy_timeout,
            feed_page_size=feed_page_size,
            log_level=log_level,
        )


def _positive_int(data: Mapping[str, object], key: str, default: int) -> int:
    try:
        value = int(data.get(key, default))  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be an integer") from exc
    if value < 1:
        raise ValueError(f"{key} must be a positive integer")
    return value


def load_settings(config_path: Optional[Path], environ: Optional[Dict[str, str]] = None) -> Settings:
    """Load settings from an optional YAML file, then apply environment overrides."""

    env = os.environ if environ is None else environ
    raw: Dict[str, object] = {}
    base_path: Path | None = None
    if config_path is not None:
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        raw = loaded
        base_path = config_path.parent

    settings = Settings.from_dict(raw, base_path=base_path)
    db_override = env.get(DB_PATH_ENV_VAR)
    if db_override:
        settings = replace(settings, database_path=resolve_database_path(db_override))
    return settings


def resolve_config_path(env_value: Optional[str]) -> Optional[Path]:
    """Resolve the configuration file path; ``None`` when no file is configured."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    candidate = (Path(__file__).resolve().parent.parent / "config" / "microfeed.yaml").resolve(strict=False)
    return candidate if candidate.exists() else None


__all__ = [
    "CONFIG_ENV_VAR",
    "DB_PATH_ENV_VAR",
    "Settings",
    "load_settings",
    "resolve_config_path",
]
