"""
Runtime settings.

Everything is read from TEAMMATCH_* environment variables, optionally
seeded from a .env file in the working directory.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .constants import DEFAULT_MATCH_POOL_SIZE, DEFAULT_MIN_OVERLAP_HOURS, DEFAULT_TOP_MATCHES
from .errors import ConfigError

BACKENDS = ("sqlite", "firestore")


def load_env() -> None:
    """Load .env from the working directory if present. Real env vars win."""
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)


def _float_var(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def _int_var(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ConfigError(f"{name} must be at least 1, got {value}")
    return value


@dataclass
class Settings:
    # Hard-filter threshold: minimum weekly overlap for time compatibility
    min_overlap_hours: float = DEFAULT_MIN_OVERLAP_HOURS
    match_pool_size: int = DEFAULT_MATCH_POOL_SIZE
    top_matches: int = DEFAULT_TOP_MATCHES

    backend: str = "sqlite"  # sqlite | firestore
    db_path: Path = Path("data/teammatch.db")
    firestore_project: str = ""
    firestore_token: str = ""

    log_level: str = "INFO"
    log_dir: Path = Path("logs")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Raises:
            ConfigError: On unparseable numbers, a negative threshold or an unknown backend
        """
        env = os.environ if env is None else env

        min_overlap = _float_var(env, "TEAMMATCH_MIN_OVERLAP_HOURS", DEFAULT_MIN_OVERLAP_HOURS)
        if min_overlap < 0:
            raise ConfigError(f"TEAMMATCH_MIN_OVERLAP_HOURS cannot be negative, got {min_overlap}")

        backend = env.get("TEAMMATCH_BACKEND", "sqlite").strip().lower() or "sqlite"
        if backend not in BACKENDS:
            raise ConfigError(f"TEAMMATCH_BACKEND must be one of {', '.join(BACKENDS)}, got {backend!r}")

        return cls(
            min_overlap_hours=min_overlap,
            match_pool_size=_int_var(env, "TEAMMATCH_MATCH_POOL_SIZE", DEFAULT_MATCH_POOL_SIZE),
            top_matches=_int_var(env, "TEAMMATCH_TOP_MATCHES", DEFAULT_TOP_MATCHES),
            backend=backend,
            db_path=Path(env.get("TEAMMATCH_DB_PATH", "data/teammatch.db")),
            firestore_project=env.get("TEAMMATCH_FIRESTORE_PROJECT", ""),
            firestore_token=env.get("TEAMMATCH_FIRESTORE_TOKEN", ""),
            log_level=env.get("TEAMMATCH_LOG_LEVEL", "INFO").upper(),
            log_dir=Path(env.get("TEAMMATCH_LOG_DIR", "logs")),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or build the process-wide settings."""
    global _settings

    if _settings is None:
        load_env()
        _settings = Settings.from_env()

    return _settings


def reset_settings():
    """Drop cached settings (useful for testing)."""
    global _settings
    _settings = None
