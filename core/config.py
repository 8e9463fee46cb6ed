"""Application settings.

Reads configuration from environment variables, loading the repo-root
``.env`` file first when it exists:

- RECON_TOLERANCE: max header/line deviation accepted at save (default 0.01)
- LOG_LEVEL: logging level name (default INFO)
- LOG_JSON: emit JSON log lines instead of human-readable ones (default false)
- DB_PATH: SQLite database used by ``store.db.SqliteStore``
- ALLOCATOR_DEFAULT_WIDTH: zero-padding width when a parameter row has none
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


REPO_ROOT = Path(__file__).resolve().parents[1]
ENV_PATH = REPO_ROOT / ".env"
DEFAULT_DB_PATH = REPO_ROOT / "forms_core.db"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings."""
    recon_tolerance: Decimal = Decimal("0.01")
    log_level: str = "INFO"
    log_json: bool = False
    db_path: Path = DEFAULT_DB_PATH
    allocator_default_width: int = 3


def _read_tolerance(raw: str) -> Decimal:
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise ValueError(f"RECON_TOLERANCE is not a number: {raw!r}")
    if value <= 0:
        raise ValueError("RECON_TOLERANCE must be greater than zero")
    return value


def _read_width(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"ALLOCATOR_DEFAULT_WIDTH is not an integer: {raw!r}")
    if value < 1:
        raise ValueError("ALLOCATOR_DEFAULT_WIDTH must be at least 1")
    return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from the environment (cached).

    Raises:
        ValueError: If a variable is set to an unusable value
    """
    if ENV_PATH.exists():
        load_dotenv(ENV_PATH)

    return Settings(
        recon_tolerance=_read_tolerance(os.getenv("RECON_TOLERANCE", "0.01")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_json=os.getenv("LOG_JSON", "false").strip().lower() in _TRUTHY,
        db_path=Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH))),
        allocator_default_width=_read_width(os.getenv("ALLOCATOR_DEFAULT_WIDTH", "3")),
    )


def reset_settings() -> None:
    """Drop cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
