"""Environment-driven settings.

Values are read at call time so tests and the CLI can override them through
the environment after import.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_MODEL = "claude-haiku-4-5-20251001"
DEFAULT_RADIUS = 1500


def database_url() -> str:
    return os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'data' / 'competitor_watcher.db'}")


def anthropic_api_key() -> str | None:
    return os.getenv("ANTHROPIC_API_KEY") or None


def anthropic_model() -> str:
    return os.getenv("ANTHROPIC_MODEL", DEFAULT_MODEL)


def google_api_key() -> str | None:
    return os.getenv("GOOGLE_API_KEY") or None


def reports_dir() -> Path:
    path = Path(os.getenv("REPORTS_DIR", "reports"))
    path.mkdir(parents=True, exist_ok=True)
    return path


def configure_logging(level: str | None = None) -> None:
    """Set up root logging for the CLI and web entry points."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
