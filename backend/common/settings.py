"""
Delivery Backend Settings

Environment-driven configuration. A backend/.env file is loaded when present.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

DEFAULT_RETENTION_DAYS = 30
DEFAULT_CLEANUP_INTERVAL_MINUTES = 60


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def parse_api_tokens(raw: str) -> Dict[str, str]:
    """
    Parse "token:manager_id" pairs separated by commas or whitespace.

    Entries without a manager id are ignored.
    """
    tokens: Dict[str, str] = {}
    for part in raw.replace(",", " ").split():
        token, sep, manager_id = part.partition(":")
        if sep and token and manager_id:
            tokens[token] = manager_id
    return tokens


@dataclass
class Settings:
    mode: str = "prod"
    mongo_url: str = "mongodb://localhost:27017"
    db_name: str = "bookstore_delivery"
    api_tokens: Dict[str, str] = field(default_factory=dict)
    timezone: str = "UTC"
    retention_days: int = DEFAULT_RETENTION_DAYS
    cleanup_interval_minutes: int = DEFAULT_CLEANUP_INTERVAL_MINUTES
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def uses_memory_store(self) -> bool:
        return self.mode in {"demo", "test"}


def load_settings() -> Settings:
    """Read settings from the current environment."""
    origins = os.environ.get("CORS_ORIGINS", "*")
    return Settings(
        mode=os.environ.get("DELIVERY_MODE", "prod").lower(),
        mongo_url=os.environ.get("MONGO_URL", "mongodb://localhost:27017"),
        db_name=os.environ.get("DB_NAME", "bookstore_delivery"),
        api_tokens=parse_api_tokens(os.environ.get("DELIVERY_API_TOKENS", "")),
        timezone=os.environ.get("DELIVERY_TIMEZONE", "UTC"),
        retention_days=_env_int("NOTIFICATION_RETENTION_DAYS", DEFAULT_RETENTION_DAYS),
        cleanup_interval_minutes=_env_int(
            "NOTIFICATION_CLEANUP_INTERVAL_MINUTES", DEFAULT_CLEANUP_INTERVAL_MINUTES
        ),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
    )
