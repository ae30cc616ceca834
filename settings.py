"""Runtime settings, read from the environment (and ``.env`` when present)."""
from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _bool(val: str) -> bool:
    return val.strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Settings:
    bot_token: str = os.getenv("BOT_TOKEN", "")
    config_path: str = os.getenv("PRICEBOT_CONFIG_PATH", "config.json")
    storage: str = os.getenv("PRICEBOT_STORAGE", "json")   # json | sqlite
    db_path: str = os.getenv("PRICEBOT_DB_PATH", "pricebot.db")
    api_url: str = os.getenv("COINGECKO_API_URL", "https://api.coingecko.com/api/v3")
    http_timeout: float = float(os.getenv("PRICEBOT_HTTP_TIMEOUT", "10"))
    sync_commands: bool = _bool(os.getenv("PRICEBOT_SYNC_COMMANDS", "true"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
