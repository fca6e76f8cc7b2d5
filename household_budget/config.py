from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel
import os

# Load .env automatically
load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./budget.db")
    sql_echo: bool = _env_flag("SQL_ECHO")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: List[str] = _env_list(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000",
    )

    telegram_bot_token: Optional[str] = os.getenv("TELEGRAM_BOT_TOKEN") or None
    telegram_api_url: str = os.getenv("TELEGRAM_API_URL", "https://api.telegram.org")
    telegram_webhook_secret: Optional[str] = os.getenv("TELEGRAM_WEBHOOK_SECRET") or None
    telegram_polling: bool = _env_flag("TELEGRAM_POLLING")
    telegram_poll_timeout: int = int(os.getenv("TELEGRAM_POLL_TIMEOUT", "30"))


# Global settings instance
settings = Settings()
