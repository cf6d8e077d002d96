# backend/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _as_list(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    PORT: int = int(os.getenv("PORT", "3000"))
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./meetings.db")
    MS_APP_ID: str = os.getenv("MS_APP_ID", "")
    MS_AUTHORITY: str = os.getenv("MS_AUTHORITY", "https://login.microsoftonline.com/common")
    GRAPH_API_ENDPOINT: str = os.getenv("GRAPH_API_ENDPOINT", "https://graph.microsoft.com/v1.0")
    GRAPH_TIMEOUT_SECONDS: float = float(os.getenv("GRAPH_TIMEOUT_SECONDS", "20"))
    DEVICE_FLOW_MAX_WAIT_SECONDS: float = float(os.getenv("DEVICE_FLOW_MAX_WAIT_SECONDS", "300"))
    CORS_ORIGINS: list = _as_list(os.getenv("CORS_ORIGINS", "*"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
