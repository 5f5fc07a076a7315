import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def is_enabled(flag: str, default: bool = False) -> bool:
    return os.getenv(flag, str(default)).lower() == "true"


def _int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _csv(name: str) -> List[str]:
    raw = os.getenv(name, "") or ""
    return [x.strip() for x in raw.split(",") if x.strip()]


class Settings:
    def __init__(self) -> None:
        self.GYMLEDGER_VERSION = os.getenv("GYMLEDGER_VERSION", "0.1.0")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

        self.SUPABASE_URL = os.getenv("SUPABASE_URL", "").strip()
        self.SUPABASE_KEY = (
            os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY") or ""
        ).strip()

        self.CURRENCY = os.getenv("CURRENCY", "INR")
        self.EXPIRING_SOON_DAYS = _int("EXPIRING_SOON_DAYS", 7)

        # Empty allowlist means CORS middleware is not installed.
        self.CORS_ALLOW_ORIGINS = _csv("CORS_ALLOW_ORIGINS")
        self.DOCS_ENABLED = is_enabled("DOCS_ENABLED", True)


settings = Settings()
