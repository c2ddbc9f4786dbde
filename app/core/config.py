"""
Centralised application settings loaded from environment variables / .env file.
VAPID credentials are required — missing values will abort at startup.
"""
import os
import sys
from dotenv import load_dotenv

load_dotenv()


def _require(key: str) -> str:
    """Read env var or abort with a clear error message."""
    value = os.getenv(key, "").strip()
    if not value:
        print(
            f"\n❌  MISSING REQUIRED ENV VAR: '{key}'\n"
            f"    Set this in your environment or .env file "
            f"(run generate_vapid_keys.py for a fresh VAPID pair).\n",
            file=sys.stderr,
        )
        sys.exit(1)
    return value


class _Settings:
    # ── VAPID (required) ──────────────────────────────────────────────────────
    VAPID_PUBLIC_KEY: str  = _require("VAPID_PUBLIC_KEY")
    VAPID_PRIVATE_KEY: str = _require("VAPID_PRIVATE_KEY")
    VAPID_SUBJECT: str     = _require("VAPID_SUBJECT")

    # ── Storage ───────────────────────────────────────────────────────────────
    KV_BACKEND: str     = os.getenv("KV_BACKEND", "mongo").strip().lower()
    MONGO_URI: str      = os.getenv("MONGO_URI", "mongodb://localhost:27017/gratitude")
    MONGO_DB_NAME: str  = os.getenv("MONGO_DB_NAME", "gratitude")
    KV_COLLECTION: str  = os.getenv("KV_COLLECTION", "kv")

    # ── Scheduling ────────────────────────────────────────────────────────────
    BUCKET_TTL_SECONDS: int = int(os.getenv("BUCKET_TTL_SECONDS", str(60 * 60 * 48)))
    REFRESH_PAGE_SIZE: int  = int(os.getenv("REFRESH_PAGE_SIZE", "100"))
    MIN_REMINDERS_PER_DAY: int = 1
    MAX_REMINDERS_PER_DAY: int = 10

    # ── Push delivery ─────────────────────────────────────────────────────────
    PUSH_TTL_SECONDS: int      = int(os.getenv("PUSH_TTL_SECONDS", "86400"))
    PUSH_TIMEOUT_SECONDS: float = float(os.getenv("PUSH_TIMEOUT_SECONDS", "10"))
    VAPID_EXPIRY_SECONDS: int  = 12 * 60 * 60

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = _Settings()
