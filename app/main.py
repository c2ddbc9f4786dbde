import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.db.kv import get_store
from app.routes.reminders import router as reminders_router
from app.scheduler import create_scheduler, refresh_schedules

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Application lifespan  (startup / shutdown)
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── Startup ──────────────────────────────────────────────────────────────
    logger.info("Starting reminder scheduler…")
    _scheduler = create_scheduler()
    _scheduler.start()

    # Roll over anything that went stale while the service was down
    try:
        stats = await refresh_schedules()
        logger.info("Startup refresh: %s", stats)
    except Exception as exc:
        logger.warning("Startup refresh failed (non-fatal): %s", exc)

    yield   # application runs here

    # ── Shutdown ─────────────────────────────────────────────────────────────
    logger.info("Shutting down reminder scheduler…")
    _scheduler.shutdown(wait=False)
    await get_store().close()


app = FastAPI(
    title="Gratitude Reminder Service",
    description="Random daily reminders delivered by VAPID-authenticated Web Push",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

app.include_router(reminders_router, prefix="/api")


@app.get("/")
def root():
    """API information."""
    return {
        "app": "Gratitude Reminder Service",
        "version": "1.0.0",
        "status": "active",
    }
