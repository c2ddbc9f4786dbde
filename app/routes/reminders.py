"""
Reminder routes
  POST /api/subscribe               — store a push subscription for a user
  POST /api/settings                — save settings and regenerate today's schedule
  GET  /api/settings/{user_id}      — read saved settings
  GET  /api/schedule/{user_id}      — view the current schedule record
  GET  /api/vapid-public-key        — application server key for PushManager.subscribe()
  GET  /api/health                  — liveness ping
  POST /api/test-push               — manually fire a push to a user
  POST /api/dispatch                — manually run the minute dispatch
  POST /api/refresh                 — manually run the hourly refresh
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.config import settings
from app.core.errors import CorruptRecord, DeliveryFailed, InvalidTimezone, InvalidWindow, SigningError
from app.db import records
from app.db.kv import KeyValueStore, get_store
from app.models.reminder import SaveSettingsRequest, SubscribeRequest, UserRequest
from app.scheduler.dispatch import process_minute_bucket
from app.scheduler.refresh import refresh_schedules
from app.scheduler.schedule_builder import apply_settings
from app.services.push_service import send_push

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reminders"])


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────

@router.post("/subscribe", summary="Store a Web Push subscription")
async def subscribe(body: SubscribeRequest, store: KeyValueStore = Depends(get_store)):
    await records.save_subscription(store, body.user_id, body.subscription)
    logger.info("Stored subscription for user: %s", body.user_id)
    return {"success": True}


@router.post("/settings", summary="Save reminder settings")
async def save_settings(body: SaveSettingsRequest, store: KeyValueStore = Depends(get_store)):
    """
    Settings are replaced wholesale. When enabled, a fresh random schedule
    for the user's local today is generated immediately.
    """
    try:
        schedule = await apply_settings(store, body.user_id, body.settings)
    except (InvalidWindow, InvalidTimezone) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    if schedule is None:
        return {"success": True, "enabled": False}
    return {"success": True, "enabled": True, "scheduleDate": schedule.date}


@router.get("/settings/{user_id}", summary="Get reminder settings")
async def get_settings(user_id: str, store: KeyValueStore = Depends(get_store)):
    try:
        saved = await records.load_settings(store, user_id)
    except CorruptRecord as exc:
        logger.warning("Invalid settings payload for user %s: %s", user_id, exc)
        saved = None
    return {"settings": saved.model_dump(by_alias=True) if saved else None}


@router.get("/schedule/{user_id}", summary="View today's schedule")
async def get_schedule(user_id: str, store: KeyValueStore = Depends(get_store)):
    try:
        schedule = await records.load_schedule(store, user_id)
    except CorruptRecord as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return {"schedule": schedule.model_dump(by_alias=True) if schedule else None}


@router.get("/vapid-public-key", summary="VAPID application server key")
async def vapid_public_key():
    return {"publicKey": settings.VAPID_PUBLIC_KEY}


@router.get("/health", summary="Liveness ping")
async def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.post("/test-push", summary="Send a push right now")
async def test_push(body: UserRequest, store: KeyValueStore = Depends(get_store)):
    try:
        subscription = await records.load_subscription(store, body.user_id)
    except CorruptRecord:
        subscription = None
    if subscription is None:
        raise HTTPException(status_code=404, detail="No subscription found for user")

    try:
        await asyncio.to_thread(send_push, subscription)
    except (DeliveryFailed, SigningError) as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Failed to send push", "details": str(exc)},
        )
    return {"success": True, "message": "Test push sent"}


@router.post("/dispatch", summary="Run the minute dispatch now")
async def dispatch_now(store: KeyValueStore = Depends(get_store)):
    return {"status": "ok", "stats": await process_minute_bucket(store)}


@router.post("/refresh", summary="Run the schedule refresh now")
async def refresh_now(store: KeyValueStore = Depends(get_store)):
    return {"status": "ok", "stats": await refresh_schedules(store)}
