# Web Push sender: VAPID-authenticated, empty-body "wake" pushes.

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from app.core.config import settings
from app.core.errors import DeliveryFailed
from app.models.reminder import PushSubscription
from app.services.vapid import vapid_authorization

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    endpoint: str
    status_code: int


def send_push(
    subscription: PushSubscription,
    *,
    subject: Optional[str] = None,
    private_key: Optional[str] = None,
    public_key: Optional[str] = None,
    ttl: Optional[int] = None,
    timeout: Optional[float] = None,
) -> PushResult:
    """
    POST an empty push to the subscription endpoint.

    The body carries no payload; the service worker shows its default
    notification when woken. Raises SigningError if the token cannot be
    built and DeliveryFailed on any non-2xx answer or transport error.
    """
    endpoint = subscription.endpoint
    authorization = vapid_authorization(
        endpoint,
        subject or settings.VAPID_SUBJECT,
        private_key or settings.VAPID_PRIVATE_KEY,
        public_key or settings.VAPID_PUBLIC_KEY,
    )
    headers = {
        "Authorization": authorization,
        "TTL": str(ttl if ttl is not None else settings.PUSH_TTL_SECONDS),
        "Content-Length": "0",
    }

    try:
        response = requests.post(
            endpoint,
            headers=headers,
            data=b"",
            timeout=timeout if timeout is not None else settings.PUSH_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        logger.error("Push transport error → %s: %s", endpoint[:60], exc)
        raise DeliveryFailed(endpoint, None, str(exc)) from exc

    if not 200 <= response.status_code < 300:
        logger.error("Push failed: %s %s", response.status_code, response.text)
        raise DeliveryFailed(endpoint, response.status_code, response.text)

    logger.info("Push sent OK: %s → %s", endpoint[:60], response.status_code)
    return PushResult(endpoint=endpoint, status_code=response.status_code)
