"""
Shared fixtures. VAPID credentials are generated per test session and put
into the environment before anything imports app.core.config.
"""
import base64
import os
from unittest.mock import Mock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


_TEST_KEY = ec.generate_private_key(ec.SECP256R1())

os.environ["VAPID_PRIVATE_KEY"] = _b64url(_TEST_KEY.private_numbers().private_value.to_bytes(32, "big"))
os.environ["VAPID_PUBLIC_KEY"] = _b64url(
    _TEST_KEY.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )
)
os.environ["VAPID_SUBJECT"] = "mailto:test@example.com"
os.environ["KV_BACKEND"] = "memory"

from app.db.memory import MemoryKeyValueStore  # noqa: E402
from app.services.push_service import PushResult  # noqa: E402

ENDPOINT = "https://push.example.com/wpush/v2/abc123"


@pytest.fixture
def vapid_key() -> ec.EllipticCurvePrivateKey:
    return _TEST_KEY


@pytest.fixture
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def sender() -> Mock:
    """Stand-in for send_push that records calls and always succeeds."""
    return Mock(side_effect=lambda sub: PushResult(endpoint=sub.endpoint, status_code=201))


@pytest.fixture
def subscription_json() -> str:
    return '{"endpoint": "%s", "keys": {"p256dh": "pk", "auth": "au"}}' % ENDPOINT
