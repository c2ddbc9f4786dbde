"""One-off script: generate a VAPID key pair for the reminder service.

Usage:
    python generate_vapid_keys.py [mailto:you@example.com]

Prints the three env vars the service needs; paste them into .env.
Standalone on purpose: app.core.config refuses to load without these vars.
"""
import base64
import sys

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

SUBJECT = sys.argv[1] if len(sys.argv) > 1 else "mailto:admin@example.com"


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def main():
    key = ec.generate_private_key(ec.SECP256R1())
    public = key.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )
    private = key.private_numbers().private_value.to_bytes(32, "big")

    print(f"VAPID_PUBLIC_KEY={_b64url(public)}")
    print(f"VAPID_PRIVATE_KEY={_b64url(private)}")
    print(f"VAPID_SUBJECT={SUBJECT}")


main()
