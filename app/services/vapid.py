"""
VAPID token signing (RFC 8292) with ECDSA P-256 / SHA-256.

Token = base64url(header) "." base64url(payload) "." base64url(r‖s)

The JWS ES256 format requires the signature as 64 raw bytes (32-byte r,
32-byte s). `cryptography` hands back DER, so every signature goes through
`normalize_signature()` before encoding.
"""
import base64
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
from urllib.parse import urlsplit

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from app.core.config import settings
from app.core.errors import SigningError

logger = logging.getLogger(__name__)

COORD_BYTES = 32
JWT_HEADER = {"alg": "ES256", "typ": "JWT"}


# ─────────────────────────────────────────────────────────────────────────────
# base64url
# ─────────────────────────────────────────────────────────────────────────────

def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    text = text.strip()
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _json_segment(obj: dict) -> str:
    return b64url_encode(json.dumps(obj, separators=(",", ":")).encode("utf-8"))


# ─────────────────────────────────────────────────────────────────────────────
# Key import
# ─────────────────────────────────────────────────────────────────────────────

class KeyImportStrategy(str, Enum):
    RAW = "raw"       # bare 32-byte private scalar (what web-push tooling prints)
    PKCS8 = "pkcs8"   # DER PrivateKeyInfo


IMPORT_ORDER = (KeyImportStrategy.RAW, KeyImportStrategy.PKCS8)


def _import_raw(key_bytes: bytes) -> Optional[ec.EllipticCurvePrivateKey]:
    if len(key_bytes) != COORD_BYTES:
        return None
    try:
        return ec.derive_private_key(int.from_bytes(key_bytes, "big"), ec.SECP256R1())
    except ValueError:
        return None


def _import_pkcs8(key_bytes: bytes) -> Optional[ec.EllipticCurvePrivateKey]:
    try:
        key = serialization.load_der_private_key(key_bytes, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm):
        return None
    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP256R1):
        return None
    return key


_IMPORTERS = {
    KeyImportStrategy.RAW: _import_raw,
    KeyImportStrategy.PKCS8: _import_pkcs8,
}


def import_private_key(private_key_b64: str) -> ec.EllipticCurvePrivateKey:
    """Decode a base64url VAPID private key, trying each strategy in IMPORT_ORDER."""
    try:
        key_bytes = b64url_decode(private_key_b64)
    except (ValueError, TypeError) as exc:
        raise SigningError(f"VAPID private key is not valid base64url: {exc}") from exc

    for strategy in IMPORT_ORDER:
        key = _IMPORTERS[strategy](key_bytes)
        if key is not None:
            logger.debug("VAPID private key imported via %s", strategy.value)
            return key

    raise SigningError(
        f"Could not import VAPID private key ({len(key_bytes)} bytes) as any of "
        f"{[s.value for s in IMPORT_ORDER]}"
    )


def public_key_b64(private_key: ec.EllipticCurvePrivateKey) -> str:
    """Uncompressed public point (65 bytes), base64url — the `k=` value."""
    point = private_key.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )
    return b64url_encode(point)


# ─────────────────────────────────────────────────────────────────────────────
# Signatures
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RawSignature:
    data: bytes

    def __post_init__(self):
        if len(self.data) != 2 * COORD_BYTES:
            raise SigningError(f"raw signature must be {2 * COORD_BYTES} bytes, got {len(self.data)}")

    def to_raw(self) -> bytes:
        return self.data


@dataclass(frozen=True)
class DerSignature:
    r: int
    s: int

    @classmethod
    def from_der(cls, der: bytes) -> "DerSignature":
        try:
            r, s = decode_dss_signature(der)
        except ValueError as exc:
            raise SigningError(f"malformed DER signature: {exc}") from exc
        return cls(r=r, s=s)

    def to_raw(self) -> bytes:
        return _fixed_width(self.r) + _fixed_width(self.s)


Signature = Union[RawSignature, DerSignature]


def _fixed_width(value: int) -> bytes:
    """Big-endian `value` as exactly 32 bytes: left-padded, or low-order bytes kept."""
    encoded = value.to_bytes(max(1, (value.bit_length() + 7) // 8), "big")
    return encoded[-COORD_BYTES:].rjust(COORD_BYTES, b"\x00")


def normalize_signature(signature: Signature) -> bytes:
    """r‖s as 64 raw bytes for either member of the signature union."""
    if not isinstance(signature, (RawSignature, DerSignature)):
        raise SigningError(f"unsupported signature type: {type(signature).__name__}")
    return signature.to_raw()


# ─────────────────────────────────────────────────────────────────────────────
# Token
# ─────────────────────────────────────────────────────────────────────────────

def audience_for(endpoint: str) -> str:
    """`scheme://host[:port]` of a push endpoint."""
    parts = urlsplit(endpoint)
    if not parts.scheme or not parts.netloc:
        raise SigningError(f"push endpoint is not an absolute URL: {endpoint!r}")
    return f"{parts.scheme}://{parts.netloc}"


def create_vapid_jwt(
    audience: str,
    subject: str,
    private_key: Union[str, ec.EllipticCurvePrivateKey],
    *,
    now: Optional[float] = None,
    expiry_seconds: int = settings.VAPID_EXPIRY_SECONDS,
) -> str:
    """Sign `{aud, exp, sub}` as a compact ES256 JWT."""
    if isinstance(private_key, str):
        private_key = import_private_key(private_key)

    issued = int(now if now is not None else time.time())
    claims = {"aud": audience, "exp": issued + expiry_seconds, "sub": subject}
    signing_input = f"{_json_segment(JWT_HEADER)}.{_json_segment(claims)}"

    try:
        der = private_key.sign(signing_input.encode("ascii"), ec.ECDSA(hashes.SHA256()))
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SigningError(f"ECDSA signing failed: {exc}") from exc

    raw = normalize_signature(DerSignature.from_der(der))
    return f"{signing_input}.{b64url_encode(raw)}"


def vapid_authorization(endpoint: str, subject: str, private_key: str, public_key: str) -> str:
    """Value for the `Authorization` header of a push request."""
    token = create_vapid_jwt(audience_for(endpoint), subject, private_key)
    return f"vapid t={token}, k={public_key}"
