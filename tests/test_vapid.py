import json
import time

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from app.core.config import settings
from app.core.errors import SigningError
from app.services.vapid import (
    DerSignature,
    RawSignature,
    audience_for,
    b64url_decode,
    b64url_encode,
    create_vapid_jwt,
    import_private_key,
    normalize_signature,
    public_key_b64,
    vapid_authorization,
)

ENDPOINT = "https://fcm.googleapis.com/fcm/send/dGVzdA:APA91b"


def _raw_scalar_b64(key: ec.EllipticCurvePrivateKey) -> str:
    return b64url_encode(key.private_numbers().private_value.to_bytes(32, "big"))


def _segments(token: str) -> list[str]:
    parts = token.split(".")
    assert len(parts) == 3
    return parts


class TestToken:
    def test_three_base64url_segments(self):
        token = create_vapid_jwt(audience_for(ENDPOINT), "mailto:a@b.c", settings.VAPID_PRIVATE_KEY)
        header, payload, signature = _segments(token)

        for seg in (header, payload, signature):
            assert "=" not in seg and "+" not in seg and "/" not in seg

        assert json.loads(b64url_decode(header)) == {"alg": "ES256", "typ": "JWT"}
        assert len(b64url_decode(signature)) == 64

    def test_claims(self):
        before = time.time()
        token = create_vapid_jwt(audience_for(ENDPOINT), "mailto:a@b.c", settings.VAPID_PRIVATE_KEY)
        claims = json.loads(b64url_decode(_segments(token)[1]))

        assert claims["aud"] == "https://fcm.googleapis.com"
        assert claims["sub"] == "mailto:a@b.c"
        assert before + 11 * 3600 + 59 * 60 <= claims["exp"] <= time.time() + 12 * 3600 + 60

    def test_signature_verifies_against_public_key(self, vapid_key):
        token = create_vapid_jwt("https://push.example.com", "mailto:a@b.c", vapid_key)
        header, payload, signature = _segments(token)

        raw = b64url_decode(signature)
        der = encode_dss_signature(int.from_bytes(raw[:32], "big"), int.from_bytes(raw[32:], "big"))
        # raises InvalidSignature on mismatch
        vapid_key.public_key().verify(der, f"{header}.{payload}".encode(), ec.ECDSA(hashes.SHA256()))

    def test_fixed_clock(self, vapid_key):
        token = create_vapid_jwt("https://x.example", "mailto:a@b.c", vapid_key, now=1_700_000_000)
        assert json.loads(b64url_decode(_segments(token)[1]))["exp"] == 1_700_000_000 + 12 * 3600

    def test_authorization_header(self):
        value = vapid_authorization(ENDPOINT, "mailto:a@b.c", settings.VAPID_PRIVATE_KEY, settings.VAPID_PUBLIC_KEY)
        assert value.startswith("vapid t=")
        assert value.endswith(f", k={settings.VAPID_PUBLIC_KEY}")


class TestAudience:
    @pytest.mark.parametrize(
        "endpoint,expected",
        [
            ("https://updates.push.services.mozilla.com/wpush/v2/gAAA", "https://updates.push.services.mozilla.com"),
            ("https://push.example.com:8443/a/b?c=d", "https://push.example.com:8443"),
            ("http://localhost/x", "http://localhost"),
        ],
    )
    def test_scheme_and_host(self, endpoint, expected):
        assert audience_for(endpoint) == expected

    def test_relative_url_rejected(self):
        with pytest.raises(SigningError):
            audience_for("/just/a/path")


class TestKeyImport:
    def test_raw_scalar(self, vapid_key):
        key = import_private_key(_raw_scalar_b64(vapid_key))
        assert public_key_b64(key) == public_key_b64(vapid_key)

    def test_pkcs8_der(self, vapid_key):
        der = vapid_key.private_bytes(
            serialization.Encoding.DER,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        key = import_private_key(b64url_encode(der))
        assert key.private_numbers().private_value == vapid_key.private_numbers().private_value

    def test_wrong_curve_rejected(self):
        other = ec.generate_private_key(ec.SECP384R1())
        der = other.private_bytes(
            serialization.Encoding.DER,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        with pytest.raises(SigningError):
            import_private_key(b64url_encode(der))

    @pytest.mark.parametrize("blob", [b"\x00" * 32, b"short", b"\x30" * 100])
    def test_garbage_rejected(self, blob):
        with pytest.raises(SigningError):
            import_private_key(b64url_encode(blob))

    def test_public_key_is_uncompressed_point(self, vapid_key):
        point = b64url_decode(public_key_b64(vapid_key))
        assert len(point) == 65 and point[0] == 0x04


class TestSignatureNormalisation:
    def test_raw_passthrough(self):
        data = bytes(range(64))
        assert normalize_signature(RawSignature(data)) == data

    def test_raw_wrong_length(self):
        with pytest.raises(SigningError):
            RawSignature(b"\x01" * 63)

    def test_der_short_integers_left_padded(self):
        raw = normalize_signature(DerSignature(r=1, s=0x0203))
        assert raw == b"\x00" * 31 + b"\x01" + b"\x00" * 30 + b"\x02\x03"

    def test_der_long_integers_keep_low_order_bytes(self):
        r = (0xFF << 256) | 5      # 33 bytes
        raw = normalize_signature(DerSignature(r=r, s=7))
        assert raw[:32] == b"\x00" * 31 + b"\x05"
        assert raw[32:] == b"\x00" * 31 + b"\x07"

    def test_from_der(self):
        der = encode_dss_signature(2**255 + 1, 42)
        sig = DerSignature.from_der(der)
        assert (sig.r, sig.s) == (2**255 + 1, 42)
        assert len(normalize_signature(sig)) == 64

    def test_union_members_share_to_raw(self):
        der = DerSignature(r=3, s=4)
        raw = RawSignature(der.to_raw())
        assert raw.to_raw() == der.to_raw() == normalize_signature(raw)

    def test_unknown_signature_type(self):
        with pytest.raises(SigningError):
            normalize_signature(b"\x00" * 64)

    def test_malformed_der(self):
        with pytest.raises(SigningError):
            DerSignature.from_der(b"\x30\x02\x02")
