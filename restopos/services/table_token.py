"""
Table Access Token Codec

Issues and decodes the opaque token printed (via QR) on each table.

A token carries ``{table number, QR version, issued-at}``. Two separate
checks gate an order:

    1. ``decode`` - is the token well formed, authentic and fresh (24h)?
    2. ``is_live`` - does its version still equal the table's stored version?

Regenerating a table's QR bumps the stored version, which revokes every
earlier token for that table without any revocation list.

Wire format::

    base64url(json payload) "." base64url(hmac_sha256(secret, payload))

Author: Khalil Bannouri
Version: 4.0.0
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from restopos.core.config import get_settings
from restopos.core.exceptions import TokenInvalid

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Tolerated drift for tokens stamped slightly in the future
MAX_CLOCK_SKEW = timedelta(minutes=5)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


@dataclass(frozen=True)
class TableToken:
    """
    Decoded table token.

    Attributes:
        table_number: Public table number the token grants access to
        qr_version: QR version of the table at issuance
        issued_at: UTC issuance time (millisecond precision)
    """
    table_number: int
    qr_version: int
    issued_at: datetime

    def to_payload(self) -> dict:
        return {
            "tbl": self.table_number,
            "ver": self.qr_version,
            "iat": int(self.issued_at.timestamp() * 1000),
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "TableToken":
        table_number = payload.get("tbl")
        qr_version = payload.get("ver")
        issued_ms = payload.get("iat")

        for value in (table_number, qr_version, issued_ms):
            # bool is an int subclass; reject it explicitly
            if not isinstance(value, int) or isinstance(value, bool):
                raise TokenInvalid("token payload has missing or non-integer fields")
        if table_number < 1 or qr_version < 0 or issued_ms < 0:
            raise TokenInvalid("token payload has out-of-range fields")

        return cls(
            table_number=table_number,
            qr_version=qr_version,
            issued_at=datetime.fromtimestamp(issued_ms / 1000, tz=timezone.utc),
        )


class TableTokenCodec:
    """
    Encode/decode pair for table tokens.

    Pure apart from the wall clock, which is injectable for tests.
    """

    def __init__(
        self,
        secret: str,
        ttl: timedelta = timedelta(hours=24),
        clock: Optional[Clock] = None,
    ):
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._key = secret.encode("utf-8")
        self.ttl = ttl
        self._clock = clock or _utcnow

    def _sign(self, payload_part: str) -> str:
        digest = hmac.new(self._key, payload_part.encode("utf-8"), hashlib.sha256).digest()
        return _b64encode(digest)

    def issue(self, table_number: int, qr_version: int) -> str:
        """Create a token for ``table_number`` at ``qr_version``, stamped now."""
        if table_number < 1:
            raise ValueError("table_number must be positive")
        if qr_version < 0:
            raise ValueError("qr_version must not be negative")

        token = TableToken(
            table_number=table_number,
            qr_version=qr_version,
            issued_at=self._clock(),
        )
        raw = json.dumps(token.to_payload(), separators=(",", ":"), sort_keys=True)
        payload_part = _b64encode(raw.encode("utf-8"))
        return f"{payload_part}.{self._sign(payload_part)}"

    def decode(self, token: str) -> TableToken:
        """
        Structural and freshness check.

        Raises:
            TokenInvalid: malformed, forged, expired or future-dated token.
                Does NOT compare against the table's live QR version.
        """
        if not token or token.count(".") != 1:
            raise TokenInvalid("token is not two dot-separated parts")

        payload_part, signature = token.split(".")
        expected = self._sign(payload_part)
        if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
            raise TokenInvalid("token signature mismatch")

        try:
            payload = json.loads(_b64decode(payload_part))
        except (binascii.Error, ValueError) as e:
            raise TokenInvalid(f"token payload is not valid base64 JSON: {e}")
        if not isinstance(payload, dict):
            raise TokenInvalid("token payload is not an object")

        decoded = TableToken.from_payload(payload)

        now = self._clock()
        if now - decoded.issued_at > self.ttl:
            raise TokenInvalid(f"token expired (issued {decoded.issued_at.isoformat()})")
        if decoded.issued_at - now > MAX_CLOCK_SKEW:
            raise TokenInvalid("token issued in the future")

        return decoded

    @staticmethod
    def is_live(token: TableToken, current_version: int) -> bool:
        """Live-version check: only the table's current QR version is honoured."""
        return token.qr_version == current_version


def get_token_codec() -> TableTokenCodec:
    """Codec configured from application settings."""
    settings = get_settings()
    return TableTokenCodec(
        secret=settings.token_secret,
        ttl=timedelta(hours=settings.token_ttl_hours),
    )
