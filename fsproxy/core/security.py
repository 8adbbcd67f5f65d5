import base64
import hashlib
import hmac
import time
from collections.abc import Callable
from enum import Enum

from fsproxy.core.config import Settings


class SignOutcome(str, Enum):
    VALID = ""
    EXPIRE_MISSING = "expire missing"
    EXPIRE_INVALID = "expire invalid"
    EXPIRED = "expire expired"
    MISMATCH = "sign mismatch"

    @property
    def ok(self) -> bool:
        return self is SignOutcome.VALID


class SignatureCodec:
    """
    Expiring HMAC-SHA256 signatures over a resource path.

    A signature reads ``base64url(HMAC(secret, "<path>:<expire>")):<expire>``.
    ``expire`` is a Unix timestamp in seconds; ``0`` or less never expires.
    Signatures are not single-use: one stays valid for every request until it
    expires.
    """

    def __init__(self, secret: str | bytes, disabled: bool = False, clock: Callable[[], float] = time.time):
        self._secret = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
        self.disabled = disabled
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "SignatureCodec":
        return cls(settings.backend_token, disabled=settings.disable_sign)

    def sign(self, path: str, expire: int) -> str:
        digest = hmac.new(self._secret, f"{path}:{expire}".encode("utf-8"), hashlib.sha256).digest()
        return f"{base64.urlsafe_b64encode(digest).decode('ascii')}:{expire}"

    def sign_for(self, path: str, ttl_seconds: int) -> str:
        expire = int(self._clock()) + ttl_seconds if ttl_seconds > 0 else 0
        return self.sign(path, expire)

    def verify(self, path: str, signature: str) -> SignOutcome:
        if self.disabled:
            return SignOutcome.VALID

        expire_raw = signature.split(":")[-1]
        if not expire_raw:
            return SignOutcome.EXPIRE_MISSING
        try:
            expire = int(expire_raw)
        except ValueError:
            return SignOutcome.EXPIRE_INVALID
        if 0 < expire < self._clock():
            return SignOutcome.EXPIRED

        expected = self.sign(path, expire)
        if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
            return SignOutcome.MISMATCH
        return SignOutcome.VALID
