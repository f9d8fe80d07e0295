"""
Expiry state of a token, derived on demand from its expiration instant and the clock.
"""
import time
from enum import Enum


class TokenStatusEnum(str, Enum):
    UNKNOWN = "unknown"
    VALID = "valid"
    EXPIRED = "expired"


class TokenStatus:
    """
    Computed once at construction; never cached beyond a single check.
    A token without an expiration instant is UNKNOWN, never EXPIRED.
    """

    def __init__(self, token: object, expires_at_ms: int | None, now_ms: int | None = None) -> None:
        self._status = self._calculate(token, expires_at_ms, now_ms)

    @staticmethod
    def _calculate(token: object, expires_at_ms: int | None, now_ms: int | None) -> TokenStatusEnum:
        if not token or not expires_at_ms:
            return TokenStatusEnum.UNKNOWN
        now = now_ms if now_ms is not None else int(time.time() * 1000)
        if now < expires_at_ms:
            return TokenStatusEnum.VALID
        return TokenStatusEnum.EXPIRED

    def unknown(self) -> bool:
        return self._status is TokenStatusEnum.UNKNOWN

    def valid(self) -> bool:
        return self._status is TokenStatusEnum.VALID

    def expired(self) -> bool:
        return self._status is TokenStatusEnum.EXPIRED

    def __repr__(self) -> str:
        return f"TokenStatus({self._status.value})"
