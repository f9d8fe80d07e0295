"""
Token and refresh token stores. Each keeps a value and an expiration instant (epoch ms)
in memory, mirrored into Storage on every mutation. sync() re-reads Storage, since another
process or a previous run may have changed it.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

import jwt

from refresh_auth.options import RefreshTokenOptions, TokenOptions
from refresh_auth.storage import Storage
from refresh_auth.token_status import TokenStatus

logger = logging.getLogger(__name__)


class TokenKind(str, Enum):
    ABSENT = "absent"
    # present, but the value is not needed client side (e.g. an httpOnly cookie)
    OPAQUE = "opaque"
    VALUE = "value"


@dataclass(frozen=True)
class TokenValue:
    kind: TokenKind
    value: str | None = None

    @classmethod
    def absent(cls) -> "TokenValue":
        return cls(TokenKind.ABSENT)

    @classmethod
    def opaque(cls) -> "TokenValue":
        return cls(TokenKind.OPAQUE)

    @classmethod
    def of(cls, value: str) -> "TokenValue":
        if not value:
            return cls.absent()
        return cls(TokenKind.VALUE, value)

    @classmethod
    def coerce(cls, raw: Any) -> "TokenValue":
        """None / False / "" -> absent, True -> opaque, str -> value."""
        if isinstance(raw, TokenValue):
            return raw
        if raw is None or raw is False:
            return cls.absent()
        if raw is True:
            return cls.opaque()
        if isinstance(raw, str):
            return cls.of(raw)
        raise TypeError(f"unsupported token value type: {type(raw).__name__}")

    def to_storage(self) -> str | bool | None:
        if self.kind is TokenKind.VALUE:
            return self.value
        if self.kind is TokenKind.OPAQUE:
            return True
        return None

    def __bool__(self) -> bool:
        return self.kind is not TokenKind.ABSENT

    def __repr__(self) -> str:
        # never print the credential itself
        if self.kind is TokenKind.VALUE:
            return "TokenValue(value=***)"
        return f"TokenValue({self.kind.value})"


def _expiration_from(value: TokenValue, max_age: int | None, now_ms: int) -> int | None:
    ttl_expires_at = now_ms + max_age * 1000 if max_age else None
    if value.kind is not TokenKind.VALUE:
        return ttl_expires_at
    try:
        claims = jwt.decode(
            value.value,
            options={"verify_signature": False, "verify_exp": False, "verify_aud": False},
        )
    except jwt.InvalidTokenError:
        # not a JWT; fall back to the configured max age
        return ttl_expires_at
    exp = claims.get("exp")
    if isinstance(exp, (int, float)) and not isinstance(exp, bool) and exp > 0:
        return int(exp * 1000)
    return ttl_expires_at


class _TokenStore:
    def __init__(
        self,
        options: TokenOptions | RefreshTokenOptions,
        scheme_name: str,
        storage: Storage,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.options = options
        self.storage = storage
        self.key = options.prefix + scheme_name
        self.expiration_key = options.expiration_prefix + scheme_name
        self.on_expired: Callable[[], Any] | None = None
        self._clock = clock
        self._value = TokenValue.absent()
        self._expires_at: int | None = None
        self._expiry_notified = False

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def get(self) -> TokenValue:
        return self._value

    def set(self, raw: Any) -> TokenValue:
        value = TokenValue.coerce(raw)
        self._value = value
        self.storage.write_token(self.key, value.to_storage())
        self._expires_at = _expiration_from(value, self.options.max_age, self._now_ms()) if value else None
        self.storage.write_token(self.expiration_key, self._expires_at)
        self._expiry_notified = False
        return value

    def sync(self, notify: bool = False) -> TokenValue:
        """
        Re-read value and expiration from storage. With notify=True, on_expired fires once
        when the token is seen expired, and not again until it is set or reset.
        """
        self._value = TokenValue.coerce(self.storage.read_token(self.key))
        expires_at = self.storage.read_token(self.expiration_key)
        self._expires_at = int(expires_at) if expires_at else None
        if notify and self.on_expired is not None and not self._expiry_notified and self.status().expired():
            self._expiry_notified = True
            logger.debug("%s observed expired", self.key)
            self.on_expired()
        return self._value

    def reset(self) -> None:
        self._value = TokenValue.absent()
        self._expires_at = None
        self.storage.clear_token(self.key)
        self.storage.clear_token(self.expiration_key)
        self._expiry_notified = False

    def status(self) -> TokenStatus:
        return TokenStatus(self._value, self._expires_at, self._now_ms())

    @property
    def expires_at(self) -> int | None:
        return self._expires_at


class Token(_TokenStore):
    """Access token. Every change is pushed to the outgoing Authorization header."""

    def __init__(self, options: TokenOptions, scheme_name: str, storage: Storage, request_handler,
                 clock: Callable[[], float] = time.time) -> None:
        super().__init__(options, scheme_name, storage, clock)
        self.request_handler = request_handler

    def set(self, raw: Any) -> TokenValue:
        value = super().set(raw)
        self._push_header(value)
        return value

    def sync(self, notify: bool = False) -> TokenValue:
        # on_expired may have reset the store during the sync
        value = super().sync(notify)
        if value.kind is TokenKind.VALUE:
            self.request_handler.set_header(value.value)
        return value

    def reset(self) -> None:
        super().reset()
        self.request_handler.clear_header()

    def _push_header(self, value: TokenValue) -> None:
        if value.kind is TokenKind.VALUE:
            self.request_handler.set_header(value.value)
        else:
            self.request_handler.clear_header()


class RefreshToken(_TokenStore):
    """Refresh token; separate keys and max age, never sent as a header."""
