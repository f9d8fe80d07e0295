"""
Pytest fixtures for refresh_auth. HTTP goes through httpx.MockTransport; time through a fake clock.
"""
import os
import time

import httpx
import jwt
import pytest

# Never touch a real DB file from tests
os.environ["REFRESH_AUTH_DATABASE_URL"] = "sqlite:///:memory:"

from refresh_auth.session import AuthSession  # noqa: E402

JWT_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
BASE_URL = "https://api.test"


class FakeClock:
    def __init__(self, now: float | None = None) -> None:
        self.now = now if now is not None else time.time()

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_auth(clock):
    """Factory: AuthSession whose HTTP calls go to handler(request) -> httpx.Response."""

    def _make(handler, options=None, storage=None):
        client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
        return AuthSession(options, storage=storage, client=client, clock=clock)

    return _make


@pytest.fixture
def make_jwt(clock):
    def _make(expires_in: int | None = 600, **claims) -> str:
        payload = {"sub": "1", "iat": int(clock.now), **claims}
        if expires_in is not None:
            payload["exp"] = int(clock.now) + expires_in
        return jwt.encode(payload, JWT_SECRET, algorithm="HS256")

    return _make
