"""Tests for the request interceptor: header handling and refresh-before-request."""
import asyncio

import httpx
import pytest

from refresh_auth.errors import ExpiredAuthSessionError

MONTH = 31 * 24 * 3600


def _api(log):
    def handler(request):
        log.append((request.url.path, request.headers.get("Authorization")))
        if request.url.path == "/api/auth/refresh":
            return httpx.Response(200, json={"token": "fresh-at", "refresh_token": "fresh-rt"})
        return httpx.Response(200, json={"ok": True})

    return handler


def test_header_follows_token(make_auth):
    auth = make_auth(_api([]))
    auth.scheme.token.set("at")
    assert auth.client.headers["Authorization"] == "Bearer at"
    auth.scheme.token.reset()
    assert "Authorization" not in auth.client.headers


def test_header_without_type(make_auth):
    auth = make_auth(_api([]), {"token": {"type": "", "name": "X-Auth"}})
    auth.scheme.token.set("at")
    assert auth.client.headers["X-Auth"] == "at"


def test_non_global_token_leaves_client_headers_alone(make_auth):
    auth = make_auth(_api([]), {"token": {"global": False}})
    auth.scheme.token.set("at")
    assert "Authorization" not in auth.client.headers


def test_valid_session_passes_through(make_auth):
    log = []
    auth = make_auth(_api(log))
    auth.scheme.token.set("at")
    auth.scheme.refresh_token.set("rt")
    auth.scheme.initialize_request_interceptor()
    asyncio.run(auth.client.get("/data"))
    assert log == [("/data", "Bearer at")]


def test_expired_token_refreshed_before_request(make_auth, clock):
    log = []
    auth = make_auth(_api(log))
    auth.scheme.token.set("at")
    auth.scheme.refresh_token.set("rt")
    auth.scheme.initialize_request_interceptor()
    clock.advance(1801)

    asyncio.run(auth.client.get("/data"))
    # refresh goes out without the stale header; the original request carries the new one
    assert log == [("/api/auth/refresh", None), ("/data", "Bearer fresh-at")]
    assert auth.scheme.refresh_token.get().value == "fresh-rt"


def test_concurrent_requests_trigger_one_refresh(make_auth, clock):
    log = []

    async def handler(request):
        log.append(request.url.path)
        if request.url.path == "/api/auth/refresh":
            await asyncio.sleep(0.01)
            return httpx.Response(200, json={"token": "fresh-at"})
        return httpx.Response(200, json={"ok": True})

    auth = make_auth(handler)
    auth.scheme.token.set("at")
    auth.scheme.refresh_token.set("rt")
    auth.scheme.initialize_request_interceptor()
    clock.advance(1801)

    async def scenario():
        return await asyncio.gather(*(auth.client.get(f"/data/{i}") for i in range(5)))

    responses = asyncio.run(scenario())
    assert all(r.status_code == 200 for r in responses)
    assert log.count("/api/auth/refresh") == 1


def test_expired_refresh_token_aborts_request(make_auth, clock):
    log = []
    auth = make_auth(_api(log))
    auth.scheme.token.set("at")
    auth.scheme.refresh_token.set("rt")
    auth.set_user({"id": 1})
    auth.scheme.initialize_request_interceptor()
    clock.advance(MONTH)

    with pytest.raises(ExpiredAuthSessionError):
        asyncio.run(auth.client.get("/data"))
    assert log == []
    assert auth.logged_in is False
    assert auth.scheme.request_handler.interceptor is None


def test_failed_refresh_aborts_with_expired_session(make_auth, clock):
    def handler(request):
        if request.url.path == "/api/auth/refresh":
            return httpx.Response(401, json={"error": "invalid_grant"})
        return httpx.Response(200)

    auth = make_auth(handler)
    auth.scheme.token.set("at")
    auth.scheme.refresh_token.set("rt")
    auth.scheme.initialize_request_interceptor()
    clock.advance(1801)

    with pytest.raises(ExpiredAuthSessionError) as exc_info:
        asyncio.run(auth.client.get("/data"))
    assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)
    assert not auth.scheme.token.get()


def test_expired_token_without_refresh_endpoint_aborts(make_auth, clock):
    auth = make_auth(_api([]), {"endpoints": {"refresh": None}})
    auth.scheme.token.set("at")
    auth.scheme.refresh_token.set("rt")
    auth.scheme.initialize_request_interceptor()
    clock.advance(1801)
    with pytest.raises(ExpiredAuthSessionError):
        asyncio.run(auth.client.get("/data"))


def test_no_tokens_but_explicit_header_aborts(make_auth):
    log = []
    auth = make_auth(_api(log))
    auth.scheme.initialize_request_interceptor()
    with pytest.raises(ExpiredAuthSessionError):
        asyncio.run(auth.client.get("/data", headers={"Authorization": "Bearer stale"}))
    # anonymous requests are left alone
    asyncio.run(auth.client.get("/public"))
    assert log == [("/public", None)]


def test_interceptor_installed_once(make_auth):
    auth = make_auth(_api([]))
    auth.scheme.initialize_request_interceptor()
    auth.scheme.initialize_request_interceptor()
    assert len(auth.client.event_hooks["request"]) == 1


def test_only_the_refresh_endpoint_itself_skips_the_interceptor(make_auth, clock):
    log = []

    def handler(request):
        log.append((request.url.path, request.headers.get("Authorization")))
        if request.url.path == "/refresh":
            return httpx.Response(200, json={"token": "fresh-at"})
        return httpx.Response(200, json={"ok": True})

    auth = make_auth(handler, {"endpoints": {"refresh": "/refresh"}})
    auth.scheme.token.set("at")
    auth.scheme.refresh_token.set("rt")
    auth.scheme.initialize_request_interceptor()
    clock.advance(1801)

    asyncio.run(auth.client.get("/users/refresh"))
    assert log == [("/refresh", None), ("/users/refresh", "Bearer fresh-at")]


def test_refresh_endpoint_resolved_against_base_path(clock):
    from refresh_auth.session import AuthSession

    log = []

    def handler(request):
        log.append(request.url.path)
        if request.url.path == "/v1/api/auth/refresh":
            return httpx.Response(200, json={"token": "fresh-at"})
        return httpx.Response(200, json={"ok": True})

    client = httpx.AsyncClient(base_url="https://api.test/v1", transport=httpx.MockTransport(handler))
    auth = AuthSession(client=client, clock=clock)
    auth.scheme.token.set("at")
    auth.scheme.refresh_token.set("rt")
    auth.scheme.initialize_request_interceptor()
    clock.advance(1801)

    asyncio.run(auth.client.get("/data"))
    assert log == ["/v1/api/auth/refresh", "/v1/data"]
    assert auth.scheme.token.get().value == "fresh-at"
