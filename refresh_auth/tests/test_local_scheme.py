"""Tests for login / fetch_user / logout and the AuthSession entry points."""
import asyncio
import json

import httpx
import pytest


def _auth_api(log, *, user_status=200, logout_status=200):
    def handler(request):
        body = json.loads(request.content) if request.content else None
        log.append((request.method, request.url.path, body))
        if request.url.path == "/api/auth/login":
            return httpx.Response(200, json={"token": "at", "refresh_token": "rt"})
        if request.url.path == "/api/auth/user":
            return httpx.Response(user_status, json={"user": {"id": 5, "name": "ada"}})
        if request.url.path == "/api/auth/logout":
            return httpx.Response(logout_status)
        return httpx.Response(404)

    return handler


def test_login_stores_tokens_and_fetches_user(make_auth):
    log = []
    auth = make_auth(_auth_api(log), {"client_id": "id1", "grant_type": "refresh_token"})
    response = asyncio.run(auth.login({"username": "ada", "password": "pw"}))

    assert response.status_code == 200
    assert log[0] == (
        "POST",
        "/api/auth/login",
        {"username": "ada", "password": "pw", "client_id": "id1", "grant_type": "password"},
    )
    assert log[1][:2] == ("GET", "/api/auth/user")
    assert auth.scheme.token.get().value == "at"
    assert auth.scheme.refresh_token.get().value == "rt"
    assert auth.user == {"id": 5, "name": "ada"}
    assert auth.scheme.request_handler.interceptor is not None


def test_login_disabled(make_auth):
    log = []
    auth = make_auth(_auth_api(log), {"endpoints": {"login": None}})
    assert asyncio.run(auth.login({"username": "ada"})) is None
    assert log == []


def test_login_without_auto_fetch(make_auth):
    log = []
    auth = make_auth(_auth_api(log), {"user": {"auto_fetch": False}})
    asyncio.run(auth.login({"username": "ada", "password": "pw"}))
    assert [path for _, path, _ in log] == ["/api/auth/login"]
    assert auth.user is None


def test_fetch_user_without_endpoint_sets_empty_user(make_auth):
    auth = make_auth(_auth_api([]), {"endpoints": {"user": None}})
    auth.scheme.token.set("at")
    auth.scheme.refresh_token.set("rt")
    asyncio.run(auth.fetch_user())
    assert auth.user == {}
    assert auth.logged_in is True


def test_fetch_user_missing_property_reported(make_auth):
    reported = []
    auth = make_auth(_auth_api([]), {"user": {"property": "profile"}})
    auth.on_error(lambda error, context: reported.append(context))
    auth.scheme.token.set("at")
    auth.scheme.refresh_token.set("rt")
    with pytest.raises(ValueError):
        asyncio.run(auth.fetch_user())
    assert reported == [{"method": "fetchUser"}]


def test_fetch_user_http_error_reported(make_auth):
    reported = []
    auth = make_auth(_auth_api([], user_status=500))
    auth.on_error(lambda error, context: reported.append(context))
    auth.scheme.token.set("at")
    auth.scheme.refresh_token.set("rt")
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(auth.fetch_user())
    assert reported == [{"method": "fetchUser"}]


def test_fetch_user_once_skips_when_user_known(make_auth):
    log = []
    auth = make_auth(_auth_api(log))
    auth.scheme.token.set("at")
    auth.scheme.refresh_token.set("rt")
    auth.set_user({"id": 1})
    assert asyncio.run(auth.fetch_user_once()) is None
    assert log == []


def test_logout_resets_even_when_endpoint_fails(make_auth):
    log = []
    auth = make_auth(_auth_api(log, logout_status=500))
    asyncio.run(auth.login({"username": "ada", "password": "pw"}))
    asyncio.run(auth.logout())
    assert log[-1][:2] == ("POST", "/api/auth/logout")
    assert auth.logged_in is False
    assert not auth.scheme.token.get()
    assert not auth.scheme.refresh_token.get()


def test_session_context_manager_closes_owned_client():
    from refresh_auth.session import AuthSession

    async def scenario():
        async with AuthSession() as auth:
            assert auth.logged_in is False
        return auth

    auth = asyncio.run(scenario())
    assert auth.client.is_closed
