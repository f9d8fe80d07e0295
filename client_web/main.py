"""
Client Web App: a small host for the refresh-token session.
GET /session, POST /session/login, /session/token, /session/refresh, /session/logout,
GET /call-me (resource server /me; on 401, refresh and retry once). Port 8000.
"""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel

from client_web.config import ISSUER, RESOURCE_SERVER_URL, SESSION_DATABASE_URL, SESSION_OPTIONS
from refresh_auth.config import HTTP_TIMEOUT
from refresh_auth.errors import ExpiredAuthSessionError
from refresh_auth.session import AuthSession
from refresh_auth.storage import DatabaseStorage

logger = logging.getLogger(__name__)


def build_auth() -> AuthSession:
    return AuthSession(
        SESSION_OPTIONS,
        storage=DatabaseStorage(SESSION_DATABASE_URL),
        client=httpx.AsyncClient(base_url=ISSUER, timeout=HTTP_TIMEOUT),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the session, pick up persisted tokens, load the user if possible."""
    auth = build_auth()
    app.state.auth = auth
    try:
        await auth.mounted()
    except (httpx.HTTPError, ExpiredAuthSessionError, ValueError) as e:
        logger.warning("Session not restored on startup: %s", e)
    yield
    await auth.client.aclose()
    auth.storage.dispose()


app = FastAPI(title="Client Web", version="0.4.0", lifespan=lifespan)


def get_auth(request: Request) -> AuthSession:
    """Dependency: the app-wide AuthSession (overridden in tests)."""
    return request.app.state.auth


class LoginBody(BaseModel):
    username: str
    password: str


class TokenBody(BaseModel):
    token: str
    refresh_token: str | None = None


def _session_expired(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"error": "session_expired", "error_description": str(e), "login": "/session/login"},
    )


def _upstream_failed(e: httpx.HTTPError) -> HTTPException:
    return HTTPException(status_code=502, detail={"error": "upstream_error", "error_description": str(e)})


def _session_state(auth: AuthSession) -> dict:
    result = auth.check(True)
    return {
        "valid": result.valid,
        "token_expired": result.token_expired,
        "refresh_token_expired": result.refresh_token_expired,
        "is_refreshable": result.is_refreshable,
        "logged_in": auth.logged_in,
        "user": auth.user,
        "token_expires_at": auth.scheme.token.expires_at,
        "refresh_token_expires_at": auth.scheme.refresh_token.expires_at,
    }


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "client_web"}


@app.get("/session")
def session_state(auth: AuthSession = Depends(get_auth)):
    """Current check() result and user."""
    return _session_state(auth)


@app.post("/session/login")
async def login(body: LoginBody, auth: AuthSession = Depends(get_auth)):
    try:
        await auth.login({"username": body.username, "password": body.password})
    except httpx.HTTPStatusError as e:
        raise HTTPException(
            status_code=401,
            detail={"error": "login_failed", "error_description": f"Auth API returned {e.response.status_code}"},
        )
    except httpx.HTTPError as e:
        raise _upstream_failed(e)
    return _session_state(auth)


@app.post("/session/token")
async def set_token(body: TokenBody, auth: AuthSession = Depends(get_auth)):
    """Inject tokens obtained by an external login flow, then fetch the user."""
    try:
        await auth.set_user_token(body.token, body.refresh_token)
    except httpx.HTTPError as e:
        raise _upstream_failed(e)
    return _session_state(auth)


@app.post("/session/refresh")
async def refresh(auth: AuthSession = Depends(get_auth)):
    try:
        response = await auth.refresh_tokens()
    except ExpiredAuthSessionError as e:
        raise _session_expired(e)
    except httpx.HTTPError as e:
        raise _upstream_failed(e)
    state = _session_state(auth)
    state["refreshed"] = response is not None
    return state


@app.post("/session/logout")
async def logout(auth: AuthSession = Depends(get_auth)):
    await auth.logout()
    return {"logged_in": auth.logged_in}


@app.get("/call-me")
async def call_me(auth: AuthSession = Depends(get_auth)):
    """
    Call resource server GET /me through the session client (interceptor refreshes expired
    tokens first). On 401, refresh and retry once.
    """
    if not auth.check().valid:
        raise _session_expired(ExpiredAuthSessionError("No tokens; log in first."))
    try:
        r = await auth.client.get(f"{RESOURCE_SERVER_URL}/me")
        if r.status_code == 401:
            if await auth.refresh_tokens() is None:
                raise _session_expired(ExpiredAuthSessionError("Refresh unavailable; log in again."))
            r = await auth.client.get(f"{RESOURCE_SERVER_URL}/me")
    except ExpiredAuthSessionError as e:
        raise _session_expired(e)
    except httpx.HTTPError as e:
        raise _upstream_failed(e)

    body = r.json() if r.headers.get("content-type", "").startswith("application/json") else r.text
    return {"status": r.status_code, "body": body}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "client_web.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
