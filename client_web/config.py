"""
Client Web configuration. Endpoints of the auth API and the resource server, from env.
"""
import os

# Auth API base URL (login / refresh / user / logout live here)
ISSUER = os.environ.get("OAUTH_ISSUER", "http://127.0.0.1:9000").rstrip("/")

# Our client_id; sent with login and refresh requests
CLIENT_ID = os.environ.get("OAUTH_CLIENT_ID", "test-client")

# Endpoint paths on the auth API. Empty REFRESH_PATH disables refresh.
LOGIN_PATH = os.environ.get("OAUTH_LOGIN_PATH", "/api/auth/login")
LOGOUT_PATH = os.environ.get("OAUTH_LOGOUT_PATH", "/api/auth/logout")
USER_PATH = os.environ.get("OAUTH_USER_PATH", "/api/auth/user")
REFRESH_PATH = os.environ.get("OAUTH_REFRESH_PATH", "/api/auth/refresh")

# Log out as soon as the access token is seen expired at startup (instead of refreshing)
AUTO_LOGOUT = os.environ.get("OAUTH_AUTO_LOGOUT", "").lower() in ("1", "true", "yes")

# Where tokens are persisted between restarts
SESSION_DATABASE_URL = os.environ.get("CLIENT_SESSION_DATABASE_URL", "sqlite:///./client_session.db")

# Resource Server base URL (GET /me)
RESOURCE_SERVER_URL = os.environ.get("OAUTH_RESOURCE_SERVER_URL", "http://127.0.0.1:7000").rstrip("/")

SESSION_OPTIONS = {
    "name": "client_web",
    "endpoints": {
        "login": LOGIN_PATH,
        "logout": LOGOUT_PATH,
        "user": {"url": USER_PATH, "method": "get"},
        "refresh": REFRESH_PATH or None,
    },
    "auto_logout": AUTO_LOGOUT,
    "client_id": CLIENT_ID,
    "grant_type": "refresh_token",
}
