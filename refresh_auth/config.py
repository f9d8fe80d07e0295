"""
Library defaults read from the environment. No secrets in this file.
"""
import os

# Base URL of the API the session talks to (relative endpoint urls are resolved against it)
API_BASE_URL = os.environ.get("REFRESH_AUTH_API_BASE_URL", "http://127.0.0.1:9000").rstrip("/")

# Transport timeout (seconds); timeouts are the transport's job, not the scheme's
HTTP_TIMEOUT = float(os.environ.get("REFRESH_AUTH_HTTP_TIMEOUT", "10.0"))

# SQLite file for DatabaseStorage when no URL is passed explicitly
DATABASE_URL = os.environ.get("REFRESH_AUTH_DATABASE_URL", "sqlite:///./refresh_auth.db")
