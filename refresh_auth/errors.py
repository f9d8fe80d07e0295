"""
Errors raised by the session layer. Transport errors are httpx's own and are not wrapped.
"""


class ExpiredAuthSessionError(Exception):
    """Refresh token has expired; the session was reset and the caller should log in again."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Both token and refresh token have expired. Your request was aborted.")


class OptionsError(ValueError):
    """Invalid scheme options (unknown key, bad max age, empty prefix...)."""
