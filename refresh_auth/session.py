"""
AuthSession: the host-facing session manager. Owns the HTTP client, the token storage,
the current user and the refresh scheme; routes scheme errors to registered listeners.
"""
import logging
import time
from typing import Any, Callable, Mapping

import httpx

from refresh_auth.config import API_BASE_URL, HTTP_TIMEOUT
from refresh_auth.options import DEFAULTS, EndpointOptions, SchemeOptions, merge_options
from refresh_auth.schemes.refresh import RefreshScheme
from refresh_auth.storage import MemoryStorage, Storage

logger = logging.getLogger(__name__)

ErrorListener = Callable[[BaseException, dict], Any]


class AuthSession:
    """
    Typical use:

        async with AuthSession({"endpoints": {"refresh": "/token/refresh"}}) as auth:
            await auth.login({"username": "u", "password": "p"})
            r = await auth.client.get("/me")   # interceptor refreshes when needed
    """

    def __init__(
        self,
        options: SchemeOptions | Mapping[str, Any] | None = None,
        *,
        storage: Storage | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.options = options if isinstance(options, SchemeOptions) else merge_options(DEFAULTS, options)
        self.storage = storage if storage is not None else MemoryStorage()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=API_BASE_URL, timeout=HTTP_TIMEOUT)
        self.user: Any = None
        self.logged_in = False
        self._error_listeners: list[ErrorListener] = []
        self.scheme = RefreshScheme(self, self.options, clock=clock)

    async def __aenter__(self) -> "AuthSession":
        await self.mounted()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    # --- user state ---

    def set_user(self, user: Any) -> None:
        self.logged_in = user is not None and user is not False
        self.user = user if self.logged_in else None

    def reset(self, reset_interceptor: bool = True) -> None:
        logger.info("Resetting auth session (%s)", self.options.name)
        self.scheme.reset(reset_interceptor=reset_interceptor)

    async def fetch_user(self) -> httpx.Response | None:
        return await self.scheme.fetch_user()

    async def fetch_user_once(self) -> httpx.Response | None:
        if self.user is None:
            return await self.fetch_user()
        return None

    # --- errors ---

    def on_error(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    def call_on_error(self, error: BaseException, context: dict | None = None) -> None:
        context = context or {}
        logger.warning("Auth error in %s: %s", context.get("method", "?"), error)
        for listener in self._error_listeners:
            listener(error, context)

    # --- transport ---

    async def request(self, body: dict | None, endpoint: EndpointOptions) -> httpx.Response:
        """Send body as JSON to endpoint; non-2xx responses raise httpx.HTTPStatusError."""
        response = await self.client.request(endpoint.method.upper(), endpoint.url, json=body or None)
        response.raise_for_status()
        return response

    # --- scheme entry points ---

    async def mounted(self) -> Any:
        return await self.scheme.mounted()

    def check(self, check_status: bool = False):
        return self.scheme.check(check_status)

    async def login(self, body: dict | None = None) -> httpx.Response | None:
        return await self.scheme.login(body)

    async def logout(self) -> None:
        await self.scheme.logout()

    async def refresh_tokens(self) -> httpx.Response | None:
        return await self.scheme.refresh_tokens()

    async def set_user_token(self, token: str | bool, refresh_token: str | bool | None = None) -> httpx.Response | None:
        return await self.scheme.set_user_token(token, refresh_token)
