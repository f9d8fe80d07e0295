"""
Refresh scheme: local login plus a refresh token that renews the access token.

check() decides whether the session is usable, refresh_tokens() renews the access token
with at most one refresh call in flight, update_tokens() writes a login/refresh response
back into the token stores, reset() tears everything down.
"""
import logging
import time
from typing import Any, Callable

import httpx

from refresh_auth.errors import ExpiredAuthSessionError
from refresh_auth.options import SchemeOptions
from refresh_auth.refresh_coordinator import RefreshCoordinator
from refresh_auth.request_handler import RequestHandler
from refresh_auth.schemes.local import LocalScheme, SchemeCheck
from refresh_auth.token import RefreshToken, Token
from refresh_auth.utils import clean_obj, get_prop, response_data

logger = logging.getLogger(__name__)


class RefreshScheme:
    def __init__(self, auth, options: SchemeOptions, *, clock: Callable[[], float] = time.time) -> None:
        self.auth = auth
        self.options = options
        self.request_handler = RequestHandler(self, auth.client)
        self.token = Token(options.token, options.name, auth.storage, self.request_handler, clock)
        self.refresh_token = RefreshToken(options.refresh_token, options.name, auth.storage, clock)
        self.refresh_coordinator = RefreshCoordinator()
        # bumped by reset(); a refresh that outlives a reset must not revive the session
        self._resets = 0
        self.local = LocalScheme(auth, options, request_handler=self.request_handler, hooks=self)

    @property
    def is_refreshable(self) -> bool:
        return self.options.endpoints.refresh is not None

    def check(self, check_status: bool = False) -> SchemeCheck:
        token = self.token.sync()
        refresh_token = self.refresh_token.sync()

        # neither token is trusted without the other
        if not token or not refresh_token:
            return SchemeCheck(is_refreshable=self.is_refreshable)

        if not check_status:
            return SchemeCheck(valid=True, is_refreshable=self.is_refreshable)

        # an expired refresh token is fatal; report it before the recoverable case
        if self.refresh_token.status().expired():
            return SchemeCheck(refresh_token_expired=True, is_refreshable=self.is_refreshable)
        if self.token.status().expired():
            return SchemeCheck(token_expired=True, is_refreshable=self.is_refreshable)
        return SchemeCheck(valid=True, is_refreshable=self.is_refreshable)

    async def mounted(self) -> Any:
        self.token.on_expired = self._on_token_expired
        self.refresh_token.on_expired = self._on_refresh_token_expired
        # refresh token first: its expiry wins over the access token's
        self.refresh_token.sync(notify=True)
        self.token.sync(notify=True)
        self.initialize_request_interceptor()
        return await self.auth.fetch_user_once()

    def _on_token_expired(self) -> None:
        if self.options.auto_logout:
            logger.info("Access token expired; auto logout")
            self.auth.reset()

    def _on_refresh_token_expired(self) -> None:
        logger.info("Refresh token expired; resetting session")
        self.auth.reset()

    def initialize_request_interceptor(self) -> None:
        refresh = self.options.endpoints.refresh
        self.request_handler.initialize_request_interceptor(refresh.url if refresh else None)

    async def refresh_tokens(self) -> httpx.Response | None:
        """
        Exchange the refresh token for a new access token.

        Returns None when refresh is disabled or there are no tokens. Raises
        ExpiredAuthSessionError (after resetting the session) when the refresh token has
        expired. Transport errors are reported through auth.call_on_error and re-raised.
        Concurrent callers share one refresh call and get the same response or error.
        """
        endpoint = self.options.endpoints.refresh
        if endpoint is None:
            return None

        if not self.check().valid:
            return None

        if self.refresh_token.status().expired():
            self.auth.reset()
            raise ExpiredAuthSessionError()

        opts = self.options.refresh_token
        # some refresh endpoints reject a stale bearer header
        if not opts.token_required:
            self.request_handler.clear_header()

        body: dict[str, Any] = {"client_id": None, "grant_type": None}
        if opts.required and opts.data:
            body[opts.data] = self.refresh_token.get().to_storage()
        if self.options.client_id:
            body["client_id"] = self.options.client_id
        if self.options.grant_type:
            body["grant_type"] = "refresh_token"
        clean_obj(body)

        resets = self._resets
        return await self.refresh_coordinator.run(lambda: self._refresh_call(body, resets))

    async def _refresh_call(self, body: dict[str, Any], resets: int) -> httpx.Response:
        try:
            response = await self.auth.request(body, self.options.endpoints.refresh)
            if self._resets != resets:
                logger.info("Session reset during refresh; discarding refreshed tokens")
                return response
            self.update_tokens(
                response, is_refreshing=True, update_on_refresh=self.options.refresh_token.update_on_refresh
            )
        except Exception as e:
            self.auth.call_on_error(e, {"method": "refreshToken"})
            raise
        return response

    def update_tokens(self, response: Any, *, is_refreshing: bool = False, update_on_refresh: bool = True) -> None:
        data = response_data(response)
        token = get_prop(data, self.options.token.property) if self.options.token.required else True
        refresh_token = (
            get_prop(data, self.options.refresh_token.property) if self.options.refresh_token.required else True
        )

        self.token.set(token)

        # refresh responses only rotate the refresh token when update_on_refresh allows it
        if refresh_token and (not is_refreshing or update_on_refresh):
            self.refresh_token.set(refresh_token)

    async def set_user_token(self, token: str | bool, refresh_token: str | bool | None = None) -> httpx.Response | None:
        self.token.set(token)
        if refresh_token:
            self.refresh_token.set(refresh_token)
        return await self.fetch_user()

    def reset(self, reset_interceptor: bool = True) -> None:
        self._resets += 1
        self.auth.set_user(False)
        self.token.reset()
        self.refresh_token.reset()
        if reset_interceptor:
            self.request_handler.reset()

    async def login(self, body: dict | None = None, *, reset: bool = True) -> httpx.Response | None:
        return await self.local.login(body, reset=reset)

    async def fetch_user(self) -> httpx.Response | None:
        return await self.local.fetch_user()

    async def logout(self, body: dict | None = None) -> None:
        await self.local.logout(body)
