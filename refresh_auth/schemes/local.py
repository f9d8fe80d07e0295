"""
Local scheme: username/password login against the login endpoint, user fetch, logout.
Other schemes reuse it by composition and pass themselves as `hooks`, so validity
checks, token updates and interceptor setup go through the owning scheme.
"""
import logging
from dataclasses import dataclass

import httpx

from refresh_auth.options import SchemeOptions
from refresh_auth.utils import get_prop, response_data

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchemeCheck:
    valid: bool = False
    token_expired: bool = False
    refresh_token_expired: bool = False
    is_refreshable: bool = True


class LocalScheme:
    def __init__(self, auth, options: SchemeOptions, *, request_handler, hooks) -> None:
        self.auth = auth
        self.options = options
        self.request_handler = request_handler
        self.hooks = hooks

    async def login(self, body: dict | None = None, *, reset: bool = True) -> httpx.Response | None:
        endpoint = self.options.endpoints.login
        if endpoint is None:
            return None
        if reset:
            self.auth.reset(reset_interceptor=False)

        payload = dict(body or {})
        if self.options.client_id:
            payload["client_id"] = self.options.client_id
        if self.options.grant_type:
            payload["grant_type"] = "password"

        response = await self.auth.request(payload, endpoint)
        self.hooks.update_tokens(response)

        if self.request_handler.interceptor is None:
            self.hooks.initialize_request_interceptor()
        if self.options.user.auto_fetch:
            await self.fetch_user()
        return response

    async def fetch_user(self) -> httpx.Response | None:
        if not self.hooks.check().valid:
            return None

        endpoint = self.options.endpoints.user
        if endpoint is None:
            self.auth.set_user({})
            return None

        prop = self.options.user.property
        try:
            response = await self.auth.request(None, endpoint)
            user = get_prop(response_data(response), prop)
            if not user:
                raise ValueError(f"User data response does not contain field {prop}")
        except (httpx.HTTPError, ValueError) as e:
            self.auth.call_on_error(e, {"method": "fetchUser"})
            raise
        self.auth.set_user(user)
        return response

    async def logout(self, body: dict | None = None) -> None:
        endpoint = self.options.endpoints.logout
        if endpoint is not None:
            try:
                await self.auth.request(body, endpoint)
            except httpx.HTTPError as e:
                # the local session is torn down regardless
                logger.warning("Logout request failed: %s", e)
        self.auth.reset()

