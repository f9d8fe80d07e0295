"""
Authorization header management and the request interceptor, on top of an httpx.AsyncClient.
The interceptor is an async "request" event hook: before each authenticated request it checks
the session and, when the access token has expired, refreshes it first.
"""
import logging

import httpx

from refresh_auth.errors import ExpiredAuthSessionError

logger = logging.getLogger(__name__)


def _targets(request: httpx.Request, url: str, base_url: httpx.URL) -> bool:
    """True if the request goes to url (absolute, or relative to the client's base url)."""
    target = httpx.URL(url)
    if target.is_absolute_url:
        return request.url.host == target.host and request.url.path == target.path
    # httpx appends relative urls to the base url path
    return request.url.path == base_url.path.rstrip("/") + "/" + target.path.lstrip("/")


class RequestHandler:
    def __init__(self, scheme, client: httpx.AsyncClient) -> None:
        self.scheme = scheme
        self.client = client
        self.interceptor = None

    @property
    def _token_options(self):
        return self.scheme.options.token

    def header_value(self, token: str) -> str:
        token_type = self._token_options.type
        return f"{token_type} {token}" if token_type else token

    def set_header(self, token: str) -> None:
        if self._token_options.global_:
            self.client.headers[self._token_options.name] = self.header_value(token)

    def clear_header(self) -> None:
        if self._token_options.global_:
            self.client.headers.pop(self._token_options.name, None)

    def initialize_request_interceptor(self, refresh_endpoint: str | None = None) -> None:
        if self.interceptor is not None:
            return

        async def intercept(request: httpx.Request) -> None:
            if not self._need_token(request):
                return
            if refresh_endpoint and _targets(request, refresh_endpoint, self.client.base_url):
                return
            await self._prepare(request)

        hooks = self.client.event_hooks
        hooks["request"] = [*hooks.get("request", []), intercept]
        self.client.event_hooks = hooks
        self.interceptor = intercept
        logger.debug("Request interceptor installed (refresh endpoint: %s)", refresh_endpoint)

    async def _prepare(self, request: httpx.Request) -> None:
        result = self.scheme.check(True)
        is_valid = result.valid

        if result.refresh_token_expired:
            self.scheme.reset()
            raise ExpiredAuthSessionError()

        if result.token_expired:
            if not result.is_refreshable:
                self.scheme.reset()
                raise ExpiredAuthSessionError()
            try:
                await self.scheme.refresh_tokens()
            except (httpx.HTTPError, ExpiredAuthSessionError) as e:
                self.scheme.reset()
                raise ExpiredAuthSessionError() from e
            is_valid = True

        token = self.scheme.token.get()
        name = self._token_options.name
        if not is_valid:
            if not token and name in request.headers:
                raise ExpiredAuthSessionError()
            return
        # the request was built before any refresh above; give it the current header
        if token.value:
            request.headers[name] = self.header_value(token.value)

    def _need_token(self, request: httpx.Request) -> bool:
        if self._token_options.global_:
            return True
        return any(_targets(request, url, self.client.base_url) for url in self.scheme.options.endpoints.urls())

    def reset(self) -> None:
        if self.interceptor is not None:
            hooks = self.client.event_hooks
            hooks["request"] = [h for h in hooks.get("request", []) if h is not self.interceptor]
            self.client.event_hooks = hooks
            self.interceptor = None
        self.clear_header()
