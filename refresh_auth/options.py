"""
Scheme options: immutable dataclasses with explicit defaults, and a pure deep merge
of user overrides (nested dicts) on top of them. Validation happens on construction.
"""
from dataclasses import dataclass, field, fields, is_dataclass, replace
from typing import Any, Mapping

from refresh_auth.errors import OptionsError

# 30 days, in seconds
REFRESH_TOKEN_MAX_AGE = 60 * 60 * 24 * 30
TOKEN_MAX_AGE = 1800


@dataclass(frozen=True)
class EndpointOptions:
    url: str
    method: str = "post"

    def __post_init__(self) -> None:
        if not self.url:
            raise OptionsError("endpoint url must not be empty")
        object.__setattr__(self, "method", self.method.lower())


@dataclass(frozen=True)
class EndpointsOptions:
    login: EndpointOptions | None = EndpointOptions("/api/auth/login", "post")
    logout: EndpointOptions | None = EndpointOptions("/api/auth/logout", "post")
    user: EndpointOptions | None = EndpointOptions("/api/auth/user", "get")
    # None disables refresh entirely
    refresh: EndpointOptions | None = EndpointOptions("/api/auth/refresh", "post")

    def urls(self) -> set[str]:
        return {e.url for e in (self.login, self.logout, self.user, self.refresh) if e is not None}


def _check_flags(owner: Any, kind: str, *names: str) -> None:
    for name in names:
        if not isinstance(getattr(owner, name), bool):
            raise OptionsError(f"{kind}.{name} must be a bool")


def _check_token_fields(kind: str, max_age: int | None, prefix: str, expiration_prefix: str) -> None:
    if max_age is not None and (isinstance(max_age, bool) or not isinstance(max_age, int)):
        raise OptionsError(f"{kind}.max_age must be an int or None")
    if max_age is not None and max_age <= 0:
        raise OptionsError(f"{kind}.max_age must be positive or None")
    if not prefix or not expiration_prefix:
        raise OptionsError(f"{kind} prefixes must not be empty")
    if prefix == expiration_prefix:
        raise OptionsError(f"{kind}.prefix and {kind}.expiration_prefix must differ")


@dataclass(frozen=True)
class TokenOptions:
    property: str = "token"
    type: str = "Bearer"
    name: str = "Authorization"
    max_age: int | None = TOKEN_MAX_AGE
    global_: bool = True
    required: bool = True
    prefix: str = "_token."
    expiration_prefix: str = "_token_expiration."

    def __post_init__(self) -> None:
        _check_token_fields("token", self.max_age, self.prefix, self.expiration_prefix)
        _check_flags(self, "token", "global_", "required")


@dataclass(frozen=True)
class RefreshTokenOptions:
    property: str = "refresh_token"
    data: str | None = "refresh_token"
    max_age: int | None = REFRESH_TOKEN_MAX_AGE
    required: bool = True
    token_required: bool = False
    # False keeps a fixed refresh token when the refresh response omits or changes it
    update_on_refresh: bool = True
    prefix: str = "_refresh_token."
    expiration_prefix: str = "_refresh_token_expiration."

    def __post_init__(self) -> None:
        _check_token_fields("refresh_token", self.max_age, self.prefix, self.expiration_prefix)
        _check_flags(self, "refresh_token", "required", "token_required", "update_on_refresh")


@dataclass(frozen=True)
class UserOptions:
    property: str | None = "user"
    auto_fetch: bool = True

    def __post_init__(self) -> None:
        _check_flags(self, "user", "auto_fetch")


@dataclass(frozen=True)
class SchemeOptions:
    name: str = "refresh"
    endpoints: EndpointsOptions = field(default_factory=EndpointsOptions)
    token: TokenOptions = field(default_factory=TokenOptions)
    refresh_token: RefreshTokenOptions = field(default_factory=RefreshTokenOptions)
    user: UserOptions = field(default_factory=UserOptions)
    auto_logout: bool = False
    client_id: str | None = None
    grant_type: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise OptionsError("scheme name must not be empty")
        _check_flags(self, "options", "auto_logout")


DEFAULTS = SchemeOptions()


def _merge_endpoint(current: EndpointOptions | None, override: Any) -> EndpointOptions | None:
    # None / False disables the endpoint; a bare string is shorthand for the url
    if override is None or override is False:
        return None
    if isinstance(override, EndpointOptions):
        return override
    if isinstance(override, str):
        return EndpointOptions(url=override, method=current.method if current else "post")
    if isinstance(override, Mapping):
        if current is None:
            if "url" not in override:
                raise OptionsError(f"re-enabled endpoint needs a url: {override!r}")
            current = EndpointOptions(override["url"])
        return _merge_dataclass(current, override, "endpoint")
    raise OptionsError(f"invalid endpoint override: {override!r}")


def _merge_dataclass(current: Any, overrides: Mapping[str, Any], path: str) -> Any:
    known = {f.name: f for f in fields(current)}
    changes: dict[str, Any] = {}
    for key, value in overrides.items():
        # "global" is a keyword; accept it as an alias
        attr = "global_" if key == "global" else key
        if attr not in known:
            raise OptionsError(f"unknown option {path}.{key}")
        existing = getattr(current, attr)
        if isinstance(current, EndpointsOptions):
            changes[attr] = _merge_endpoint(existing, value)
        elif is_dataclass(existing):
            # option groups cannot be removed, only overridden field by field
            if isinstance(value, type(existing)):
                changes[attr] = value
            elif isinstance(value, Mapping):
                changes[attr] = _merge_dataclass(existing, value, f"{path}.{key}")
            else:
                raise OptionsError(f"{path}.{key} must be a mapping, got {value!r}")
        else:
            changes[attr] = value
    return replace(current, **changes)


def merge_options(defaults: SchemeOptions = DEFAULTS, overrides: Mapping[str, Any] | None = None) -> SchemeOptions:
    """
    Deep-merge a nested mapping of overrides into defaults. Pure; returns a new SchemeOptions.
    Unknown keys raise OptionsError.

        merge_options(DEFAULTS, {"endpoints": {"refresh": None}, "client_id": "id1"})
    """
    if not overrides:
        return defaults
    return _merge_dataclass(defaults, overrides, "options")
