"""
Small helpers shared by the schemes: dotted-path lookup into response payloads
and stripping of unset fields from request bodies.
"""
from typing import Any, Mapping


def get_prop(holder: Any, prop_name: str | None) -> Any:
    """
    Look up a dotted path ("data.tokens.access") in nested mappings / objects.
    Returns None when any segment is missing. An empty or None path returns the holder itself.
    """
    if not prop_name or holder is None:
        return holder
    result = holder
    for part in prop_name.split("."):
        if result is None:
            return None
        if isinstance(result, Mapping):
            result = result.get(part)
        else:
            result = getattr(result, part, None)
    return result


def clean_obj(obj: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None (in place); returns the same dict."""
    for key in [k for k, v in obj.items() if v is None]:
        del obj[key]
    return obj


def response_data(response: Any) -> Any:
    """JSON body of an httpx response; mappings (already-decoded payloads) pass through."""
    if response is None or isinstance(response, Mapping):
        return response
    return response.json()
