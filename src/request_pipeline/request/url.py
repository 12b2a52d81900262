"""
URL composition for request descriptors.

Joins a base URL with a relative path using RFC 3986 resolution and appends a
percent-encoded query string.
"""

from typing import Iterable, Optional, Tuple
from urllib.parse import quote, urljoin

from request_pipeline.errors import ConfigurationError

QueryItem = Tuple[str, Optional[str]]

# Characters left unescaped in path segments (RFC 3986 pchar plus "/")
PATH_SAFE = "/-._~!$&'()*+,;=:@"

# Query keys/values: "+", "&" and "=" are always escaped so that an encoded
# space ("+" in form encoding) and item separators stay unambiguous
QUERY_SAFE = "-._~!$'()*,;:@/?"


def encode_path(path: str) -> str:
    """Percent-encode a raw path exactly once."""
    return quote(path, safe=PATH_SAFE)


def _relative_reference(path: str) -> str:
    """Encode path as a reference that always resolves on the base URL's host."""
    encoded = encode_path(path)
    if encoded.startswith("//"):
        # A network-path reference would replace the host
        return "/" + encoded.lstrip("/")
    if ":" in encoded.split("/", 1)[0]:
        # A colon in the first segment would be parsed as a scheme
        return f"./{encoded}"
    return encoded


def encode_query(items: Iterable[QueryItem]) -> str:
    """
    Encode query items into a query string (without the leading "?").

    Items with a None value are emitted as a bare name.

    Examples:
        >>> encode_query([("q", "a+b"), ("flag", None)])
        'q=a%2Bb&flag'
    """
    parts = []
    for name, value in items:
        encoded_name = quote(name, safe=QUERY_SAFE)
        if value is None:
            parts.append(encoded_name)
        else:
            parts.append(f"{encoded_name}={quote(value, safe=QUERY_SAFE)}")
    return "&".join(parts)


def build_url(base_url: str, path: str = "", query_items: Iterable[QueryItem] = ()) -> str:
    """
    Compose an absolute URL.

    Args:
        base_url: Absolute base location (scheme and host required)
        path: Raw path, resolved relative to base_url
        query_items: Ordered (name, value) pairs

    Returns:
        Absolute URL, with no trailing "?" when there are no query items

    Raises:
        ConfigurationError: If base_url is empty or not absolute

    Examples:
        >>> build_url("https://example.test", "foo/bar")
        'https://example.test/foo/bar'
        >>> build_url("https://example.test/foo", "/bar")
        'https://example.test/bar'
        >>> build_url("https://example.test/v1/", "items:batch")
        'https://example.test/v1/items:batch'
    """
    if not base_url or "://" not in base_url:
        raise ConfigurationError(f"Base URL must be absolute, got {base_url!r}")

    url = urljoin(base_url, _relative_reference(path)) if path else base_url

    query = encode_query(query_items)
    if not query:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query}"
