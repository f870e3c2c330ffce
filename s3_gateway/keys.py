"""Object key normalization and URL encoding.

Keys are stored and returned with plain forward slashes. Encoding is only
applied when a key is placed into a backend URL, one path segment at a
time, so '/' keeps its structural meaning.
"""

from urllib.parse import quote, unquote


def normalize_key(key: str) -> str:
    """Strip a single leading slash from a caller-supplied key."""
    if key.startswith("/"):
        return key[1:]
    return key


def encode_key(key: str) -> str:
    """Percent-encode each path segment of ``key`` independently.

    Only RFC 3986 unreserved characters are left as-is, which is also how
    the backend canonicalizes the path when it checks the request signature.

    Example:
        >>> encode_key("videos/my clip (1).mp4")
        'videos/my%20clip%20%281%29.mp4'
    """
    return "/".join(quote(segment, safe="") for segment in key.split("/"))


def decode_key(encoded: str) -> str:
    """Inverse of :func:`encode_key`."""
    return "/".join(unquote(segment) for segment in encoded.split("/"))
