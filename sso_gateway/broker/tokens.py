"""
Handshake Tokens and URL Checks
===============================
"""

import secrets
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

ALLOWED_SCHEMES = ("http", "https")


def generate_state() -> str:
    """Opaque CSRF token, 256 bits, hex encoded."""
    return secrets.token_hex(32)


def generate_session_id() -> str:
    """Handshake correlator, 256 bits, hex encoded."""
    return secrets.token_hex(32)


def sanitize_return_url(url: str) -> str:
    """
    Require an absolute http(s) URL with a host.

    Raises:
        ValueError: if the URL is malformed or uses another scheme
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ValueError("Invalid URL") from e

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ValueError("Invalid protocol")
    if not parsed.netloc or not parsed.hostname:
        raise ValueError("Invalid URL")
    # Accessing .port validates it
    parsed.port
    return url


def append_query(url: str, **params: str) -> str:
    """Add ``params`` to the query string of ``url``, keeping existing ones."""
    parsed = urlparse(url)
    query = parse_qsl(parsed.query, keep_blank_values=True)
    query.extend(params.items())
    return urlunparse(parsed._replace(query=urlencode(query)))
