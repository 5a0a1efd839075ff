"""URL helpers.

Catalog servers are addressed by a base URL and every query goes to an
endpoint below it (e.g. ``api/backend/group_entries``).

Users frequently configure either:

- localhost:3000
- http://localhost:3000/
- https://catalog.example.org/hub

The helpers below normalize those forms so endpoint joining never drops or
duplicates a path segment.
"""

from __future__ import annotations

from urllib.parse import urlparse


def _ensure_scheme(url: str) -> str:
    url = (url or "").strip()
    if not url:
        return url
    # Allow "localhost:3000" style inputs.
    if "://" not in url:
        return "http://" + url
    return url


def base_url(url: str) -> str:
    """Return ``scheme://host[:port][/path]`` without a trailing slash.

    Unlike a bare root URL, the path is kept: a catalog may be mounted below
    a prefix on a shared host. Empty input stays empty (no catalog).
    """
    url = _ensure_scheme(url)
    if not url:
        return ""
    u = urlparse(url)
    scheme = u.scheme or "http"
    netloc = u.netloc or u.path
    path = u.path if u.netloc else ""
    return f"{scheme}://{netloc}{path}".rstrip("/")


def endpoint_url(base: str, endpoint: str) -> str:
    """Join an API endpoint onto a catalog base URL."""
    return f"{base_url(base)}/{endpoint.lstrip('/')}"
