"""Site URL helpers: validation, normalization and login derivation."""

import re
from urllib.parse import urlsplit


_LOGIN_UNSAFE = re.compile(r"[^a-z0-9.-]+")


def derive_login(site_url: str) -> str:
    """Derive the account login for a site URL.

    Lower-cased ``host_path`` with every run of characters outside
    ``[a-z0-9.-]`` collapsed to ``_`` and surrounding ``_`` trimmed, so
    ``https://Example.com/blog/`` becomes ``example.com_blog``.
    """
    parts = urlsplit(site_url)
    host = parts.hostname or ""
    return _LOGIN_UNSAFE.sub("_", f"{host}_{parts.path}".lower()).strip("_")


def is_valid_site_url(site_url: object) -> bool:
    """Whether ``site_url`` is an absolute http(s) URL with a host."""
    if not isinstance(site_url, str) or not site_url or site_url != site_url.strip():
        return False
    try:
        parts = urlsplit(site_url)
        # Accessing .port validates it
        parts.port  # noqa: B018
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


def normalize_site_url(site_url: str) -> str:
    """Strip trailing slashes from a site URL."""
    return site_url.rstrip("/")


def ensure_scheme(site_url: str) -> str:
    """Prefix ``http://`` when a URL was typed without a scheme."""
    site_url = site_url.strip()
    if "://" not in site_url:
        return f"http://{site_url}"
    return site_url


def same_site(first: str, second: str) -> bool:
    """Compare two site URLs ignoring case and trailing slashes."""
    return normalize_site_url(first).lower() == normalize_site_url(second).lower()
