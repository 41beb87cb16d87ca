"""URL helpers shared by collectors and the restorer."""

import re
from urllib.parse import urlparse

_HTTP_PREFIX = re.compile(r"^https?://", re.IGNORECASE)
_QUERY_OR_FRAGMENT = re.compile(r"[?#].*$", re.DOTALL)
_BROWSER_TITLE_SUFFIX = re.compile(
    r"\s*[-–|]\s*(Google Chrome|Microsoft Edge|Chromium|Mozilla Firefox|Brave|Opera)\s*$",
    re.IGNORECASE,
)


def is_http_url(url) -> bool:
    """Cheap prefix check used at every tab/history producer."""
    return isinstance(url, str) and bool(_HTTP_PREFIX.match(url))


def is_safe_to_open(url) -> bool:
    """
    Strict check applied before handing a URL to the OS.

    The URL is re-parsed; only http/https with a host passes.
    """
    if not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def normalize_history_url(url: str) -> str:
    """Strip query string and fragment; the de-duplication key for history."""
    return _QUERY_OR_FRAGMENT.sub("", url)


def strip_browser_suffix(title: str) -> str:
    """Remove trailing " - Google Chrome" style browser names from a title."""
    return _BROWSER_TITLE_SUFFIX.sub("", title or "").strip()


def extract_domain(url: str) -> str:
    """
    Extract domain from URL.

    Args:
        url: Full URL

    Returns:
        Domain name (e.g., "github.com")
    """
    try:
        parsed = urlparse(url)
        domain = parsed.netloc
        if domain.startswith("www."):
            domain = domain[4:]
        return domain
    except ValueError:
        return ""
