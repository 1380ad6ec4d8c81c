"""Favicon fallback resolution and URL normalization."""

import re
from urllib.parse import quote, urlsplit

# Generic icon used when no hostname can be derived
FALLBACK_FAVICON_URL = "https://www.google.com/s2/favicons?domain=example.com&sz=128"

ICON_SERVICE_TEMPLATE = "https://icons.duckduckgo.com/ip3/{hostname}.ico"

_INVALID_HOST_CHARS = re.compile(r"[\s<>\\^`{|}%\"]")


def normalize_url(url: str) -> str:
    """Prefix ``https://`` when the input carries no scheme."""
    url = url.strip()
    return url if "://" in url else f"https://{url}"


def get_hostname(url: str) -> str | None:
    """Extract the lower-cased hostname, or None when the URL does not parse."""
    try:
        parsed = urlsplit(normalize_url(url))
        # Accessing the port validates it
        parsed.port
    except ValueError:
        return None

    hostname = parsed.hostname
    if not hostname or _INVALID_HOST_CHARS.search(hostname):
        return None
    return hostname


def build_favicon_url(hostname: str | None) -> str:
    """Build the icon service URL for a hostname."""
    if not hostname:
        return FALLBACK_FAVICON_URL
    return ICON_SERVICE_TEMPLATE.format(hostname=quote(hostname, safe=""))


def resolve_favicon(url: str) -> str:
    """Return a deterministic favicon URL for ``url``. Never raises."""
    return build_favicon_url(get_hostname(url))
