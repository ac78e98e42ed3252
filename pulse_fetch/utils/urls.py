"""URL helpers shared by the request models and the strategy store."""
from urllib.parse import urlparse

ALLOWED_SCHEMES = ("http", "https")


def validate_absolute_url(url: str) -> str:
    """Return the URL unchanged if it is an absolute http(s) URI.

    Raises:
        ValueError: if the URL is empty, relative, or uses another scheme
    """
    if not isinstance(url, str) or not url.strip():
        raise ValueError("URL must be a non-empty string")

    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ValueError(f"Invalid URL {url!r}: {e}") from e

    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.netloc:
        raise ValueError(f"URL must be an absolute http(s) URI, got {url!r}")

    return url


def host_with_port(url: str) -> str:
    """Hostname of a URL, with the port appended when one is present."""
    parsed = urlparse(url)
    hostname = parsed.hostname or ""
    return f"{hostname}:{parsed.port}" if parsed.port else hostname
