"""
URL Normalization

Canonicalizes URLs so that bookmarks pointing at the same resource compare
equal regardless of tracking parameters, transport, host casing, "www."
prefix, explicit port, trailing slash, query order or fragment.
"""

from typing import List, Tuple
from urllib.parse import SplitResult, parse_qsl, urlencode, urlsplit


# Common tracking parameters to strip
TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "fbclid",
        "gclid",
        "ref",
        "source",
        "mc_cid",
        "mc_eid",
    }
)

CANONICAL_SCHEME = "https"
UNKNOWN_DOMAIN = "unknown"


def _strip_www(hostname: str) -> str:
    if hostname.startswith("www."):
        return hostname[4:]
    return hostname


def _split_host(url: str) -> Tuple[SplitResult, str]:
    """
    Parse a URL and return (parsed, lowercased hostname).

    Raises:
        ValueError: If the URL has no scheme or host, or urllib rejects it
    """
    parsed = urlsplit(url.strip())
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Not an absolute URL: {url!r}")
    hostname = parsed.hostname
    if not hostname:
        raise ValueError(f"URL has no host: {url!r}")
    # Accessing .port validates it (raises ValueError when out of range)
    parsed.port
    return parsed, hostname.lower()


def _filtered_query(query: str) -> List[Tuple[str, str]]:
    pairs = parse_qsl(query, keep_blank_values=True)
    return sorted((k, v) for k, v in pairs if k not in TRACKING_PARAMS)


def normalize_url(url: str) -> str:
    """
    Normalize URL for duplicate comparison.

    Never raises: input that cannot be parsed as an absolute URL is returned
    lowercased and otherwise unchanged.

    Args:
        url: Raw bookmark URL

    Returns:
        Canonical URL string
    """
    try:
        parsed, hostname = _split_host(url)
    except ValueError:
        return url.lower()

    host = _strip_www(hostname)
    if ":" in host:
        # IPv6 literal
        host = f"[{host}]"

    netloc = host
    if parsed.username is not None:
        userinfo = parsed.username
        if parsed.password is not None:
            userinfo += f":{parsed.password}"
        netloc = f"{userinfo}@{host}"

    path = parsed.path or "/"
    if path.endswith("/") and len(path) > 1:
        path = path[:-1]

    query = urlencode(_filtered_query(parsed.query))

    normalized = f"{CANONICAL_SCHEME}://{netloc}{path}"
    if query:
        normalized += f"?{query}"
    return normalized


def extract_domain(url: str) -> str:
    """
    Extract the bucketing domain for a URL.

    Args:
        url: Raw bookmark URL

    Returns:
        Lowercased hostname without a leading "www.", or "unknown"
    """
    try:
        _, hostname = _split_host(url)
    except ValueError:
        return UNKNOWN_DOMAIN
    return _strip_www(hostname)


__all__ = [
    "TRACKING_PARAMS",
    "UNKNOWN_DOMAIN",
    "normalize_url",
    "extract_domain",
]
