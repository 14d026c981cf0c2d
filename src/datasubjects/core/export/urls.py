# src/datasubjects/core/export/urls.py
"""Reconstruction of stored action URLs.

URLs are stored in log_action without their scheme and leading "www.",
which are kept as a small integer in url_prefix instead.
"""

from urllib.parse import urlsplit, urlunsplit

URL_PREFIXES: dict[int, str] = {
    0: "http://",
    1: "http://www.",
    2: "https://",
    3: "https://www.",
}


def _lower_host(url: str) -> str:
    parts = urlsplit(url)
    if not parts.netloc:
        return url
    userinfo, at, hostport = parts.netloc.rpartition("@")
    netloc = f"{userinfo}{at}{hostport.lower()}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def reconstruct_normalized_url(name: str | None, prefix_id: int | None) -> str | None:
    """Rebuild the full URL from a stored action name and its prefix id.

    Unknown or missing prefix ids leave the name unchanged. The host part of
    a reconstructed URL is lower-cased.

    Example:
        >>> reconstruct_normalized_url("Example.org/Path", 3)
        'https://www.example.org/Path'
    """
    if name is None or prefix_id is None:
        return name
    prefix = URL_PREFIXES.get(int(prefix_id))
    if prefix is None:
        return name
    try:
        return _lower_host(prefix + name)
    except ValueError:
        # urlsplit rejects malformed netlocs (e.g. unbalanced IPv6 brackets)
        return prefix + name
