"""Workflow endpoint normalization."""

from __future__ import annotations

from urllib.parse import urlsplit

RUN_SUFFIX = "/workflows/run"
API_BASE = "/ext/v1"


def normalize_endpoint(endpoint: str) -> str:
    """Derive the workflow-run URL from a configured endpoint.

    Accepts a full run URL, an API base ending in /ext/v1, a URL with other
    segments after /ext/v1, a bare domain, or any other base path. The run
    suffix is appended exactly once.

    Examples:
        >>> normalize_endpoint("api.example.com")
        'https://api.example.com/ext/v1/workflows/run'
        >>> normalize_endpoint("https://api.example.com/ext/v1/")
        'https://api.example.com/ext/v1/workflows/run'
        >>> normalize_endpoint("https://api.example.com/ext/v1/chat-messages")
        'https://api.example.com/ext/v1/workflows/run'
    """
    url = endpoint.strip()
    if "://" not in url:
        url = f"https://{url}"
    url = url.rstrip("/")

    if RUN_SUFFIX in url:
        return url[: url.index(RUN_SUFFIX) + len(RUN_SUFFIX)]
    if url.endswith(API_BASE):
        return url + RUN_SUFFIX
    if f"{API_BASE}/" in url:
        return url[: url.index(f"{API_BASE}/") + len(API_BASE)] + RUN_SUFFIX

    path = urlsplit(url).path
    if not path:
        return url + API_BASE + RUN_SUFFIX
    return url + RUN_SUFFIX
