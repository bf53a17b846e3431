"""Redirect-following fetch API.

Every hop, the first one included, goes through the full validation pipeline
of :mod:`ssrf_shield.engine`: scheme and header checks, fresh resolution,
address filtering and pinning. Redirect locations may be absolute or relative;
relative ones are resolved against the URL of the hop that returned them.

Example:
    >>> from ssrf_shield import get_sync
    >>> result = get_sync("https://example.com/")  # Safe!
    >>> result.status_code
    200
"""

import dataclasses
from typing import Any, List, Optional, Union

import httpx
import structlog

from .engine import FetchResult, Redirect, attempt, attempt_sync
from .errors import TooManyRedirects
from .options import FetchOptions
from .validation import parse_url

logger = structlog.get_logger(__name__)

URLTypes = Union[str, httpx.URL]


def _finish(result: FetchResult, history: List[httpx.URL]) -> FetchResult:
    if not history:
        return result
    return dataclasses.replace(result, history=tuple(history))


def _too_many(url: URLTypes, options: FetchOptions) -> TooManyRedirects:
    return TooManyRedirects(f"Got {options.max_redirects} redirects fetching {url}")


def _follow(outcome: Redirect, current: httpx.URL, hop: int, history: List[httpx.URL]) -> httpx.URL:
    logger.debug(
        "Following redirect",
        hop=hop,
        status_code=outcome.status_code,
        redirect_from=str(current),
        location=str(outcome.location),
    )
    history.append(current)
    return outcome.location


def fetch_sync(
    method: str,
    url: URLTypes,
    options: Optional[FetchOptions] = None,
    **overrides: Any,
) -> FetchResult:
    """Fetch ``url`` with full SSRF protection, following redirects.

    Args:
        method: HTTP verb, e.g. ``"GET"``.
        url: The URL to fetch.
        options: FetchOptions for the request.
        **overrides: FetchOptions fields, applied on top of ``options``.

    Returns:
        The first non-redirect response.

    Raises:
        InvalidScheme: If the URL or a redirect location uses a forbidden scheme.
        MalformedURL: If the URL or a redirect location cannot be parsed.
        HeaderInjection: If a header contains a line break.
        UnresolvedHostname: If a hostname in the chain does not resolve.
        PrivateAddress: If a hostname in the chain has no public address.
        TooManyRedirects: If the chain is longer than ``max_redirects``.
        TransportError: On connection, TLS or protocol failures.

    Example:
        >>> result = fetch_sync("GET", user_provided_url, max_redirects=3)
    """
    options = FetchOptions.merge(options, **overrides)
    method = method.upper()
    current = parse_url(url)
    history: List[httpx.URL] = []

    for hop in range(options.max_redirects + 1):
        outcome = attempt_sync(method, current, options, hop=hop)
        if isinstance(outcome, FetchResult):
            return _finish(outcome, history)
        current = _follow(outcome, current, hop, history)

    raise _too_many(url, options)


async def fetch(
    method: str,
    url: URLTypes,
    options: Optional[FetchOptions] = None,
    **overrides: Any,
) -> FetchResult:
    """Fetch ``url`` asynchronously with full SSRF protection.

    Async version of fetch_sync(). Resolvers may return awaitables.

    Example:
        >>> async def main():
        ...     result = await fetch("GET", "https://example.com/")
        ...     print(result.text)
    """
    options = FetchOptions.merge(options, **overrides)
    method = method.upper()
    current = parse_url(url)
    history: List[httpx.URL] = []

    for hop in range(options.max_redirects + 1):
        outcome = await attempt(method, current, options, hop=hop)
        if isinstance(outcome, FetchResult):
            return _finish(outcome, history)
        current = _follow(outcome, current, hop, history)

    raise _too_many(url, options)


def get_sync(url: URLTypes, options: Optional[FetchOptions] = None, **overrides: Any) -> FetchResult:
    """GET ``url``. See fetch_sync()."""
    return fetch_sync("GET", url, options, **overrides)


def post_sync(url: URLTypes, options: Optional[FetchOptions] = None, **overrides: Any) -> FetchResult:
    """POST to ``url``. See fetch_sync()."""
    return fetch_sync("POST", url, options, **overrides)


def put_sync(url: URLTypes, options: Optional[FetchOptions] = None, **overrides: Any) -> FetchResult:
    """PUT to ``url``. See fetch_sync()."""
    return fetch_sync("PUT", url, options, **overrides)


def delete_sync(url: URLTypes, options: Optional[FetchOptions] = None, **overrides: Any) -> FetchResult:
    """DELETE ``url``. See fetch_sync()."""
    return fetch_sync("DELETE", url, options, **overrides)


async def get(url: URLTypes, options: Optional[FetchOptions] = None, **overrides: Any) -> FetchResult:
    """GET ``url`` asynchronously. See fetch()."""
    return await fetch("GET", url, options, **overrides)


async def post(url: URLTypes, options: Optional[FetchOptions] = None, **overrides: Any) -> FetchResult:
    """POST to ``url`` asynchronously. See fetch()."""
    return await fetch("POST", url, options, **overrides)


async def put(url: URLTypes, options: Optional[FetchOptions] = None, **overrides: Any) -> FetchResult:
    """PUT to ``url`` asynchronously. See fetch()."""
    return await fetch("PUT", url, options, **overrides)


async def delete(url: URLTypes, options: Optional[FetchOptions] = None, **overrides: Any) -> FetchResult:
    """DELETE ``url`` asynchronously. See fetch()."""
    return await fetch("DELETE", url, options, **overrides)
