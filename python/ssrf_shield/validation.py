"""Request validation applied to every hop before any network activity."""

import re
from typing import Any, Collection, Iterable, Mapping, Optional, Tuple, Union

import httpx

from .addresses import parse_address
from .errors import HeaderInjection, InvalidScheme, MalformedURL

_CONTROL_CHARACTERS = re.compile(r"[\x00-\x1f\x7f]")
_LINE_BREAKS = ("\r", "\n")
_HOSTNAME = re.compile(r"[A-Za-z0-9_-]+(\.[A-Za-z0-9_-]+)*\.?")

HeaderItems = Union[Mapping[Any, Any], Iterable[Tuple[Any, Any]], httpx.Headers]


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return str(value)


def _header_items(headers: Optional[HeaderItems]) -> Iterable[Tuple[Any, Any]]:
    if headers is None:
        return ()
    if isinstance(headers, httpx.Headers):
        return headers.multi_items()
    if hasattr(headers, "items"):
        return headers.items()
    return headers


def check_headers(headers: Optional[HeaderItems]) -> None:
    """Reject header names or values containing CR or LF.

    Raises:
        HeaderInjection: On the first offending header.
    """
    for name, value in _header_items(headers):
        name_text = _text(name)
        if any(char in name_text for char in _LINE_BREAKS):
            raise HeaderInjection(f"Header name {name_text!r} contains a line break")
        if any(char in _text(value) for char in _LINE_BREAKS):
            raise HeaderInjection(f"Value of header {name_text!r} contains a line break")


def validate_request(
    scheme: str,
    allowed_schemes: Collection[str],
    headers: Optional[HeaderItems] = None,
) -> None:
    """Validate the scheme and headers of one attempt.

    Args:
        scheme: Scheme of the URL being fetched. Compared case-sensitively.
        allowed_schemes: The scheme whitelist.
        headers: Headers that will be sent.

    Raises:
        InvalidScheme: If the scheme is not whitelisted.
        HeaderInjection: If a header name or value contains a line break.
    """
    if scheme not in allowed_schemes:
        raise InvalidScheme(
            f"URL scheme {scheme!r} not in whitelist: {sorted(allowed_schemes)}"
        )
    check_headers(headers)


def parse_url(url: Union[str, httpx.URL]) -> httpx.URL:
    """Parse ``url``, rejecting control characters anywhere in it.

    Raises:
        MalformedURL: If the URL cannot be parsed.
    """
    if isinstance(url, httpx.URL):
        return url
    if not isinstance(url, str):
        raise MalformedURL(f"URL must be a string, got {type(url).__name__}")
    if _CONTROL_CHARACTERS.search(url):
        raise MalformedURL(f"URL contains control characters: {url!r}")
    try:
        return httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise MalformedURL(f"Invalid URL {url!r}: {exc}") from exc


def join_url(base: httpx.URL, location: str) -> httpx.URL:
    """Resolve a redirect ``location`` against the URL that produced it."""
    if _CONTROL_CHARACTERS.search(location):
        raise MalformedURL(f"Redirect location contains control characters: {location!r}")
    try:
        return base.join(location)
    except httpx.InvalidURL as exc:
        raise MalformedURL(f"Invalid redirect location {location!r}: {exc}") from exc


def hostname_of(url: httpx.URL) -> str:
    """ASCII (IDNA-encoded) hostname of ``url``.

    httpx percent-encodes characters it cannot place in a host instead of
    rejecting them, so the host must be an IP literal or dot-separated
    letter/digit/hyphen labels.

    Raises:
        MalformedURL: If the URL has no host or the host has illegal characters.
    """
    hostname = url.raw_host.decode("ascii")
    if not hostname:
        raise MalformedURL(f"URL has no hostname: {url}")
    if parse_address(hostname) is None and not _HOSTNAME.fullmatch(hostname):
        raise MalformedURL(f"URL hostname contains illegal characters: {hostname!r}")
    return hostname


def host_header(hostname: str, port: Optional[int]) -> str:
    """Host header value; ``port`` is None for the scheme's default port."""
    if ":" in hostname and not hostname.startswith("["):
        hostname = f"[{hostname}]"
    if port is None:
        return hostname
    return f"{hostname}:{port}"
