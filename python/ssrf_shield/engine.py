"""One fetch attempt: validate, resolve, filter, pin, connect.

Each attempt resolves the hostname itself, discards every unsafe address,
picks one of the remaining addresses at random and connects to exactly that
address. The logical hostname is sent as the Host header and, through the
hostname override, used for SNI and certificate validation. Nothing between
validation and connection can re-resolve the name.

An attempt returns either a :class:`FetchResult` or a :class:`Redirect`; the
redirect loop in :mod:`ssrf_shield.redirects` decides what to do next.
"""

import inspect
import json
import secrets
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple, Union

import httpx
import structlog

from .addresses import IPAddress, host_address, is_unsafe
from .errors import PrivateAddress, ResponseTooLarge, TransportError, UnresolvedHostname
from .options import FetchOptions
from .override import hostname_override
from .resolver import system_resolver
from .transport import AsyncPinnedTransport, PinnedTransport, pin_request
from .validation import check_headers, hostname_of, join_url, validate_request

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FetchResult:
    """Final, non-redirect response of a fetch.

    Attributes:
        url: Logical URL of the final hop (hostname, not IP).
        address: IP address the final hop connected to.
        status_code: HTTP status code.
        reason_phrase: HTTP reason phrase.
        http_version: e.g. ``"HTTP/1.1"``.
        headers: Response headers.
        content: Decoded response body, or None when it was streamed to
            ``on_chunk``.
        encoding: Charset declared by the Content-Type header, if any.
        history: Logical URLs of the hops that answered with a redirect.
    """

    url: httpx.URL
    address: IPAddress
    status_code: int
    reason_phrase: str
    http_version: str
    headers: httpx.Headers
    content: Optional[bytes]
    encoding: Optional[str] = None
    history: Tuple[httpx.URL, ...] = ()

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        if self.content is None:
            raise ValueError("Response body was streamed and is not available")
        return self.content.decode(self.encoding or "utf-8", errors="replace")

    def json(self, **kwargs: Any) -> Any:
        return json.loads(self.text, **kwargs)


@dataclass(frozen=True)
class Redirect:
    """A hop answered with a redirect to ``location`` (already absolute)."""

    location: httpx.URL
    status_code: int


def select_address(hostname: str, candidates: Iterable[Any]) -> IPAddress:
    """Pick one safe address for ``hostname`` out of the resolver results.

    Selection among safe addresses is uniformly random so repeated requests
    cannot steer which address gets used.

    Raises:
        UnresolvedHostname: If ``candidates`` is empty.
        PrivateAddress: If every candidate is unsafe.
    """
    candidates = list(candidates)
    if not candidates:
        raise UnresolvedHostname(f"Could not resolve hostname {hostname!r}", hostname=hostname)

    safe: List[IPAddress] = []
    for candidate in candidates:
        if is_unsafe(candidate):
            continue
        address = host_address(candidate)
        if address is not None:
            safe.append(address)

    if not safe:
        logger.warning(
            "Blocked hostname with no public addresses",
            hostname=hostname,
            addresses=[str(candidate) for candidate in candidates],
        )
        raise PrivateAddress(
            f"Hostname {hostname!r} has no public ip addresses",
            hostname=hostname,
            addresses=candidates,
        )
    return secrets.choice(safe)


def resolve_candidates_sync(hostname: str, options: FetchOptions) -> List[Any]:
    """Fresh resolver results for one attempt."""
    resolver = options.resolver or system_resolver
    result = resolver(hostname)
    if inspect.isawaitable(result):
        if inspect.iscoroutine(result):
            result.close()
        raise TypeError("Async resolvers can only be used with the async API")
    return list(result or ())


async def resolve_candidates(hostname: str, options: FetchOptions) -> List[Any]:
    """Async version of resolve_candidates_sync(); accepts async resolvers."""
    if options.resolver is None:
        return await system_resolver.resolve_async(hostname)
    result = options.resolver(hostname)
    if inspect.isawaitable(result):
        result = await result
    return list(result or ())


def pin_target_sync(scheme: str, hostname: str, headers: Any, options: FetchOptions) -> IPAddress:
    """Validate a request target and return the address to connect to."""
    validate_request(scheme, options.scheme_whitelist, headers)
    return select_address(hostname, resolve_candidates_sync(hostname, options))


async def pin_target(scheme: str, hostname: str, headers: Any, options: FetchOptions) -> IPAddress:
    """Async version of :func:`pin_target_sync`."""
    validate_request(scheme, options.scheme_whitelist, headers)
    return select_address(hostname, await resolve_candidates(hostname, options))


def build_request(
    method: str,
    url: httpx.URL,
    hostname: str,
    address: IPAddress,
    options: FetchOptions,
) -> httpx.Request:
    """Request for ``url`` addressed to ``address``, after the request hook ran."""
    request = httpx.Request(
        method,
        url,
        headers=httpx.Headers(options.headers),
        content=options.body,
        # Requests built outside a client carry their own timeout.
        extensions={"timeout": httpx.Timeout(options.timeout).as_dict()},
    )
    request = pin_request(request, hostname, address)
    if options.request_hook is not None:
        options.request_hook(request)
        check_headers(request.headers)
    return request


def _target_url(url: httpx.URL, options: FetchOptions) -> httpx.URL:
    if options.params:
        return url.copy_merge_params(options.params)
    return url


class _BodyReader:
    """Collects or streams a response body while enforcing the size limit."""

    def __init__(self, response: httpx.Response, options: FetchOptions):
        self.limit = options.max_response_size
        self.on_chunk = options.on_chunk
        self.size = 0
        self.chunks: List[bytes] = []

        declared = response.headers.get("Content-Length", "")
        if self.limit is not None and declared.isdigit() and int(declared) > self.limit:
            raise ResponseTooLarge(
                f"Response declares {declared} bytes, limit is {self.limit}"
            )

    def feed(self, chunk: bytes) -> None:
        self.size += len(chunk)
        if self.limit is not None and self.size > self.limit:
            raise ResponseTooLarge(f"Response body exceeds {self.limit} bytes")
        if self.on_chunk is not None:
            self.on_chunk(chunk)
        else:
            self.chunks.append(chunk)

    @property
    def content(self) -> Optional[bytes]:
        if self.on_chunk is not None:
            return None
        return b"".join(self.chunks)


def _redirect(response: httpx.Response, url: httpx.URL) -> Optional[Redirect]:
    if not response.has_redirect_location:
        return None
    # Relative locations resolve against the logical URL, never the pinned IP.
    location = join_url(url, response.headers["Location"])
    return Redirect(location=location, status_code=response.status_code)


def _result(url: httpx.URL, address: IPAddress, response: httpx.Response, content: Optional[bytes]) -> FetchResult:
    return FetchResult(
        url=url,
        address=address,
        status_code=response.status_code,
        reason_phrase=response.reason_phrase,
        http_version=response.http_version,
        headers=response.headers,
        content=content,
        encoding=response.charset_encoding,
    )


def _transport_error(exc: Exception, hop: int, hostname: str, url: httpx.URL) -> TransportError:
    return TransportError(
        f"Request to {hostname!r} failed on hop {hop}: {exc}",
        hop=hop,
        hostname=hostname,
        url=str(url),
    )


def attempt_sync(
    method: str,
    url: httpx.URL,
    options: FetchOptions,
    hop: int = 0,
) -> Union[FetchResult, Redirect]:
    """Perform a single request without following redirects.

    Args:
        method: HTTP verb.
        url: Logical URL of this hop.
        options: Fetch options.
        hop: Position of this attempt in the redirect chain, for errors and logs.

    Returns:
        A FetchResult for a final response, or a Redirect naming the next hop.

    Raises:
        InvalidScheme, HeaderInjection, MalformedURL, UnresolvedHostname,
        PrivateAddress, ResponseTooLarge, TransportError.
    """
    validate_request(url.scheme, options.scheme_whitelist, options.headers)
    hostname = hostname_of(url)
    try:
        candidates = resolve_candidates_sync(hostname, options)
    except OSError as exc:
        raise _transport_error(exc, hop, hostname, url) from exc
    address = select_address(hostname, candidates)

    url = _target_url(url, options)
    request = build_request(method, url, hostname, address, options)
    logger.debug("Fetching", hop=hop, method=method, url=str(url), address=str(address))

    # The pinned transport is called directly, without a client, so the
    # Location header is only ever parsed by join_url.
    with hostname_override(hostname, address):
        with PinnedTransport(options.sync_transport()) as transport:
            try:
                response = transport.handle_request(request)
                response.request = request
                try:
                    redirect = _redirect(response, url)
                    if redirect is not None:
                        return redirect
                    reader = _BodyReader(response, options)
                    for chunk in response.iter_bytes():
                        reader.feed(chunk)
                finally:
                    response.close()
            except httpx.RequestError as exc:
                raise _transport_error(exc, hop, hostname, url) from exc

    return _result(url, address, response, reader.content)


async def attempt(
    method: str,
    url: httpx.URL,
    options: FetchOptions,
    hop: int = 0,
) -> Union[FetchResult, Redirect]:
    """Async version of :func:`attempt_sync`."""
    validate_request(url.scheme, options.scheme_whitelist, options.headers)
    hostname = hostname_of(url)
    try:
        candidates = await resolve_candidates(hostname, options)
    except OSError as exc:
        raise _transport_error(exc, hop, hostname, url) from exc
    address = select_address(hostname, candidates)

    url = _target_url(url, options)
    request = build_request(method, url, hostname, address, options)
    logger.debug("Fetching", hop=hop, method=method, url=str(url), address=str(address))

    with hostname_override(hostname, address):
        async with AsyncPinnedTransport(options.async_transport()) as transport:
            try:
                response = await transport.handle_async_request(request)
                response.request = request
                try:
                    redirect = _redirect(response, url)
                    if redirect is not None:
                        return redirect
                    reader = _BodyReader(response, options)
                    async for chunk in response.aiter_bytes():
                        reader.feed(chunk)
                finally:
                    await response.aclose()
            except httpx.RequestError as exc:
                raise _transport_error(exc, hop, hostname, url) from exc

    return _result(url, address, response, reader.content)
