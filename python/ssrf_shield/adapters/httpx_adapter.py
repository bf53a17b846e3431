"""
SSRF-safe adapter for httpx.

Usage:
    from ssrf_shield.adapters import safe_httpx_client, safe_httpx_async_client

    # Sync
    client = safe_httpx_client()
    response = client.get(user_url)

    # Async
    async with safe_httpx_async_client() as client:
        response = await client.get(user_url)
"""

import threading
from typing import Dict, Optional

import httpx

from ..engine import pin_target, pin_target_sync
from ..options import FetchOptions
from ..override import hostname_override
from ..transport import AsyncPinnedTransport, PinnedTransport, pin_request
from ..validation import hostname_of


class SsrfShieldTransport(httpx.BaseTransport):
    """httpx transport that validates and pins every request.

    Each request is resolved, filtered and sent to the chosen public address
    with the original hostname as Host header and TLS SNI. Connections are
    pooled per hostname, so a TLS connection verified for one hostname is
    never reused for another hostname sharing the same IP.
    """

    def __init__(self, options: Optional[FetchOptions] = None, **kwargs):
        self.options = options or FetchOptions()
        self._transport_kwargs = kwargs
        self._transports: Dict[str, PinnedTransport] = {}
        self._lock = threading.Lock()

    def _transport_for(self, hostname: str) -> PinnedTransport:
        with self._lock:
            transport = self._transports.get(hostname)
            if transport is None:
                if self.options.transport_factory is not None:
                    inner = self.options.transport_factory()
                else:
                    inner = httpx.HTTPTransport(**self._transport_kwargs)
                transport = self._transports[hostname] = PinnedTransport(inner)
        return transport

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        """Validate and pin the request before handing it on."""
        hostname = hostname_of(request.url)
        address = pin_target_sync(request.url.scheme, hostname, request.headers, self.options)
        pinned = pin_request(request, hostname, address)
        with hostname_override(hostname, address):
            return self._transport_for(hostname).handle_request(pinned)

    def close(self) -> None:
        with self._lock:
            transports, self._transports = list(self._transports.values()), {}
        for transport in transports:
            transport.close()


class SsrfShieldAsyncTransport(httpx.AsyncBaseTransport):
    """Async httpx transport that validates and pins every request."""

    def __init__(self, options: Optional[FetchOptions] = None, **kwargs):
        self.options = options or FetchOptions()
        self._transport_kwargs = kwargs
        self._transports: Dict[str, AsyncPinnedTransport] = {}

    def _transport_for(self, hostname: str) -> AsyncPinnedTransport:
        transport = self._transports.get(hostname)
        if transport is None:
            if self.options.transport_factory is not None:
                inner = self.options.transport_factory()
            else:
                inner = httpx.AsyncHTTPTransport(**self._transport_kwargs)
            transport = self._transports[hostname] = AsyncPinnedTransport(inner)
        return transport

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Validate and pin the request before handing it on."""
        hostname = hostname_of(request.url)
        address = await pin_target(request.url.scheme, hostname, request.headers, self.options)
        pinned = pin_request(request, hostname, address)
        with hostname_override(hostname, address):
            return await self._transport_for(hostname).handle_async_request(pinned)

    async def aclose(self) -> None:
        transports, self._transports = list(self._transports.values()), {}
        for transport in transports:
            await transport.aclose()


def safe_httpx_client(
    options: Optional[FetchOptions] = None,
    **kwargs,
) -> httpx.Client:
    """Create an httpx.Client with SSRF protection.

    All requests made through this client, and all redirects it follows, are
    validated and connected to the validated IP address.

    Args:
        options: FetchOptions; ``scheme_whitelist``, ``resolver``,
            ``max_redirects``, ``timeout``, ``verify`` and
            ``transport_factory`` apply.
        **kwargs: Additional arguments passed to httpx.Client

    Returns:
        A configured httpx.Client

    Example:
        >>> client = safe_httpx_client()
        >>> response = client.get("https://example.com/api")
    """
    options = options or FetchOptions()
    transport = SsrfShieldTransport(options=options, verify=options.verify)
    kwargs.setdefault("timeout", options.timeout)
    kwargs.setdefault("max_redirects", options.max_redirects)
    return httpx.Client(transport=transport, trust_env=False, **kwargs)


def safe_httpx_async_client(
    options: Optional[FetchOptions] = None,
    **kwargs,
) -> httpx.AsyncClient:
    """Create an httpx.AsyncClient with SSRF protection.

    Args:
        options: FetchOptions, as for safe_httpx_client()
        **kwargs: Additional arguments passed to httpx.AsyncClient

    Returns:
        A configured httpx.AsyncClient

    Example:
        >>> async with safe_httpx_async_client() as client:
        ...     response = await client.get("https://example.com/api")
    """
    options = options or FetchOptions()
    transport = SsrfShieldAsyncTransport(options=options, verify=options.verify)
    kwargs.setdefault("timeout", options.timeout)
    kwargs.setdefault("max_redirects", options.max_redirects)
    return httpx.AsyncClient(transport=transport, trust_env=False, **kwargs)
