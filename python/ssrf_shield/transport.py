"""httpx transports that only connect to the address pinned by the override.

These wrap a regular httpx transport. Before handing a request on they check
that its URL host is the validated IP of the active
:class:`~ssrf_shield.override.HostnameOverride`, and for https they set the
``sni_hostname`` request extension to the logical hostname. httpcore uses that
extension both as the SNI value and as the name the server certificate must
match, so certificate validation runs unchanged against the real hostname.
"""

import httpx

from .addresses import IPAddress
from .errors import UnvalidatedConnection
from .override import HostnameOverride, current_override
from .validation import host_header


def pin_request(request: httpx.Request, hostname: str, address: IPAddress) -> httpx.Request:
    """Copy of ``request`` addressed to ``address`` with ``hostname`` as Host."""
    headers = httpx.Headers(request.headers)
    headers["Host"] = host_header(hostname, request.url.port)
    url_host = f"[{address}]" if address.version == 6 else str(address)
    return httpx.Request(
        method=request.method,
        url=request.url.copy_with(host=url_host),
        headers=headers,
        stream=request.stream,
        extensions=dict(request.extensions),
    )


def _prepare(request: httpx.Request) -> HostnameOverride:
    override = current_override()
    if override is None:
        raise UnvalidatedConnection(
            f"Refusing to connect to {request.url.host}: no validated address is pinned"
        )
    if not override.matches(request.url.host):
        raise UnvalidatedConnection(
            f"Refusing to connect to {request.url.host}: "
            f"pinned address for {override.hostname} is {override.address}"
        )
    if request.url.scheme == "https":
        request.extensions = {**request.extensions, "sni_hostname": override.hostname}
    return override


class PinnedTransport(httpx.BaseTransport):
    """Sync transport enforcing the active hostname override."""

    def __init__(self, transport: httpx.BaseTransport):
        self._transport = transport

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        _prepare(request)
        return self._transport.handle_request(request)

    def close(self) -> None:
        self._transport.close()


class AsyncPinnedTransport(httpx.AsyncBaseTransport):
    """Async transport enforcing the active hostname override."""

    def __init__(self, transport: httpx.AsyncBaseTransport):
        self._transport = transport

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        _prepare(request)
        return await self._transport.handle_async_request(request)

    async def aclose(self) -> None:
        await self._transport.aclose()
