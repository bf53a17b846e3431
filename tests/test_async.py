"""
Async tests for the ssrf_shield fetch API.

Run with: pytest tests/test_async.py
"""

import asyncio

import httpx
import pytest

from ssrf_shield import (
    InvalidScheme,
    MalformedURL,
    PrivateAddress,
    ResponseTooLarge,
    TooManyRedirects,
    TransportError,
    UnresolvedHostname,
    delete,
    fetch,
    get,
    post,
    put,
)

from conftest import PUBLIC_IPV4, PUBLIC_IPV6, RecordingServer


class TestFetchAsync:
    """Tests for the async fetch functions."""

    @pytest.mark.asyncio
    async def test_get_public_host(self, resolver, ok_server):
        """Requests go to the resolved address with the hostname as Host."""
        result = await get(
            "https://www.example.com/path",
            resolver=resolver,
            transport_factory=ok_server.transport_factory(),
        )
        assert result.status_code == 200
        assert result.content == b"response body"
        assert result.address == PUBLIC_IPV4

        sent = ok_server.requests[0]
        assert sent.url == httpx.URL("https://172.217.6.78/path")
        assert sent.headers["host"] == "www.example.com"
        assert sent.extensions["sni_hostname"] == "www.example.com"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("call,method", [(get, "GET"), (post, "POST"), (put, "PUT"), (delete, "DELETE")])
    async def test_verbs(self, call, method, resolver, ok_server):
        await call("https://www.example.com/", resolver=resolver, transport_factory=ok_server.transport_factory())
        assert ok_server.requests[0].method == method

    @pytest.mark.asyncio
    async def test_async_resolver(self, ok_server):
        """Resolvers may be coroutine functions in the async API."""
        lookups = []

        async def resolver(hostname):
            lookups.append(hostname)
            await asyncio.sleep(0)
            return [PUBLIC_IPV6]

        result = await get(
            "https://www.example2.com/",
            resolver=resolver,
            transport_factory=ok_server.transport_factory(),
        )
        assert lookups == ["www.example2.com"]
        assert result.address == PUBLIC_IPV6

    @pytest.mark.asyncio
    async def test_blocks_private_host(self, resolver, ok_server):
        with pytest.raises(PrivateAddress):
            await get("https://private.example.com/", resolver=resolver, transport_factory=ok_server.transport_factory())
        assert ok_server.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["http://127.0.0.1/", "http://[::1]/", "http://169.254.169.254/"])
    async def test_blocks_literal_internal_addresses(self, url, ok_server):
        """The default async resolver handles IP literals without DNS."""
        with pytest.raises(PrivateAddress):
            await get(url, transport_factory=ok_server.transport_factory())
        assert ok_server.requests == []

    @pytest.mark.asyncio
    async def test_invalid_scheme(self, resolver):
        with pytest.raises(InvalidScheme):
            await get("ftp://www.example.com/", resolver=resolver)
        assert resolver.calls == []

    @pytest.mark.asyncio
    async def test_unresolved_hostname(self, resolver):
        with pytest.raises(UnresolvedHostname):
            await get("https://unknown.example.com/", resolver=resolver)

    @pytest.mark.asyncio
    async def test_transport_error(self, resolver):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        server = RecordingServer(handler)
        with pytest.raises(TransportError) as exc_info:
            await get("https://www.example.com/", resolver=resolver, transport_factory=server.transport_factory())
        assert exc_info.value.hostname == "www.example.com"
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_response_size_limit(self, resolver):
        server = RecordingServer(lambda request: httpx.Response(200, content=b"x" * 100))
        with pytest.raises(ResponseTooLarge):
            await get(
                "https://www.example.com/",
                resolver=resolver,
                max_response_size=50,
                transport_factory=server.transport_factory(),
            )

    @pytest.mark.asyncio
    async def test_on_chunk(self, resolver, ok_server):
        chunks = []
        result = await get(
            "https://www.example.com/",
            resolver=resolver,
            on_chunk=chunks.append,
            transport_factory=ok_server.transport_factory(),
        )
        assert b"".join(chunks) == b"response body"
        assert result.content is None


class TestRedirectsAsync:
    """Tests for redirect handling in the async API."""

    @pytest.mark.asyncio
    async def test_cross_host_redirect(self, resolver):
        server = RecordingServer(
            [
                httpx.Response(302, headers={"Location": "https://www.example2.com/next"}),
                httpx.Response(200, content=b"done"),
            ]
        )
        result = await fetch(
            "GET",
            "https://www.example.com/",
            resolver=resolver,
            transport_factory=server.transport_factory(),
        )
        assert result.content == b"done"
        assert result.url == httpx.URL("https://www.example2.com/next")
        assert result.history == (httpx.URL("https://www.example.com/"),)
        assert server.requests[1].headers["host"] == "www.example2.com"
        assert server.requests[1].url.host == str(PUBLIC_IPV6)

    @pytest.mark.asyncio
    async def test_redirect_to_private_host(self, resolver):
        server = RecordingServer([httpx.Response(301, headers={"Location": "http://private.example.com/"})])
        with pytest.raises(PrivateAddress):
            await get("https://www.example.com/", resolver=resolver, transport_factory=server.transport_factory())
        assert len(server.requests) == 1

    @pytest.mark.asyncio
    async def test_redirect_limit(self, resolver):
        server = RecordingServer(lambda request: httpx.Response(302, headers={"Location": "/loop"}))
        with pytest.raises(TooManyRedirects):
            await get(
                "https://www.example.com/",
                resolver=resolver,
                max_redirects=2,
                transport_factory=server.transport_factory(),
            )
        assert len(server.requests) == 3

    @pytest.mark.asyncio
    async def test_unparsable_redirect_location(self, resolver):
        """Unusable Location hosts are malformed, not transport failures."""
        server = RecordingServer([httpx.Response(301, headers={"Location": "http://[::1/"})])
        with pytest.raises(MalformedURL):
            await get("https://www.example.com/", resolver=resolver, transport_factory=server.transport_factory())
        assert len(server.requests) == 1


class TestConcurrency:
    """Concurrent fetches must never see each other's pinning."""

    @pytest.mark.asyncio
    async def test_concurrent_fetches_stay_pinned(self, resolver):
        """Each task's request carries its own SNI hostname and Host header."""
        async def handler(request):
            # Yield so that the other fetch runs in between.
            await asyncio.sleep(0.01)
            return httpx.Response(
                200, text=f"{request.extensions['sni_hostname']} {request.headers['host']}"
            )

        def transport_factory():
            return httpx.MockTransport(handler)

        hosts = ["www.example.com", "www.example2.com"] * 5
        results = await asyncio.gather(
            *(get(f"https://{host}/", resolver=resolver, transport_factory=transport_factory) for host in hosts)
        )
        for host, result in zip(hosts, results):
            assert result.text == f"{host} {host}"
            assert result.address == (PUBLIC_IPV4 if host == "www.example.com" else PUBLIC_IPV6)
