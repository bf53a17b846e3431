"""
Tests for ssrf_shield HTTP client adapters.

Run with: pytest tests/test_adapters.py

Note: These tests require the optional dependencies:
  pip install ssrf-shield[all]

No test opens a network connection: transports are mocked, and the
connection-level checks are exercised directly.
"""

import httpx
import pytest

from ssrf_shield import (
    FetchOptions,
    InvalidScheme,
    PrivateAddress,
    SsrfBlocked,
    UnvalidatedConnection,
    current_override,
    hostname_override,
)

from conftest import PUBLIC_IPV4, PUBLIC_IPV6, RecordingServer


class TestHttpxAdapter:
    """Tests for httpx adapter."""

    def test_pins_request(self, resolver, ok_server):
        """Requests reach the transport addressed to the validated IP."""
        from ssrf_shield.adapters import safe_httpx_client

        options = FetchOptions(resolver=resolver, transport_factory=ok_server.transport_factory())
        with safe_httpx_client(options) as client:
            response = client.get("https://www.example.com/path")

        assert response.status_code == 200
        sent = ok_server.requests[0]
        assert sent.url == httpx.URL("https://172.217.6.78/path")
        assert sent.headers["host"] == "www.example.com"
        assert sent.extensions["sni_hostname"] == "www.example.com"

    def test_blocks_loopback(self, ok_server):
        from ssrf_shield.adapters import safe_httpx_client

        with safe_httpx_client(FetchOptions(transport_factory=ok_server.transport_factory())) as client:
            with pytest.raises(SsrfBlocked):
                client.get("http://127.0.0.1/")
        assert ok_server.requests == []

    def test_blocks_forbidden_scheme(self, resolver):
        from ssrf_shield.adapters.httpx_adapter import SsrfShieldTransport

        transport = SsrfShieldTransport(FetchOptions(resolver=resolver, scheme_whitelist={"https"}))
        with pytest.raises(InvalidScheme):
            transport.handle_request(httpx.Request("GET", "http://www.example.com/"))

    def test_validates_redirects(self, resolver):
        """Redirects followed by httpx pass through the transport again."""
        from ssrf_shield.adapters import safe_httpx_client

        server = RecordingServer([httpx.Response(302, headers={"Location": "https://private.example.com/"})])
        options = FetchOptions(resolver=resolver, transport_factory=server.transport_factory())
        with safe_httpx_client(options) as client:
            with pytest.raises(PrivateAddress):
                client.get("https://www.example.com/", follow_redirects=True)
        assert len(server.requests) == 1

    def test_follows_safe_redirect(self, resolver):
        from ssrf_shield.adapters import safe_httpx_client

        server = RecordingServer(
            [
                httpx.Response(301, headers={"Location": "https://www.example2.com/"}),
                httpx.Response(200, content=b"done"),
            ]
        )
        options = FetchOptions(resolver=resolver, transport_factory=server.transport_factory())
        with safe_httpx_client(options) as client:
            response = client.get("https://www.example.com/", follow_redirects=True)

        assert response.content == b"done"
        assert server.requests[1].url.host == str(PUBLIC_IPV6)
        assert server.requests[1].headers["host"] == "www.example2.com"

    def test_client_defaults(self):
        from ssrf_shield.adapters import safe_httpx_client

        with safe_httpx_client(FetchOptions(max_redirects=4)) as client:
            assert client.max_redirects == 4
            assert client.trust_env is False

    @pytest.mark.asyncio
    async def test_async_client(self, resolver, ok_server):
        from ssrf_shield.adapters import safe_httpx_async_client

        options = FetchOptions(resolver=resolver, transport_factory=ok_server.transport_factory())
        async with safe_httpx_async_client(options) as client:
            response = await client.get("https://www.example2.com/")
            with pytest.raises(PrivateAddress):
                await client.get("https://private.example.com/")

        assert response.status_code == 200
        assert ok_server.requests[0].headers["host"] == "www.example2.com"
        assert len(ok_server.requests) == 1


class TestUrllib3Adapter:
    """Tests for urllib3 adapter."""

    @pytest.fixture
    def pool_manager(self):
        """SafePoolManager class, skip if urllib3 not installed."""
        pytest.importorskip("urllib3")
        from ssrf_shield.adapters.urllib3_adapter import SafePoolManager

        return SafePoolManager

    def test_blocks_loopback(self):
        pytest.importorskip("urllib3")
        from ssrf_shield.adapters import safe_urllib3_pool

        pool = safe_urllib3_pool()
        with pytest.raises(SsrfBlocked):
            pool.request("GET", "http://127.0.0.1/")

    def test_blocks_private_hostname(self, pool_manager, resolver):
        pool = pool_manager(FetchOptions(resolver=resolver))
        with pytest.raises(PrivateAddress):
            pool.request("GET", "https://private.example.com/")

    def test_pool_connects_to_pinned_address(self, pool_manager):
        """HTTPS pools target the IP but verify the hostname."""
        pool = pool_manager()
        with hostname_override("www.example.com", PUBLIC_IPV4):
            connection_pool = pool.connection_from_host("www.example.com", 443, "https")

        assert connection_pool.host == "172.217.6.78"
        assert connection_pool.conn_kw["server_hostname"] == "www.example.com"
        assert connection_pool.assert_hostname == "www.example.com"

    def test_http_pool_connects_to_pinned_address(self, pool_manager):
        pool = pool_manager()
        with hostname_override("www.example.com", PUBLIC_IPV4):
            connection_pool = pool.connection_from_host("www.example.com", 80, "http")
        assert connection_pool.host == "172.217.6.78"
        assert "server_hostname" not in connection_pool.conn_kw

    def test_refuses_unpinned_connection(self, pool_manager):
        pool = pool_manager()
        with pytest.raises(UnvalidatedConnection):
            pool.connection_from_host("www.example.com", 443, "https")
        with hostname_override("other.example.com", PUBLIC_IPV4):
            with pytest.raises(UnvalidatedConnection):
                pool.connection_from_host("www.example.com", 443, "https")

    def test_sets_host_header_inside_override(self, pool_manager, resolver, monkeypatch):
        from urllib3.poolmanager import PoolManager

        seen = []

        def urlopen(self, method, url, redirect=True, **kw):
            seen.append((kw["headers"]["Host"], current_override()))
            return None

        monkeypatch.setattr(PoolManager, "urlopen", urlopen)
        pool = pool_manager(FetchOptions(resolver=resolver))
        pool.urlopen("GET", "https://www.example.com:8443/")

        host, override = seen[0]
        assert host == "www.example.com:8443"
        assert override.hostname == "www.example.com"
        assert override.address == PUBLIC_IPV4
        assert current_override() is None


class TestRequestsAdapter:
    """Tests for requests adapter."""

    @pytest.fixture
    def safe_session(self):
        """Get safe_session, skip if requests not installed."""
        pytest.importorskip("requests")
        from ssrf_shield.adapters import safe_session

        return safe_session

    def test_blocks_loopback(self, safe_session):
        """Should block loopback addresses."""
        with pytest.raises(SsrfBlocked):
            safe_session().get("http://127.0.0.1/")

    def test_blocks_metadata(self, safe_session):
        """Should block metadata endpoints."""
        with pytest.raises(SsrfBlocked):
            safe_session().get("http://169.254.169.254/latest/meta-data/")

    def test_blocks_private_hostname(self, safe_session, resolver):
        with pytest.raises(PrivateAddress):
            safe_session(FetchOptions(resolver=resolver)).get("https://private6.example.com/")

    def test_refuses_proxies(self, safe_session, resolver):
        session = safe_session(FetchOptions(resolver=resolver))
        with pytest.raises(ValueError):
            session.get("https://www.example.com/", proxies={"https": "http://proxy.internal:3128"})

    def test_session_settings(self, safe_session):
        session = safe_session(FetchOptions(max_redirects=2))
        assert session.trust_env is False
        assert session.max_redirects == 2

    def test_sets_host_header_inside_override(self, safe_session, resolver, monkeypatch):
        import requests
        from requests.adapters import HTTPAdapter

        seen = []

        def send(self, request, **kwargs):
            seen.append((request.headers["Host"], current_override()))
            response = requests.Response()
            response.status_code = 204
            response.request = request
            response.url = request.url
            return response

        monkeypatch.setattr(HTTPAdapter, "send", send)
        response = safe_session(FetchOptions(resolver=resolver)).get("https://www.example.com/")

        assert response.status_code == 204
        host, override = seen[0]
        assert host == "www.example.com"
        assert override.address == PUBLIC_IPV4


class TestAiohttpAdapter:
    """Tests for aiohttp adapter."""

    @pytest.fixture
    def connector_class(self):
        pytest.importorskip("aiohttp")
        from ssrf_shield.adapters.aiohttp_adapter import SsrfShieldConnector

        return SsrfShieldConnector

    @pytest.mark.asyncio
    async def test_resolves_to_single_public_address(self, connector_class, resolver):
        connector = connector_class(FetchOptions(resolver=resolver))
        try:
            hosts = await connector._resolve_host("mixed.example.com", 443)
        finally:
            await connector.close()

        assert len(hosts) == 1
        assert hosts[0]["host"] == "172.217.6.78"
        assert hosts[0]["hostname"] == "mixed.example.com"
        assert hosts[0]["port"] == 443

    @pytest.mark.asyncio
    async def test_blocks_private_hostname(self, connector_class, resolver):
        connector = connector_class(FetchOptions(resolver=resolver))
        try:
            with pytest.raises(PrivateAddress):
                await connector._resolve_host("private.example.com", 80)
        finally:
            await connector.close()

    @pytest.mark.asyncio
    async def test_blocks_loopback_literal(self, connector_class):
        connector = connector_class()
        try:
            with pytest.raises(SsrfBlocked):
                await connector._resolve_host("127.0.0.1", 80)
        finally:
            await connector.close()

    @pytest.mark.asyncio
    async def test_warns_on_custom_connector(self):
        aiohttp = pytest.importorskip("aiohttp")
        from ssrf_shield.adapters import safe_aiohttp_session
        from ssrf_shield.adapters.aiohttp_adapter import SsrfShieldConnector

        custom = aiohttp.TCPConnector()
        with pytest.warns(UserWarning):
            session = safe_aiohttp_session(connector=custom)
        try:
            assert isinstance(session.connector, SsrfShieldConnector)
            assert session.trust_env is False
        finally:
            await session.close()
            await custom.close()
