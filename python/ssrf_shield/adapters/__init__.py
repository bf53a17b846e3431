"""
ssrf_shield HTTP Client Adapters

SSRF-safe adapters for popular Python HTTP clients.

Every adapter resolves the hostname itself, rejects non-public addresses, and
connects to the address it checked. TLS keeps validating the certificate
against the original hostname:

    - httpx: the ``sni_hostname`` request extension
    - urllib3/requests: the ``server_hostname`` and ``assert_hostname`` pool
      keyword arguments
    - aiohttp: the connector's resolution step, which aiohttp already keeps
      separate from the hostname it uses for TLS

Redirects followed by the client itself are validated too, because every hop
passes through the adapter again.

Usage:
    # requests
    from ssrf_shield.adapters import safe_session
    s = safe_session()
    response = s.get(user_url)

    # httpx
    from ssrf_shield.adapters import safe_httpx_client
    client = safe_httpx_client()
    response = client.get(user_url)

    # httpx async
    from ssrf_shield.adapters import safe_httpx_async_client
    async with safe_httpx_async_client() as client:
        response = await client.get(user_url)

    # aiohttp
    from ssrf_shield.adapters import safe_aiohttp_session
    async with safe_aiohttp_session() as session:
        async with session.get(user_url) as response:
            body = await response.text()

    # urllib3
    from ssrf_shield.adapters import safe_urllib3_pool
    pool = safe_urllib3_pool()
    response = pool.request("GET", user_url)
"""

from typing import Optional

from ..options import FetchOptions

# Lazy imports to avoid requiring all client libraries
__all__ = [
    "FetchOptions",
    "safe_session",
    "safe_httpx_client",
    "safe_httpx_async_client",
    "safe_aiohttp_session",
    "safe_urllib3_pool",
]


def safe_session(options: Optional[FetchOptions] = None, **kwargs):
    """Create a requests.Session with SSRF protection.

    Requires: pip install requests
    """
    from .requests_adapter import safe_session as _safe_session
    return _safe_session(options, **kwargs)


def safe_httpx_client(options: Optional[FetchOptions] = None, **kwargs):
    """Create an httpx.Client with SSRF protection."""
    from .httpx_adapter import safe_httpx_client as _safe_httpx_client
    return _safe_httpx_client(options, **kwargs)


def safe_httpx_async_client(options: Optional[FetchOptions] = None, **kwargs):
    """Create an httpx.AsyncClient with SSRF protection."""
    from .httpx_adapter import safe_httpx_async_client as _safe_httpx_async_client
    return _safe_httpx_async_client(options, **kwargs)


def safe_aiohttp_session(options: Optional[FetchOptions] = None, **kwargs):
    """Create an aiohttp.ClientSession with SSRF protection.

    Requires: pip install aiohttp
    """
    from .aiohttp_adapter import safe_aiohttp_session as _safe_aiohttp_session
    return _safe_aiohttp_session(options, **kwargs)


def safe_urllib3_pool(options: Optional[FetchOptions] = None, **kwargs):
    """Create a urllib3.PoolManager with SSRF protection.

    Requires: pip install urllib3
    """
    from .urllib3_adapter import safe_urllib3_pool as _safe_urllib3_pool
    return _safe_urllib3_pool(options, **kwargs)
