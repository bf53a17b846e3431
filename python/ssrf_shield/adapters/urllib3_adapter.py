"""
SSRF-safe adapter for urllib3.

Usage:
    from ssrf_shield.adapters import safe_urllib3_pool

    pool = safe_urllib3_pool()
    response = pool.request("GET", "https://example.com/api")
    print(response.data)
"""

from typing import Optional

from urllib3.poolmanager import PoolManager
from urllib3.util import parse_url

from ..engine import pin_target_sync
from ..errors import MalformedURL, UnvalidatedConnection
from ..options import FetchOptions
from ..override import current_override, hostname_override
from ..validation import host_header


def _bare_host(host: Optional[str]) -> str:
    return (host or "").strip("[]").lower()


class SafePoolManager(PoolManager):
    """urllib3 PoolManager with SSRF protection.

    ``urlopen`` resolves the target, picks a public address and establishes a
    hostname override for the request. ``connection_from_host`` then opens
    the pool against that address, passing the hostname as
    ``server_hostname`` (SNI) and ``assert_hostname`` (certificate check) for
    https. Pools are keyed by those values too, so hostnames sharing an IP
    never share TLS connections.

    Redirects followed by urllib3 re-enter ``urlopen`` and are validated like
    the first request. Both HTTP and HTTPS connections are pinned.
    """

    def __init__(self, options: Optional[FetchOptions] = None, **kwargs):
        self.options = options or FetchOptions()
        super().__init__(**kwargs)

    def urlopen(self, method, url, redirect=True, **kw):
        """Validate the URL and pin to a public IP before making the request."""
        parsed = parse_url(url)
        hostname = _bare_host(parsed.host)
        if not hostname:
            raise MalformedURL(f"URL has no hostname: {url}")

        headers = kw.get("headers")
        if headers is None:
            headers = self.headers
        address = pin_target_sync(parsed.scheme or "http", hostname, headers, self.options)

        # Set Host header to original hostname
        headers = dict(headers)
        for name in [name for name in headers if name.lower() == "host"]:
            del headers[name]
        default_port = {"http": 80, "https": 443}.get(parsed.scheme or "http")
        port = parsed.port if parsed.port != default_port else None
        headers["Host"] = host_header(hostname, port)
        kw["headers"] = headers

        with hostname_override(hostname, address):
            return super().urlopen(method, url, redirect=redirect, **kw)

    def connection_from_host(self, host, port=None, scheme="http", pool_kwargs=None):
        """Open the pool against the pinned address instead of the hostname."""
        override = current_override()
        if override is None or _bare_host(host) != override.hostname.lower():
            raise UnvalidatedConnection(
                f"Refusing to connect to {host}: no validated address is pinned"
            )

        pool_kwargs = dict(pool_kwargs or {})
        if scheme == "https":
            pool_kwargs["server_hostname"] = override.hostname
            pool_kwargs["assert_hostname"] = override.hostname
        return super().connection_from_host(
            str(override.address), port=port, scheme=scheme, pool_kwargs=pool_kwargs
        )


def safe_urllib3_pool(
    options: Optional[FetchOptions] = None,
    **kwargs,
) -> SafePoolManager:
    """Create a urllib3.PoolManager with SSRF protection.

    All requests made through this pool, including redirects, are validated
    and connected to the validated IP.

    Args:
        options: FetchOptions; ``scheme_whitelist`` and ``resolver`` apply.
        **kwargs: Additional arguments passed to urllib3.PoolManager

    Returns:
        A configured urllib3.PoolManager

    Example:
        >>> pool = safe_urllib3_pool()
        >>> response = pool.request("GET", "https://example.com/api")
        >>> print(response.status)
    """
    return SafePoolManager(options=options, **kwargs)
