"""
SSRF-safe adapter for aiohttp.

Usage:
    from ssrf_shield.adapters import safe_aiohttp_session

    async with safe_aiohttp_session() as session:
        async with session.get(user_url) as response:
            body = await response.text()
"""

import socket
import warnings
from typing import Any, Optional

from aiohttp import ClientSession, TCPConnector

from ..engine import resolve_candidates, select_address
from ..options import FetchOptions


class SsrfShieldConnector(TCPConnector):
    """aiohttp connector that only connects to public addresses.

    Resolution goes through the configured resolver; unsafe addresses are
    discarded and a single safe address is returned to aiohttp, so the
    connection is made to exactly the address that was checked. aiohttp keeps
    using the original hostname for TLS SNI and certificate verification.

    Scheme whitelisting is left to aiohttp, which only speaks http(s) and
    ws(s).
    """

    def __init__(self, options: Optional[FetchOptions] = None, **kwargs):
        self.options = options or FetchOptions()
        super().__init__(**kwargs)

    async def _resolve_host(
        self,
        host: str,
        port: int,
        traces: Optional[Any] = None,
    ) -> list:
        """Resolve ``host`` and return only the selected safe address."""
        hostname = host.strip("[]")
        candidates = await resolve_candidates(hostname, self.options)
        address = select_address(hostname, candidates)

        return [
            {
                "hostname": host,
                "host": str(address),
                "port": port,
                "family": socket.AF_INET if address.version == 4 else socket.AF_INET6,
                "proto": 0,
                "flags": socket.AI_NUMERICHOST,
            }
        ]


def safe_aiohttp_session(
    options: Optional[FetchOptions] = None,
    **kwargs,
) -> ClientSession:
    """Create an aiohttp.ClientSession with SSRF protection.

    All requests made through this session, and every redirect it follows,
    connect only to validated public addresses.

    Args:
        options: FetchOptions; ``resolver`` applies.
        **kwargs: Additional arguments passed to aiohttp.ClientSession

    Returns:
        A configured aiohttp.ClientSession

    Example:
        >>> async with safe_aiohttp_session() as session:
        ...     async with session.get("https://example.com/api") as response:
        ...         body = await response.text()
    """
    connector = kwargs.pop("connector", None)
    if connector is not None:
        warnings.warn(
            "Custom connector provided and will be ignored. "
            "Use SsrfShieldConnector for SSRF protection.",
            UserWarning,
        )

    kwargs.setdefault("trust_env", False)
    connector = SsrfShieldConnector(options=options)
    return ClientSession(connector=connector, **kwargs)
