"""
SSRF-safe adapter for requests.

Usage:
    from ssrf_shield.adapters import safe_session

    s = safe_session()
    response = s.get(user_url)  # SSRF-safe!
"""

from typing import Optional

import requests
from requests.adapters import DEFAULT_POOLBLOCK, HTTPAdapter
from urllib3.util import parse_url
from urllib3.util.retry import Retry

from ..engine import pin_target_sync
from ..errors import MalformedURL
from ..options import FetchOptions
from ..override import hostname_override
from ..validation import host_header
from .urllib3_adapter import SafePoolManager


class SsrfShieldAdapter(HTTPAdapter):
    """requests HTTPAdapter that validates URLs and pins connections.

    Every request, including each redirect requests follows, is resolved and
    checked before sending. Connections go to the validated IP for both HTTP
    and HTTPS; for HTTPS the certificate is still verified against the
    original hostname (see SafePoolManager).

    Proxies are refused: a proxy would resolve the hostname itself.
    """

    def __init__(self, options: Optional[FetchOptions] = None, **kwargs):
        self.options = options or FetchOptions()
        super().__init__(**kwargs)

    def init_poolmanager(self, connections, maxsize, block=DEFAULT_POOLBLOCK, **pool_kwargs):
        self._pool_connections = connections
        self._pool_maxsize = maxsize
        self._pool_block = block
        self.poolmanager = SafePoolManager(
            options=self.options,
            num_pools=connections,
            maxsize=maxsize,
            block=block,
            **pool_kwargs,
        )

    def send(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        """Validate URL and pin to a public IP before sending the request."""
        if kwargs.get("proxies"):
            raise ValueError("Proxies cannot be used with SSRF-safe connections")

        parsed = parse_url(request.url)
        hostname = (parsed.host or "").strip("[]").lower()
        if not hostname:
            raise MalformedURL(f"URL has no hostname: {request.url}")

        address = pin_target_sync(parsed.scheme or "http", hostname, request.headers, self.options)

        default_port = {"http": 80, "https": 443}.get(parsed.scheme or "http")
        port = parsed.port if parsed.port != default_port else None
        request.headers["Host"] = host_header(hostname, port)

        with hostname_override(hostname, address):
            return super().send(request, **kwargs)


def safe_session(
    options: Optional[FetchOptions] = None,
    max_retries: int = 3,
) -> requests.Session:
    """Create a requests.Session with SSRF protection.

    All HTTP and HTTPS requests made through this session are validated
    before being sent and connected to the validated IP address.

    Args:
        options: FetchOptions; ``scheme_whitelist``, ``resolver`` and
            ``max_redirects`` apply.
        max_retries: Maximum number of retries for failed requests

    Returns:
        A configured requests.Session

    Example:
        >>> s = safe_session()
        >>> response = s.get("https://example.com/api")
        >>> # This would raise PrivateAddress:
        >>> # s.get("http://169.254.169.254/")
    """
    options = options or FetchOptions()
    session = requests.Session()
    # Environment proxies would bypass address pinning.
    session.trust_env = False
    session.max_redirects = options.max_redirects

    # Mount our SSRF-safe adapter for both HTTP and HTTPS
    adapter = SsrfShieldAdapter(options=options, max_retries=Retry(total=max_retries))
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    return session
