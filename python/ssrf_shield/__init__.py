"""ssrf_shield - SSRF-safe outbound HTTP fetches.

Every request, and every redirect hop, is resolved fresh, checked against the
reserved and private address ranges, and connected to the exact address that
was checked. TLS certificates and SNI still use the original hostname.

Example:
    >>> from ssrf_shield import get_sync, PrivateAddress
    >>> result = get_sync("https://example.com/api")  # Safe!
    >>> get_sync("http://169.254.169.254/")
    Traceback (most recent call last):
    ...
    ssrf_shield.errors.PrivateAddress: Hostname '169.254.169.254' has no public ip addresses
"""

from .addresses import IPV4_RESERVED_RANGES, IPV6_RESERVED_RANGES, is_unsafe
from .engine import FetchResult, Redirect
from .errors import (
    DnsError,
    HeaderInjection,
    HTTPStatusError,
    InvalidScheme,
    InvalidUrl,
    MalformedURL,
    PrivateAddress,
    ResponseTooLarge,
    SsrfBlocked,
    SsrfShieldError,
    TooManyRedirects,
    TransportError,
    UnresolvedHostname,
    UnvalidatedConnection,
)
from .options import DEFAULT_MAX_REDIRECTS, DEFAULT_SCHEME_WHITELIST, FetchOptions
from .override import current_override, hostname_override, with_override
from .redirects import (
    delete,
    delete_sync,
    fetch,
    fetch_sync,
    get,
    get_sync,
    post,
    post_sync,
    put,
    put_sync,
)
from .resolver import SystemResolver, system_resolver

# Make adapters accessible as ssrf_shield.adapters
from . import adapters

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_MAX_REDIRECTS",
    "DEFAULT_SCHEME_WHITELIST",
    "IPV4_RESERVED_RANGES",
    "IPV6_RESERVED_RANGES",
    "DnsError",
    "FetchOptions",
    "FetchResult",
    "HTTPStatusError",
    "HeaderInjection",
    "InvalidScheme",
    "InvalidUrl",
    "MalformedURL",
    "PrivateAddress",
    "Redirect",
    "ResponseTooLarge",
    "SsrfBlocked",
    "SsrfShieldError",
    "SystemResolver",
    "TooManyRedirects",
    "TransportError",
    "UnresolvedHostname",
    "UnvalidatedConnection",
    "adapters",
    "current_override",
    "delete",
    "delete_sync",
    "fetch",
    "fetch_sync",
    "get",
    "get_sync",
    "hostname_override",
    "is_unsafe",
    "post",
    "post_sync",
    "put",
    "put_sync",
    "system_resolver",
    "with_override",
]
