"""Exception hierarchy for ssrf_shield.

Every failure is a distinct subclass of :class:`SsrfShieldError` so callers
can treat, for example, :class:`PrivateAddress` as a security event while
handling :class:`TransportError` as an ordinary network failure.
"""

from typing import Any, Optional


class SsrfShieldError(Exception):
    """Base exception for all ssrf_shield errors.

    Catch this to handle any ssrf_shield error generically.
    """


class InvalidUrl(SsrfShieldError):
    """The URL cannot be fetched as given."""


class InvalidScheme(InvalidUrl):
    """URL scheme is not in the scheme whitelist.

    Raised for the initial URL and for every redirect location.
    """


class MalformedURL(InvalidUrl):
    """URL could not be parsed, has no host, or contains control characters."""


class SsrfBlocked(SsrfShieldError):
    """A connection was refused by the address policy."""


class PrivateAddress(SsrfBlocked):
    """Every address the hostname resolved to is non-public."""

    def __init__(self, message: str, hostname: str = "", addresses: Any = ()):
        super().__init__(message)
        self.hostname = hostname
        self.addresses = tuple(addresses)


class UnvalidatedConnection(SsrfBlocked):
    """A pinned transport was asked to connect without a validated address."""


class DnsError(SsrfShieldError):
    """DNS resolution failed."""


class UnresolvedHostname(DnsError):
    """The resolver returned no addresses for the hostname."""

    def __init__(self, message: str, hostname: str = ""):
        super().__init__(message)
        self.hostname = hostname


class TooManyRedirects(SsrfShieldError):
    """The redirect chain was longer than ``max_redirects``."""


class HeaderInjection(SsrfShieldError):
    """A header name or value contained a carriage return or line feed."""


class ResponseTooLarge(SsrfShieldError):
    """The response body exceeded ``max_response_size``."""


class TransportError(SsrfShieldError):
    """The HTTP transport failed while fetching one hop.

    The original exception is available as ``__cause__``.

    Attributes:
        hop: Zero-based attempt number within the redirect chain.
        hostname: Logical hostname of the attempt.
        url: Logical URL of the attempt.
    """

    def __init__(self, message: str, hop: int = 0, hostname: str = "", url: str = ""):
        super().__init__(message)
        self.hop = hop
        self.hostname = hostname
        self.url = url


class HTTPStatusError(SsrfShieldError):
    """Raised by :func:`ssrf_shield.resource.urlopen` for non-2xx responses."""

    def __init__(self, message: str, resource: Optional[Any] = None):
        super().__init__(message)
        self.resource = resource
