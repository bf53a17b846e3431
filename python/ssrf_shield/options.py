"""Configuration for a fetch."""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Mapping, Optional, Union

import httpx

from .resolver import Resolver

DEFAULT_SCHEME_WHITELIST: FrozenSet[str] = frozenset({"http", "https"})
DEFAULT_MAX_REDIRECTS = 10
DEFAULT_TIMEOUT = httpx.Timeout(10.0)


@dataclass(frozen=True)
class FetchOptions:
    """Options controlling one fetch and every redirect hop it follows.

    Attributes:
        scheme_whitelist: Schemes that may be fetched, compared case-sensitively.
        resolver: Callable mapping a hostname to candidate addresses. None uses
            the system resolver.
        max_redirects: Redirects to follow before raising TooManyRedirects.
        headers: Extra request headers.
        params: Query parameters merged into the URL, replacing existing
            parameters of the same name.
        body: Request body.
        max_response_size: Largest accepted response body in bytes. None
            means unbounded.
        request_hook: Called with the ``httpx.Request`` just before it is sent.
        on_chunk: When set, the final response body is streamed to this
            callable instead of being buffered.
        timeout: httpx timeout for each attempt.
        verify: TLS verification setting passed to the default transport.
        transport_factory: Builds the inner httpx transport for an attempt.
            Defaults to ``httpx.HTTPTransport`` (or ``AsyncHTTPTransport``).
    """

    scheme_whitelist: FrozenSet[str] = DEFAULT_SCHEME_WHITELIST
    resolver: Optional[Resolver] = None
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, Any] = field(default_factory=dict)
    body: Optional[Union[bytes, str]] = None
    max_response_size: Optional[int] = None
    request_hook: Optional[Callable[[httpx.Request], None]] = None
    on_chunk: Optional[Callable[[bytes], None]] = None
    timeout: Any = field(default_factory=lambda: DEFAULT_TIMEOUT)
    verify: Any = True
    transport_factory: Optional[Callable[[], Any]] = None

    def __post_init__(self):
        if isinstance(self.scheme_whitelist, str):
            raise TypeError("scheme_whitelist must be a collection of schemes, not a string")
        object.__setattr__(self, "scheme_whitelist", frozenset(self.scheme_whitelist))
        if self.max_redirects < 0:
            raise ValueError(f"max_redirects must be >= 0, got {self.max_redirects}")
        if self.max_response_size is not None and self.max_response_size < 0:
            raise ValueError(f"max_response_size must be >= 0, got {self.max_response_size}")

    @classmethod
    def merge(cls, options: Optional["FetchOptions"] = None, **overrides: Any) -> "FetchOptions":
        """Combine an optional base FetchOptions with keyword overrides."""
        if options is None:
            return cls(**overrides)
        if not overrides:
            return options
        return dataclasses.replace(options, **overrides)

    def sync_transport(self) -> httpx.BaseTransport:
        if self.transport_factory is not None:
            return self.transport_factory()
        return httpx.HTTPTransport(verify=self.verify)

    def async_transport(self) -> httpx.AsyncBaseTransport:
        if self.transport_factory is not None:
            return self.transport_factory()
        return httpx.AsyncHTTPTransport(verify=self.verify)
