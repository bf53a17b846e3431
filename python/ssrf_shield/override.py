"""Call-scoped hostname override for pinned connections.

The engine connects to an already validated IP address rather than to the
hostname, so that the transport never re-resolves DNS. TLS still has to be
checked against the *logical* hostname, and SNI has to announce it. The
override carries that hostname to the transport for the duration of a single
connect-and-request operation.

The value lives in a :class:`contextvars.ContextVar`, so every thread and every
asyncio task sees only the override it established itself.

Example:
    >>> with hostname_override("example.com", "93.184.216.34"):
    ...     current_override().hostname
    'example.com'
    >>> current_override() is None
    True
"""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, TypeVar

from .addresses import IPAddress, host_address

T = TypeVar("T")


@dataclass(frozen=True)
class HostnameOverride:
    """Logical hostname and the physical address it was pinned to."""

    hostname: str
    address: IPAddress

    def matches(self, host: str) -> bool:
        """True when ``host`` (a URL host) is the pinned address."""
        return host_address(host.strip("[]")) == self.address


_current: ContextVar[Optional[HostnameOverride]] = ContextVar(
    "ssrf_shield_hostname_override", default=None
)


def current_override() -> Optional[HostnameOverride]:
    """The override active in the calling context, if any."""
    return _current.get()


@contextmanager
def hostname_override(hostname: str, address: Any) -> Iterator[HostnameOverride]:
    """Pin ``hostname`` to ``address`` inside the ``with`` block.

    The override is removed however the block exits, including on
    cancellation of the surrounding task.
    """
    pinned = host_address(address)
    if pinned is None:
        raise ValueError(f"Not a single host address: {address!r}")
    token = _current.set(HostnameOverride(hostname=hostname, address=pinned))
    try:
        yield _current.get()
    finally:
        _current.reset(token)


def with_override(hostname: str, address: Any, body: Callable[[], T]) -> T:
    """Run ``body`` with the override established and return its result."""
    with hostname_override(hostname, address):
        return body()
