"""Hostname resolution.

A resolver is any callable taking a hostname and returning the candidate
addresses for it. Callers can swap in their own, for instance to pin DNS
results or query an internal resolver:

    >>> from ssrf_shield import get_sync
    >>> get_sync("https://example.com/", resolver=lambda host: ["93.184.216.34"])

The async API also accepts resolvers returning an awaitable.
"""

import asyncio
import socket
from typing import Any, Awaitable, Callable, Iterable, List, Union

from .addresses import parse_address

Resolver = Callable[[str], Union[Iterable[Any], Awaitable[Iterable[Any]]]]

# getaddrinfo codes meaning "this name has no addresses", as opposed to a
# resolver outage which is reported to the caller.
_NO_ADDRESS_ERRORS = frozenset(
    code
    for code in (
        getattr(socket, "EAI_NONAME", None),
        getattr(socket, "EAI_NODATA", None),
        getattr(socket, "EAI_ADDRFAMILY", None),
    )
    if code is not None
)


def _addresses_from_addrinfo(infos: Iterable[tuple]) -> List[Any]:
    """Distinct addresses from getaddrinfo results, in resolver order."""
    seen = set()
    addresses = []
    for _family, _type, _proto, _canonname, sockaddr in infos:
        text = str(sockaddr[0])
        if text in seen:
            continue
        seen.add(text)
        parsed = parse_address(text)
        # Unparseable entries stay as text and are rejected by the classifier.
        addresses.append(parsed if parsed is not None else text)
    return addresses


class SystemResolver:
    """Resolve hostnames with the operating system's ``getaddrinfo``.

    Returns every A and AAAA result. A name that does not exist yields an
    empty list; other lookup failures raise ``socket.gaierror``.
    """

    def __call__(self, hostname: str) -> List[Any]:
        try:
            infos = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
        except UnicodeError:
            return []
        except socket.gaierror as exc:
            if exc.errno in _NO_ADDRESS_ERRORS:
                return []
            raise
        return _addresses_from_addrinfo(infos)

    async def resolve_async(self, hostname: str) -> List[Any]:
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(
                hostname, None, family=socket.AF_UNSPEC, type=socket.SOCK_STREAM
            )
        except UnicodeError:
            return []
        except socket.gaierror as exc:
            if exc.errno in _NO_ADDRESS_ERRORS:
                return []
            raise
        return _addresses_from_addrinfo(infos)


system_resolver = SystemResolver()
