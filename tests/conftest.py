"""Shared fixtures for ssrf_shield tests.

No test touches the network: hostnames are resolved by stub resolvers and
HTTP traffic is answered by httpx.MockTransport handlers.
"""

import ipaddress
from typing import Callable, Dict, List

import httpx
import pytest

PUBLIC_IPV4 = ipaddress.ip_address("172.217.6.78")
PRIVATE_IPV4 = ipaddress.ip_address("127.0.0.1")
PUBLIC_IPV6 = ipaddress.ip_address("2606:2800:220:1:248:1893:25c8:1946")
PRIVATE_IPV6 = ipaddress.ip_address("::1")


class StubResolver:
    """Resolver answering from a fixed table and recording every lookup."""

    def __init__(self, table: Dict[str, List]):
        self.table = table
        self.calls: List[str] = []

    def __call__(self, hostname: str) -> List:
        self.calls.append(hostname)
        return list(self.table.get(hostname, []))


class RecordingServer:
    """MockTransport handler that records requests and replays responses.

    ``responses`` is either a single callable taking the request, or a list of
    httpx.Response objects returned in order.
    """

    def __init__(self, responses):
        self.responses = responses
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if callable(self.responses):
            return self.responses(request)
        return self.responses[len(self.requests) - 1]

    def transport_factory(self) -> Callable[[], httpx.MockTransport]:
        return lambda: httpx.MockTransport(self)


@pytest.fixture
def resolver():
    """Resolver for the hostnames used throughout the tests."""
    return StubResolver(
        {
            "www.example.com": [PUBLIC_IPV4],
            "www.example2.com": [PUBLIC_IPV6],
            "private.example.com": [PRIVATE_IPV4],
            "private6.example.com": [PRIVATE_IPV6],
            "mixed.example.com": [PRIVATE_IPV4, PUBLIC_IPV4, PRIVATE_IPV6],
        }
    )


@pytest.fixture
def ok_server():
    """Server answering every request with 200 and a short body."""
    return RecordingServer(lambda request: httpx.Response(200, content=b"response body"))
