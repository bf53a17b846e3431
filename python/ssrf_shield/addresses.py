"""IP address safety classification.

An address is *unsafe* when it belongs to reserved, private, loopback,
link-local, multicast or otherwise non-public address space, when it is an
IPv6 address embedding such an IPv4 address, or when it denotes more than one
host (masked notation such as ``10.0.0.1/8``).

Example:
    >>> from ssrf_shield.addresses import is_unsafe
    >>> is_unsafe("127.0.0.1")
    True
    >>> is_unsafe("93.184.216.34")
    False
    >>> is_unsafe("93.184.216.34/16")
    True
"""

import ipaddress
from typing import Any, Optional, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

# https://en.wikipedia.org/wiki/Reserved_IP_addresses
IPV4_RESERVED_RANGES = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "0.0.0.0/8",  # Current network
        "10.0.0.0/8",  # Private network
        "100.64.0.0/10",  # Shared address space (carrier-grade NAT)
        "127.0.0.0/8",  # Loopback
        "169.254.0.0/16",  # Link-local, cloud metadata endpoints
        "172.16.0.0/12",  # Private network
        "192.0.0.0/24",  # IETF protocol assignments
        "192.0.2.0/24",  # TEST-NET-1
        "192.88.99.0/24",  # 6to4 relay anycast
        "192.168.0.0/16",  # Private network
        "198.18.0.0/15",  # Benchmarking
        "198.51.100.0/24",  # TEST-NET-2
        "203.0.113.0/24",  # TEST-NET-3
        "224.0.0.0/4",  # Multicast
        "240.0.0.0/4",  # Reserved
        "255.255.255.255/32",  # Broadcast
    )
)

IPV6_RESERVED_RANGES = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "::/128",  # Unspecified
        "::1/128",  # Loopback
        "64:ff9b::/96",  # IPv4/IPv6 translation (RFC 6052)
        "100::/64",  # Discard prefix (RFC 6666)
        "2001::/32",  # Teredo
        "2001:10::/28",  # ORCHID (deprecated)
        "2001:20::/28",  # ORCHIDv2
        "2001:db8::/32",  # Documentation
        "2002::/16",  # 6to4
        "fc00::/7",  # Unique local
        "fe80::/10",  # Link-local
        "ff00::/8",  # Multicast
    )
)


def parse_address(value: Any) -> Optional[Any]:
    """Normalise a resolver result into an ``ipaddress`` object.

    Strings in masked notation become interfaces so the mask is preserved.
    Returns None when the value cannot be parsed.
    """
    if isinstance(
        value,
        (
            ipaddress.IPv4Address,
            ipaddress.IPv6Address,
            ipaddress.IPv4Network,
            ipaddress.IPv6Network,
        ),
    ):
        return value
    if isinstance(value, bytes):
        value = value.decode("ascii", "replace")
    if not isinstance(value, str):
        return None
    text = value.strip()
    try:
        if "/" in text:
            return ipaddress.ip_interface(text)
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def host_address(value: Any) -> Optional[IPAddress]:
    """Return the single host address ``value`` denotes, or None.

    Networks and interfaces qualify only when they contain exactly one address.
    """
    parsed = parse_address(value)
    if isinstance(parsed, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
        return parsed.network_address if parsed.num_addresses == 1 else None
    if isinstance(parsed, (ipaddress.IPv4Interface, ipaddress.IPv6Interface)):
        return parsed.ip if parsed.network.num_addresses == 1 else None
    if isinstance(parsed, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return parsed
    return None


def has_mask(value: Any) -> bool:
    """True when ``value`` is a network or interface spanning several hosts."""
    if isinstance(value, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
        return value.num_addresses > 1
    if isinstance(value, (ipaddress.IPv4Interface, ipaddress.IPv6Interface)):
        return value.network.num_addresses > 1
    return False


def embedded_ipv4(address: ipaddress.IPv6Address) -> Optional[ipaddress.IPv4Address]:
    """IPv4 address carried by an IPv4-mapped or IPv4-compatible IPv6 address."""
    if address.ipv4_mapped is not None:
        return address.ipv4_mapped
    packed = int(address)
    if packed >> 32 == 0:
        return ipaddress.IPv4Address(packed)
    return None


def _is_unsafe_ipv4(address: ipaddress.IPv4Address) -> bool:
    return any(address in network for network in IPV4_RESERVED_RANGES)


def _is_unsafe_ipv6(address: ipaddress.IPv6Address) -> bool:
    if any(address in network for network in IPV6_RESERVED_RANGES):
        return True
    embedded = embedded_ipv4(address)
    return embedded is not None and _is_unsafe_ipv4(embedded)


def is_unsafe(address: Any) -> bool:
    """Decide whether ``address`` must never be connected to.

    Args:
        address: An ``ipaddress`` address, network or interface, or a string
            in any notation ``ipaddress`` understands.

    Returns:
        True for reserved or non-public addresses, for masked inputs covering
        more than one host, and for anything whose family cannot be
        determined.
    """
    parsed = parse_address(address)
    if parsed is None or has_mask(parsed):
        return True

    single = host_address(parsed)
    # Interfaces subclass the address types, so unwrap before dispatching.
    if isinstance(single, ipaddress.IPv4Address):
        return _is_unsafe_ipv4(single)
    if isinstance(single, ipaddress.IPv6Address):
        return _is_unsafe_ipv6(single)
    return True
