"""
Address classification helpers.

Remote devices are addressed by literal IPv4 or IPv6 addresses. The address
family decides which SSH flags are passed and which loopback literal is used
when connecting to a forwarded port.
"""

import ipaddress
from enum import Enum

from ..exceptions import InvalidAddressError

IPV4_LOOPBACK = "127.0.0.1"
IPV6_LOOPBACK = "::1"


class AddressFamily(Enum):
    """Address family of a remote device address."""
    IPV4 = "ipv4"
    IPV6 = "ipv6"
    INVALID = "invalid"


def classify(address: str) -> AddressFamily:
    """Classify ``address`` as IPv4, IPv6 or invalid."""
    try:
        parsed = ipaddress.ip_address(address)
    except ValueError:
        return AddressFamily.INVALID
    # Scoped literals ("fe80::1%eth0") are rejected; the interface is
    # supplied separately.
    if isinstance(parsed, ipaddress.IPv6Address):
        if parsed.scope_id is not None:
            return AddressFamily.INVALID
        return AddressFamily.IPV6
    return AddressFamily.IPV4


def is_ipv4_address(address: str) -> bool:
    """Return True if the address is a valid IPv4 address."""
    return classify(address) is AddressFamily.IPV4


def is_ipv6_address(address: str) -> bool:
    """Return True if the address is a valid IPv6 address."""
    return classify(address) is AddressFamily.IPV6


def validate_address(address: str) -> None:
    """
    Ensure the address is valid IPv4 or IPv6.

    Raises:
        InvalidAddressError: If the address is neither.
    """
    if classify(address) is AddressFamily.INVALID:
        raise InvalidAddressError(address)


def format_target(address: str, interface: str = "") -> str:
    """
    Build the SSH target host for ``address``.

    IPv6 link-local addresses need the outgoing interface of this machine,
    appended as ``address%interface``. The interface is ignored for IPv4.
    """
    if interface and is_ipv6_address(address):
        return f"{address}%{interface}"
    return address
