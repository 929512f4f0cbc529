"""Domain values shared across the package."""

from .address import (
    AddressFamily, IPV4_LOOPBACK, IPV6_LOOPBACK, classify, format_target,
    is_ipv4_address, is_ipv6_address, validate_address
)

__all__ = [
    "AddressFamily",
    "IPV4_LOOPBACK",
    "IPV6_LOOPBACK",
    "classify",
    "format_target",
    "is_ipv4_address",
    "is_ipv6_address",
    "validate_address",
]
