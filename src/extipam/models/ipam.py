"""
IPAM data model shared by the provider client, the reservation store and
the allocation coordinator.

Subnets and groups are owned by the external provider. They are resolved per
request and never cached by the adapter.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field

from extipam.exceptions import InvalidRequest

# (subnet id, group id) - the namespace reservations live in
Scope = tuple[str, str]

_MAC_HEX = re.compile(r"^[0-9a-f]{12}$")


@dataclass(frozen=True)
class Group:
    """A provider group (BlueCat configuration)."""

    id: str
    name: str
    description: str = ""


@dataclass(frozen=True)
class Subnet:
    """
    A provider subnet.

    Attributes:
        id: Opaque provider identifier.
        network: Network address.
        prefix_length: Prefix length, 0..32.
        description: Free-text name from the provider.
    """

    id: str
    network: ipaddress.IPv4Address
    prefix_length: int
    description: str = ""
    properties: dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def cidr(self) -> str:
        return f"{self.network}/{self.prefix_length}"

    @property
    def ip_network(self) -> ipaddress.IPv4Network:
        return ipaddress.IPv4Network(self.cidr)

    def host_count(self) -> int:
        """Number of assignable host addresses."""
        net = self.ip_network
        if net.prefixlen >= 31:
            return net.num_addresses
        return net.num_addresses - 2

    def contains(self, address: ipaddress.IPv4Address) -> bool:
        return address in self.ip_network

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subnet": str(self.network),
            "mask": self.prefix_length,
            "cidr": self.cidr,
            "description": self.description,
        }


@dataclass(frozen=True)
class Allocation:
    """Address handed out by the coordinator."""

    address: ipaddress.IPv4Address
    subnet: Subnet
    scope: Scope
    owner_mac: str
    reused: bool = False  # True when an existing reservation was returned


# =============================================================================
# Input Parsing
# =============================================================================


def parse_cidr(cidr: str) -> ipaddress.IPv4Network:
    """
    Parse a caller-supplied CIDR.

    The network address must be the real network address of the prefix
    (``10.0.0.0/24``, not ``10.0.0.7/24``).

    Raises:
        InvalidRequest: If the string is not an IPv4 network.
    """
    try:
        return ipaddress.IPv4Network(str(cidr).strip(), strict=True)
    except (ipaddress.AddressValueError, ipaddress.NetmaskValueError, ValueError) as e:
        raise InvalidRequest(f"Invalid IPv4 CIDR '{cidr}': {e}")


def parse_address(address: str | ipaddress.IPv4Address) -> ipaddress.IPv4Address:
    """Parse an IPv4 address, raising InvalidRequest on bad input."""
    try:
        return ipaddress.IPv4Address(str(address).strip())
    except ipaddress.AddressValueError as e:
        raise InvalidRequest(f"Invalid IPv4 address '{address}': {e}")


def normalize_mac(mac: str) -> str:
    """
    Normalise a MAC address to lower-case colon notation.

    Accepts ``aa:bb:cc:dd:ee:ff``, ``AA-BB-CC-DD-EE-FF`` and
    ``aabb.ccdd.eeff``.

    Raises:
        InvalidRequest: If the value is not a 48-bit MAC address.
    """
    if not mac:
        raise InvalidRequest("MAC address is required")
    digits = re.sub(r"[:\-.]", "", mac.strip().lower())
    if not _MAC_HEX.match(digits):
        raise InvalidRequest(f"Invalid MAC address '{mac}'")
    return ":".join(digits[i : i + 2] for i in range(0, 12, 2))
