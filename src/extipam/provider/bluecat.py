"""
BlueCat Address Manager resolution client.

Resolves (CIDR, group) pairs to provider subnets and wraps the handful of
REST v1 calls the adapter needs. Groups are BlueCat configurations; subnets
are ``IP4Network`` entities inside a configuration.

REST calls used:
    - getEntityByName / getEntities: configuration lookup and listing
    - getIPRangedByIP: network containing an address within a configuration
    - getNextAvailableIP4Address: provider's candidate free address
    - getIP4Address: address object lookup inside a container
    - assignIP4Address / delete: address assignment and removal
"""

from __future__ import annotations

import ipaddress

from extipam.exceptions import (
    GroupNotFound,
    InvalidRequest,
    MalformedResponse,
    ProviderRejected,
    SubnetNotFound,
)
from extipam.models.enums import ResponseEnvelope
from extipam.models.ipam import Group, Subnet, parse_address, parse_cidr
from extipam.provider.decoders import (
    BluecatDecoder,
    SubnetDecoder,
    unwrap_entity,
    unwrap_list,
)
from extipam.provider.gateway import ProviderGateway, ProviderResponse
from extipam.utils.logger import get_logger

logger = get_logger(__name__)

GROUP_TYPE = "Configuration"
SUBNET_TYPE = "IP4Network"
GROUP_PAGE_SIZE = 100


class BluecatClient:
    """
    Resolution client for BlueCat Address Manager.

    Holds no state besides its collaborators; every call goes to the
    provider, which stays the source of truth for groups and subnets.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        default_group: str = "",
        decoder: SubnetDecoder | None = None,
        envelope: ResponseEnvelope = ResponseEnvelope.AUTO,
        linear_scan_limit: int = 256,
    ):
        """
        Initialize the client.

        Args:
            gateway: Authenticated provider gateway.
            default_group: Group used when a request names none.
            decoder: Entity decoder (BlueCat property strings by default).
            envelope: Expected shape of list responses.
            linear_scan_limit: Max addresses probed past a stale candidate.
        """
        self.gateway = gateway
        self.default_group = default_group
        self.decoder = decoder or BluecatDecoder()
        self.envelope = envelope
        self.linear_scan_limit = linear_scan_limit

    @staticmethod
    def _check(response: ProviderResponse, action: str) -> ProviderResponse:
        if not response.ok:
            logger.warning(f"Provider rejected {action}: HTTP {response.status_code}")
            raise ProviderRejected(
                f"External IPAM rejected {action}", response.status_code, response.body
            )
        return response

    # =========================================================================
    # Groups
    # =========================================================================

    def get_groups(self) -> list[Group]:
        """List all groups (top-level configurations)."""
        response = self._check(
            self.gateway.get(
                "getEntities",
                params={"parentId": 0, "type": GROUP_TYPE, "start": 0, "count": GROUP_PAGE_SIZE},
            ),
            "group listing",
        )
        return [
            self.decoder.decode_group(raw)
            for raw in unwrap_list(response.json(), self.envelope)
        ]

    def get_group(self, group_name: str) -> Group:
        """
        Look up a group by exact, case-sensitive name.

        Raises:
            GroupNotFound: If no group has exactly this name.
        """
        if not group_name:
            raise GroupNotFound(group_name or "")

        response = self._check(
            self.gateway.get(
                "getEntityByName",
                params={"parentId": 0, "name": group_name, "type": GROUP_TYPE},
            ),
            f"group lookup '{group_name}'",
        )
        raw = unwrap_entity(response.json(), self.envelope)
        if raw is None:
            raise GroupNotFound(group_name)

        group = self.decoder.decode_group(raw)
        # Provider-side name matching may be looser than ours
        if group.name != group_name:
            logger.debug(f"Group lookup '{group_name}' matched '{group.name}', rejecting")
            raise GroupNotFound(group_name)
        return group

    def resolve_group(self, group_name: str | None = None) -> Group:
        """Resolve a group name, falling back to the configured default."""
        name = group_name or self.default_group
        if not name:
            raise InvalidRequest("No group given and no default_group configured")
        return self.get_group(name)

    # =========================================================================
    # Subnets
    # =========================================================================

    def resolve(self, cidr: str, group_name: str | None = None) -> tuple[Subnet, Group]:
        """
        Resolve a CIDR inside a group to a provider subnet.

        Returns:
            The subnet and the group it was found in.

        Raises:
            InvalidRequest: Bad CIDR.
            GroupNotFound: Unknown group.
            SubnetNotFound: No network with exactly this address and prefix.
            MalformedSubnetData: Provider entity could not be decoded.
        """
        network = parse_cidr(cidr)
        group = self.resolve_group(group_name)

        response = self._check(
            self.gateway.get(
                "getIPRangedByIP",
                params={
                    "containerId": group.id,
                    "type": SUBNET_TYPE,
                    "address": str(network.network_address),
                },
            ),
            f"subnet lookup {network}",
        )
        raw = unwrap_entity(response.json(), self.envelope)
        if raw is None:
            raise SubnetNotFound(str(network), group.name)

        subnet = self.decoder.decode_subnet(raw)
        if subnet.network != network.network_address or subnet.prefix_length != network.prefixlen:
            # The provider returned the enclosing network, not this one
            logger.debug(f"Lookup for {network} returned {subnet.cidr}, no exact match")
            raise SubnetNotFound(str(network), group.name)

        logger.debug(f"Resolved {network} in '{group.name}' to subnet {subnet.id}")
        return subnet, group

    def resolve_subnet(self, cidr: str, group_name: str | None = None) -> Subnet:
        """Resolve a CIDR inside a group to a provider subnet."""
        subnet, _ = self.resolve(cidr, group_name)
        return subnet

    # =========================================================================
    # Addresses
    # =========================================================================

    def _query_next_available(self, subnet: Subnet) -> ipaddress.IPv4Address | None:
        response = self._check(
            self.gateway.get("getNextAvailableIP4Address", params={"parentId": subnet.id}),
            f"next address query for {subnet.cidr}",
        )
        text = response.body.strip().strip('"').strip()
        if not text or text == "null":
            return None

        try:
            candidate = ipaddress.IPv4Address(text)
        except ipaddress.AddressValueError:
            raise MalformedResponse(f"Provider returned an invalid next address: {text!r}")

        if not subnet.contains(candidate):
            raise MalformedResponse(
                f"Provider returned {candidate}, which is outside {subnet.cidr}"
            )
        return candidate

    def next_free_address(
        self,
        subnet: Subnet,
        exclude: set[ipaddress.IPv4Address] | frozenset = frozenset(),
    ) -> ipaddress.IPv4Address | None:
        """
        Ask the provider for a free address, skipping ``exclude``.

        BlueCat has no exclusion parameter and keeps answering with the same
        address until its own record is updated. When the answer is excluded,
        the subnet is walked forward from it, skipping excluded addresses and
        addresses the provider already holds.

        Returns:
            A candidate address, or None if none could be found.
        """
        candidate = self._query_next_available(subnet)
        if candidate is None or candidate not in exclude:
            return candidate

        network = subnet.ip_network
        last = network.broadcast_address if network.prefixlen >= 31 else network.broadcast_address - 1
        probe = candidate + 1
        probes = 0

        while probe <= last and probes < self.linear_scan_limit:
            if probe not in exclude:
                probes += 1
                if not self.ip_exists(probe, subnet.id):
                    logger.debug(f"Provider candidate {candidate} excluded, advanced to {probe}")
                    return probe
            probe += 1

        logger.info(f"No free address after {candidate} in {subnet.cidr}")
        return None

    def _find_address(self, address: ipaddress.IPv4Address, container_id: str) -> dict | None:
        response = self._check(
            self.gateway.get(
                "getIP4Address",
                params={"containerId": container_id, "address": str(address)},
            ),
            f"address lookup {address}",
        )
        return unwrap_entity(response.json(), self.envelope)

    def ip_exists(self, address, container_id: str) -> bool:
        """Check whether the provider holds a record for an address."""
        return self._find_address(parse_address(address), container_id) is not None

    def assign_address(
        self,
        address,
        group_id: str,
        mac: str | None = None,
        hostname: str = "",
    ) -> str:
        """
        Record an address as statically assigned in the provider.

        Returns:
            Provider object id of the new address record.

        Raises:
            ProviderRejected: If the provider refuses the assignment.
        """
        address = parse_address(address)
        params = {
            "action": "MAKE_STATIC",
            "configurationId": group_id,
            "ip4Address": str(address),
            "hostInfo": hostname,
            "properties": "",
        }
        if mac:
            params["macAddress"] = mac

        response = self._check(
            self.gateway.post("assignIP4Address", params=params),
            f"assignment of {address}",
        )
        logger.info(f"Assigned {address} in configuration {group_id}")
        return response.body.strip().strip('"')

    def delete_address(self, address, container_id: str) -> bool:
        """
        Delete an address record from the provider.

        Returns:
            True if a record was deleted, False if the provider had none.
        """
        address = parse_address(address)
        raw = self._find_address(address, container_id)
        if raw is None:
            logger.debug(f"Address {address} not present in provider, nothing to delete")
            return False

        self._check(
            self.gateway.delete("delete", params={"objectId": raw["id"]}),
            f"deletion of {address}",
        )
        logger.info(f"Deleted {address} (object {raw['id']}) from provider")
        return True
