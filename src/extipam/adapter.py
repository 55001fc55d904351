"""
External IPAM adapter.

The object a provisioning host talks to. It is built once per configuration
and owns the provider gateway, the resolution client, the reservation store
and the allocation coordinator for its whole lifetime.

One adapter instance must serve each provider endpoint. Reservations are
process-local, so two adapter processes pointed at the same provider can
hand out the same address.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from functools import partial

import httpx

from extipam.config import AdapterConfig
from extipam.exceptions import InvalidRequest
from extipam.models.ipam import Group, Subnet, normalize_mac, parse_address
from extipam.provider.auth import authenticate
from extipam.provider.bluecat import BluecatClient
from extipam.provider.decoders import SubnetDecoder
from extipam.provider.gateway import ProviderGateway
from extipam.services.coordinator import AllocationCoordinator, scope_of
from extipam.services.reservation_store import Reservation, ReservationStore
from extipam.services.sweeper import ReservationSweeper
from extipam.utils.logger import get_logger

logger = get_logger(__name__)


class IpamAdapter:
    """Host-facing surface of the external IPAM integration."""

    def __init__(
        self,
        config: AdapterConfig,
        *,
        decoder: SubnetDecoder | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], datetime] = datetime.now,
        connect: bool = True,
    ):
        """
        Wire up the adapter.

        Args:
            config: Validated adapter configuration.
            decoder: Entity decoder (BlueCat by default).
            transport: Alternate httpx transport for gateway and login (tests).
            clock: Time source for reservations.
            connect: Authenticate immediately instead of on first request.
        """
        self.config = config
        base_url = config.get_api_base()

        authenticator = partial(
            authenticate,
            base_url,
            config.USER,
            config.PASSWORD,
            verify=config.VERIFY_SSL,
            timeout=config.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )
        self.gateway = ProviderGateway(
            base_url,
            authenticator,
            auth_header=config.AUTH_HEADER,
            verify=config.VERIFY_SSL,
            timeout=config.REQUEST_TIMEOUT_SECONDS,
            auth_failure_status=config.AUTH_FAILURE_STATUS,
            transport=transport,
        )
        self.client = BluecatClient(
            self.gateway,
            default_group=config.DEFAULT_GROUP,
            decoder=decoder,
            envelope=config.RESPONSE_ENVELOPE,
            linear_scan_limit=config.LINEAR_SCAN_LIMIT,
        )
        self.store = ReservationStore(default_ttl=config.RESERVATION_TTL_SECONDS, clock=clock)
        self.coordinator = AllocationCoordinator(
            self.client,
            self.store,
            reservation_ttl=config.RESERVATION_TTL_SECONDS,
            max_retries=config.MAX_ALLOCATION_RETRIES,
        )
        self.sweeper = ReservationSweeper(self.store, config.RESERVATION_SWEEP_INTERVAL_SECONDS)

        if connect:
            self.gateway.login()

        logger.info(f"External IPAM adapter ready for {config.URL}")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start background maintenance."""
        self.sweeper.start()

    def close(self) -> None:
        """Stop background maintenance and close the provider connection."""
        self.sweeper.stop()
        self.gateway.close()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def authenticated(self) -> bool:
        return self.gateway.authenticated

    def groups_supported(self) -> bool:
        return True

    # =========================================================================
    # Groups and Subnets
    # =========================================================================

    def get_groups(self) -> list[Group]:
        return self.client.get_groups()

    def get_group(self, group_name: str) -> Group:
        return self.client.get_group(group_name)

    def resolve_subnet(self, cidr: str, group_name: str | None = None) -> Subnet:
        return self.client.resolve_subnet(cidr, group_name)

    # =========================================================================
    # Allocation
    # =========================================================================

    def allocate_next_address(self, mac: str, cidr: str, group_name: str | None = None) -> str:
        """
        Hand out the next free address of a subnet to a MAC.

        Returns:
            The address as a string.
        """
        return str(self.coordinator.allocate(mac, cidr, group_name).address)

    def release_address(
        self,
        address: str,
        mac: str,
        cidr: str,
        group_name: str | None = None,
    ) -> bool:
        """Release a reservation made by ``allocate_next_address``."""
        return self.coordinator.release(address, mac, cidr, group_name)

    def reservations(self) -> list[Reservation]:
        return self.store.reservations()

    # =========================================================================
    # Provider Address Records
    # =========================================================================

    def _resolve_member(self, address: str, cidr: str, group_name: str | None):
        ip = parse_address(address)
        subnet, group = self.client.resolve(cidr, group_name)
        if not subnet.contains(ip):
            raise InvalidRequest(f"Address {ip} is not inside {subnet.cidr}")
        return ip, subnet, group

    def ip_exists(self, address: str, cidr: str, group_name: str | None = None) -> bool:
        """Check whether the provider holds a record for an address."""
        ip, subnet, _ = self._resolve_member(address, cidr, group_name)
        return self.client.ip_exists(ip, subnet.id)

    def add_address(
        self,
        address: str,
        cidr: str,
        group_name: str | None = None,
        mac: str | None = None,
    ) -> str:
        """
        Record an address as assigned in the provider.

        Returns:
            Provider object id of the address record.
        """
        ip, _, group = self._resolve_member(address, cidr, group_name)
        return self.client.assign_address(ip, group.id, normalize_mac(mac) if mac else None)

    def delete_address(self, address: str, cidr: str, group_name: str | None = None) -> bool:
        """
        Delete an address record from the provider.

        Any local reservation for the address is dropped as well.
        """
        ip, subnet, group = self._resolve_member(address, cidr, group_name)
        deleted = self.client.delete_address(ip, subnet.id)
        self.store.discard(scope_of(subnet, group), ip)
        return deleted
