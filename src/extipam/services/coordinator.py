"""
Allocation Coordinator.

Hands out the next free address of a provider subnet without giving the same
address to two concurrent callers. The provider's "next available" query is
read-only and lags real provisioning, so each candidate it returns is checked
against the reservation store before it is handed out.

Per-attempt states:
    RESOLVING -> QUERYING_PROVIDER -> CHECKING_RESERVATION -> RESERVED
                         ^                    |
                         +---- collision -----+
    QUERYING_PROVIDER (no candidate)          -> EXHAUSTED
    CHECKING_RESERVATION (candidates used up) -> EXHAUSTED
    any provider/resolution error             -> FAILED

Errors are never retried or swallowed here. Each one is tagged with the stage
that produced it and re-raised; retry policy belongs to the caller.
"""

from __future__ import annotations

import ipaddress
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

from extipam.exceptions import IpamError, SubnetExhausted
from extipam.models.enums import AllocationStage, ExhaustionReason, ReserveOutcome
from extipam.models.ipam import Allocation, Group, Scope, Subnet, normalize_mac, parse_address
from extipam.services.reservation_store import ReservationStore
from extipam.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_RETRIES = 16


class AddressSource(Protocol):
    """What the coordinator needs from a resolution client."""

    def resolve(self, cidr: str, group_name: str | None = None) -> tuple[Subnet, Group]: ...

    def next_free_address(
        self, subnet: Subnet, exclude: set[ipaddress.IPv4Address]
    ) -> ipaddress.IPv4Address | None: ...


@contextmanager
def _stage(stage: AllocationStage) -> Iterator[None]:
    """Tag IpamErrors raised inside the block with ``stage``."""
    try:
        yield
    except IpamError as e:
        if e.stage is None:
            e.stage = stage
        logger.debug(f"Allocation failed in {stage.value}: {e.kind}: {e.message}")
        raise


def scope_of(subnet: Subnet, group: Group) -> Scope:
    return (subnet.id, group.id)


class AllocationCoordinator:
    """
    Reconciles provider candidates with local reservations.

    The reservation store is passed in and owned by the caller; the
    coordinator holds no state of its own.
    """

    def __init__(
        self,
        source: AddressSource,
        store: ReservationStore,
        reservation_ttl: float | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        """
        Initialize the coordinator.

        Args:
            source: Resolution client answering subnet and candidate queries.
            store: Reservation store shared by every allocation.
            reservation_ttl: Seconds a hand-out is protected (store default if None).
            max_retries: Max candidates checked per allocation.
        """
        self.source = source
        self.store = store
        self.reservation_ttl = reservation_ttl
        self.max_retries = max_retries

    def _ceiling(self, subnet: Subnet) -> int:
        return max(1, min(self.max_retries, subnet.host_count()))

    def allocate(self, mac: str, cidr: str, group_name: str | None = None) -> Allocation:
        """
        Allocate the next free address of a subnet for a MAC.

        A MAC that already holds a live reservation in the subnet gets the
        same address back.

        Args:
            mac: Requesting MAC address (any common notation).
            cidr: Subnet in CIDR notation.
            group_name: Group name (configured default if None).

        Returns:
            Allocation with the reserved address.

        Raises:
            InvalidRequest, GroupNotFound, SubnetNotFound, MalformedSubnetData,
            TransportError, AuthenticationError, ProviderRejected: tagged with
                the stage that raised them.
            SubnetExhausted: No free address, or every candidate collided.
        """
        owner = normalize_mac(mac)
        self.store.sweep()

        with _stage(AllocationStage.RESOLVING):
            subnet, group = self.source.resolve(cidr, group_name)
        scope = scope_of(subnet, group)

        existing = self.store.find_by_owner(scope, owner)
        if existing is not None:
            logger.info(f"{owner} already holds {existing.address} in {subnet.cidr}")
            return Allocation(existing.address, subnet, scope, owner, reused=True)

        excluded: set[ipaddress.IPv4Address] = set()
        ceiling = self._ceiling(subnet)

        for attempt in range(1, ceiling + 1):
            with _stage(AllocationStage.QUERYING_PROVIDER):
                candidate = self.source.next_free_address(subnet, excluded)
                if candidate is None and not excluded:
                    raise SubnetExhausted(
                        f"No free addresses in {subnet.cidr}",
                        ExhaustionReason.SUBNET,
                    )

            if candidate is None:
                # The provider offered addresses, local reservations blocked them
                break

            with _stage(AllocationStage.CHECKING_RESERVATION):
                result = self.store.try_reserve(scope, candidate, owner, self.reservation_ttl)

            if result.outcome == ReserveOutcome.RESERVED:
                logger.info(f"Allocated {candidate} in {subnet.cidr} to {owner}")
                return Allocation(candidate, subnet, scope, owner)

            if result.outcome == ReserveOutcome.RESERVED_BY_SAME_OWNER:
                return Allocation(candidate, subnet, scope, owner, reused=True)

            logger.debug(
                f"Candidate {candidate} held by {result.reservation.owner_mac} "
                f"(attempt {attempt}/{ceiling})"
            )
            excluded.add(candidate)

        logger.warning(
            f"Gave up allocating in {subnet.cidr} for {owner}: "
            f"{len(excluded)} candidates all reserved"
        )
        raise SubnetExhausted(
            f"All {len(excluded)} candidates in {subnet.cidr} are reserved by other hosts",
            ExhaustionReason.RESERVATIONS,
            stage=AllocationStage.CHECKING_RESERVATION,
        )

    def release(
        self,
        address,
        mac: str,
        cidr: str,
        group_name: str | None = None,
    ) -> bool:
        """
        Release the reservation a MAC holds on an address.

        Returns:
            True if a reservation was released, False if none matched.
        """
        owner = normalize_mac(mac)
        address = parse_address(address)

        with _stage(AllocationStage.RESOLVING):
            subnet, group = self.source.resolve(cidr, group_name)

        return self.store.release(scope_of(subnet, group), address, owner)
