"""
Reservation Store.

Process-local table of addresses this adapter has handed out but the
provider has not yet recorded as used. A reservation protects its address
from being handed out again until it is released or its TTL passes.

Invariant: at most one live (unexpired, unreleased) reservation exists per
(scope, address). The provider knows nothing about reservations, so this
store is the only place the invariant is enforced.

Locking:
- One lock per scope; operations on different scopes run concurrently.
- A registry lock guards creation of per-scope tables only.
- Check-and-insert runs inside a single critical section.

Reservations are held in memory only. After a restart, addresses reserved
before it can be handed out again until the provider records them.
"""

from __future__ import annotations

import ipaddress
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from extipam.models.enums import ReserveOutcome
from extipam.models.ipam import Scope
from extipam.utils.logger import get_logger

logger = get_logger(__name__)


# Default reservation TTL in seconds (10 minutes)
DEFAULT_RESERVATION_TTL = 600


@dataclass
class Reservation:
    """A provisional claim on an address."""

    scope: Scope
    address: ipaddress.IPv4Address
    owner_mac: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Check if reservation has expired at ``now``."""
        return now >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "subnet_id": self.scope[0],
            "group_id": self.scope[1],
            "address": str(self.address),
            "owner_mac": self.owner_mac,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass(frozen=True)
class ReserveResult:
    """Outcome of ``try_reserve`` and the reservation it concerns."""

    outcome: ReserveOutcome
    reservation: Reservation

    @property
    def won(self) -> bool:
        """True when the caller now owns the address."""
        return self.outcome != ReserveOutcome.ALREADY_RESERVED_BY


@dataclass
class _ScopeTable:
    lock: threading.Lock = field(default_factory=threading.Lock)
    # address -> Reservation
    reservations: dict[ipaddress.IPv4Address, Reservation] = field(default_factory=dict)


class ReservationStore:
    """
    Concurrency-safe reservation table keyed by (subnet id, group id).

    The store is owned by one adapter instance and shares its lifetime.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_RESERVATION_TTL,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the store.

        Args:
            default_ttl: Reservation TTL in seconds when none is given.
            clock: Time source, replaceable in tests.
        """
        self.default_ttl = default_ttl
        self._clock = clock
        self._tables: dict[Scope, _ScopeTable] = {}
        self._registry_lock = threading.Lock()

    def _table(self, scope: Scope) -> _ScopeTable:
        table = self._tables.get(scope)
        if table is None:
            with self._registry_lock:
                table = self._tables.setdefault(scope, _ScopeTable())
        return table

    def _snapshot_tables(self) -> list[tuple[Scope, _ScopeTable]]:
        with self._registry_lock:
            return list(self._tables.items())

    @staticmethod
    def _sweep_locked(table: _ScopeTable, now: datetime) -> int:
        """Remove expired reservations (call within the table lock)."""
        expired = [a for a, r in table.reservations.items() if r.is_expired(now)]
        for address in expired:
            reservation = table.reservations.pop(address)
            logger.debug(
                f"Expired reservation for {address} (owner {reservation.owner_mac})"
            )
        return len(expired)

    # =========================================================================
    # Reserve / Release
    # =========================================================================

    def try_reserve(
        self,
        scope: Scope,
        address: ipaddress.IPv4Address,
        owner_mac: str,
        ttl: float | None = None,
    ) -> ReserveResult:
        """
        Atomically claim an address unless someone else holds it.

        Args:
            scope: (subnet id, group id).
            address: Address to claim.
            owner_mac: Normalised MAC of the claimant.
            ttl: Seconds the claim is honored (None for default).

        Returns:
            RESERVED for a new claim, RESERVED_BY_SAME_OWNER when the caller
            already holds it, ALREADY_RESERVED_BY when another MAC does. The
            result carries the live reservation in every case.
        """
        ttl = self.default_ttl if ttl is None else ttl
        table = self._table(scope)

        with table.lock:
            now = self._clock()
            self._sweep_locked(table, now)

            existing = table.reservations.get(address)
            if existing is not None:
                if existing.owner_mac == owner_mac:
                    return ReserveResult(ReserveOutcome.RESERVED_BY_SAME_OWNER, existing)
                return ReserveResult(ReserveOutcome.ALREADY_RESERVED_BY, existing)

            reservation = Reservation(
                scope=scope,
                address=address,
                owner_mac=owner_mac,
                created_at=now,
                expires_at=now + timedelta(seconds=ttl),
            )
            table.reservations[address] = reservation

        logger.info(
            f"Reserved {address} for {owner_mac} in subnet {scope[0]} "
            f"(expires in {ttl}s)"
        )
        return ReserveResult(ReserveOutcome.RESERVED, reservation)

    def release(self, scope: Scope, address: ipaddress.IPv4Address, owner_mac: str) -> bool:
        """
        Release a live reservation held by ``owner_mac``.

        Returns:
            True if released, False if there was no matching reservation.
        """
        table = self._table(scope)
        with table.lock:
            self._sweep_locked(table, self._clock())
            reservation = table.reservations.get(address)
            if reservation is None or reservation.owner_mac != owner_mac:
                return False
            del table.reservations[address]

        logger.info(f"Released reservation for {address} held by {owner_mac}")
        return True

    def discard(self, scope: Scope, address: ipaddress.IPv4Address) -> bool:
        """Drop any reservation for an address, whoever owns it."""
        table = self._table(scope)
        with table.lock:
            reservation = table.reservations.pop(address, None)
        if reservation is not None:
            logger.debug(f"Discarded reservation for {address} ({reservation.owner_mac})")
        return reservation is not None

    # =========================================================================
    # Queries
    # =========================================================================

    def lookup(self, scope: Scope, address: ipaddress.IPv4Address) -> Reservation | None:
        """Return the live reservation for an address, if any."""
        table = self._table(scope)
        with table.lock:
            self._sweep_locked(table, self._clock())
            return table.reservations.get(address)

    def find_by_owner(self, scope: Scope, owner_mac: str) -> Reservation | None:
        """Return the live reservation held by a MAC in a scope, if any."""
        table = self._table(scope)
        with table.lock:
            self._sweep_locked(table, self._clock())
            for reservation in table.reservations.values():
                if reservation.owner_mac == owner_mac:
                    return reservation
        return None

    def reservations(self, scope: Scope | None = None) -> list[Reservation]:
        """List live reservations, optionally for a single scope."""
        if scope is not None:
            tables = [(scope, self._table(scope))]
        else:
            tables = self._snapshot_tables()

        result = []
        for _, table in tables:
            with table.lock:
                self._sweep_locked(table, self._clock())
                result.extend(table.reservations.values())
        return sorted(result, key=lambda r: (r.scope, r.address))

    # =========================================================================
    # Maintenance
    # =========================================================================

    def sweep(self) -> int:
        """
        Remove expired reservations from every scope.

        Returns:
            Number of reservations removed.
        """
        removed = 0
        for _, table in self._snapshot_tables():
            with table.lock:
                removed += self._sweep_locked(table, self._clock())

        if removed:
            logger.debug(f"Swept {removed} expired reservations")
        return removed

    def stats(self) -> dict:
        """Get reservation statistics."""
        live = self.reservations()
        return {
            "total_reservations": len(live),
            "scopes_with_reservations": len({r.scope for r in live}),
        }
