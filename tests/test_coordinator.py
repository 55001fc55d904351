"""Tests for the allocation coordinator, end to end through the fake provider."""

import ipaddress
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from extipam.exceptions import (
    GroupNotFound,
    InvalidRequest,
    SubnetExhausted,
    SubnetNotFound,
    TransportError,
)
from extipam.models.enums import AllocationStage, ExhaustionReason

MAC = "aa:bb:cc:dd:ee:ff"
OTHER_MAC = "11:22:33:44:55:66"
SCOPE = ("101", "7")


def ip(value):
    return ipaddress.IPv4Address(value)


def test_allocates_provider_candidate(adapter, fake_bam):
    fake_bam.next_ip["101"] = "10.0.0.5"

    address = adapter.allocate_next_address(MAC, "10.0.0.0/24", "Engineering")

    assert address == "10.0.0.5"
    reservation = adapter.store.lookup(SCOPE, ip("10.0.0.5"))
    assert reservation.owner_mac == MAC


def test_skips_reserved_and_reuses_expired(adapter, fake_bam, clock):
    fake_bam.next_ip["101"] = "10.0.0.5"
    adapter.store.try_reserve(SCOPE, ip("10.0.0.5"), OTHER_MAC, ttl=3600)
    adapter.store.try_reserve(SCOPE, ip("10.0.0.6"), OTHER_MAC, ttl=10)
    clock.advance(11)

    address = adapter.allocate_next_address(MAC, "10.0.0.0/24", "Engineering")

    assert address == "10.0.0.6"
    assert adapter.store.lookup(SCOPE, ip("10.0.0.6")).owner_mac == MAC
    assert adapter.store.lookup(SCOPE, ip("10.0.0.5")).owner_mac == OTHER_MAC


def test_exhausts_after_retry_ceiling(adapter, fake_bam):
    fake_bam.next_ip["101"] = "10.0.0.5"
    for last_octet in range(5, 20):
        adapter.store.try_reserve(SCOPE, ip(f"10.0.0.{last_octet}"), OTHER_MAC)

    with pytest.raises(SubnetExhausted) as exc_info:
        adapter.allocate_next_address(MAC, "10.0.0.0/24", "Engineering")

    error = exc_info.value
    assert error.reason == ExhaustionReason.RESERVATIONS
    assert error.stage == AllocationStage.CHECKING_RESERVATION
    # MAX_ALLOCATION_RETRIES = 5 in the test config
    assert len(fake_bam.calls("getNextAvailableIP4Address")) == 5
    assert adapter.store.find_by_owner(SCOPE, MAC) is None


def test_provider_has_no_free_address(adapter, fake_bam):
    fake_bam.next_ip["101"] = None

    with pytest.raises(SubnetExhausted) as exc_info:
        adapter.allocate_next_address(MAC, "10.0.0.0/24", "Engineering")

    assert exc_info.value.reason == ExhaustionReason.SUBNET
    assert exc_info.value.stage == AllocationStage.QUERYING_PROVIDER


def test_reserved_tail_of_subnet_is_reservation_exhaustion(adapter, fake_bam):
    fake_bam.add_network(7, "10.4.0.0/29", 180)
    for last_octet in (1, 2, 3):
        fake_bam.addresses[f"10.4.0.{last_octet}"] = last_octet
    # Provider still offers .4; .4 to .6 are already handed out locally
    fake_bam.next_ip["180"] = "10.4.0.4"
    for last_octet in (4, 5, 6):
        adapter.store.try_reserve(("180", "7"), ip(f"10.4.0.{last_octet}"), OTHER_MAC)

    with pytest.raises(SubnetExhausted) as exc_info:
        adapter.allocate_next_address(MAC, "10.4.0.0/29", "Engineering")

    assert exc_info.value.reason == ExhaustionReason.RESERVATIONS
    assert exc_info.value.stage == AllocationStage.CHECKING_RESERVATION
    assert adapter.store.find_by_owner(("180", "7"), MAC) is None


def test_same_mac_gets_same_address(adapter, fake_bam):
    fake_bam.next_ip["101"] = "10.0.0.5"
    first = adapter.coordinator.allocate(MAC, "10.0.0.0/24", "Engineering")

    # Provider has moved on, the MAC still holds .5
    fake_bam.next_ip["101"] = "10.0.0.9"
    second = adapter.coordinator.allocate("AA-BB-CC-DD-EE-FF", "10.0.0.0/24", "Engineering")

    assert first.address == second.address == ip("10.0.0.5")
    assert not first.reused
    assert second.reused
    assert len(adapter.reservations()) == 1


def test_concurrent_callers_get_distinct_addresses(adapter, fake_bam):
    fake_bam.next_ip["101"] = "10.0.0.5"
    adapter.coordinator.max_retries = 32
    macs = [f"02:00:00:00:00:{i:02x}" for i in range(10)]
    barrier = threading.Barrier(len(macs))

    def allocate(mac):
        barrier.wait()
        return adapter.allocate_next_address(mac, "10.0.0.0/24", "Engineering")

    with ThreadPoolExecutor(max_workers=len(macs)) as pool:
        addresses = list(pool.map(allocate, macs))

    assert len(set(addresses)) == len(macs)
    assert "10.0.0.5" in addresses


def test_release_frees_address(adapter, fake_bam):
    fake_bam.next_ip["101"] = "10.0.0.5"
    adapter.allocate_next_address(MAC, "10.0.0.0/24", "Engineering")

    assert adapter.release_address("10.0.0.5", OTHER_MAC, "10.0.0.0/24", "Engineering") is False
    assert adapter.release_address("10.0.0.5", MAC, "10.0.0.0/24", "Engineering") is True
    assert adapter.release_address("10.0.0.5", MAC, "10.0.0.0/24", "Engineering") is False

    assert adapter.allocate_next_address(OTHER_MAC, "10.0.0.0/24", "Engineering") == "10.0.0.5"


def test_resolution_errors_are_tagged(adapter, fake_bam):
    with pytest.raises(GroupNotFound) as exc_info:
        adapter.allocate_next_address(MAC, "10.0.0.0/24", "Marketing")
    assert exc_info.value.stage == AllocationStage.RESOLVING

    with pytest.raises(SubnetNotFound) as exc_info:
        adapter.allocate_next_address(MAC, "172.16.0.0/24", "Engineering")
    assert exc_info.value.stage == AllocationStage.RESOLVING

    assert adapter.reservations() == []


def test_provider_failure_during_query_leaves_no_reservation(adapter, monkeypatch):
    def unreachable(subnet, exclude=frozenset()):
        raise TransportError("provider went away")

    monkeypatch.setattr(adapter.client, "next_free_address", unreachable)

    with pytest.raises(TransportError) as exc_info:
        adapter.allocate_next_address(MAC, "10.0.0.0/24", "Engineering")

    assert exc_info.value.stage == AllocationStage.QUERYING_PROVIDER
    assert adapter.reservations() == []


def test_invalid_mac_rejected_before_provider_call(adapter, fake_bam):
    with pytest.raises(InvalidRequest):
        adapter.allocate_next_address("not-a-mac", "10.0.0.0/24", "Engineering")
    assert fake_bam.calls("getIPRangedByIP") == []
