"""
External IPAM endpoints.

Routes follow the smart-proxy external IPAM API: subnets are addressed as
``/subnet/{address}/{prefix}`` and the group is an optional query
parameter that falls back to the configured default group.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from extipam.adapter import IpamAdapter
from extipam.api.state import get_adapter
from extipam.models.requests import (
    AddressChangeResponse,
    GroupListResponse,
    GroupResponse,
    HealthResponse,
    IpExistsResponse,
    NextIpResponse,
    ReservationListResponse,
    ReservationResponse,
    SubnetResponse,
)
from extipam.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()

Adapter = Annotated[IpamAdapter, Depends(get_adapter)]
GroupParam = Annotated[str | None, Query(description="Group name (default group if omitted)")]


def _cidr(address: str, prefix: int) -> str:
    return f"{address}/{prefix}"


# =============================================================================
# Groups
# =============================================================================


@router.get("/groups", response_model=GroupListResponse)
def list_groups(adapter: Adapter):
    """List all groups defined in the provider."""
    groups = adapter.get_groups()
    return GroupListResponse(
        groups=[GroupResponse(id=g.id, name=g.name, description=g.description) for g in groups]
    )


@router.get("/groups/{group}", response_model=GroupResponse)
def get_group(group: str, adapter: Adapter):
    """Get a single group by exact name."""
    g = adapter.get_group(group)
    return GroupResponse(id=g.id, name=g.name, description=g.description)


# =============================================================================
# Subnets
# =============================================================================


@router.get("/subnet/{address}/{prefix}", response_model=SubnetResponse)
def get_subnet(address: str, prefix: int, adapter: Adapter, group: GroupParam = None):
    """Resolve a subnet by CIDR."""
    subnet = adapter.resolve_subnet(_cidr(address, prefix), group)
    return SubnetResponse(**subnet.to_dict())


@router.get("/subnet/{address}/{prefix}/next_ip", response_model=NextIpResponse)
def next_ip(
    address: str,
    prefix: int,
    adapter: Adapter,
    mac: Annotated[str, Query(description="MAC address requesting the IP")],
    group: GroupParam = None,
):
    """
    Allocate the next free address in a subnet.

    The address is reserved locally for the MAC until the reservation TTL
    passes or it is released; repeated calls for the same MAC return the
    same address.
    """
    allocation = adapter.coordinator.allocate(mac, _cidr(address, prefix), group)
    return NextIpResponse(
        data=str(allocation.address),
        subnet_id=allocation.subnet.id,
        reused=allocation.reused,
    )


# =============================================================================
# Addresses
# =============================================================================


@router.get("/subnet/{address}/{prefix}/{ip}", response_model=IpExistsResponse)
def ip_exists(address: str, prefix: int, ip: str, adapter: Adapter, group: GroupParam = None):
    """Check whether the provider holds a record for an address."""
    exists = adapter.ip_exists(ip, _cidr(address, prefix), group)
    return IpExistsResponse(ip=ip, exists=exists)


@router.post("/subnet/{address}/{prefix}/{ip}", response_model=AddressChangeResponse)
def add_ip(
    address: str,
    prefix: int,
    ip: str,
    adapter: Adapter,
    group: GroupParam = None,
    mac: Annotated[str | None, Query(description="MAC address to record")] = None,
):
    """Record an address as assigned in the provider."""
    object_id = adapter.add_address(ip, _cidr(address, prefix), group, mac)
    return AddressChangeResponse(ip=ip, changed=True, object_id=object_id or None)


@router.delete("/subnet/{address}/{prefix}/{ip}", response_model=AddressChangeResponse)
def delete_ip(address: str, prefix: int, ip: str, adapter: Adapter, group: GroupParam = None):
    """Delete an address record from the provider."""
    deleted = adapter.delete_address(ip, _cidr(address, prefix), group)
    return AddressChangeResponse(ip=ip, changed=deleted)


@router.delete(
    "/subnet/{address}/{prefix}/{ip}/reservation",
    response_model=AddressChangeResponse,
)
def release_reservation(
    address: str,
    prefix: int,
    ip: str,
    adapter: Adapter,
    mac: Annotated[str, Query(description="MAC address holding the reservation")],
    group: GroupParam = None,
):
    """Release a reservation made by next_ip (abandoned provisioning)."""
    released = adapter.release_address(ip, mac, _cidr(address, prefix), group)
    return AddressChangeResponse(ip=ip, changed=released)


# =============================================================================
# Reservations and Health
# =============================================================================


@router.get("/reservations", response_model=ReservationListResponse)
def list_reservations(adapter: Adapter):
    """List live local reservations."""
    items = [ReservationResponse(**r.to_dict()) for r in adapter.reservations()]
    return ReservationListResponse(reservations=items, total=len(items))


@router.get("/health", response_model=HealthResponse)
def health(adapter: Adapter):
    return HealthResponse(
        status="ok",
        authenticated=adapter.authenticated(),
        groups_supported=adapter.groups_supported(),
        reservations=adapter.store.stats()["total_reservations"],
    )
