"""
Pydantic models for API responses.

This module defines the data transfer objects returned by the adapter's
HTTP API to the provisioning host.

Model Categories:
    - Group Responses
    - Subnet and Address Responses
    - Reservation Responses
    - Health and Error Responses
"""

import datetime

from pydantic import BaseModel, Field


# =============================================================================
# Group Responses
# =============================================================================


class GroupResponse(BaseModel):
    """A provider group (configuration)."""

    id: str
    name: str
    description: str = ""


class GroupListResponse(BaseModel):
    groups: list[GroupResponse] = Field(default_factory=list)


# =============================================================================
# Subnet and Address Responses
# =============================================================================


class SubnetResponse(BaseModel):
    """
    A resolved provider subnet.

    ``subnet`` and ``mask`` mirror the smart-proxy field names; ``cidr`` is
    the combined form.
    """

    id: str
    subnet: str
    mask: int = Field(..., ge=0, le=32)
    cidr: str
    description: str = ""


class NextIpResponse(BaseModel):
    """Address handed out for a MAC."""

    data: str = Field(..., description="Allocated IPv4 address")
    subnet_id: str
    reused: bool = Field(
        default=False,
        description="True if the MAC already held this address",
    )


class IpExistsResponse(BaseModel):
    ip: str
    exists: bool


class AddressChangeResponse(BaseModel):
    """Result of an assign, delete or release call."""

    ip: str
    changed: bool
    object_id: str | None = None


# =============================================================================
# Reservation Responses
# =============================================================================


class ReservationResponse(BaseModel):
    subnet_id: str
    group_id: str
    address: str
    owner_mac: str
    created_at: datetime.datetime
    expires_at: datetime.datetime


class ReservationListResponse(BaseModel):
    reservations: list[ReservationResponse] = Field(default_factory=list)
    total: int = 0


# =============================================================================
# Health and Error Responses
# =============================================================================


class HealthResponse(BaseModel):
    status: str
    authenticated: bool
    groups_supported: bool
    reservations: int


class ErrorResponse(BaseModel):
    """Standard error body."""

    error: str = Field(..., description="Error kind")
    message: str
    stage: str | None = Field(
        default=None,
        description="Allocation stage that produced the error",
    )
