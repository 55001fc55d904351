"""Exception classes for the external IPAM adapter."""

from extipam.models.enums import AllocationStage, ExhaustionReason


class IpamError(Exception):
    """
    Base exception for adapter operations.

    ``stage`` is filled in by the allocation coordinator with the stage that
    produced the error; it stays None for errors raised outside an
    allocation.
    """

    kind = "ipam_error"

    def __init__(self, message: str, stage: AllocationStage | None = None):
        self.message = message
        self.stage = stage
        super().__init__(message)


class ConfigError(IpamError):
    """Adapter configuration is missing or invalid."""

    kind = "config_error"


class InvalidRequest(IpamError):
    """Caller supplied an unusable CIDR, address or MAC."""

    kind = "invalid_request"


class TransportError(IpamError):
    """Provider could not be reached (network, TLS or timeout)."""

    kind = "transport_error"


class AuthenticationError(IpamError):
    """Credentials rejected or session token no longer accepted."""

    kind = "authentication_error"


class GroupNotFound(IpamError):
    """No group (configuration) matches the requested name exactly."""

    kind = "group_not_found"

    def __init__(self, group_name: str, stage: AllocationStage | None = None):
        self.group_name = group_name
        super().__init__(f"Group not found in External IPAM: {group_name}", stage)


class SubnetNotFound(IpamError):
    """No subnet in the group matches the requested CIDR."""

    kind = "subnet_not_found"

    def __init__(
        self,
        cidr: str,
        group_name: str | None = None,
        stage: AllocationStage | None = None,
    ):
        self.cidr = cidr
        self.group_name = group_name
        where = f" in group {group_name}" if group_name else ""
        super().__init__(f"Subnet {cidr} not found{where}", stage)


class MalformedSubnetData(IpamError):
    """Provider data could not be decoded into a subnet."""

    kind = "malformed_subnet_data"


class MalformedResponse(MalformedSubnetData):
    """Provider response did not have the expected shape."""

    kind = "malformed_response"


class SubnetExhausted(IpamError):
    """No address could be handed out."""

    kind = "subnet_exhausted"

    def __init__(
        self,
        message: str,
        reason: ExhaustionReason,
        stage: AllocationStage | None = None,
    ):
        self.reason = reason
        super().__init__(message, stage)


class ProviderRejected(IpamError):
    """Provider answered with an unexpected non-2xx status."""

    kind = "provider_rejected"

    def __init__(
        self,
        message: str,
        status_code: int,
        body: str = "",
        stage: AllocationStage | None = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(f"{message} (HTTP {status_code}): {body[:200]}", stage)
