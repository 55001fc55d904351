"""
Enumeration types for extipam.

Defines the enumerations used across the adapter for allocation state
tracking, reservation outcomes and configuration options.
"""

from enum import Enum


# =============================================================================
# Allocation Enums
# =============================================================================


class AllocationStage(str, Enum):
    """
    Stage of a single allocation attempt.

    State transitions:
        RESOLVING -> QUERYING_PROVIDER -> CHECKING_RESERVATION -> RESERVED
        CHECKING_RESERVATION -> QUERYING_PROVIDER (candidate collided)
        QUERYING_PROVIDER / CHECKING_RESERVATION -> EXHAUSTED
        Any non-terminal -> FAILED
    """

    RESOLVING = "resolving"
    QUERYING_PROVIDER = "querying_provider"
    CHECKING_RESERVATION = "checking_reservation"
    RESERVED = "reserved"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


class ReserveOutcome(str, Enum):
    """Result of a test-and-set on the reservation store."""

    RESERVED = "reserved"  # New reservation created
    RESERVED_BY_SAME_OWNER = "reserved_by_same_owner"  # Idempotent retry
    ALREADY_RESERVED_BY = "already_reserved_by"  # Live claim by another MAC


class ExhaustionReason(str, Enum):
    """Why an allocation ran out of addresses."""

    SUBNET = "subnet"  # Provider reported no free address
    RESERVATIONS = "reservations"  # Every candidate collided up to the ceiling


# =============================================================================
# Provider Enums
# =============================================================================


class ResponseEnvelope(str, Enum):
    """
    Shape of list responses returned by the provider.

    - BARE: a plain JSON array
    - RESULTS: an object with the array under ``results``
    - AUTO: detect per response
    """

    AUTO = "auto"
    BARE = "bare"
    RESULTS = "results"


# =============================================================================
# Logging Enums
# =============================================================================


class LogLevel(str, Enum):
    """
    Logging verbosity levels.

    Levels (from most to least verbose):
        - FULL: Complete trace with detailed stack information
        - DEBUG: Debug messages and above
        - INFO: Informational messages and above
        - WARNING: Only warnings and errors
    """

    FULL = "full"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
