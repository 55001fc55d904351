"""
Decoding of provider entities.

BlueCat packs structured fields into one property string::

    "CIDR=10.0.0.0/24|allowDuplicateHost=disable|inheritPingBeforeAssign=true|"

Fields may come in any order and values may themselves contain ``=``.
Decoding fails closed: a subnet entity without a usable ``CIDR`` field raises
``MalformedSubnetData`` instead of producing a guessed network.

List responses come either as a bare JSON array or wrapped in a
``{"results": [...]}`` envelope depending on the provider version, so the
envelope is a configuration point with per-response detection.
"""

from __future__ import annotations

import ipaddress
from typing import Any, Protocol

from extipam.exceptions import MalformedResponse, MalformedSubnetData
from extipam.models.enums import ResponseEnvelope
from extipam.models.ipam import Group, Subnet


# =============================================================================
# Property Strings
# =============================================================================


def parse_properties(raw: str | None, separator: str = "|") -> dict[str, str]:
    """
    Split a ``key=value|key=value|`` string into a dict.

    Empty segments are skipped. Segments without ``=`` are ignored; callers
    decide which keys are mandatory.
    """
    if not raw:
        return {}

    properties = {}
    for segment in raw.split(separator):
        segment = segment.strip()
        if not segment or "=" not in segment:
            continue
        key, value = segment.split("=", 1)
        properties[key.strip()] = value.strip()
    return properties


# =============================================================================
# Envelopes
# =============================================================================


def unwrap_list(payload: Any, envelope: ResponseEnvelope = ResponseEnvelope.AUTO) -> list:
    """
    Return the entity list from a provider response.

    Args:
        payload: Decoded JSON body.
        envelope: Expected response shape.

    Raises:
        MalformedResponse: If the payload does not have the expected shape.
    """
    if payload is None:
        return []

    if envelope in (ResponseEnvelope.AUTO, ResponseEnvelope.RESULTS):
        if isinstance(payload, dict) and "results" in payload:
            results = payload["results"]
            if not isinstance(results, list):
                raise MalformedResponse("Provider 'results' envelope is not a list")
            return results
        if envelope == ResponseEnvelope.RESULTS:
            raise MalformedResponse("Provider response is missing the 'results' envelope")

    if isinstance(payload, list):
        return payload

    raise MalformedResponse(
        f"Expected a list response from provider, got {type(payload).__name__}"
    )


def unwrap_entity(payload: Any, envelope: ResponseEnvelope = ResponseEnvelope.AUTO) -> dict | None:
    """
    Return a single entity from a provider response.

    BlueCat signals "no such entity" with an all-null object whose id is 0;
    that and an empty body both map to None.
    """
    if payload is None:
        return None

    if isinstance(payload, dict) and "results" in payload and envelope != ResponseEnvelope.BARE:
        items = unwrap_list(payload, envelope)
        payload = items[0] if items else None
        if payload is None:
            return None

    if not isinstance(payload, dict):
        raise MalformedResponse(
            f"Expected an entity object from provider, got {type(payload).__name__}"
        )

    if not payload.get("id"):
        return None
    return payload


# =============================================================================
# Decoders
# =============================================================================


class SubnetDecoder(Protocol):
    """Turns one raw provider entity into a Subnet."""

    def decode_subnet(self, raw: dict) -> Subnet: ...

    def decode_group(self, raw: dict) -> Group: ...


class BluecatDecoder:
    """Decoder for BlueCat Address Manager v1 entities."""

    separator = "|"

    def decode_subnet(self, raw: dict) -> Subnet:
        """
        Decode an ``IP4Network`` entity.

        Raises:
            MalformedSubnetData: If id or CIDR are missing or invalid.
        """
        if not isinstance(raw, dict):
            raise MalformedSubnetData(f"Subnet entity is not an object: {raw!r}")

        entity_id = raw.get("id")
        if not entity_id:
            raise MalformedSubnetData(f"Subnet entity has no id: {raw!r}")

        raw_properties = raw.get("properties")
        if not isinstance(raw_properties, str) or not raw_properties.strip():
            raise MalformedSubnetData(f"Subnet {entity_id} has no properties string")

        properties = parse_properties(raw_properties, self.separator)
        cidr = properties.get("CIDR")
        if not cidr:
            raise MalformedSubnetData(
                f"Subnet {entity_id} properties carry no CIDR field: {raw_properties!r}"
            )

        try:
            network = ipaddress.IPv4Network(cidr, strict=True)
        except ValueError as e:
            raise MalformedSubnetData(f"Subnet {entity_id} has invalid CIDR {cidr!r}: {e}")

        return Subnet(
            id=str(entity_id),
            network=network.network_address,
            prefix_length=network.prefixlen,
            description=raw.get("name") or "",
            properties=properties,
        )

    def decode_group(self, raw: dict) -> Group:
        """Decode a ``Configuration`` entity."""
        if not isinstance(raw, dict) or not raw.get("id"):
            raise MalformedResponse(f"Group entity has no id: {raw!r}")

        properties = parse_properties(raw.get("properties"), self.separator)
        return Group(
            id=str(raw["id"]),
            name=raw.get("name") or "",
            description=properties.get("description", ""),
        )
