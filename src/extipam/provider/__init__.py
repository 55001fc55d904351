"""
External IPAM provider access.

Provides:
- Session token acquisition
- Authenticated REST gateway with one-shot re-authentication
- Entity decoding for provider property strings
- BlueCat resolution client
"""

from extipam.provider.auth import authenticate, extract_token
from extipam.provider.bluecat import BluecatClient
from extipam.provider.decoders import (
    BluecatDecoder,
    SubnetDecoder,
    parse_properties,
    unwrap_entity,
    unwrap_list,
)
from extipam.provider.gateway import ProviderGateway, ProviderResponse

__all__ = [
    # Auth
    "authenticate",
    "extract_token",
    # Gateway
    "ProviderGateway",
    "ProviderResponse",
    # Decoding
    "SubnetDecoder",
    "BluecatDecoder",
    "parse_properties",
    "unwrap_entity",
    "unwrap_list",
    # Client
    "BluecatClient",
]
