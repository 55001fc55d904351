"""
Session token acquisition for the BlueCat REST API.

BlueCat's v1 ``login`` call answers with a sentence rather than JSON::

    "Session Token-> BAMAuthToken: gPVNMTU2ODk... <- for User : api"

The header value used on every later request is the ``BAMAuthToken: <value>``
pair taken from that sentence.
"""

import re

import httpx

from extipam.exceptions import AuthenticationError, TransportError
from extipam.utils.logger import get_logger

logger = get_logger(__name__)

_TOKEN_PATTERN = re.compile(r"(BAMAuthToken:\s*\S+)")


def extract_token(body: str) -> str | None:
    """Pull the ``BAMAuthToken: <value>`` pair out of a login response."""
    match = _TOKEN_PATTERN.search(body.strip().strip('"'))
    if not match:
        return None
    return " ".join(match.group(1).split())


def authenticate(
    base_url: str,
    username: str,
    password: str,
    *,
    verify: bool = True,
    timeout: float = 30.0,
    transport: httpx.BaseTransport | None = None,
) -> str:
    """
    Log in and return a session token.

    Args:
        base_url: REST base URL ending in ``/``.
        username: API user.
        password: API password.
        verify: Verify the provider's TLS certificate.
        timeout: Request timeout in seconds.
        transport: Alternate httpx transport (tests).

    Returns:
        Header value to send with each request.

    Raises:
        TransportError: Provider unreachable.
        AuthenticationError: Credentials rejected or no token in the answer.
    """
    url = base_url + "login"
    logger.debug(f"Authenticating to {url} as '{username}'")

    try:
        with httpx.Client(verify=verify, timeout=timeout, transport=transport) as client:
            response = client.get(
                url,
                params={"username": username, "password": password},
                headers={"Accept": "application/json"},
            )
    except httpx.RequestError as e:
        logger.error(f"Cannot reach External IPAM at {url}: {e}")
        raise TransportError(f"Cannot reach External IPAM: {e}")

    if response.status_code != 200:
        logger.error(f"Authentication rejected with HTTP {response.status_code}")
        raise AuthenticationError(
            f"Authentication rejected by External IPAM (HTTP {response.status_code})"
        )

    token = extract_token(response.text)
    if not token:
        raise AuthenticationError("External IPAM login response contained no token")

    logger.info(f"Authenticated to External IPAM as '{username}'")
    return token
